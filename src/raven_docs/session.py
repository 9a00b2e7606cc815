"""
Session scoping shared by database and collection operations.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

from .types import ConnectionError

if TYPE_CHECKING:
    from .types import DatabaseLike

__all__ = ["open_session", "store_entity", "without_metadata", "zero_value"]


@contextmanager
def open_session(service: DatabaseLike) -> Iterator[Any]:
    """
    Open a session on the service's database, closing it on exit.

    Raises:
        ConnectionError: If the session cannot be opened.
    """
    try:
        session = service.document_store.open_session(database=service.database)
    except Exception as e:
        raise ConnectionError(f"failed to open session: {e}") from e

    with session:
        yield session


def zero_value(document_type: type | None) -> Any:
    """Return an empty instance of `document_type`, or None if it needs arguments."""
    if document_type is None:
        return None
    try:
        return document_type()
    except TypeError:
        return None


def without_metadata(document: Any) -> Any:
    """Return a dict document without the server's @metadata entry."""
    if isinstance(document, dict) and "@metadata" in document:
        return {key: value for key, value in document.items() if key != "@metadata"}
    return document


def store_entity(session: Any, document: Any, id: str = "") -> None:
    """
    Store `document` in the session, under `id` when one is given.

    Raises:
        ValueError: If the document is None or empty; the client rejects those.
    """
    if not document:
        raise ValueError("empty documents cannot be stored")
    if id:
        session.store(document, id)
    else:
        session.store(document)
