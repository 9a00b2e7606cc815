"""
Type definitions for raven-docs.

Provides the query request/response shapes shared by every query path,
the protocol a collection needs from its database, and the exception
hierarchy raised by database and collection operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Mapping, Protocol, TypeVar

if TYPE_CHECKING:
    from ravendb import DocumentStore

T = TypeVar("T")

# Page size applied when a query does not ask for one
DEFAULT_TAKE = 25
# Upper bound on documents returned by a single query
MAX_TAKE = 1024


@dataclass
class QueryOptions:
    """
    Pagination, ordering and filtering for a collection query.

    Attributes:
        skip: Number of documents to skip.
        take: Page size. 0 means unset and resolves to DEFAULT_TAKE.
        order_by: Field to order by, if any.
        order_desc: Order descending instead of ascending.
        where_clause: Raw RQL fragment ANDed onto the collection filter.
            Not escaped; use $name placeholders with `parameters`.
        parameters: Named query parameters bound to $name placeholders.
        include_total: Carried for callers; total_count is always the
            size of the fetched page.
    """

    skip: int = 0
    take: int = 0
    order_by: str = ""
    order_desc: bool = False
    where_clause: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    include_total: bool = False


@dataclass
class GenericQueryResult(Generic[T]):
    """
    Result of a query.

    Attributes:
        results: Documents of the requested page.
        total_count: Number of documents in `results` (not a collection total).
        skip: Skip the query ran with.
        take: Normalized page size the query ran with.
        has_more: True when the page came back exactly full.
    """

    results: list[T] = field(default_factory=list)
    total_count: int = 0
    skip: int = 0
    take: int = 0
    has_more: bool = False


class DatabaseLike(Protocol):
    """What collections and query helpers need from a database service."""

    @property
    def document_store(self) -> DocumentStore: ...

    @property
    def database(self) -> str: ...


# Type aliases for clarity
Document = dict[str, Any]
Updates = Mapping[str, Any]


class RavenError(Exception):
    """Base exception for raven-docs operations."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ConnectionError(RavenError):
    """Error raised when the store or a session cannot be opened."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        status: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code)
        self.status = status


class DocumentNotFoundError(RavenError):
    """Error raised when an operation requires a document that does not exist."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"document with ID {document_id} not found")
        self.document_id = document_id


class ReadError(RavenError):
    """Error raised when loading a document fails."""

    pass


class WriteError(RavenError):
    """Error raised when storing, deleting or committing fails."""

    pass


class QueryError(RavenError):
    """Error raised when a query fails."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        query: str | None = None,
    ) -> None:
        super().__init__(message, code)
        self.query = query
