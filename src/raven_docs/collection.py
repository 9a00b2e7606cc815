"""
CollectionService - typed operations over one collection.

Binds a database service, a collection name and a document class so
callers store, load and query instances of that class directly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, Mapping, Sequence, TypeVar

from . import query as queries
from .session import open_session, store_entity, without_metadata
from .types import (
    DocumentNotFoundError,
    GenericQueryResult,
    QueryOptions,
    ReadError,
    WriteError,
)

if TYPE_CHECKING:
    from .types import DatabaseLike

T = TypeVar("T")

__all__ = ["CollectionService"]


class CollectionService(Generic[T]):
    """
    Typed CRUD and query operations for one collection.

    The collection borrows its database service and never closes it.
    Every call opens and closes its own session.

    Example:
        @dataclass
        class User:
            name: str = ""
            email: str = ""
            age: int = 0

        users = CollectionService(db, "Users", User)

        users.store("users/1", User(name="John", email="john@example.com", age=30))
        user = users.load_by_id("users/1")

        adults = users.query_by_range("age", 18, 65)
        for user in adults.results:
            print(user.name)

        users.delete("users/1")
    """

    __slots__ = ("_database", "_name", "_document_type")

    def __init__(
        self,
        database: DatabaseLike,
        name: str,
        document_type: type[T],
    ) -> None:
        """
        Initialize a collection.

        Args:
            database: Database service the sessions are opened on.
            name: Collection name as tagged in document metadata.
            document_type: Class documents are deserialized into.
        """
        self._database = database
        self._name = name
        self._document_type = document_type

    @property
    def name(self) -> str:
        """Get the collection name."""
        return self._name

    @property
    def database(self) -> DatabaseLike:
        """Get the database service."""
        return self._database

    @property
    def document_type(self) -> type[T]:
        """Get the document class."""
        return self._document_type

    # CRUD operations

    def store(self, id: str, document: T) -> None:
        """
        Store a document.

        Args:
            id: Document ID. If empty, the client assigns one.
            document: The document to store. None and empty documents
                are rejected with a WriteError.

        Raises:
            ConnectionError: If the session cannot be opened.
            WriteError: If the store or commit fails.
        """
        with open_session(self._database) as session:
            try:
                store_entity(session, document, id)
            except Exception as e:
                raise WriteError(f"failed to store document: {e}") from e

            self._save_changes(session)

    def store_multiple(self, documents: Mapping[str, T]) -> None:
        """
        Store several documents and commit once.

        Nothing is committed if storing any one of them fails.

        Raises:
            ConnectionError: If the session cannot be opened.
            WriteError: If a store or the commit fails.
        """
        with open_session(self._database) as session:
            for id, document in documents.items():
                try:
                    store_entity(session, document, id)
                except Exception as e:
                    raise WriteError(f"failed to store document with ID {id}: {e}") from e

            self._save_changes(session)

    def load_by_id(self, id: str) -> T | None:
        """
        Load a document by ID.

        Returns:
            The document, or None if it does not exist.

        Raises:
            ConnectionError: If the session cannot be opened.
            ReadError: If the load fails.
        """
        with open_session(self._database) as session:
            return self._load(session, id)

    def load_multiple_by_ids(self, ids: Sequence[str]) -> list[T]:
        """
        Load several documents by ID, one at a time.

        Returns:
            The documents that exist, in the order of `ids`.
        """
        results: list[T] = []
        with open_session(self._database) as session:
            for id in ids:
                document = self._load(session, id)
                if document is not None:
                    results.append(document)
        return results

    def update(self, id: str, document: T) -> None:
        """
        Replace the document stored under `id`.

        Raises:
            ConnectionError: If the session cannot be opened.
            WriteError: If the store or commit fails.
        """
        with open_session(self._database) as session:
            try:
                store_entity(session, document, id)
            except Exception as e:
                raise WriteError(f"failed to store updated document: {e}") from e

            self._save_changes(session)

    def delete(self, id: str) -> None:
        """
        Delete a document by ID.

        Raises:
            ConnectionError: If the session cannot be opened.
            DocumentNotFoundError: If no document has this ID.
            WriteError: If the delete or commit fails.
        """
        with open_session(self._database) as session:
            document = self._load(session, id, "failed to load document for deletion")
            if document is None:
                raise DocumentNotFoundError(id)

            self._delete(session, document)
            self._save_changes(session)

    def delete_multiple(self, ids: Sequence[str]) -> None:
        """
        Delete several documents by ID and commit once.

        IDs with no document are skipped.
        """
        with open_session(self._database) as session:
            for id in ids:
                document = self._load(session, id, f"failed to load document {id} for deletion")
                if document is not None:
                    self._delete(session, document)

            self._save_changes(session)

    # Query operations

    def query(self, options: QueryOptions | None = None) -> GenericQueryResult[T]:
        """
        Run a paginated query over the collection.

        Args:
            options: Pagination, ordering and filtering. Not modified.

        Returns:
            GenericQueryResult with the page of documents.
        """
        return queries.query(self._database, self._name, self._document_type, options)

    def query_all(self) -> GenericQueryResult[T]:
        """Query up to 1024 documents of the collection."""
        return queries.query_all(self._database, self._name, self._document_type)

    def query_by_field(
        self,
        field_name: str,
        field_value: Any,
        options: QueryOptions | None = None,
    ) -> GenericQueryResult[T]:
        """Query documents whose `field_name` equals `field_value`."""
        return queries.query_by_field(
            self._database,
            self._name,
            self._document_type,
            field_name,
            field_value,
            options,
        )

    def query_by_range(
        self,
        field_name: str,
        min_value: Any,
        max_value: Any,
        options: QueryOptions | None = None,
    ) -> GenericQueryResult[T]:
        """Query documents whose `field_name` lies in [min_value, max_value]."""
        return queries.query_by_range(
            self._database,
            self._name,
            self._document_type,
            field_name,
            min_value,
            max_value,
            options,
        )

    def search(
        self,
        search_term: str,
        search_fields: Sequence[str],
        options: QueryOptions | None = None,
    ) -> GenericQueryResult[T]:
        """Full-text search for `search_term` across `search_fields`."""
        return queries.search(
            self._database,
            self._name,
            self._document_type,
            search_term,
            search_fields,
            options,
        )

    # Utility operations

    def exists(self, id: str) -> bool:
        """Check whether a document with this ID exists."""
        with open_session(self._database) as session:
            return self._load(session, id, "failed to check document existence") is not None

    def count(self) -> int:
        """
        Count documents in the collection.

        Note:
            Counts the results of query_all(), so the count never
            exceeds 1024.
        """
        return self.query_all().total_count

    def _load(self, session: Any, id: str, message: str = "failed to load document") -> T | None:
        try:
            return without_metadata(session.load(id, self._document_type))
        except Exception as e:
            raise ReadError(f"{message}: {e}") from e

    def _delete(self, session: Any, document: T) -> None:
        try:
            session.delete(document)
        except Exception as e:
            raise WriteError(f"failed to delete document: {e}") from e

    def _save_changes(self, session: Any) -> None:
        try:
            session.save_changes()
        except Exception as e:
            raise WriteError(f"failed to save changes: {e}") from e

    def __repr__(self) -> str:
        return f"CollectionService({self._name!r}, {self._document_type.__name__})"
