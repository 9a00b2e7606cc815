"""
DatabaseService - RavenDB database lifecycle and untyped document operations.

Owns a ravendb DocumentStore and the name of the database it works on.
Documents at this level are plain field maps or whatever objects the
caller hands over; CollectionService adds typing on top.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import TYPE_CHECKING, Any, Mapping, Sequence, TypeVar

from ravendb import DocumentStore
from ravendb.documents.operations.statistics import GetStatisticsOperation
from ravendb.serverwide.database_record import DatabaseRecord
from ravendb.serverwide.operations.common import CreateDatabaseOperation

from .collection import CollectionService
from .session import open_session, store_entity, without_metadata
from .types import (
    ConnectionError,
    Document,
    DocumentNotFoundError,
    ReadError,
    Updates,
    WriteError,
)

if TYPE_CHECKING:
    from .config import Config

T = TypeVar("T")

__all__ = ["DatabaseService"]

logger = logging.getLogger(__name__)


class DatabaseService:
    """
    RavenDB database with synchronous document operations.

    Each operation opens a session, does one unit of work, commits if it
    writes, and closes the session again.

    Example:
        with DatabaseService.from_config(Config.local("ExampleDB")) as db:
            db.init()

            db.store("users/1", {"name": "John", "age": 30})
            db.update("users/1", {"age": 31})
            user = db.load_by_id("users/1")

            users = db.collection("Users", User)
    """

    __slots__ = ("_store", "_urls", "_database")

    def __init__(
        self,
        urls: Sequence[str],
        database: str,
        store: DocumentStore | None = None,
    ) -> None:
        """
        Initialize the service and its document store.

        Args:
            urls: Server URLs.
            database: Database name.
            store: An already initialized DocumentStore. If not provided,
                one is created for `urls` with topology updates disabled.

        Raises:
            ConnectionError: If the document store cannot be initialized.
        """
        self._urls = list(urls)
        self._database = database
        self._store: DocumentStore | None = (
            store if store is not None else self._create_store(self._urls, database)
        )

    @classmethod
    def from_config(cls, config: Config) -> DatabaseService:
        """Create a service from a Config."""
        return cls(config.urls, config.database)

    @staticmethod
    def _create_store(urls: list[str], database: str) -> DocumentStore:
        try:
            store = DocumentStore(urls, database)
            # Single-node setups have no topology to follow
            store.conventions.disable_topology_updates = True
            store.initialize()
            return store
        except Exception as e:
            raise ConnectionError(f"failed to initialize RavenDB store: {e}") from e

    @property
    def document_store(self) -> DocumentStore:
        """Get the underlying DocumentStore."""
        if self._store is None:
            raise ConnectionError("database service is closed")
        return self._store

    @property
    def database(self) -> str:
        """Get the database name."""
        return self._database

    @property
    def urls(self) -> list[str]:
        """Get the server URLs."""
        return list(self._urls)

    def collection(self, name: str, document_type: type[T]) -> CollectionService[T]:
        """
        Get a typed collection bound to this database.

        Args:
            name: Collection name.
            document_type: Class documents are deserialized into.

        Returns:
            CollectionService for the collection.
        """
        return CollectionService(self, name, document_type)

    # Lifecycle

    def init(self) -> None:
        """
        Make sure the database exists and is reachable.

        Creation is attempted with a replication factor of 1. A failed
        creation is logged and ignored, since the database usually exists
        already.

        Raises:
            ConnectionError: If no session can be opened on the database.
        """
        logger.info("Initializing RavenDB connection to %s, database: %s", self._urls, self._database)
        logger.info("Creating database '%s' if it doesn't exist", self._database)

        try:
            operation = CreateDatabaseOperation(DatabaseRecord(self._database), 1)
            self.document_store.maintenance.server.send(operation)
        except Exception as e:
            logger.warning("Database creation result (might already exist): %s", e)

        try:
            with open_session(self):
                pass
        except ConnectionError as e:
            raise ConnectionError(
                f"failed to open session to database '{self._database}': {e}"
            ) from e

        logger.info("Successfully connected to RavenDB database '%s'", self._database)

    def initialize_with_seeding(self, seed_data: bool) -> None:
        """
        Initialize the database and report whether it is empty.

        No documents are written here; seeding belongs to the caller. The
        emptiness check is informational and its failures are only logged.

        Raises:
            ConnectionError: If initialization fails.
        """
        try:
            self.init()
        except ConnectionError as e:
            raise ConnectionError(f"database initialization failed: {e}") from e

        if not seed_data:
            return

        try:
            is_empty = self._is_database_empty()
        except Exception as e:
            logger.warning("Could not check if database is empty: %s", e)
            return

        if is_empty:
            logger.info("Database is empty, automatic seeding would be performed here")
        else:
            logger.info("Database contains data, skipping automatic seeding")

    def _is_database_empty(self) -> bool:
        with open_session(self):
            statistics = self.document_store.maintenance.for_database(self._database).send(
                GetStatisticsOperation()
            )

        if statistics is None:
            return True
        return not getattr(statistics, "count_of_documents", 0)

    def close(self) -> None:
        """Close the document store."""
        if self._store is not None:
            self._store.close()
            self._store = None

    def get_database_status(self) -> dict[str, Any]:
        """
        Describe the database connection.

        Returns:
            Status dict. document_count and index_count are placeholders
            and always 0.

        Raises:
            ConnectionError: If no session can be opened. The error's
                `status` attribute holds the disconnected status.
        """
        try:
            with open_session(self):
                pass
        except ConnectionError as e:
            raise ConnectionError(
                e.message,
                status={
                    "database_name": self._database,
                    "status": "disconnected",
                    "error": e.message,
                },
            ) from e

        status: dict[str, Any] = {
            "database_name": self._database,
            "status": "connected",
            "session_active": True,
        }

        try:
            statistics = self.document_store.maintenance.for_database(self._database).send(
                GetStatisticsOperation()
            )
        except Exception as e:
            logger.warning("Failed to get statistics for '%s': %s", self._database, e)
            statistics = None

        if statistics is None:
            status["statistics_error"] = "failed to get statistics"
            return status

        status["document_count"] = 0
        status["index_count"] = 0
        return status

    # CRUD operations

    def store(self, id: str, document: Any) -> None:
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
        with open_session(self) as session:
            try:
                store_entity(session, document, id)
            except Exception as e:
                raise WriteError(f"failed to store document: {e}") from e

            _save_changes(session)

    def store_multiple(self, documents: Mapping[str, Any]) -> None:
        """
        Store several documents and commit once.

        Nothing is committed if storing any one of them fails.

        Args:
            documents: Mapping of document ID to document. Empty IDs are
                assigned by the client.
        """
        with open_session(self) as session:
            for id, document in documents.items():
                try:
                    store_entity(session, document, id)
                except Exception as e:
                    raise WriteError(f"failed to store document with ID {id}: {e}") from e

            _save_changes(session)

    def load_by_id(self, id: str, object_type: type | None = None) -> Any:
        """
        Load a document by ID.

        Args:
            id: Document ID.
            object_type: Class to deserialize into. If not provided, the
                client picks the type from the document metadata.

        Returns:
            The document, or None if it does not exist.

        Raises:
            ReadError: If the load fails.
        """
        with open_session(self) as session:
            try:
                return without_metadata(session.load(id, object_type))
            except Exception as e:
                raise ReadError(f"failed to load document: {e}") from e

    def load_multiple_by_ids(
        self,
        ids: Sequence[str],
        results: list[Any] | None = None,
        object_type: type | None = None,
    ) -> list[Any]:
        """
        Load several documents by ID, one at a time.

        Args:
            ids: Document IDs.
            results: List to append the found documents to.
            object_type: Class to deserialize into.

        Returns:
            `results` (or a new list) with the documents that exist appended.
        """
        if results is None:
            results = []

        with open_session(self) as session:
            for id in ids:
                try:
                    document = session.load(id, object_type)
                except Exception as e:
                    raise ReadError(f"failed to load document {id}: {e}") from e
                if document is not None:
                    results.append(without_metadata(document))

        return results

    def update(self, id: str, updates: Updates) -> None:
        """
        Merge fields into an existing document.

        Only the keys present in `updates` change; every other field of the
        stored document is kept.

        Raises:
            DocumentNotFoundError: If no document has this ID.
            ReadError: If loading the document fails.
            WriteError: If storing or committing fails.
        """
        with open_session(self) as session:
            try:
                document: Document | None = session.load(id, dict)
            except Exception as e:
                raise ReadError(f"failed to load document for update: {e}") from e

            if document is None:
                raise DocumentNotFoundError(id)

            document.update(updates)

            try:
                session.store(document, id)
            except Exception as e:
                raise WriteError(f"failed to store updated document: {e}") from e

            _save_changes(session)

    def delete(self, id: str) -> None:
        """Delete a document by ID."""
        with open_session(self) as session:
            try:
                session.delete(id)
            except Exception as e:
                raise WriteError(f"failed to delete document {id}: {e}") from e

            _save_changes(session)

    def delete_multiple(self, ids: Sequence[str]) -> None:
        """Delete several documents by ID and commit once."""
        with open_session(self) as session:
            for id in ids:
                try:
                    session.delete(id)
                except Exception as e:
                    raise WriteError(f"failed to delete document {id}: {e}") from e

            _save_changes(session)

    # Utility operations

    def exists(self, id: str) -> bool:
        """Check whether a document with this ID exists."""
        with open_session(self) as session:
            try:
                return session.load(id, dict) is not None
            except Exception as e:
                raise ReadError(f"failed to check document existence: {e}") from e

    def count_documents(self, collection: str) -> int:
        """
        Count documents in a collection.

        Note:
            Not implemented; always returns 0. Use CollectionService.count()
            for a (capped) count.
        """
        with open_session(self):
            return 0

    def __enter__(self) -> DatabaseService:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        status = "open" if self._store is not None else "closed"
        return f"DatabaseService({self._database!r}, {status})"


def _save_changes(session: Any) -> None:
    try:
        session.save_changes()
    except Exception as e:
        raise WriteError(f"failed to save changes: {e}") from e
