"""
Pytest fixtures for raven-docs tests.

Provides an in-memory stand-in for the ravendb DocumentStore so the
services can be tested without a running server. The fake understands
exactly the RQL shapes raven_docs generates.
"""

from __future__ import annotations

import copy
import dataclasses
import re
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any

import pytest
from ravendb.documents.operations.statistics import GetStatisticsOperation
from ravendb.serverwide.operations.common import CreateDatabaseOperation

from raven_docs import DatabaseService


@dataclass
class User:
    name: str = ""
    email: str = ""
    age: int = 0
    is_active: bool = False


@dataclass
class Product:
    name: str = ""
    description: str = ""
    price: float = 0.0
    category: str = ""
    in_stock: bool = False


RQL_PATTERN = re.compile(
    r"^from @all_docs where @metadata\.'@collection' = '(?P<collection>[^']*)'"
    r"(?: AND \((?P<where>.*)\))?"
    r"(?: ORDER BY (?P<order_by>\w+)(?P<desc> DESC)?)?"
    r"(?: LIMIT (?P<skip>\d+), (?P<take>\d+))?$"
)
SEARCH_PATTERN = re.compile(r"search\((\w+), \$(\w+)\)")
CONDITION_PATTERN = re.compile(r"^(\w+) (=|>=|<=) \$(\w+)$")


def _to_json(entity: Any) -> dict[str, Any]:
    """Serialize an entity the way the client would."""
    if isinstance(entity, dict):
        data = copy.deepcopy(entity)
        data.pop("@metadata", None)
        return data
    if dataclasses.is_dataclass(entity):
        return dataclasses.asdict(entity)
    return copy.deepcopy(vars(entity))


def _from_json(key: str, record: dict[str, Any], object_type: type | None) -> Any:
    """
    Deserialize a stored record into `object_type`.

    Dicts come back with the server's @metadata entry, as the client returns them.
    """
    data = copy.deepcopy(record["data"])
    if object_type is None or object_type is dict:
        data["@metadata"] = {
            "@collection": record["collection"],
            "@id": key,
            "Raven-Python-Type": "builtins.dict",
        }
        return data
    return object_type(**data)


def _collection_of(entity: Any, key: str) -> str:
    """Collection name the client would tag a new entity with."""
    if isinstance(entity, dict):
        # Dicts are tagged from their ID prefix
        return key.split("/", 1)[0] if "/" in key else "@empty"
    return f"{type(entity).__name__}s"


class FakeRawQuery:
    """Mock for a RawDocumentQuery."""

    def __init__(self, session: FakeSession, rql: str, object_type: type | None) -> None:
        self._session = session
        self._rql = rql
        self._object_type = object_type
        self._parameters: dict[str, Any] = {}

    def add_parameter(self, name: str, value: Any) -> FakeRawQuery:
        self._parameters[name] = value
        return self

    def __iter__(self):
        store = self._session.document_store
        store.queries.append((self._rql, dict(self._parameters)))
        if store.fail_queries:
            raise RuntimeError("index is corrupted")

        match = RQL_PATTERN.match(self._rql)
        if match is None:
            raise ValueError(f"unsupported query: {self._rql}")

        records = [
            (key, record)
            for key, record in self._session.documents.items()
            if record["collection"] == match["collection"]
        ]

        if match["where"]:
            records = [r for r in records if self._matches(r[1]["data"], match["where"])]

        if match["order_by"]:
            field = match["order_by"]
            records.sort(key=lambda r: r[1]["data"].get(field), reverse=bool(match["desc"]))

        if match["take"] is not None:
            skip, take = int(match["skip"]), int(match["take"])
            records = records[skip : skip + take]

        return iter([_from_json(key, record, self._object_type) for key, record in records])

    def _matches(self, record: dict[str, Any], where: str) -> bool:
        searches = SEARCH_PATTERN.findall(where)
        if searches:
            return any(
                str(self._parameters[param]).lower() in str(record.get(field, "")).lower()
                for field, param in searches
            )

        for condition in where.split(" AND "):
            match = CONDITION_PATTERN.match(condition.strip())
            if match is None:
                raise ValueError(f"unsupported condition: {condition}")
            field, op, param = match.groups()
            value = record.get(field)
            expected = self._parameters[param]
            if value is None:
                return False
            if op == "=" and value != expected:
                return False
            if op == ">=" and value < expected:
                return False
            if op == "<=" and value > expected:
                return False
        return True


class FakeSession:
    """Mock for a DocumentSession."""

    def __init__(self, store: FakeDocumentStore, database: str | None) -> None:
        self.document_store = store
        self.database = database
        self.advanced = SimpleNamespace(
            raw_query=lambda rql, object_type=None: FakeRawQuery(self, rql, object_type)
        )
        self.closed = False
        self._tracked: list[tuple[Any, str]] = []
        self._pending_stores: dict[str, Any] = {}
        self._pending_deletes: list[str] = []

    @property
    def documents(self) -> dict[str, dict[str, Any]]:
        return self.document_store.databases.setdefault(self.database, {})

    def _key_of(self, entity: Any) -> str | None:
        for tracked, key in self._tracked:
            if tracked is entity:
                return key
        return None

    def store(self, entity: Any, key: str | None = None) -> None:
        if not entity:
            raise ValueError("Unexpected arguments set")
        if key is None:
            key = self._key_of(entity) or self.document_store.generate_id(entity)
        self._tracked.append((entity, key))
        self._pending_stores[key] = entity
        if key in self._pending_deletes:
            self._pending_deletes.remove(key)

    def load(self, key: str, object_type: type | None = None) -> Any:
        if self.document_store.fail_loads:
            raise RuntimeError("load timed out")
        record = self.documents.get(key)
        if record is None:
            return None
        entity = _from_json(key, record, object_type)
        self._tracked.append((entity, key))
        return entity

    def delete(self, key_or_entity: Any) -> None:
        if isinstance(key_or_entity, str):
            key = key_or_entity
        else:
            key = self._key_of(key_or_entity)
            if key is None:
                raise ValueError("entity is not tracked by this session")
        self._pending_stores.pop(key, None)
        self._pending_deletes.append(key)

    def save_changes(self) -> None:
        if self.document_store.fail_save_changes:
            raise RuntimeError("concurrency violation")

        for key, entity in self._pending_stores.items():
            existing = self.documents.get(key)
            if isinstance(entity, dict) and existing is not None:
                collection = existing["collection"]
            else:
                collection = _collection_of(entity, key)
            self.documents[key] = {
                "collection": collection,
                "data": _to_json(entity),
            }
        for key in self._pending_deletes:
            self.documents.pop(key, None)

        self.document_store.commits += 1
        self._pending_stores = {}
        self._pending_deletes = []

    def close(self) -> None:
        self.closed = True
        self.document_store.sessions_closed += 1

    def __enter__(self) -> FakeSession:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class FakeOperationExecutor:
    """Mock for the maintenance operation executors."""

    def __init__(self, store: FakeDocumentStore, database: str | None = None) -> None:
        self._store = store
        self._database = database

    def send(self, operation: Any) -> Any:
        self._store.operations.append(operation)

        if isinstance(operation, CreateDatabaseOperation):
            if self._store.fail_create_database:
                raise RuntimeError("Database 'testdb' already exists!")
            return SimpleNamespace(name="testdb")

        if isinstance(operation, GetStatisticsOperation):
            if self._store.fail_statistics:
                raise RuntimeError("statistics unavailable")
            if self._store.statistics_missing:
                return None
            documents = self._store.databases.get(self._database, {})
            return SimpleNamespace(count_of_documents=len(documents))

        return None


class FakeDocumentStore:
    """In-memory mock for ravendb.DocumentStore."""

    def __init__(self) -> None:
        self.databases: dict[str | None, dict[str, dict[str, Any]]] = {}
        self.conventions = SimpleNamespace(disable_topology_updates=False)
        self.maintenance = SimpleNamespace(
            server=FakeOperationExecutor(self),
            for_database=lambda name: FakeOperationExecutor(self, name),
        )
        self.operations: list[Any] = []
        self.queries: list[tuple[str, dict[str, Any]]] = []
        self.initialized = False
        self.closed = False
        self.sessions_opened = 0
        self.sessions_closed = 0
        self.commits = 0
        self.fail_open_session = False
        self.fail_save_changes = False
        self.fail_loads = False
        self.fail_queries = False
        self.fail_create_database = False
        self.fail_statistics = False
        self.statistics_missing = False
        self._next_id = 0

    def initialize(self) -> FakeDocumentStore:
        self.initialized = True
        return self

    def open_session(self, database: str | None = None) -> FakeSession:
        if self.fail_open_session:
            raise RuntimeError("server unavailable")
        self.sessions_opened += 1
        return FakeSession(self, database)

    def generate_id(self, entity: Any) -> str:
        self._next_id += 1
        collection = "docs" if isinstance(entity, dict) else _collection_of(entity, "")
        return f"{collection.lower()}/{self._next_id}-A"

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def document_store() -> FakeDocumentStore:
    """Create an in-memory document store."""
    return FakeDocumentStore()


@pytest.fixture
def db(document_store: FakeDocumentStore) -> DatabaseService:
    """Create a database service on the in-memory store."""
    return DatabaseService(["http://localhost:8080"], "testdb", store=document_store)


@pytest.fixture
def users(db: DatabaseService):
    """Create a typed Users collection."""
    return db.collection("Users", User)


@pytest.fixture
def products(db: DatabaseService):
    """Create a typed Products collection."""
    return db.collection("Products", Product)
