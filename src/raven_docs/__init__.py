"""
raven-docs - typed document helpers for RavenDB.

This package wraps the ravendb client with a small, typed surface:
- Config objects for local, single-node and multi-node setups
- Database lifecycle (create-if-missing, status) and untyped CRUD
- Typed collections over any document class
- Paginated queries with field, range and full-text search filters

Example usage:
    from dataclasses import dataclass

    from raven_docs import Config, DatabaseService, QueryOptions

    @dataclass
    class User:
        name: str = ""
        email: str = ""
        age: int = 0

    with DatabaseService.from_config(Config.local("ExampleDB")) as db:
        db.init()

        # Untyped documents
        db.store("users/1", {"name": "John", "age": 30})
        db.update("users/1", {"age": 31})

        # Typed collection
        users = db.collection("Users", User)
        users.store("users/2", User(name="Jane", email="jane@example.com", age=28))
        jane = users.load_by_id("users/2")

        # Queries
        page = users.query(QueryOptions(take=10, order_by="age", order_desc=True))
        for user in page.results:
            print(user.name)

        johns = users.search("john", ["name", "email"])

        # Or without a collection object
        from raven_docs import query_by_field
        active = query_by_field(db, "Users", User, "name", "Jane")
"""

from __future__ import annotations

__version__ = "0.1.0"

from .collection import CollectionService
from .config import Config, new_config, new_local_config, new_single_node_config
from .database import DatabaseService
from .query import (
    build_query,
    query,
    query_all,
    query_by_field,
    query_by_range,
    search,
)
from .types import (
    ConnectionError,
    DatabaseLike,
    DocumentNotFoundError,
    GenericQueryResult,
    QueryError,
    QueryOptions,
    RavenError,
    ReadError,
    WriteError,
)

__all__ = [
    # Main classes
    "Config",
    "DatabaseService",
    "CollectionService",
    "DatabaseLike",
    # Config constructors
    "new_config",
    "new_single_node_config",
    "new_local_config",
    # Query types and helpers
    "QueryOptions",
    "GenericQueryResult",
    "build_query",
    "query",
    "query_all",
    "query_by_field",
    "query_by_range",
    "search",
    # Exceptions
    "RavenError",
    "ConnectionError",
    "DocumentNotFoundError",
    "ReadError",
    "WriteError",
    "QueryError",
    # Version
    "__version__",
]
