"""
Config - connection settings for a RavenDB database.

A plain value object read by DatabaseService. No validation happens here;
an unusable URL list surfaces when the underlying client connects.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Sequence

__all__ = [
    "Config",
    "LOCAL_URL",
    "new_config",
    "new_local_config",
    "new_single_node_config",
]

LOCAL_URL = "http://localhost:8080"


@dataclass(frozen=True)
class Config:
    """
    Connection URLs and database name.

    Example:
        config = Config.local("ExampleDB")
        config = Config.single_node("http://raven:8080", "ExampleDB")
        config = Config(["http://a:8080", "http://b:8080"], "ExampleDB")
    """

    urls: tuple[str, ...]
    database: str

    def __init__(self, urls: Sequence[str], database: str) -> None:
        object.__setattr__(self, "urls", tuple(urls))
        object.__setattr__(self, "database", database)

    @classmethod
    def single_node(cls, url: str, database: str) -> Config:
        """Config for a single-node server."""
        return cls([url], database)

    @classmethod
    def local(cls, database: str) -> Config:
        """Config for a server on the local machine."""
        return cls([LOCAL_URL], database)

    @classmethod
    def from_env(cls, database: str | None = None) -> Config:
        """
        Build a config from the environment.

        Args:
            database: Database name. If not provided, uses the
                RAVENDB_DATABASE environment variable.

        Returns:
            Config with URLs from RAVENDB_URLS (comma-separated).
        """
        raw_urls = os.environ.get("RAVENDB_URLS", LOCAL_URL)
        urls = [url.strip() for url in raw_urls.split(",") if url.strip()]
        return cls(urls, database or os.environ.get("RAVENDB_DATABASE", "raven_docs"))


def new_config(urls: Sequence[str], database: str) -> Config:
    return Config(urls, database)


def new_single_node_config(url: str, database: str) -> Config:
    return Config.single_node(url, database)


def new_local_config(database: str) -> Config:
    return Config.local(database)
