"""Registry of connection openers and repository factories per driver."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable

from sqlscope.config import DatabaseDriver, DBConfig
from sqlscope.database import DBRepository


class DriverNotFoundError(LookupError):
    """Raised when no opener or factory is registered for a driver."""


@dataclass
class DBConnection:
    """An open database connection, optionally carried over an SSH tunnel."""

    conn: Any
    ssh_conn: Any = None
    driver: DatabaseDriver | str = ""

    def close(self) -> None:
        """Close the database connection, then the SSH connection if any."""
        self.conn.close()
        if self.ssh_conn is not None:
            self.ssh_conn.close()

    def __enter__(self) -> DBConnection:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


Opener = Callable[[DBConfig], DBConnection]
Factory = Callable[[Any], DBRepository]

_openers: dict[str, Opener] = {}
_factories: dict[str, Factory] = {}


def _key(name: DatabaseDriver | str) -> str:
    return name.value if isinstance(name, enum.Enum) else str(name)


def register_open(name: DatabaseDriver | str, opener: Opener) -> None:
    """Register the function that opens connections for a driver."""
    key = _key(name)
    if key in _openers:
        raise ValueError(f"driver open {key} method is already registered")
    _openers[key] = opener


def register_factory(name: DatabaseDriver | str, factory: Factory) -> None:
    """Register the function that builds repositories for a driver."""
    key = _key(name)
    if key in _factories:
        raise ValueError(f"driver factory {key} already registered")
    _factories[key] = factory


def registered(name: DatabaseDriver | str) -> bool:
    """Return whether both an opener and a factory exist for a driver."""
    key = _key(name)
    return key in _openers and key in _factories


def open_connection(cfg: DBConfig) -> DBConnection:
    """Open a connection using the opener registered for ``cfg.driver``."""
    key = _key(cfg.driver)
    try:
        opener = _openers[key]
    except KeyError:
        raise DriverNotFoundError(f"driver not found, {key}") from None
    return opener(cfg)


def create_repository(driver: DatabaseDriver | str, conn: Any) -> DBRepository:
    """Build a repository for ``conn`` using the factory registered for ``driver``."""
    key = _key(driver)
    try:
        factory = _factories[key]
    except KeyError:
        raise DriverNotFoundError(f"driver not found, {key}") from None
    return factory(conn)