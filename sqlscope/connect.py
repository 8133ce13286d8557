"""Open connections and build repositories for every supported driver."""

from __future__ import annotations

import functools
from typing import Any, Callable

from sqlscope.config import DatabaseDriver, DBConfig
from sqlscope.database import DBRepository
from sqlscope.driver import (
    DBConnection,
    create_repository,
    open_connection,
    register_factory,
    register_open,
)
from sqlscope.mssql import MssqlDBRepository
from sqlscope.mysql import MySQLDBRepository, mysql_open
from sqlscope.oracle import OracleDBRepository
from sqlscope.postgresql import PostgreSQLDBRepository
from sqlscope.sqlite import SQLiteDBRepository, sqlite_open

_MYSQL_DRIVERS = (
    DatabaseDriver.MYSQL,
    DatabaseDriver.MYSQL8,
    DatabaseDriver.MYSQL57,
    DatabaseDriver.MYSQL56,
)


def _register(register: Callable[[Any, Any], None], name: DatabaseDriver, fn: Any) -> None:
    try:
        register(name, fn)
    except ValueError:
        pass  # already registered


def _register_defaults() -> None:
    for name in _MYSQL_DRIVERS:
        _register(register_open, name, mysql_open)
        _register(register_factory, name, functools.partial(MySQLDBRepository, driver=name))
    _register(register_open, DatabaseDriver.SQLITE3, sqlite_open)
    _register(register_factory, DatabaseDriver.SQLITE3, SQLiteDBRepository)
    _register(register_factory, DatabaseDriver.POSTGRESQL, PostgreSQLDBRepository)
    _register(register_factory, DatabaseDriver.MSSQL, MssqlDBRepository)
    _register(register_factory, DatabaseDriver.ORACLE, OracleDBRepository)


_register_defaults()


def open_database(cfg: DBConfig) -> DBConnection:
    """Open a connection for ``cfg`` with the opener registered for its driver."""
    return open_connection(cfg)


def create_database_repository(driver: DatabaseDriver | str, conn: Any) -> DBRepository:
    """Build the repository for ``driver`` over a DB-API connection or a DBConnection."""
    if isinstance(conn, DBConnection):
        conn = conn.conn
    return create_repository(driver, conn)