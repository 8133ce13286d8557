"""SQLite connection opening and metadata repository."""

from __future__ import annotations

import sqlite3
from contextlib import closing
from typing import Any, Sequence

from sqlscope.config import DatabaseDriver, DBConfig
from sqlscope.database import ColumnDesc, DBRepository, ForeignKey, parse_foreign_keys
from sqlscope.driver import DBConnection

_FOREIGN_KEYS = """
    SELECT m.name || p."id",
           m.name,
           p."from",
           p."table",
           p."to"
    FROM sqlite_master m
             JOIN pragma_foreign_key_list(m.name) p ON m.name != p."table"
    WHERE m.type = 'table'
    ORDER BY 1, p."seq"
"""


def sqlite_open(cfg: DBConfig) -> DBConnection:
    """Open the SQLite database named by ``cfg.data_source_name``."""
    conn = sqlite3.connect(cfg.data_source_name, check_same_thread=False)
    return DBConnection(conn=conn, driver=DatabaseDriver.SQLITE3)


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SQLiteDBRepository(DBRepository):
    """Metadata and statements over a DB-API connection to SQLite."""

    def __init__(self, conn: Any) -> None:
        self.conn = conn

    def _fetch(self, sql: str) -> list[Sequence[Any]]:
        with closing(self.conn.cursor()) as cur:
            cur.execute(sql)
            return list(cur.fetchall())

    def driver(self) -> DatabaseDriver:
        return DatabaseDriver.SQLITE3

    def current_database(self) -> str:
        return ""

    def databases(self) -> list[str]:
        return []

    def current_schema(self) -> str:
        return self.current_database()

    def schemas(self) -> list[str]:
        return self.databases()

    def schema_tables(self) -> dict[str, list[str]]:
        return {"": self.tables()}

    def tables(self) -> list[str]:
        rows = self._fetch("SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name")
        return [row[0] for row in rows]

    def _describe_table(self, table_name: str) -> list[ColumnDesc]:
        rows = self._fetch(f"PRAGMA table_info({_quote_identifier(table_name)});")
        return [
            ColumnDesc(
                table=table_name,
                name=name,
                type=type_,
                null="NO" if notnull else "YES",
                key=str(pk),
                default=None if default is None else str(default),
            )
            for _cid, name, type_, notnull, default, pk in rows
        ]

    def describe_database_table(self) -> list[ColumnDesc]:
        return [col for table in self.tables() for col in self._describe_table(table)]

    def describe_database_table_by_schema(self, schema_name: str) -> list[ColumnDesc]:
        """Describe every table; SQLite has a single schema, so the name is ignored."""
        return self.describe_database_table()

    def describe_foreign_keys_by_schema(self, schema_name: str) -> list[ForeignKey]:
        return parse_foreign_keys(self._fetch(_FOREIGN_KEYS), schema_name)

    def execute(self, query: str) -> int:
        """Run a statement, commit it and return the number of affected rows."""
        with closing(self.conn.cursor()) as cur:
            cur.execute(query)
            affected = cur.rowcount
        self.conn.commit()
        return affected

    def query(self, query: str) -> Any:
        """Run a statement and return the open cursor holding its rows."""
        cur = self.conn.cursor()
        cur.execute(query)
        return cur