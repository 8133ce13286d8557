"""Oracle connection strings and metadata repository."""

from __future__ import annotations

import logging
from contextlib import closing
from typing import Any, Iterable, Sequence

from sqlscope.config import DatabaseDriver, DBConfig
from sqlscope.database import ColumnDesc, DBRepository, ForeignKey, parse_foreign_keys

logger = logging.getLogger(__name__)

_DEFAULT_PORT = 1521

_DESCRIBE_ALL = """
SELECT
OWNER,
TABLE_NAME,
COLUMN_NAME,
DATA_TYPE,
NULLABLE,
'',
DATA_DEFAULT,
''
FROM SYS.ALL_TAB_COLUMNS
"""

_DESCRIBE_BY_SCHEMA = """
SELECT
OWNER,
TABLE_NAME,
COLUMN_NAME,
DATA_TYPE,
CASE NULLABLE
WHEN 'Y' THEN 'YES'
ELSE 'NO'
END,
'1',
DATA_DEFAULT,
'1'
FROM SYS.ALL_TAB_COLUMNS
WHERE OWNER = :1
"""

_FOREIGN_KEYS_BY_SCHEMA = """
    SELECT a.CONSTRAINT_NAME,
           a.TABLE_NAME,
           a.COLUMN_NAME,
           b.TABLE_NAME,
           b.COLUMN_NAME
    FROM ALL_CONS_COLUMNS a
             JOIN ALL_CONSTRAINTS c ON a.OWNER = c.OWNER
        AND a.CONSTRAINT_NAME = c.CONSTRAINT_NAME
             JOIN ALL_CONSTRAINTS c_pk ON c.R_OWNER = c_pk.OWNER
        AND c.R_CONSTRAINT_NAME = c_pk.CONSTRAINT_NAME
             JOIN ALL_CONS_COLUMNS b ON b.CONSTRAINT_NAME = c_pk.CONSTRAINT_NAME
        AND b.POSITION = a.POSITION
    WHERE c.constraint_type = 'R'
      AND a.OWNER = :1
    ORDER BY a.CONSTRAINT_NAME, a.POSITION
"""


def gen_oracle_config(cfg: DBConfig) -> str:
    """Build a ``user/passwd@host:port/dbname`` connect string from a configuration."""
    if cfg.data_source_name:
        return cfg.data_source_name
    host = cfg.host or "127.0.0.1"
    port = cfg.port or _DEFAULT_PORT
    return f"{cfg.user}/{cfg.passwd}@{host}:{port}/{cfg.db_name}"


def _column(row: Sequence[Any]) -> ColumnDesc:
    schema, table, name, type_, null, key, default, extra = row
    return ColumnDesc(
        schema=schema,
        table=table,
        name=name,
        type=type_,
        null=null,
        key=key,
        default=default,
        extra=extra,
    )


def _group_tables(rows: Iterable[Sequence[str]]) -> dict[str, list[str]]:
    result: dict[str, list[str]] = {}
    for schema, table in rows:
        result.setdefault(schema, []).append(table)
    return result


class OracleDBRepository(DBRepository):
    """Metadata and statements over a DB-API connection to Oracle.

    Query parameters use the numeric ``:1`` placeholder style.
    """

    def __init__(self, conn: Any) -> None:
        self.conn = conn

    def _fetch(self, sql: str, *params: Any) -> list[Sequence[Any]]:
        with closing(self.conn.cursor()) as cur:
            if params:
                cur.execute(sql, params)
            else:
                cur.execute(sql)
            return list(cur.fetchall())

    def driver(self) -> DatabaseDriver:
        return DatabaseDriver.ORACLE

    def current_database(self) -> str:
        rows = self._fetch("SELECT SYS_CONTEXT('USERENV','CURRENT_SCHEMA') FROM DUAL")
        if not rows:
            raise LookupError("no rows in result set")
        return rows[0][0]

    def databases(self) -> list[str]:
        # Each connection sees a single database; its users act as schemas.
        rows = self._fetch("SELECT USERNAME FROM SYS.ALL_USERS ORDER BY USERNAME")
        return [row[0] for row in rows]

    def current_schema(self) -> str:
        return self.current_database()

    def schemas(self) -> list[str]:
        return self.databases()

    def schema_tables(self) -> dict[str, list[str]]:
        return _group_tables(
            self._fetch(
                """
    SELECT OWNER, TABLE_NAME
      FROM SYS.ALL_TABLES
  ORDER BY OWNER, TABLE_NAME
        """
            )
        )

    def tables(self) -> list[str]:
        return [row[0] for row in self._fetch("SELECT TABLE_NAME FROM USER_TABLES")]

    def describe_database_table(self) -> list[ColumnDesc]:
        return [_column(row) for row in self._fetch(_DESCRIBE_ALL)]

    def describe_database_table_by_schema(self, schema_name: str) -> list[ColumnDesc]:
        try:
            rows = self._fetch(_DESCRIBE_BY_SCHEMA, schema_name)
        except Exception as exc:
            logger.warning("schema %s %s", schema_name, exc)
            raise
        return [_column(row) for row in rows]

    def describe_foreign_keys_by_schema(self, schema_name: str) -> list[ForeignKey]:
        return parse_foreign_keys(self._fetch(_FOREIGN_KEYS_BY_SCHEMA, schema_name), schema_name)

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