"""Microsoft SQL Server connection strings and metadata repository."""

from __future__ import annotations

from contextlib import closing
from typing import Any, Iterable, Sequence

from sqlscope.config import DatabaseDriver, DBConfig, Proto
from sqlscope.database import ColumnDesc, DBRepository, ForeignKey, parse_foreign_keys
from sqlscope.postgresql import gen_options

_DEFAULT_PORT = 1433

_DESCRIBE_COLUMNS = """
    SELECT
        c.TABLE_SCHEMA,
        c.TABLE_NAME,
        c.COLUMN_NAME,
        c.DATA_TYPE,
        c.IS_NULLABLE,
        CASE tc.CONSTRAINT_TYPE
            WHEN 'PRIMARY KEY' THEN 'YES'
            ELSE 'NO'
        END,
        c.COLUMN_DEFAULT,
        ''
    FROM
        INFORMATION_SCHEMA.COLUMNS c
    LEFT JOIN
        INFORMATION_SCHEMA.CONSTRAINT_COLUMN_USAGE ccu
        ON c.TABLE_NAME = ccu.TABLE_NAME
        AND c.COLUMN_NAME = ccu.COLUMN_NAME
    LEFT JOIN INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc ON
        tc.TABLE_CATALOG = c.TABLE_CATALOG
        AND tc.TABLE_SCHEMA = c.TABLE_SCHEMA
        AND tc.TABLE_NAME = c.TABLE_NAME
        AND tc.CONSTRAINT_NAME = ccu.CONSTRAINT_NAME
"""

_ORDER_COLUMNS = """
    ORDER BY
        c.TABLE_NAME,
        c.ORDINAL_POSITION
"""

_DESCRIBE_ALL = _DESCRIBE_COLUMNS + _ORDER_COLUMNS
_DESCRIBE_BY_SCHEMA = _DESCRIBE_COLUMNS + "    WHERE\n        c.TABLE_SCHEMA = %s\n" + _ORDER_COLUMNS

_FOREIGN_KEYS_BY_SCHEMA = """
    SELECT fk.name,
           src_tbl.name,
           src_col.name,
           dst_tbl.name,
           dst_col.name
    FROM sys.foreign_key_columns fkc
             JOIN sys.objects fk on fk.object_id = fkc.constraint_object_id
             JOIN sys.tables src_tbl
                  ON src_tbl.object_id = fkc.parent_object_id
             JOIN sys.schemas sch
                  ON src_tbl.schema_id = sch.schema_id
             JOIN sys.columns src_col
                  ON src_col.column_id = parent_column_id AND src_col.object_id = src_tbl.object_id
             JOIN sys.tables dst_tbl
                  ON dst_tbl.object_id = fkc.referenced_object_id
             JOIN sys.columns dst_col
                  ON dst_col.column_id = referenced_column_id AND dst_col.object_id = dst_tbl.object_id
    where sch.name = %s
    order by fk.name, fkc.constraint_object_id
"""


def _proto_value(proto: Proto | str) -> str:
    return proto.value if isinstance(proto, Proto) else str(proto)


def gen_mssql_config(cfg: DBConfig) -> str:
    """Build a ``key=value;...`` SQL Server connection string from a configuration."""
    if cfg.data_source_name:
        return cfg.data_source_name

    query: dict[str, list[str]] = {
        "user": [cfg.user],
        "password": [cfg.passwd],
        "database": [cfg.db_name],
    }
    if cfg.proto == Proto.TCP:
        query["server"] = [cfg.host or "127.0.0.1"]
        query["port"] = [str(cfg.port or _DEFAULT_PORT)]
    elif cfg.proto not in (Proto.UDP, Proto.UNIX):
        raise ValueError(f"default addr for network {_proto_value(cfg.proto)} unknown")

    for key, value in cfg.params.items():
        query[key] = [value]
    return gen_options(query, "", "=", ";", ",", True)


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


class MssqlDBRepository(DBRepository):
    """Metadata and statements over a DB-API connection to SQL Server.

    Query parameters use the ``%s`` placeholder style.
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

    def _single(self, sql: str) -> Any:
        rows = self._fetch(sql)
        if not rows:
            raise LookupError("no rows in result set")
        return rows[0][0]

    def driver(self) -> DatabaseDriver:
        return DatabaseDriver.MSSQL

    def current_database(self) -> str:
        return self._single("SELECT DB_NAME()")

    def databases(self) -> list[str]:
        return [row[0] for row in self._fetch("SELECT name FROM sys.databases")]

    def current_schema(self) -> str:
        return self._single("SELECT SCHEMA_NAME()") or ""

    def schemas(self) -> list[str]:
        rows = self._fetch("SELECT SCHEMA_NAME FROM INFORMATION_SCHEMA.SCHEMATA")
        return [row[0] for row in rows]

    def schema_tables(self) -> dict[str, list[str]]:
        return _group_tables(
            self._fetch(
                """
    SELECT
        TABLE_SCHEMA,
        TABLE_NAME
    FROM
        INFORMATION_SCHEMA.TABLES
    ORDER BY
        TABLE_SCHEMA,
        TABLE_NAME
    """
            )
        )

    def tables(self) -> list[str]:
        rows = self._fetch(
            """
    SELECT
      TABLE_NAME
    FROM
      INFORMATION_SCHEMA.TABLES
    WHERE
      TABLE_TYPE = 'BASE TABLE'
      AND TABLE_SCHEMA NOT IN ('INFORMATION_SCHEMA', 'information_schema')
    ORDER BY
      TABLE_NAME
    """
        )
        return [row[0] for row in rows]

    def describe_database_table(self) -> list[ColumnDesc]:
        return [_column(row) for row in self._fetch(_DESCRIBE_ALL)]

    def describe_database_table_by_schema(self, schema_name: str) -> list[ColumnDesc]:
        return [_column(row) for row in self._fetch(_DESCRIBE_BY_SCHEMA, schema_name)]

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