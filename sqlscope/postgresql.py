"""PostgreSQL connection strings and metadata repository."""

from __future__ import annotations

from contextlib import closing
from typing import Any, Iterable, Mapping, Sequence

from sqlscope.config import DatabaseDriver, DBConfig, Proto
from sqlscope.database import ColumnDesc, DBRepository, ForeignKey, parse_foreign_keys

_DESCRIBE_COLUMNS = """
    SELECT
        c.table_schema,
        c.table_name,
        c.column_name,
        c.data_type,
        c.is_nullable,
        CASE t.constraint_type
            WHEN 'PRIMARY KEY' THEN 'YES'
            ELSE 'NO'
        END,
        c.column_default,
        ''
    FROM
        information_schema.columns c
    LEFT JOIN (
        SELECT
            ccu.table_schema as table_schema,
            ccu.table_name as table_name,
            ccu.column_name as column_name,
            tc.constraint_type as constraint_type
        FROM information_schema.constraint_column_usage ccu
        LEFT JOIN information_schema.table_constraints tc ON
            tc.table_schema = ccu.table_schema
            AND tc.table_name = ccu.table_name
            AND tc.constraint_name = ccu.constraint_name
        WHERE
            tc.constraint_type = 'PRIMARY KEY'
    ) as t
        ON c.table_schema = t.table_schema
        AND c.table_name = t.table_name
        AND c.column_name = t.column_name
    ORDER BY
        c.table_name,
        c.ordinal_position
"""

_DESCRIBE_COLUMNS_BY_SCHEMA = """
    SELECT
        c.table_schema,
        c.table_name,
        c.column_name,
        c.data_type,
        c.is_nullable,
        CASE t.constraint_type
            WHEN 'PRIMARY KEY' THEN 'YES'
            ELSE 'NO'
        END,
        c.column_default,
        ''
    FROM
        information_schema.columns c
    LEFT JOIN (
        SELECT
            ccu.table_schema as table_schema,
            ccu.table_name as table_name,
            ccu.column_name as column_name,
            tc.constraint_type as constraint_type
        FROM information_schema.constraint_column_usage ccu
        LEFT JOIN information_schema.table_constraints tc ON
            tc.table_schema = ccu.table_schema
            AND tc.table_name = ccu.table_name
            AND tc.constraint_name = ccu.constraint_name
        WHERE
            ccu.table_schema = %s
            AND tc.constraint_type = 'PRIMARY KEY'
    ) as t
        ON c.table_schema = t.table_schema
        AND c.table_name = t.table_name
        AND c.column_name = t.column_name
    WHERE
        c.table_schema = %s
    ORDER BY
        c.table_name,
        c.ordinal_position
"""

_FOREIGN_KEYS_BY_SCHEMA = """
    select kcu.CONSTRAINT_NAME,
           kcu.TABLE_NAME,
           kcu.COLUMN_NAME,
           rel_kcu.TABLE_NAME,
           rel_kcu.COLUMN_NAME
    from INFORMATION_SCHEMA.TABLE_CONSTRAINTS tco
             join INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
                  on tco.CONSTRAINT_SCHEMA = kcu.CONSTRAINT_SCHEMA
                      and tco.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
             join INFORMATION_SCHEMA.REFERENTIAL_CONSTRAINTS rco
                  on tco.CONSTRAINT_SCHEMA = rco.CONSTRAINT_SCHEMA
                      and tco.CONSTRAINT_NAME = rco.CONSTRAINT_NAME
             join INFORMATION_SCHEMA.KEY_COLUMN_USAGE rel_kcu
                  on rco.UNIQUE_CONSTRAINT_SCHEMA = rel_kcu.CONSTRAINT_SCHEMA
                      and rco.UNIQUE_CONSTRAINT_NAME = rel_kcu.CONSTRAINT_NAME
                      and kcu.ORDINAL_POSITION = rel_kcu.ORDINAL_POSITION
    where tco.CONSTRAINT_TYPE = 'FOREIGN KEY'
      and tco.CONSTRAINT_SCHEMA = %s
    order by kcu.CONSTRAINT_NAME,
             kcu.ORDINAL_POSITION
"""


def gen_options(
    query: Mapping[str, Sequence[str]],
    joiner: str,
    assign: str,
    sep: str,
    val_sep: str,
    skip_when_empty: bool,
    *args: str,
) -> str:
    """Join sorted option values into a connection string.

    Each key is written as ``key<assign><values joined by val_sep>``, options are
    separated by ``sep`` and the whole is prefixed with ``joiner``. Keys named in
    ``args`` are left out, compared case-insensitively; keys with an empty value
    are left out when ``skip_when_empty`` is true.
    """
    if not query:
        return ""
    ignore = {name.lower() for name in args}
    opts: list[str] = []
    for key in sorted(query):
        if key.lower() in ignore:
            continue
        raw = query[key]
        val = val_sep.join([raw] if isinstance(raw, str) else raw)
        if skip_when_empty and not val:
            continue
        opts.append(key + (assign + val if val else ""))
    return joiner + sep.join(opts) if opts else ""


def _proto_value(proto: Proto | str) -> str:
    return proto.value if isinstance(proto, Proto) else str(proto)


def gen_postgres_config(cfg: DBConfig) -> str:
    """Build a libpq key/value connection string from a configuration."""
    if cfg.data_source_name:
        return cfg.data_source_name

    query: dict[str, list[str]] = {
        "user": [cfg.user],
        "password": [cfg.passwd],
        "dbname": [cfg.db_name],
    }
    if cfg.proto in (Proto.TCP, Proto.UDP):
        query["host"] = [cfg.host or "127.0.0.1"]
        query["port"] = [str(cfg.port or 5432)]
    elif cfg.proto == Proto.UNIX:
        query["host"] = [cfg.path]
    else:
        raise ValueError(f"default addr for network {_proto_value(cfg.proto)} unknown")

    for key, value in cfg.params.items():
        query[key] = [value]
    return gen_options(query, "", "=", " ", ",", True)


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


class PostgreSQLDBRepository(DBRepository):
    """Metadata and statements over a DB-API connection to PostgreSQL."""

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
        return DatabaseDriver.POSTGRESQL

    def current_database(self) -> str:
        rows = self._fetch("SELECT current_database()")
        if not rows:
            raise LookupError("no rows in result set")
        return rows[0][0]

    def databases(self) -> list[str]:
        return [row[0] for row in self._fetch("SELECT datname FROM pg_database")]

    def current_schema(self) -> str:
        rows = self._fetch("SELECT current_schema()")
        if not rows:
            raise LookupError("no rows in result set")
        return rows[0][0] or ""

    def schemas(self) -> list[str]:
        return [
            row[0]
            for row in self._fetch("SELECT schema_name FROM information_schema.schemata")
        ]

    def schema_tables(self) -> dict[str, list[str]]:
        return _group_tables(
            self._fetch(
                """
    SELECT
        table_schema,
        table_name
    FROM
        information_schema.tables
    ORDER BY
        table_schema,
        table_name
    """
            )
        )

    def tables(self) -> list[str]:
        rows = self._fetch(
            """
    SELECT
      table_name
    FROM
      information_schema.tables
    WHERE
      table_type = 'BASE TABLE'
      AND table_schema NOT IN ('pg_catalog', 'information_schema')
    ORDER BY
      table_name
    """
        )
        return [row[0] for row in rows]

    def describe_database_table(self) -> list[ColumnDesc]:
        return [_column(row) for row in self._fetch(_DESCRIBE_COLUMNS)]

    def describe_database_table_by_schema(self, schema_name: str) -> list[ColumnDesc]:
        rows = self._fetch(_DESCRIBE_COLUMNS_BY_SCHEMA, schema_name, schema_name)
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