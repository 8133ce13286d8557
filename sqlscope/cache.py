"""In-memory cache of schemas, tables, columns and foreign keys."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from sqlscope.database import ColumnDesc, DBRepository, ForeignKey


def column_database_key(db_name: str, table_name: str) -> str:
    """Return the case-insensitive lookup key for a table's columns."""
    return db_name.upper() + "\t" + table_name.upper()


def _column_map(descs: Iterable[ColumnDesc]) -> dict[str, list[ColumnDesc]]:
    result: dict[str, list[ColumnDesc]] = {}
    for desc in descs:
        result.setdefault(column_database_key(desc.schema, desc.table), []).append(desc)
    return result


@dataclass
class DBCache:
    """Snapshot of the metadata of one database connection."""

    default_schema: str = ""
    schemas: dict[str, str] = field(default_factory=dict)
    schema_tables: dict[str, list[str]] = field(default_factory=dict)
    columns_with_parent: dict[str, list[ColumnDesc]] = field(default_factory=dict)
    foreign_keys: dict[str, dict[str, list[ForeignKey]]] = field(default_factory=dict)

    def database(self, db_name: str) -> str | None:
        """Return the schema's real name, matched case-insensitively."""
        return self.schemas.get(db_name.upper())

    def sorted_schemas(self) -> list[str]:
        return sorted(self.schemas.values())

    def sorted_tables_by_db_name(self, db_name: str) -> list[str] | None:
        tables = self.schema_tables.get(db_name.upper())
        return None if tables is None else sorted(tables)

    def sorted_tables(self) -> list[str]:
        return self.sorted_tables_by_db_name(self.default_schema) or []

    def column_descs(self, table_name: str) -> list[ColumnDesc] | None:
        """Return the columns of a table in the default schema."""
        return self.columns_with_parent.get(
            column_database_key(self.default_schema, table_name)
        )

    def column_database(self, db_name: str, table_name: str) -> list[ColumnDesc] | None:
        return self.columns_with_parent.get(column_database_key(db_name, table_name))

    def column(self, table_name: str, col_name: str) -> ColumnDesc | None:
        """Find a column of a default-schema table, ignoring case."""
        wanted = col_name.casefold()
        return next(
            (col for col in self.column_descs(table_name) or () if col.name.casefold() == wanted),
            None,
        )


class DBCacheGenerator:
    """Build a DBCache from a repository."""

    def __init__(self, repo: DBRepository) -> None:
        self.repo = repo

    def generate_primary(self) -> DBCache:
        """Load schemas, tables, and the columns and keys of the default schema."""
        default_schema = self.repo.current_schema()
        schemas = {name.upper(): name for name in self.repo.schemas()}
        if not default_schema:
            default_schema = next(iter(schemas.values()), "")
        schema_tables = {
            name.upper(): tables for name, tables in self.repo.schema_tables().items()
        }
        columns = _column_map(self.repo.describe_database_table_by_schema(default_schema))
        foreign_keys = self._foreign_keys(default_schema)
        return DBCache(
            default_schema=default_schema,
            schemas=schemas,
            schema_tables=schema_tables,
            columns_with_parent=columns,
            foreign_keys=foreign_keys,
        )

    def generate_secondary(self) -> dict[str, list[ColumnDesc]]:
        """Load the columns of every table in every schema."""
        return _column_map(self.repo.describe_database_table())

    def _foreign_keys(self, schema_name: str) -> dict[str, dict[str, list[ForeignKey]]]:
        result: dict[str, dict[str, list[ForeignKey]]] = {}
        for fk in self.repo.describe_foreign_keys_by_schema(schema_name):
            left, right = fk[0]
            result.setdefault(left.table, {}).setdefault(right.table, []).append(fk)
            result.setdefault(right.table, {}).setdefault(left.table, []).append(fk)
        return result