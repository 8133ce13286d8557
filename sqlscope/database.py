"""Column descriptions, repository interface and documentation rendering."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from itertools import groupby
from typing import Any, Iterable, Sequence

DEFAULT_MAX_IDLE_CONNS = 10
DEFAULT_MAX_OPEN_CONNS = 5


@dataclass
class ColumnBase:
    """A column identified by schema, table and name."""

    schema: str = ""
    table: str = ""
    name: str = ""


@dataclass
class ColumnDesc(ColumnBase):
    """A column together with its type and constraint information."""

    type: str = ""
    null: str = ""
    key: str = ""
    default: str | None = None
    extra: str = ""

    def oneline_desc(self) -> str:
        """Return a short one-line summary of the column."""
        items: list[str] = []
        if self.type:
            items.append(f"`{self.type}`")
        if self.key == "YES":
            items.append("PRIMARY KEY")
        elif self.key and self.key != "NO":
            items.append(self.key)
        if self.extra:
            items.append(self.extra)
        return " ".join(items)


# A foreign key is a list of (referencing column, referenced column) pairs.
ForeignKey = list[tuple[ColumnBase, ColumnBase]]


class DBRepository(abc.ABC):
    """Read database metadata and run statements against one connection."""

    @abc.abstractmethod
    def driver(self) -> Any:
        """Return the driver this repository talks to."""

    @abc.abstractmethod
    def current_database(self) -> str:
        """Return the name of the database in use."""

    @abc.abstractmethod
    def databases(self) -> list[str]:
        """Return the names of all databases."""

    @abc.abstractmethod
    def current_schema(self) -> str:
        """Return the name of the schema in use."""

    @abc.abstractmethod
    def schemas(self) -> list[str]:
        """Return the names of all schemas."""

    @abc.abstractmethod
    def schema_tables(self) -> dict[str, list[str]]:
        """Return table names grouped by schema."""

    @abc.abstractmethod
    def describe_database_table(self) -> list[ColumnDesc]:
        """Describe the columns of every table."""

    @abc.abstractmethod
    def describe_database_table_by_schema(self, schema_name: str) -> list[ColumnDesc]:
        """Describe the columns of every table in one schema."""

    @abc.abstractmethod
    def describe_foreign_keys_by_schema(self, schema_name: str) -> list[ForeignKey]:
        """Return the foreign keys defined in one schema."""

    @abc.abstractmethod
    def execute(self, query: str) -> Any:
        """Run a statement that returns no rows."""

    @abc.abstractmethod
    def query(self, query: str) -> Any:
        """Run a statement and return a cursor over its rows."""


def coalesce(*args: str) -> str:
    """Return the first non-empty string, or an empty string."""
    return next((s for s in args if s), "")


def column_doc(table_name: str, col_desc: ColumnDesc) -> str:
    """Render a Markdown description of one column."""
    return f"`{table_name}`.`{col_desc.name}` column\n\n{col_desc.oneline_desc()}\n"


def table_doc(table_name: str, cols: Iterable[ColumnDesc]) -> str:
    """Render a Markdown table describing the columns of a table."""
    lines = [
        f"# `{table_name}` table",
        "",
        "",
        "| Name&nbsp;&nbsp; | Type&nbsp;&nbsp; | Primary&nbsp;key&nbsp;&nbsp; "
        "| Default&nbsp;&nbsp; | Extra&nbsp;&nbsp; |",
        "| :--------------- | :--------------- | :---------------------- "
        "| :------------------ | :---------------- |",
    ]
    for col in cols:
        default = coalesce(col.default or "", "-")
        lines.append(
            f"| `{col.name}` | `{col.type}` | `{col.key}` | `{default}` | {col.extra} |"
        )
    return "\n".join(lines) + "\n"


def parse_foreign_keys(
    rows: Iterable[Sequence[str]], schema_name: str
) -> list[ForeignKey]:
    """Group rows of (fk id, table, column, ref table, ref column) into foreign keys.

    Consecutive rows sharing an id belong to the same key.
    """
    result: list[ForeignKey] = []
    for _, group in groupby(rows, key=lambda row: row[0]):
        result.append(
            [
                (
                    ColumnBase(schema_name, table, column),
                    ColumnBase(schema_name, ref_table, ref_column),
                )
                for _fk_id, table, column, ref_table, ref_column in group
            ]
        )
    return result