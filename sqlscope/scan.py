"""Turn query results into column names and rows of strings."""

from __future__ import annotations

import json
import math
from datetime import datetime, timedelta
from typing import Any


def columns(cursor: Any) -> list[str]:
    """Return the column names of a cursor, naming blank ones ``col<index>``."""
    description = getattr(cursor, "description", None)
    if description is None:
        raise ValueError("cannot get query columns, statement returned no columns")
    return [
        name if str(name).strip() else f"col{index}"
        for index, (name, *_rest) in enumerate(description)
    ]


def _format_rfc3339_nano(value: datetime) -> str:
    offset = value.utcoffset() if value.tzinfo is not None else timedelta(0)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    if not offset:
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"{text}{sign}{hours:02d}:{mins:02d}"


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e21:
        return f"{value:.0f}"
    return repr(value)


def value_to_string(value: Any) -> str:
    """Render one value from a result row as display text."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return _format_rfc3339_nano(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    if isinstance(value, float):
        return _format_float(value)
    return str(value)


def scan_rows(cursor: Any, column_length: int) -> list[list[str]]:
    """Read every remaining row of ``cursor`` as a list of strings."""
    result: list[list[str]] = []
    for row in cursor:
        if len(row) != column_length:
            raise ValueError(
                f"expected {column_length} destination arguments, got {len(row)} columns"
            )
        result.append([value_to_string(value) for value in row])
    return result