"""Debug output written to standard error."""

from __future__ import annotations

import sys
from typing import Any


def dprintln(*args: Any) -> None:
    """Write the arguments, space separated and newline terminated, to stderr."""
    print(*args, file=sys.stderr)


def dprintf(fmt: str, *args: Any) -> None:
    """Write ``fmt`` formatted with ``args`` (printf style) to stderr."""
    sys.stderr.write(fmt % args if args else fmt)