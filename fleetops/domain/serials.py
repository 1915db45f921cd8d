"""Human-facing trip serial numbers (``TRP-001``, ``TRP-002``, ...)."""

from __future__ import annotations

import re
from typing import Iterable, Optional


def parse_serial(serial: Optional[str], prefix: str = "TRP") -> Optional[int]:
    """Return the sequence number of *serial*, or None if it is not ours."""
    if not serial:
        return None
    match = re.fullmatch(rf"{re.escape(prefix)}-(\d+)", serial.strip())
    return int(match.group(1)) if match else None


def next_serial(
    recent: Iterable[Optional[str]], prefix: str = "TRP", width: int = 3
) -> str:
    """
    Next serial after the highest one in *recent*.

    Serials in other formats (older timestamp-style ones) are ignored.
    Numbers wider than *width* simply grow: ``TRP-999`` -> ``TRP-1000``.
    """
    numbers = [n for n in (parse_serial(s, prefix) for s in recent) if n is not None]
    following = max(numbers, default=0) + 1
    return f"{prefix}-{following:0{width}d}"
