from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from pathlib import PurePosixPath
from typing import Any, List, Optional, Tuple, Union

_DIGITS = re.compile(r"(\d+)")
_SEPARATORS = re.compile(r"[-_\s]+")


def iso_now_ms() -> str:
    """UTC ISO-8601 timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso8601(ts: str) -> datetime:
    """Parse an ISO-8601 timestamp with optional 'Z'. Naive values are taken as UTC."""
    ts = ts.strip()
    if ts.endswith("Z"):
        ts = ts[:-1] + "+00:00"
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Lenient timestamp parsing for descriptor window bounds.

    Accepts datetimes, plain dates (midnight UTC, as YAML loads `2026-01-01`),
    ISO-8601 strings and epoch milliseconds (int/float).
    Returns None for empty or unparseable input, which callers treat as an
    open bound.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            return parse_iso8601(value)
        except ValueError:
            return None
    return None


def natural_sort_key(name: str) -> Tuple[Tuple[Union[int, str], ...], str]:
    """
    Sort key comparing digit runs numerically and text case-insensitively:
        sorted(["1.png", "10.png", "2.png"], key=natural_sort_key)
        -> ["1.png", "2.png", "10.png"]
    """
    parts: List[Union[int, str]] = []
    for i, chunk in enumerate(_DIGITS.split(name)):
        # re.split with a capture group puts digit runs at odd indices
        parts.append(int(chunk) if i % 2 else chunk.casefold())
    return tuple(parts), name


def caption_from_filename(filename: str) -> str:
    """'Bronco-Roger-Simmons.jpg' -> 'Bronco Roger Simmons'"""
    stem = PurePosixPath(filename.replace("\\", "/")).name
    if "." in stem.lstrip("."):
        stem = stem.rsplit(".", 1)[0]
    return _SEPARATORS.sub(" ", stem).strip()


def coerce_order(value: Any) -> float:
    """Numeric `order` field; anything missing or non-numeric sorts as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        out = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(out) else out
