# sentinel/domain/parsing.py
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

_TRUTHY = {"1", "y", "yes", "true", "t"}


def to_number(x: Any) -> float | None:
    """Provider numbers arrive as "$123,000", "45%", 1.5 or ""."""
    if x is None or isinstance(x, bool):
        return None
    if isinstance(x, (int, float)):
        return float(x)
    s = str(x).strip().replace("$", "").replace(",", "").replace("%", "")
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


def to_int(x: Any) -> int | None:
    n = to_number(x)
    return int(n) if n is not None else None


def is_truthy(x: Any) -> bool:
    if isinstance(x, bool):
        return x
    if isinstance(x, (int, float)):
        return x == 1
    if x is None:
        return False
    return str(x).strip().lower() in _TRUTHY


def clean_str(x: Any) -> str | None:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def parse_date(x: Any) -> datetime | None:
    """Accepts datetimes, dates, ISO strings and M/D/YYYY strings."""
    if x is None:
        return None
    if isinstance(x, datetime):
        return x if x.tzinfo is None else x.astimezone(timezone.utc).replace(tzinfo=None)
    if isinstance(x, date):
        return datetime(x.year, x.month, x.day)
    s = str(x).strip()
    if not s:
        return None
    try:
        return parse_date(datetime.fromisoformat(s.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in ("%m/%d/%Y", "%m/%d/%y", "%Y%m%d"):
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def get_first(payload: dict[str, Any], *keys: str) -> Any:
    """Return first non-empty key from payload."""
    for k in keys:
        v = payload.get(k)
        if v is None:
            continue
        if isinstance(v, str) and not v.strip():
            continue
        return v
    return None
