from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

DATE_FMT = "%Y-%m-%d"


def today_utc() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso_utc(s: Optional[str]) -> Optional[datetime]:
    """Parse an RFC3339 timestamp like '2026-02-23T00:00:00Z' into an aware UTC datetime."""
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(str(s).replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_rfc3339(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_ymd(s: Optional[str]) -> Optional[date]:
    if not s:
        return None
    try:
        return datetime.strptime(str(s)[:10], DATE_FMT).date()
    except ValueError:
        return None


def season_code(dt: datetime) -> str:
    """Season id for a date, e.g. 2025-11-02 -> '20252026'. Seasons roll over in July."""
    start_year = dt.year if dt.month >= 7 else dt.year - 1
    return f"{start_year}{start_year + 1}"


def recent_seasons(dt: datetime, count: int = 3) -> list[str]:
    """The `count` most recent season ids ending with the one containing dt, oldest first."""
    current = int(season_code(dt)[:4])
    return [f"{y}{y + 1}" for y in range(current - count + 1, current + 1)]


def parse_interval(value: Optional[str], default: float) -> float:
    """Interval in seconds from '20', '20s', '10m' or '6h'."""
    if value is None or str(value).strip() == "":
        return default
    s = str(value).strip().lower()
    units = {"s": 1.0, "m": 60.0, "h": 3600.0}
    try:
        if s[-1] in units:
            return float(s[:-1]) * units[s[-1]]
        return float(s)
    except ValueError:
        return default
