from __future__ import annotations

from datetime import datetime, timezone


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_iso(ts: str | None) -> datetime | None:
    """ISO8601 → aware datetime (naive values are taken as UTC), None if unparseable."""
    try:
        dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def iso_age_s(ts: str, *, now: float | None = None) -> float | None:
    """Seconds elapsed since an ISO8601 timestamp, or None if unparseable."""
    dt = parse_iso(ts)
    if dt is None:
        return None
    ref = now if now is not None else datetime.now(timezone.utc).timestamp()
    return ref - dt.timestamp()
