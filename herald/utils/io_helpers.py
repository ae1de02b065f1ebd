from __future__ import annotations
import json
import os
from datetime import datetime, timezone
from typing import Any, Optional

try:
    # Python 3.9+: stdlib
    from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
except Exception:  # pragma: no cover
    ZoneInfo = None  # type: ignore
    ZoneInfoNotFoundError = KeyError  # type: ignore

_WALL_CLOCK_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M:%S")

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.astimezone(timezone.utc).isoformat() if dt else None

def ensure_tz(dt_naive: datetime, tz: Optional[str]) -> datetime:
    """Attach local tz then convert to UTC."""
    if dt_naive.tzinfo:
        return dt_naive.astimezone(timezone.utc)
    if tz and ZoneInfo:
        try:
            z = ZoneInfo(tz)
            return dt_naive.replace(tzinfo=z).astimezone(timezone.utc)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    # fallback assume input is already UTC
    return dt_naive.replace(tzinfo=timezone.utc)

def parse_when(value: Any, tz: Optional[str] = None) -> Optional[datetime]:
    """
    Parse a datetime or string into an aware UTC datetime.
    Accepts full ISO (with offset or trailing Z) and "YYYY-MM-DD HH:MM" wall-clock
    strings; naive values are read in `tz`. Returns None when unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_tz(value, tz)
    if not isinstance(value, str):
        return None
    s = value.strip()
    try:
        return ensure_tz(datetime.fromisoformat(s.replace("Z", "+00:00")), tz)
    except ValueError:
        pass
    for fmt in _WALL_CLOCK_FORMATS:
        try:
            return ensure_tz(datetime.strptime(s, fmt), tz)
        except ValueError:
            continue
    return None

def format_local(dt: Optional[datetime], tz: Optional[str], fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    if not dt:
        return "n/a"
    if tz and ZoneInfo:
        try:
            return dt.astimezone(ZoneInfo(tz)).strftime(fmt)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return dt.astimezone(timezone.utc).strftime(fmt)

def read_json(path: str, default: Any) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()
    return json.loads(raw) if raw.strip() else default

def write_json(path: str, payload: Any) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
