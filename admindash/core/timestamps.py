"""Timestamp helpers for rows read from timestamptz columns."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import TypeAdapter

_DATETIME = TypeAdapter(datetime)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO string or datetime -> aware datetime; naive values are taken as UTC"""
    if value is None:
        return None
    parsed = _DATETIME.validate_python(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
