# payleave_api/models/utc_datetime.py
from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context
from sqlalchemy.types import DateTime, TypeDecorator


def _local_tz():
    name = current_app.config.get("APP_TIMEZONE") if has_app_context() else None
    return ZoneInfo(name) if name else timezone.utc


class UtcDateTime(TypeDecorator):
    """
    Stored as naive UTC on every backend, loaded back as aware UTC.
    Naive values coming in are local civil time in APP_TIMEZONE.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, datetime):
            raise TypeError(f"expected datetime, got {type(value).__name__}")
        if value.tzinfo is None:
            value = value.replace(tzinfo=_local_tz())
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is not None:
            value = value.replace(tzinfo=timezone.utc)
        return value
