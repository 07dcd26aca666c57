"""
Утилиты времени.

Назначение:
- единый формат времени (UTC)
- SQLite в тестах отдаёт naive datetime, поэтому нормализуем перед арифметикой
"""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Текущее время в UTC (datetime).
    """
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def minutes_between(start: datetime, end: datetime) -> int:
    """
    Разница в минутах с округлением до ближайшей.
    """
    delta = as_utc(end) - as_utc(start)
    return round(delta.total_seconds() / 60)


def parse_provider_ts(raw: object) -> datetime | None:
    """
    ISO-таймстамп провайдера ("2026-01-01T10:00:00Z") -> aware datetime.
    """
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return as_utc(datetime.fromisoformat(raw.strip().replace("Z", "+00:00")))
    except ValueError:
        return None
