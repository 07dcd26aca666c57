"""
Генерация идентификаторов и секретов.

Назначение:
- UUID для записей в БД
- пароль встречи, если провайдер его не вернул
"""

from __future__ import annotations

import re
import secrets
import string
import uuid

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
_PASSWORD_ALPHABET = string.ascii_uppercase + string.digits


def new_uuid() -> str:
    """UUIDv4 строкой."""
    return str(uuid.uuid4())


def is_uuid(value: str | None) -> bool:
    return bool(value) and bool(_UUID_RE.match(value or ""))


def new_meeting_password(length: int = 6) -> str:
    """Случайный буквенно-цифровой пароль встречи."""
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(max(4, length)))
