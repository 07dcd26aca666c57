"""
Идемпотентность (дедупликация) событий.

Зачем нужно:
- провайдер доставляет вебхуки "at least once" и ретраит при таймауте
- повторная доставка не должна второй раз гонять переходы и метрики

Реализация:
- хранение ключей в Redis с TTL (SET NX EX)
- ключ формируется как "idem:<scope>:<subject>:<idempotency_key>"
- WEBHOOK_DEDUPE_MODE=inline - in-memory словарь (dev/тесты, один процесс)
"""

from __future__ import annotations

import time

from mentor_meetings.common.config import get_settings

from .redis import redis_client

_settings = get_settings()
_LOCAL_IDEM_KEYS: dict[str, float] = {}

# TTL по умолчанию (сек) для идемпотентных ключей
DEFAULT_TTL_SEC = 60 * 60 * 24  # 24 часа


async def check_and_set(
    scope: str, subject: str, idem_key: str, ttl_sec: int = DEFAULT_TTL_SEC
) -> bool:
    """
    Возвращает True, если ключ НОВЫЙ (т.е. можно обрабатывать),
    и False, если ключ уже был (дедуп).
    """
    key = f"idem:{scope}:{subject}:{idem_key}"
    if (_settings.webhook_dedupe_mode or "").strip().lower() == "inline":
        now = time.monotonic()
        expires = _LOCAL_IDEM_KEYS.get(key, 0.0)
        if expires > now:
            return False
        _LOCAL_IDEM_KEYS[key] = now + max(1, int(ttl_sec))
        if len(_LOCAL_IDEM_KEYS) > 20_000:
            for k, exp in list(_LOCAL_IDEM_KEYS.items()):
                if exp <= now:
                    _LOCAL_IDEM_KEYS.pop(k, None)
        return True

    ok = await redis_client().set(name=key, value="1", nx=True, ex=ttl_sec)
    return bool(ok)


async def release(scope: str, subject: str, idem_key: str) -> None:
    """
    Снять ключ: событие не обработано (ошибка), повторная доставка должна пройти.
    """
    key = f"idem:{scope}:{subject}:{idem_key}"
    if (_settings.webhook_dedupe_mode or "").strip().lower() == "inline":
        _LOCAL_IDEM_KEYS.pop(key, None)
        return
    await redis_client().delete(key)
