from __future__ import annotations

from mentor_meetings.queue.idempotency import check_and_set, release


async def test_check_and_set_inline_mode(monkeypatch) -> None:
    monkeypatch.setattr("mentor_meetings.queue.idempotency._settings.webhook_dedupe_mode", "inline")
    assert await check_and_set("webhook", "meeting.started", "k-1") is True
    assert await check_and_set("webhook", "meeting.started", "k-1") is False
    assert await check_and_set("webhook", "meeting.ended", "k-1") is True


async def test_release_allows_redelivery_inline(monkeypatch) -> None:
    monkeypatch.setattr("mentor_meetings.queue.idempotency._settings.webhook_dedupe_mode", "inline")
    assert await check_and_set("webhook", "meeting.started", "k-2") is True
    await release("webhook", "meeting.started", "k-2")
    assert await check_and_set("webhook", "meeting.started", "k-2") is True


class _FakeRedis:
    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.keys: set[str] = set()

    async def set(self, *, name, value, nx, ex):
        self.calls.append({"name": name, "nx": nx, "ex": ex})
        if name in self.keys:
            return None
        self.keys.add(name)
        return True


async def test_check_and_set_uses_redis_set_nx(monkeypatch) -> None:
    fake = _FakeRedis()
    monkeypatch.setattr("mentor_meetings.queue.idempotency._settings.webhook_dedupe_mode", "redis")
    monkeypatch.setattr("mentor_meetings.queue.idempotency.redis_client", lambda: fake)

    assert await check_and_set("webhook", "meeting.ended", "abc", ttl_sec=120) is True
    assert await check_and_set("webhook", "meeting.ended", "abc", ttl_sec=120) is False
    assert fake.calls[0] == {"name": "idem:webhook:meeting.ended:abc", "nx": True, "ex": 120}
