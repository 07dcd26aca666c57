"""
Mock-коннектор Zoom для dev/тестов.

Назначение:
- гонять жизненный цикл встречи без реального провайдера
"""

from __future__ import annotations

import secrets

from mentor_meetings.connectors.base import MeetingProvider, RemoteMeeting, RemoteMeetingSpec


class MockZoomConnector(MeetingProvider):
    def __init__(self) -> None:
        self.created: dict[str, RemoteMeetingSpec] = {}
        self.cancelled: list[str] = []

    async def create_remote_meeting(self, spec: RemoteMeetingSpec) -> RemoteMeeting:
        external_id = str(80_000_000_000 + secrets.randbelow(9_999_999_999))
        self.created[external_id] = spec
        return RemoteMeeting(
            external_id=external_id,
            join_url=f"https://zoom.mock/j/{external_id}?pwd={spec.password}",
            start_url=f"https://zoom.mock/s/{external_id}?zak={secrets.token_urlsafe(16)}",
            password=spec.password,
            external_uuid=secrets.token_urlsafe(12),
            host_id=spec.host_user_id,
        )

    async def cancel_remote_meeting(self, external_id: str) -> None:
        self.created.pop(external_id, None)
        self.cancelled.append(external_id)
