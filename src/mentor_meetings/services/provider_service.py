"""
Выбор и сборка коннектора к провайдеру видеовстреч.

- MEETING_PROVIDER=zoom      - реальный Zoom API (нужны ZOOM_ACCOUNT_ID/CLIENT_ID/CLIENT_SECRET)
- MEETING_PROVIDER=zoom_mock - локальный mock (dev)

Коннектор и его токен-кеш живут столько же, сколько приложение:
создаются на старте и передаются в сервисы явно.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from mentor_meetings.common.config import Settings, get_settings
from mentor_meetings.connectors.base import MeetingProvider, MeetingSettings
from mentor_meetings.connectors.zoom.adapter import ZoomConnector
from mentor_meetings.connectors.zoom.credentials import ZoomCredentialProvider
from mentor_meetings.connectors.zoom.mock import MockZoomConnector


@dataclass
class ProviderBundle:
    name: str
    provider: MeetingProvider
    http_client: httpx.AsyncClient | None = None

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()


def meeting_settings_from(s: Settings) -> MeetingSettings:
    return MeetingSettings(
        host_video=s.meeting_host_video,
        participant_video=s.meeting_participant_video,
        join_before_host=s.meeting_join_before_host,
        mute_upon_entry=s.meeting_mute_upon_entry,
        waiting_room=s.meeting_waiting_room,
        auto_recording=s.meeting_auto_recording,
        approval_type=s.meeting_approval_type,
    )


def build_meeting_provider(settings: Settings | None = None) -> ProviderBundle:
    s = settings or get_settings()
    name = (s.meeting_provider or "zoom_mock").strip().lower()

    if name == "zoom_mock":
        return ProviderBundle(name=name, provider=MockZoomConnector())

    if name == "zoom":
        missing = [
            k
            for k, v in (
                ("ZOOM_ACCOUNT_ID", s.zoom_account_id),
                ("ZOOM_CLIENT_ID", s.zoom_client_id),
                ("ZOOM_CLIENT_SECRET", s.zoom_client_secret),
            )
            if not (v or "").strip()
        ]
        if missing:
            raise RuntimeError(f"Zoom credentials are not configured: {', '.join(missing)}")

        http_client = httpx.AsyncClient(timeout=httpx.Timeout(float(s.zoom_timeout_sec)))
        credentials = ZoomCredentialProvider(
            oauth_url=s.zoom_oauth_url,
            account_id=str(s.zoom_account_id),
            client_id=str(s.zoom_client_id),
            client_secret=str(s.zoom_client_secret),
            http_client=http_client,
            expiry_margin_sec=s.zoom_token_expiry_margin_sec,
        )
        provider = ZoomConnector(
            credentials=credentials, http_client=http_client, base_url=s.zoom_api_base
        )
        return ProviderBundle(name=name, provider=provider, http_client=http_client)

    raise RuntimeError(f"Unknown MEETING_PROVIDER={name} (allowed: zoom, zoom_mock)")
