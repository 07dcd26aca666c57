from __future__ import annotations

import pytest

from mentor_meetings.common.config import get_settings
from mentor_meetings.connectors.zoom.adapter import ZoomConnector
from mentor_meetings.connectors.zoom.mock import MockZoomConnector
from mentor_meetings.services.provider_service import build_meeting_provider, meeting_settings_from


@pytest.fixture()
def provider_settings():
    s = get_settings()
    keys = [
        "meeting_provider",
        "zoom_account_id",
        "zoom_client_id",
        "zoom_client_secret",
        "meeting_waiting_room",
        "meeting_auto_recording",
    ]
    snapshot = {k: getattr(s, k) for k in keys}
    try:
        yield s
    finally:
        for k, v in snapshot.items():
            setattr(s, k, v)


def test_mock_provider_by_default(provider_settings) -> None:
    provider_settings.meeting_provider = "zoom_mock"
    bundle = build_meeting_provider(provider_settings)
    assert bundle.name == "zoom_mock"
    assert isinstance(bundle.provider, MockZoomConnector)
    assert bundle.http_client is None


async def test_zoom_provider_requires_credentials(provider_settings) -> None:
    provider_settings.meeting_provider = "zoom"
    provider_settings.zoom_account_id = "acc"
    provider_settings.zoom_client_id = None
    provider_settings.zoom_client_secret = ""
    with pytest.raises(RuntimeError) as e:
        build_meeting_provider(provider_settings)
    assert "ZOOM_CLIENT_ID" in str(e.value)
    assert "ZOOM_CLIENT_SECRET" in str(e.value)


async def test_zoom_provider_built_with_shared_http_client(provider_settings) -> None:
    provider_settings.meeting_provider = "zoom"
    provider_settings.zoom_account_id = "acc"
    provider_settings.zoom_client_id = "cid"
    provider_settings.zoom_client_secret = "secret"
    bundle = build_meeting_provider(provider_settings)
    try:
        assert isinstance(bundle.provider, ZoomConnector)
        assert bundle.provider.credentials.account_id == "acc"
    finally:
        await bundle.aclose()


def test_unknown_provider_is_rejected(provider_settings) -> None:
    provider_settings.meeting_provider = "teams"
    with pytest.raises(RuntimeError):
        build_meeting_provider(provider_settings)


def test_meeting_settings_follow_config(provider_settings) -> None:
    provider_settings.meeting_waiting_room = False
    provider_settings.meeting_auto_recording = "local"
    ms = meeting_settings_from(provider_settings)
    assert ms.waiting_room is False
    assert ms.auto_recording == "local"
    assert ms.join_before_host is False
