"""
Адаптер Zoom REST API.

Назначение:
- создание/удаление встреч у провайдера через HTTP API
- bearer-токен из ZoomCredentialProvider; на 401 - одно обновление токена и повтор
- таймаут конечный, автоматических ретраев нет
"""

from __future__ import annotations

import time
from typing import Any

import httpx

from mentor_meetings.common.errors import ProviderAuthError, ProviderError, UpstreamError
from mentor_meetings.common.logging import get_project_logger
from mentor_meetings.common.metrics import record_provider_call
from mentor_meetings.common.time import as_utc
from mentor_meetings.connectors.base import (
    MeetingProvider,
    MeetingSettings,
    RemoteMeeting,
    RemoteMeetingSpec,
)
from mentor_meetings.connectors.zoom.credentials import (
    ZoomCredentialProvider,
    json_object,
    provider_message,
)

log = get_project_logger()

SCHEDULED_MEETING_TYPE = 2


def _settings_payload(settings: MeetingSettings) -> dict[str, Any]:
    return {
        "host_video": settings.host_video,
        "participant_video": settings.participant_video,
        "join_before_host": settings.join_before_host,
        "mute_upon_entry": settings.mute_upon_entry,
        "waiting_room": settings.waiting_room,
        "auto_recording": settings.auto_recording,
        "approval_type": settings.approval_type,
        "audio": settings.audio,
        "encryption_type": settings.encryption_type,
        "use_pmi": False,
    }


def build_create_payload(spec: RemoteMeetingSpec) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "topic": spec.topic,
        "type": SCHEDULED_MEETING_TYPE,
        "start_time": as_utc(spec.start_time).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "duration": spec.duration_minutes,
        "timezone": spec.timezone,
        "password": spec.password,
        "settings": _settings_payload(spec.settings),
    }
    if spec.agenda:
        payload["agenda"] = spec.agenda
    return payload


class ZoomConnector(MeetingProvider):
    def __init__(
        self,
        *,
        credentials: ZoomCredentialProvider,
        http_client: httpx.AsyncClient,
        base_url: str,
    ) -> None:
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self._http = http_client

    async def _send(
        self, method: str, path: str, token: str, payload: dict[str, Any] | None
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        return await self._http.request(
            method.upper(), f"{self.base_url}{path}", json=payload, headers=headers
        )

    async def _request(
        self, operation: str, method: str, path: str, *, payload: dict[str, Any] | None = None
    ) -> httpx.Response:
        started = time.perf_counter()
        try:
            token = await self.credentials.acquire_token()
            resp = await self._send(method, path, token, payload)
            if resp.status_code == 401:
                log.info("provider_token_rejected", extra={"payload": {"operation": operation}})
                await self.credentials.invalidate(token)
                token = await self.credentials.acquire_token()
                resp = await self._send(method, path, token, payload)
                if resp.status_code == 401:
                    raise ProviderAuthError(401, provider_message(resp))
        except httpx.HTTPError as e:
            record_provider_call(operation=operation, result="transport_error")
            log.warning(
                "provider_request_failed",
                extra={"payload": {"operation": operation, "error": str(e)[:200]}},
            )
            raise UpstreamError(details={"operation": operation, "err": str(e)[:200]}) from e
        except ProviderAuthError:
            record_provider_call(operation=operation, result="auth_error")
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        record_provider_call(operation=operation, result=str(resp.status_code), elapsed_ms=elapsed_ms)
        return resp

    async def create_remote_meeting(self, spec: RemoteMeetingSpec) -> RemoteMeeting:
        resp = await self._request(
            "create_meeting",
            "POST",
            f"/users/{spec.host_user_id}/meetings",
            payload=build_create_payload(spec),
        )
        if not resp.is_success:
            raise ProviderError(resp.status_code, provider_message(resp))

        data = json_object(resp) or {}
        external_id = data.get("id")
        join_url = data.get("join_url")
        if external_id is None or not join_url:
            raise ProviderError(resp.status_code, "Malformed create meeting response")

        log.info("provider_meeting_created", extra={"payload": {"external_id": str(external_id)}})
        return RemoteMeeting(
            external_id=str(external_id),
            join_url=str(join_url),
            start_url=data.get("start_url"),
            password=data.get("password") or None,
            external_uuid=data.get("uuid"),
            host_id=data.get("host_id"),
        )

    async def cancel_remote_meeting(self, external_id: str) -> None:
        resp = await self._request("cancel_meeting", "DELETE", f"/meetings/{external_id}")
        if resp.status_code == 404:
            log.info("provider_meeting_already_gone", extra={"payload": {"external_id": external_id}})
            return
        if not resp.is_success:
            raise ProviderError(resp.status_code, provider_message(resp))
        log.info("provider_meeting_deleted", extra={"payload": {"external_id": external_id}})
