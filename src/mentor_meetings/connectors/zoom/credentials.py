"""
OAuth-токен Zoom (server-to-server, grant_type=account_credentials).

Назначение:
- получить и закешировать bearer-токен до истечения (минус запас)
- параллельные вызовы не плодят запросы: обновление одно на всех (single flight)

Экземпляр создаётся на старте приложения и передаётся в коннектор явно.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import httpx

from mentor_meetings.common.errors import ProviderAuthError, UpstreamError
from mentor_meetings.common.logging import get_project_logger
from mentor_meetings.common.metrics import record_token_refresh

log = get_project_logger()


class ZoomCredentialProvider:
    def __init__(
        self,
        *,
        oauth_url: str,
        account_id: str,
        client_id: str,
        client_secret: str,
        http_client: httpx.AsyncClient,
        expiry_margin_sec: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.oauth_url = oauth_url
        self.account_id = account_id
        self._auth = httpx.BasicAuth(client_id, client_secret)
        self._http = http_client
        self._margin = max(0, int(expiry_margin_sec))
        self._clock = clock

        self._token: str | None = None
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()

    def _cached(self) -> str | None:
        if self._token and self._clock() < self._expires_at:
            return self._token
        return None

    async def acquire_token(self) -> str:
        token = self._cached()
        if token:
            return token
        async with self._lock:
            # пока ждали lock, токен мог обновить другой вызов
            token = self._cached()
            if token:
                return token
            return await self._refresh()

    async def invalidate(self, stale_token: str | None = None) -> None:
        """
        Сбросить кеш. Если передан stale_token - только если в кеше именно он
        (свежий токен, полученный параллельно, не трогаем).
        """
        async with self._lock:
            if stale_token is None or stale_token == self._token:
                self._token = None
                self._expires_at = 0.0

    async def _refresh(self) -> str:
        try:
            resp = await self._http.post(
                self.oauth_url,
                params={"grant_type": "account_credentials", "account_id": self.account_id},
                auth=self._auth,
            )
        except httpx.HTTPError as e:
            record_token_refresh(result="transport_error")
            raise UpstreamError(details={"operation": "oauth_token", "err": str(e)[:200]}) from e

        if resp.status_code != 200:
            record_token_refresh(result="rejected")
            log.warning(
                "provider_token_refresh_failed",
                extra={"payload": {"status_code": resp.status_code}},
            )
            raise ProviderAuthError(resp.status_code, provider_message(resp))

        data = json_object(resp)
        if data is None:
            record_token_refresh(result="rejected")
            raise ProviderAuthError(resp.status_code, "Malformed OAuth response")
        token = str(data.get("access_token") or "")
        if not token:
            record_token_refresh(result="rejected")
            raise ProviderAuthError(resp.status_code, "access_token missing in OAuth response")

        try:
            expires_in = int(data.get("expires_in") or 3600)
        except (TypeError, ValueError):
            expires_in = 3600
        self._token = token
        self._expires_at = self._clock() + max(0, expires_in - self._margin)
        record_token_refresh(result="ok")
        log.info("provider_token_refreshed", extra={"payload": {"expires_in": expires_in}})
        return token


def json_object(resp: httpx.Response) -> dict | None:
    """JSON-объект из тела ответа; None, если тело не JSON или не объект."""
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def provider_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return (resp.text or resp.reason_phrase or "")[:300]
    if isinstance(data, dict):
        return str(data.get("message") or data.get("reason") or data.get("error") or "")[:300]
    return ""
