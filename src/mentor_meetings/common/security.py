"""
Утилиты безопасности и авторизации.

Поддерживаемые режимы (AUTH_MODE):
- jwt  - проверка Bearer JWT identity-провайдера (shared secret или OIDC/JWKS)
- none - без проверки подписи, subject берётся из X-User-Id (ТОЛЬКО dev)
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import jwt
import requests

from .config import get_settings
from .errors import UnauthorizedError


@dataclass(frozen=True)
class AuthContext:
    subject: str
    auth_type: str
    claims: dict[str, Any] | None = None

    @property
    def email(self) -> str | None:
        value = (self.claims or {}).get("email")
        return str(value) if value else None


def _jwt_algorithms(raw: str) -> list[str]:
    algos = [a.strip() for a in (raw or "").split(",") if a.strip()]
    return algos or ["HS256"]


def _extract_bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    prefix = "bearer "
    if authorization.lower().startswith(prefix):
        return authorization[len(prefix) :].strip() or None
    return None


def _is_prod_env(app_env: str | None) -> bool:
    env = (app_env or "").strip().lower()
    return env in {"prod", "production"}


@lru_cache(maxsize=8)
def _get_jwks_client(jwks_url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(jwks_url)


@lru_cache(maxsize=8)
def _discover_jwks_url(issuer_url: str, timeout_s: int) -> str:
    discovery = issuer_url.rstrip("/") + "/.well-known/openid-configuration"
    try:
        resp = requests.get(discovery, timeout=timeout_s)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise UnauthorizedError("OIDC discovery failed", {"err": str(e)}) from e

    jwks = data.get("jwks_uri")
    if not jwks:
        raise UnauthorizedError("OIDC discovery has no jwks_uri")
    return str(jwks)


def _verify_jwt(token: str) -> dict[str, Any]:
    s = get_settings()
    algos = _jwt_algorithms(s.oidc_algorithms)
    audience = s.oidc_audience
    issuer = s.oidc_issuer_url
    leeway = int(s.jwt_clock_skew_sec or 30)

    kwargs: dict[str, Any] = {
        "algorithms": algos,
        "options": {"verify_aud": bool(audience), "require": ["sub", "exp"]},
        "leeway": leeway,
    }
    if audience:
        kwargs["audience"] = audience
    if issuer:
        kwargs["issuer"] = issuer

    secret = (s.jwt_shared_secret or "").strip()
    if secret:
        try:
            return jwt.decode(token, secret, **kwargs)
        except jwt.PyJWTError as e:
            raise UnauthorizedError("Invalid or expired token", {"err": str(e)}) from e

    jwks_url = (s.oidc_jwks_url or "").strip()
    if not jwks_url:
        if not issuer:
            raise UnauthorizedError("JWT is not configured: set JWT_SHARED_SECRET or OIDC_*")
        jwks_url = _discover_jwks_url(issuer, int(s.oidc_discovery_timeout_sec or 5))

    try:
        key = _get_jwks_client(jwks_url).get_signing_key_from_jwt(token).key
        return jwt.decode(token, key=key, **kwargs)
    except jwt.PyJWTError as e:
        raise UnauthorizedError("Invalid or expired token", {"err": str(e)}) from e


def require_auth(*, authorization: str | None, x_user_id: str | None = None) -> AuthContext:
    """
    Универсальная проверка авторизации:
    - AUTH_MODE=none: subject из X-User-Id (dev)
    - AUTH_MODE=jwt: Bearer JWT, subject = claim "sub"
    """
    settings = get_settings()
    mode = (settings.auth_mode or "jwt").lower().strip()

    if mode == "none":
        if _is_prod_env(settings.app_env):
            raise UnauthorizedError("AUTH_MODE=none is not allowed in APP_ENV=prod")
        subject = (x_user_id or "").strip()
        if not subject:
            raise UnauthorizedError("X-User-Id header is required in AUTH_MODE=none")
        return AuthContext(subject=subject, auth_type="none")

    if mode != "jwt":
        raise UnauthorizedError("Unknown auth mode")

    token = _extract_bearer(authorization)
    if not token:
        raise UnauthorizedError("Missing or invalid authorization header")

    claims = _verify_jwt(token)
    return AuthContext(subject=str(claims["sub"]), auth_type="jwt", claims=claims)
