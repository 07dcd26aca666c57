"""
FastAPI Depends.

Сюда выносим:
- проверку авторизации (Bearer JWT identity-провайдера)
- доступ к сервисам, собранным на старте приложения (app.state)
- валидацию UUID в path до вызова сервисов
"""

from __future__ import annotations

from fastapi import Header, HTTPException, Request, status

from mentor_meetings.common.errors import ErrCode, UnauthorizedError
from mentor_meetings.common.ids import is_uuid
from mentor_meetings.common.logging import get_project_logger
from mentor_meetings.common.security import AuthContext, require_auth
from mentor_meetings.services.meeting_service import MeetingLifecycleService
from mentor_meetings.services.webhook_service import WebhookReconciler

log = get_project_logger()


def _request_meta(request: Request | None) -> tuple[str, str, str | None]:
    if request is None:
        return "unknown", "UNKNOWN", None
    endpoint = request.url.path
    method = request.method
    client_ip = request.client.host if request.client else None
    return endpoint, method, client_ip


def _audit_allow(
    *,
    request: Request | None,
    ctx: AuthContext,
    reason: str,
) -> None:
    endpoint, method, client_ip = _request_meta(request)
    log.info(
        "security_audit_allow",
        extra={
            "payload": {
                "endpoint": endpoint,
                "method": method,
                "subject": ctx.subject,
                "auth_type": ctx.auth_type,
                "reason": reason,
                "client_ip": client_ip,
            }
        },
    )


def _audit_deny(
    *,
    request: Request | None,
    status_code: int,
    reason: str,
    error_code: str,
) -> None:
    endpoint, method, client_ip = _request_meta(request)
    log.warning(
        "security_audit_deny",
        extra={
            "payload": {
                "endpoint": endpoint,
                "method": method,
                "status_code": status_code,
                "reason": reason,
                "error_code": error_code,
                "client_ip": client_ip,
            }
        },
    )


def auth_dep(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> AuthContext:
    """
    Проверка авторизации для HTTP.
    Sync-функция: OIDC discovery ходит в сеть блокирующим requests,
    FastAPI выполнит её в threadpool.
    """
    try:
        ctx = require_auth(authorization=authorization, x_user_id=x_user_id)
    except UnauthorizedError as e:
        _audit_deny(
            request=request,
            status_code=status.HTTP_401_UNAUTHORIZED,
            reason=e.message,
            error_code=e.code,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": e.code, "message": e.message},
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    _audit_allow(request=request, ctx=ctx, reason="auth_ok")
    return ctx


def meeting_service_dep(request: Request) -> MeetingLifecycleService:
    return request.app.state.meeting_service


def webhook_reconciler_dep(request: Request) -> WebhookReconciler:
    return request.app.state.webhook_reconciler


def require_uuid(value: str, field: str) -> str:
    if not is_uuid(value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": ErrCode.VALIDATION, "message": f"Invalid {field} format"},
        )
    return value
