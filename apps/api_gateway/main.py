"""
API Gateway (FastAPI).

Функции:
- /health
- /metrics
- HTTP API встреч, броней и слотов доступности
- приём вебхуков провайдера видеовстреч

Архитектурно:
- коннектор провайдера (с кешем OAuth-токена) создаётся один раз на приложение
  и передаётся в сервисы через app.state
- ошибки сервисов (AppError) маппятся в HTTP-статусы только здесь
"""

from __future__ import annotations

import re
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.api_gateway.routers.bookings import router as bookings_router
from apps.api_gateway.routers.meetings import router as meetings_router
from apps.api_gateway.routers.webhooks import router as webhooks_router
from mentor_meetings.common.config import get_settings
from mentor_meetings.common.errors import (
    AppError,
    AuthorizationError,
    ConflictError,
    ErrCode,
    InvalidSignatureError,
    InvalidTransitionError,
    NotFoundError,
    PreconditionError,
    UnauthorizedError,
    UpstreamError,
    ValidationError,
)
from mentor_meetings.common.ids import new_uuid
from mentor_meetings.common.logging import (
    bind_request_id,
    get_project_logger,
    reset_request_id,
    setup_logging,
)
from mentor_meetings.common.metrics import setup_metrics_endpoint
from mentor_meetings.queue.redis import close_redis_client
from mentor_meetings.services.meeting_service import MeetingLifecycleService
from mentor_meetings.services.provider_service import ProviderBundle, build_meeting_provider
from mentor_meetings.services.webhook_service import WebhookReconciler

log = get_project_logger()

# порядок важен: подклассы раньше базовых
_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (NotFoundError, 404),
    (AuthorizationError, 403),
    (UnauthorizedError, 401),
    (PreconditionError, 400),
    (ValidationError, 400),
    (InvalidSignatureError, 400),
    (ConflictError, 409),
    (InvalidTransitionError, 400),
    (UpstreamError, 502),
)


def _parse_origins(raw: str) -> list[str]:
    origins = [o.strip() for o in (raw or "").split(",") if o.strip()]
    return origins or ["*"]


def _is_prod_env(app_env: str | None) -> bool:
    env = (app_env or "").strip().lower()
    return env in {"prod", "production"}


def _cors_params() -> tuple[list[str], bool]:
    settings = get_settings()
    allow_origins = _parse_origins(settings.cors_allowed_origins)
    allow_credentials = bool(settings.cors_allow_credentials)

    if _is_prod_env(settings.app_env) and "*" in allow_origins:
        raise RuntimeError("CORS wildcard '*' запрещён в APP_ENV=prod")

    # '*' нельзя использовать вместе с credentials=true
    if "*" in allow_origins:
        allow_credentials = False

    return allow_origins, allow_credentials


REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")


def _request_id_from(raw: str | None) -> str:
    # чужой request_id принимаем, только если он безопасен для логов
    if raw and _REQUEST_ID_RE.match(raw):
        return raw
    return new_uuid()


def http_status_for(err: AppError) -> int:
    for cls, code in _STATUS_BY_ERROR:
        if isinstance(err, cls):
            return code
    return 500


def error_body(message: str, code: str, details: Any = None) -> dict[str, Any]:
    """
    Единое тело ошибки API: {"error": <сообщение>, "code": <ErrCode>, "details"?}.
    """
    body: dict[str, Any] = {"error": message, "code": code}
    if details:
        body["details"] = details
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    status_code = http_status_for(exc)
    details = exc.details
    if isinstance(exc, UpstreamError):
        # текст ошибки провайдера наружу не отдаём
        log.warning(
            "upstream_error",
            extra={"payload": {"path": request.url.path, "code": exc.code, "details": exc.details}},
        )
        details = None
    if status_code >= 500:
        log.error("app_error", extra={"payload": {"path": request.url.path, "code": exc.code}})
    return JSONResponse(status_code=status_code, content=error_body(exc.message, exc.code, details))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # deps/роутеры кладут в detail {"code", "message"}
    detail = exc.detail
    if isinstance(detail, dict):
        body = error_body(
            str(detail.get("message") or ""), str(detail.get("code") or ErrCode.UNKNOWN)
        )
    else:
        body = error_body(str(detail), ErrCode.UNKNOWN)
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    log.info(
        "request_validation_failed",
        extra={"payload": {"path": request.url.path, "errors": len(errors)}},
    )
    return JSONResponse(
        status_code=400,
        content=error_body("Invalid request body", ErrCode.VALIDATION, errors),
    )


def _create_app(bundle: ProviderBundle | None = None) -> FastAPI:
    app = FastAPI(title="Mentor Meetings", version="0.1.0")
    allow_origins, allow_credentials = _cors_params()
    settings = get_settings()

    # CORS (настраивается через ENV; в prod wildcard запрещён)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=allow_credentials,
    )

    setup_metrics_endpoint(app, service=settings.service_name)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = _request_id_from(request.headers.get(REQUEST_ID_HEADER))
        token = bind_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    bundle = bundle or build_meeting_provider(settings)
    meeting_service = MeetingLifecycleService(bundle.provider, settings)
    app.state.provider_bundle = bundle
    app.state.meeting_service = meeting_service
    app.state.webhook_reconciler = WebhookReconciler(meeting_service, settings)
    log.info("meeting_provider_ready", extra={"payload": {"provider": bundle.name}})

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True, "provider": bundle.name}

    @app.on_event("shutdown")
    async def shutdown_clients() -> None:
        await bundle.aclose()
        await close_redis_client()

    app.include_router(meetings_router, prefix="/api")
    app.include_router(bookings_router, prefix="/api")
    app.include_router(webhooks_router, prefix="/api")

    return app


setup_logging()
app = _create_app()
