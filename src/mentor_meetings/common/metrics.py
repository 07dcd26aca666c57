"""
Метрики Prometheus для сервиса.

Назначение:
- Экспорт /metrics
- HTTP-счётчики и гистограмма задержек
- Доменные счётчики жизненного цикла встреч (переходы, провайдер, вебхуки)
"""

from __future__ import annotations

import time

from fastapi import FastAPI, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# =============================================================================
# HTTP
# =============================================================================
REQUESTS_TOTAL = Counter(
    "mentorship_requests_total",
    "Общее количество HTTP запросов",
    ["service", "route", "method", "status"],
)

HTTP_REQUEST_LATENCY_MS = Histogram(
    "mentorship_http_request_latency_ms",
    "Задержка HTTP запроса (мс)",
    ["service", "route", "method"],
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
)

# =============================================================================
# ЖИЗНЕННЫЙ ЦИКЛ ВСТРЕЧ
# =============================================================================
MEETING_TRANSITIONS_TOTAL = Counter(
    "mentorship_meeting_transitions_total",
    "Переходы статуса встречи",
    ["from_status", "to_status", "source", "result"],  # result: applied|ignored|rejected
)

PROVIDER_CALLS_TOTAL = Counter(
    "mentorship_provider_calls_total",
    "Вызовы API провайдера видеовстреч",
    ["operation", "result"],
)

PROVIDER_CALL_LATENCY_MS = Histogram(
    "mentorship_provider_call_latency_ms",
    "Задержка вызова провайдера (мс)",
    ["operation"],
    buckets=(25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
)

PROVIDER_TOKEN_REFRESH_TOTAL = Counter(
    "mentorship_provider_token_refresh_total",
    "Обновления OAuth-токена провайдера",
    ["result"],
)

WEBHOOK_EVENTS_TOTAL = Counter(
    "mentorship_webhook_events_total",
    "Входящие вебхуки провайдера",
    ["event", "result"],  # result: applied|dropped|duplicate|ignored|rejected
)


def record_meeting_transition(*, from_status: str, to_status: str, source: str, result: str) -> None:
    MEETING_TRANSITIONS_TOTAL.labels(
        from_status=from_status, to_status=to_status, source=source, result=result
    ).inc()


def record_provider_call(*, operation: str, result: str, elapsed_ms: float | None = None) -> None:
    PROVIDER_CALLS_TOTAL.labels(operation=operation, result=result).inc()
    if elapsed_ms is not None:
        PROVIDER_CALL_LATENCY_MS.labels(operation=operation).observe(elapsed_ms)


def record_token_refresh(*, result: str) -> None:
    PROVIDER_TOKEN_REFRESH_TOTAL.labels(result=result).inc()


def record_webhook_event(*, event: str, result: str) -> None:
    WEBHOOK_EVENTS_TOTAL.labels(event=event or "unknown", result=result).inc()


# =============================================================================
# ENDPOINT /metrics
# =============================================================================
def setup_metrics_endpoint(app: FastAPI, *, service: str = "api-gateway") -> None:
    """
    Регистрирует endpoint /metrics для Prometheus.
    """

    @app.middleware("http")
    async def http_metrics(request: Request, call_next):
        method = request.method
        started = time.perf_counter()

        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        # шаблон маршрута, а не сырой path: иначе UUID раздувают кардинальность
        route = getattr(request.scope.get("route"), "path", None) or request.url.path

        REQUESTS_TOTAL.labels(
            service=service,
            route=route,
            method=method,
            status=str(response.status_code),
        ).inc()
        HTTP_REQUEST_LATENCY_MS.labels(service=service, route=route, method=method).observe(
            elapsed_ms
        )
        return response

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
