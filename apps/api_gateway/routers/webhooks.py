"""
Приём вебхуков провайдера видеовстреч.

- POST /api/webhooks/provider

Без пользовательской авторизации: подлинность проверяется подписью
(HMAC по сырому телу запроса, заголовок ZOOM_WEBHOOK_SIGNATURE_HEADER).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from apps.api_gateway.deps import webhook_reconciler_dep
from mentor_meetings.common.config import get_settings
from mentor_meetings.common.errors import (
    ErrCode,
    InvalidSignatureError,
    ValidationError,
)
from mentor_meetings.common.logging import get_webhook_logger
from mentor_meetings.contracts.http_api import WebhookAck
from mentor_meetings.services.webhook_service import WebhookReconciler

log = get_webhook_logger()

router = APIRouter()


@router.post("/webhooks/provider", response_model=WebhookAck)
async def provider_webhook(
    request: Request,
    reconciler: WebhookReconciler = Depends(webhook_reconciler_dep),
) -> WebhookAck:
    header = get_settings().zoom_webhook_signature_header
    signature = request.headers.get(header)
    if not signature:
        log.warning("webhook_signature_missing", extra={"payload": {"header": header}})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": ErrCode.INVALID_SIGNATURE, "message": "Missing webhook signature"},
        )

    raw_body = await request.body()
    try:
        outcome = await reconciler.handle(raw_body, signature)
    except (InvalidSignatureError, ValidationError) as e:
        log.warning("webhook_rejected", extra={"payload": {"code": e.code, "reason": e.message}})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": e.code, "message": e.message},
        ) from e
    except Exception as e:
        log.exception("webhook_processing_failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": ErrCode.UNKNOWN, "message": "Webhook processing failed"},
        ) from e

    return WebhookAck(event=outcome.event, result=outcome.result)
