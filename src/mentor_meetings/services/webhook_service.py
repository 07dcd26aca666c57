"""
Сверка состояния встреч по вебхукам провайдера.

Порядок:
1) подпись HMAC-SHA256 по сырым байтам тела (до парсинга JSON)
2) дедупликация повторной доставки по хешу тела
3) диспетчеризация по event; встреча ищется по id провайдера

Недопустимые переходы (дубли, устаревшие события) - не ошибка:
state machine их отбрасывает, вебхук отвечает 200.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mentor_meetings.common.config import Settings, get_settings
from mentor_meetings.common.errors import InvalidSignatureError, ValidationError
from mentor_meetings.common.logging import get_webhook_logger
from mentor_meetings.common.metrics import record_webhook_event
from mentor_meetings.common.time import minutes_between, parse_provider_ts, utc_now
from mentor_meetings.domain.enums import AttendanceStatus, MeetingStatus, TransitionSource
from mentor_meetings.queue.idempotency import check_and_set, release
from mentor_meetings.services.meeting_service import MeetingLifecycleService
from mentor_meetings.storage.db import db_session
from mentor_meetings.storage.models import MeetingRecord
from mentor_meetings.storage.repositories import MeetingRepository, ParticipantRepository

log = get_webhook_logger()

DEDUPE_SCOPE = "webhook"

EVENT_MEETING_STARTED = "meeting.started"
EVENT_MEETING_ENDED = "meeting.ended"
EVENT_PARTICIPANT_JOINED = "meeting.participant_joined"
EVENT_PARTICIPANT_LEFT = "meeting.participant_left"
EVENT_RECORDING_COMPLETED = "recording.completed"


@dataclass
class WebhookOutcome:
    event: str
    result: str  # applied|ignored|dropped|duplicate
    meeting_id: str | None = None


# =============================================================================
# SIGNATURE
# =============================================================================
def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: str | None, secret: str) -> None:
    """
    Проверка подписи. Принимает hex-дайджест, в т.ч. с префиксом "v0=".
    Несовпадение / пустая подпись / пустой секрет -> InvalidSignatureError.
    """
    if not secret:
        raise InvalidSignatureError("Webhook secret is not configured")
    sig = (signature or "").strip()
    if sig.startswith("v0="):
        sig = sig[3:]
    if not sig:
        raise InvalidSignatureError("Missing webhook signature")

    expected = compute_signature(raw_body, secret)
    if not hmac.compare_digest(expected.encode("ascii"), sig.lower().encode("ascii", "replace")):
        raise InvalidSignatureError()


# =============================================================================
# PAYLOAD HELPERS
# =============================================================================
def _parse_body(raw_body: bytes) -> dict[str, Any]:
    try:
        data = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ValidationError("Malformed webhook body") from e
    if not isinstance(data, dict):
        raise ValidationError("Malformed webhook body")
    return data


def _object(data: dict[str, Any]) -> dict[str, Any]:
    payload = data.get("payload")
    obj = payload.get("object") if isinstance(payload, dict) else None
    return obj if isinstance(obj, dict) else {}


def _event_time(data: dict[str, Any], *candidates: Any) -> datetime:
    """
    Время события: поле из payload, иначе event_ts (мс), иначе "сейчас".
    """
    for raw in candidates:
        ts = parse_provider_ts(raw)
        if ts is not None:
            return ts
    event_ts = data.get("event_ts")
    if isinstance(event_ts, int | float) and event_ts > 0:
        return datetime.fromtimestamp(event_ts / 1000, tz=UTC)
    return utc_now()


# =============================================================================
# RECONCILER
# =============================================================================
class WebhookReconciler:
    def __init__(
        self, meetings: MeetingLifecycleService, settings: Settings | None = None
    ) -> None:
        self.meetings = meetings
        self.settings = settings or get_settings()

    async def handle(self, raw_body: bytes, signature: str | None) -> WebhookOutcome:
        verify_signature(raw_body, signature, self.settings.zoom_webhook_secret)
        data = _parse_body(raw_body)
        event = str(data.get("event") or "")

        body_hash = hashlib.sha256(raw_body).hexdigest()
        if not await check_and_set(
            DEDUPE_SCOPE, event or "unknown", body_hash, ttl_sec=self.settings.webhook_dedupe_ttl_sec
        ):
            record_webhook_event(event=event, result="duplicate")
            log.info("webhook_duplicate", extra={"payload": {"event": event}})
            return WebhookOutcome(event=event, result="duplicate")

        try:
            outcome = await self._dispatch(event, data)
        except Exception:
            # не обработали: повторная доставка должна пройти
            await release(DEDUPE_SCOPE, event or "unknown", body_hash)
            record_webhook_event(event=event, result="error")
            raise

        record_webhook_event(event=event, result=outcome.result)
        log.info(
            "webhook_processed",
            extra={
                "payload": {
                    "event": event,
                    "result": outcome.result,
                    "meeting_id": outcome.meeting_id,
                }
            },
        )
        return outcome

    async def _dispatch(self, event: str, data: dict[str, Any]) -> WebhookOutcome:
        handlers = {
            EVENT_MEETING_STARTED: self._on_meeting_started,
            EVENT_MEETING_ENDED: self._on_meeting_ended,
            EVENT_PARTICIPANT_JOINED: self._on_participant_joined,
            EVENT_PARTICIPANT_LEFT: self._on_participant_left,
            EVENT_RECORDING_COMPLETED: self._on_recording_completed,
        }
        handler = handlers.get(event)
        if handler is None:
            log.info("webhook_unhandled_event", extra={"payload": {"event": event}})
            return WebhookOutcome(event=event, result="ignored")

        obj = _object(data)
        external_id = obj.get("id")
        if external_id is None or str(external_id).strip() == "":
            log.warning("webhook_missing_meeting_id", extra={"payload": {"event": event}})
            return WebhookOutcome(event=event, result="dropped")

        async with db_session() as session:
            meeting = await MeetingRepository(session).get_by_external_id(str(external_id))
            if meeting is None:
                log.info(
                    "webhook_meeting_not_found",
                    extra={"payload": {"event": event, "external_id": str(external_id)}},
                )
                return WebhookOutcome(event=event, result="dropped")

            applied = await handler(session, meeting, data, obj)
            return WebhookOutcome(
                event=event, result="applied" if applied else "ignored", meeting_id=meeting.id
            )

    # ---------------------------------------------------------------- events
    async def _on_meeting_started(
        self, session: AsyncSession, meeting: MeetingRecord, data: dict, obj: dict
    ) -> bool:
        at = _event_time(data, obj.get("start_time"))
        return await self.meetings.apply_transition(
            session, meeting, MeetingStatus.started, TransitionSource.webhook, at=at
        )

    async def _on_meeting_ended(
        self, session: AsyncSession, meeting: MeetingRecord, data: dict, obj: dict
    ) -> bool:
        at = _event_time(data, obj.get("end_time"))
        return await self.meetings.apply_transition(
            session, meeting, MeetingStatus.ended, TransitionSource.webhook, at=at
        )

    async def _on_participant_joined(
        self, session: AsyncSession, meeting: MeetingRecord, data: dict, obj: dict
    ) -> bool:
        participant = obj.get("participant") or {}
        email = str(participant.get("email") or "").strip()
        if not email:
            return False

        row = await ParticipantRepository(session).find_by_email(meeting.id, email)
        if row is None:
            log.info(
                "webhook_participant_not_found",
                extra={"payload": {"meeting_id": meeting.id, "lookup": "email"}},
            )
            return False

        external_pid = participant.get("id") or participant.get("user_id")
        if external_pid is not None:
            row.external_participant_id = str(external_pid)
        row.joined_at = _event_time(data, participant.get("join_time"))
        row.attendance_status = AttendanceStatus.joined
        return True

    async def _on_participant_left(
        self, session: AsyncSession, meeting: MeetingRecord, data: dict, obj: dict
    ) -> bool:
        participant = obj.get("participant") or {}
        external_pid = participant.get("id") or participant.get("user_id")
        email = str(participant.get("email") or "").strip()
        participants = ParticipantRepository(session)

        row = None
        if external_pid is not None:
            row = await participants.find_by_external_id(meeting.id, str(external_pid))
        if row is None and email:
            # join не был зафиксирован (потерян/не доставлен): ищем по email
            row = await participants.find_by_email(meeting.id, email)
            if row is not None and external_pid is not None and row.external_participant_id is None:
                row.external_participant_id = str(external_pid)
        if row is None:
            log.info(
                "webhook_participant_not_found",
                extra={"payload": {"meeting_id": meeting.id, "lookup": "external_id"}},
            )
            return False

        left_at = _event_time(data, participant.get("leave_time"))
        row.left_at = left_at
        row.duration_minutes = (
            minutes_between(row.joined_at, left_at) if row.joined_at is not None else None
        )
        row.attendance_status = AttendanceStatus.left
        return True

    async def _on_recording_completed(
        self, session: AsyncSession, meeting: MeetingRecord, data: dict, obj: dict
    ) -> bool:
        files = obj.get("recording_files") or []
        if not isinstance(files, list) or not files or not isinstance(files[0], dict):
            return False

        first = files[0]
        await MeetingRepository(session).attach_recording(
            meeting.id,
            recording_url=first.get("play_url"),
            recording_password=first.get("password") or obj.get("password"),
        )
        return True
