"""
State machine статуса встречи.

scheduled -> started -> ended
scheduled|started -> cancelled
ended, cancelled - терминальные.

Переходы только вперёд: повторный вход в тот же или более ранний статус
отклоняется (для вебхуков это штатный no-op - дубль или устаревшее событие).
"""

from __future__ import annotations

from dataclasses import dataclass

from mentor_meetings.domain.enums import MeetingStatus

TERMINAL_STATUSES = frozenset({MeetingStatus.ended, MeetingStatus.cancelled})

_ALLOWED: dict[MeetingStatus, frozenset[MeetingStatus]] = {
    MeetingStatus.scheduled: frozenset(
        {MeetingStatus.started, MeetingStatus.ended, MeetingStatus.cancelled}
    ),
    MeetingStatus.started: frozenset({MeetingStatus.ended, MeetingStatus.cancelled}),
    MeetingStatus.ended: frozenset(),
    MeetingStatus.cancelled: frozenset(),
}


@dataclass(frozen=True)
class TransitionResult:
    ok: bool
    current: MeetingStatus
    requested: MeetingStatus
    reason: str | None = None


def transition(current: MeetingStatus, requested: MeetingStatus) -> TransitionResult:
    current = MeetingStatus(current)
    requested = MeetingStatus(requested)

    if requested in _ALLOWED[current]:
        return TransitionResult(ok=True, current=current, requested=requested)

    if current in TERMINAL_STATUSES:
        reason = "terminal"
    elif requested == current:
        reason = "same_state"
    else:
        reason = "backwards"
    return TransitionResult(ok=False, current=current, requested=requested, reason=reason)


def is_terminal(status: MeetingStatus) -> bool:
    return MeetingStatus(status) in TERMINAL_STATUSES
