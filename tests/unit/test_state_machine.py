import pytest

from mentor_meetings.domain.enums import MeetingStatus
from mentor_meetings.domain.state_machine import is_terminal, transition


def test_transition_scheduled_to_started():
    r = transition(MeetingStatus.scheduled, MeetingStatus.started)
    assert r.ok is True
    assert r.reason is None


def test_transition_started_to_ended():
    assert transition(MeetingStatus.started, MeetingStatus.ended).ok is True


def test_transition_scheduled_straight_to_ended():
    # meeting.ended без meeting.started (потерянный вебхук)
    assert transition(MeetingStatus.scheduled, MeetingStatus.ended).ok is True


@pytest.mark.parametrize("current", [MeetingStatus.scheduled, MeetingStatus.started])
def test_cancel_allowed_from_non_terminal(current):
    assert transition(current, MeetingStatus.cancelled).ok is True


@pytest.mark.parametrize("current", [MeetingStatus.ended, MeetingStatus.cancelled])
@pytest.mark.parametrize("requested", list(MeetingStatus))
def test_terminal_statuses_accept_nothing(current, requested):
    r = transition(current, requested)
    assert r.ok is False
    assert r.reason == "terminal"


def test_repeat_of_same_status_is_rejected():
    r = transition(MeetingStatus.started, MeetingStatus.started)
    assert r.ok is False
    assert r.reason == "same_state"


def test_backwards_transition_is_rejected():
    r = transition(MeetingStatus.started, MeetingStatus.scheduled)
    assert r.ok is False
    assert r.reason == "backwards"


def test_transition_accepts_raw_values():
    r = transition("scheduled", "started")
    assert r.ok is True
    assert r.current == MeetingStatus.scheduled


def test_is_terminal():
    assert is_terminal(MeetingStatus.ended)
    assert is_terminal(MeetingStatus.cancelled)
    assert not is_terminal(MeetingStatus.scheduled)
    assert not is_terminal(MeetingStatus.started)
