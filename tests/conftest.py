from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from mentor_meetings.common.config import get_settings
from mentor_meetings.common.ids import new_uuid
from mentor_meetings.common.time import utc_now
from mentor_meetings.connectors.base import RemoteMeeting, RemoteMeetingSpec
from mentor_meetings.connectors.zoom.mock import MockZoomConnector
from mentor_meetings.domain.enums import BookingStatus, ProfileRole, SessionDuration
from mentor_meetings.queue import idempotency
from mentor_meetings.storage.db import configure_engine, db_session
from mentor_meetings.storage.models import Base, Booking, Profile

WEBHOOK_SECRET = "whsec-test"
JWT_SECRET = "test-secret"

_SETTINGS_KEYS = [
    "app_env",
    "auth_mode",
    "oidc_issuer_url",
    "oidc_jwks_url",
    "oidc_audience",
    "oidc_algorithms",
    "jwt_shared_secret",
    "webhook_dedupe_mode",
    "zoom_webhook_secret",
    "meeting_provider",
]


@pytest.fixture()
def app_settings():
    s = get_settings()
    snapshot = {k: getattr(s, k) for k in _SETTINGS_KEYS}
    s.app_env = "test"
    s.auth_mode = "jwt"
    s.jwt_shared_secret = JWT_SECRET
    s.oidc_issuer_url = None
    s.oidc_jwks_url = None
    s.oidc_audience = None
    s.oidc_algorithms = "HS256"
    s.webhook_dedupe_mode = "inline"
    s.zoom_webhook_secret = WEBHOOK_SECRET
    s.meeting_provider = "zoom_mock"
    idempotency._LOCAL_IDEM_KEYS.clear()
    try:
        yield s
    finally:
        for k, v in snapshot.items():
            setattr(s, k, v)


@pytest.fixture()
async def db(tmp_path, app_settings):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'meetings.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    configure_engine(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


class FakeProvider(MockZoomConnector):
    """
    Mock-провайдер со счётчиками вызовов и управляемыми сбоями.
    """

    def __init__(self) -> None:
        super().__init__()
        self.create_calls = 0
        self.cancel_calls = 0
        self.fail_create: Exception | None = None
        self.fail_cancel: Exception | None = None
        self.omit_password = False

    async def create_remote_meeting(self, spec: RemoteMeetingSpec) -> RemoteMeeting:
        self.create_calls += 1
        if self.fail_create is not None:
            raise self.fail_create
        remote = await super().create_remote_meeting(spec)
        if self.omit_password:
            return RemoteMeeting(
                external_id=remote.external_id,
                join_url=remote.join_url,
                start_url=remote.start_url,
                password=None,
            )
        return remote

    async def cancel_remote_meeting(self, external_id: str) -> None:
        self.cancel_calls += 1
        if self.fail_cancel is not None:
            raise self.fail_cancel
        await super().cancel_remote_meeting(external_id)


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@dataclass
class Seeded:
    mentor_id: str
    learner_id: str
    booking_id: str
    start_time: datetime


@pytest.fixture()
def seed(db):
    async def _seed(
        *,
        status: BookingStatus = BookingStatus.confirmed,
        duration: SessionDuration = SessionDuration.hour,
        start_in: timedelta = timedelta(days=2),
        message: str | None = "I want to talk about system design",
        mentor_notes: str | None = "Prepare architecture questions",
    ) -> Seeded:
        start = (utc_now() + start_in).replace(microsecond=0)
        mentor = Profile(id=new_uuid(), name="Maria Mentor", email="Maria@Example.com", role=ProfileRole.mentor)
        learner = Profile(id=new_uuid(), name="Leo Learner", email="leo@example.com", role=ProfileRole.learner)
        async with db_session() as s:
            s.add_all([mentor, learner])
            await s.flush()
            booking = Booking(
                learner_id=learner.id,
                mentor_id=mentor.id,
                session_title="System design",
                session_duration=duration,
                start_time=start,
                end_time=start + timedelta(minutes=60),
                topic="Scaling a web service",
                message=message,
                mentor_notes=mentor_notes,
                status=status,
            )
            s.add(booking)
            await s.flush()
            booking_id = booking.id
        return Seeded(mentor.id, learner.id, booking_id, start)

    return _seed
