"""
Базовые интерфейсы коннекторов (интеграции с провайдером видеовстреч).

Назначение:
- стандартизировать адаптеры (Zoom / mock)
- отделить "как разговариваем с провайдером" от state machine встречи
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class MeetingSettings:
    """
    Настройки встречи у провайдера.

    Дефолты - политика площадки: видео у обоих, микрофоны выключены на входе,
    зал ожидания, облачная запись, участники одобряются автоматически.
    """

    host_video: bool = True
    participant_video: bool = True
    join_before_host: bool = False
    mute_upon_entry: bool = True
    waiting_room: bool = True
    auto_recording: str = "cloud"  # local|cloud|none
    approval_type: int = 0  # 0=auto approve, 1=manual, 2=no registration
    audio: str = "both"
    encryption_type: str = "enhanced_encryption"


@dataclass(frozen=True)
class RemoteMeetingSpec:
    host_user_id: str
    topic: str
    start_time: datetime
    duration_minutes: int
    timezone: str
    password: str
    agenda: str | None = None
    settings: MeetingSettings = field(default_factory=MeetingSettings)


@dataclass(frozen=True)
class RemoteMeeting:
    external_id: str
    join_url: str
    start_url: str | None
    password: str | None
    external_uuid: str | None = None
    host_id: str | None = None


class MeetingProvider(Protocol):
    """
    Контракт коннектора к провайдеру видеовстреч.
    """

    async def create_remote_meeting(self, spec: RemoteMeetingSpec) -> RemoteMeeting:
        """Создать встречу у провайдера. Ошибка -> ProviderError/UpstreamError."""
        ...

    async def cancel_remote_meeting(self, external_id: str) -> None:
        """Удалить встречу у провайдера. "Уже нет" (404) - успех."""
        ...
