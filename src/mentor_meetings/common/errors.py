"""
Единые ошибки и коды ошибок.

Назначение:
- предсказуемые коды для HTTP и вебхуков
- единый стиль исключений по проекту
- маппинг в HTTP-статусы делает только apps/api_gateway
"""

from __future__ import annotations

from dataclasses import dataclass


class ErrCode:
    # Общие
    UNKNOWN = "unknown"
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    PRECONDITION = "precondition_failed"
    INVALID_TRANSITION = "invalid_transition"

    # Вебхуки
    INVALID_SIGNATURE = "invalid_signature"

    # Провайдер видеовстреч
    UPSTREAM_ERROR = "upstream_error"
    PROVIDER_ERROR = "provider_error"
    PROVIDER_AUTH_ERROR = "provider_auth_error"

    # Инфра/хранилища
    DB_ERROR = "db_error"
    REDIS_ERROR = "redis_error"


@dataclass
class AppError(Exception):
    """
    Базовая ошибка приложения.
    - code: стабильный код ошибки
    - message: безопасное сообщение
    - details: доп. данные (без секретов/PII)
    """

    code: str
    message: str
    details: dict | None = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}"


class ValidationError(AppError):
    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        super().__init__(ErrCode.VALIDATION, message, details)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Not authenticated", details: dict | None = None) -> None:
        super().__init__(ErrCode.UNAUTHORIZED, message, details)


class AuthorizationError(AppError):
    def __init__(self, message: str = "Forbidden", details: dict | None = None) -> None:
        super().__init__(ErrCode.FORBIDDEN, message, details)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found", details: dict | None = None) -> None:
        super().__init__(ErrCode.NOT_FOUND, message, details)


class ConflictError(AppError):
    def __init__(self, message: str = "Conflict", details: dict | None = None) -> None:
        super().__init__(ErrCode.CONFLICT, message, details)


class PreconditionError(AppError):
    def __init__(self, message: str = "Precondition failed", details: dict | None = None) -> None:
        super().__init__(ErrCode.PRECONDITION, message, details)


class InvalidTransitionError(AppError):
    def __init__(self, current: str, requested: str, details: dict | None = None) -> None:
        super().__init__(
            ErrCode.INVALID_TRANSITION,
            f"Cannot move meeting from {current} to {requested}",
            {"current": current, "requested": requested, **(details or {})},
        )
        self.current = current
        self.requested = requested


class InvalidSignatureError(AppError):
    def __init__(self, message: str = "Invalid webhook signature", details: dict | None = None) -> None:
        super().__init__(ErrCode.INVALID_SIGNATURE, message, details)


class UpstreamError(AppError):
    """
    Провайдер недоступен / таймаут / ответил ошибкой.
    Текст исходной ошибки живёт только в details и в логах, наружу не уходит.
    """

    def __init__(
        self,
        message: str = "External service error",
        details: dict | None = None,
        *,
        code: str = ErrCode.UPSTREAM_ERROR,
    ) -> None:
        super().__init__(code, message, details)


class ProviderError(UpstreamError):
    """
    Non-2xx ответ провайдера.
    """

    def __init__(
        self,
        status_code: int,
        provider_message: str,
        *,
        code: str = ErrCode.PROVIDER_ERROR,
    ) -> None:
        super().__init__(
            f"Provider API error: {status_code}",
            {"status_code": status_code, "provider_message": provider_message},
            code=code,
        )
        self.status_code = status_code
        self.provider_message = provider_message


class ProviderAuthError(ProviderError):
    def __init__(self, status_code: int = 401, provider_message: str = "unauthorized") -> None:
        super().__init__(status_code, provider_message, code=ErrCode.PROVIDER_AUTH_ERROR)
