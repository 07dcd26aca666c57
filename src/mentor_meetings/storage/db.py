"""
Инициализация базы данных и сессий SQLAlchemy (asyncio).

Назначение:
- Создание async engine
- Асинхронный контекстный менеджер для сессий
- Единая точка доступа к БД для всех сервисов
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mentor_meetings.common.config import get_settings

# =============================================================================
# ENGINE / SESSION FACTORY
# =============================================================================
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        s = get_settings()
        _engine = create_async_engine(s.database_dsn, pool_pre_ping=True, echo=s.db_echo)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = make_session_factory(get_engine())
    return _session_factory


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: после commit объекты читаются без lazy IO
    return async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )


def configure_engine(engine: AsyncEngine) -> None:
    """
    Подменить engine (тесты, скрипты с отдельной БД).
    """
    global _engine, _session_factory
    _engine = engine
    _session_factory = make_session_factory(engine)


# =============================================================================
# CONTEXT MANAGER
# =============================================================================
@asynccontextmanager
async def db_session() -> AsyncIterator[AsyncSession]:
    """
    Контекстный менеджер для работы с БД.

    Использование:
        async with db_session() as session:
            session.add(...)
    """
    session = get_session_factory()()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
