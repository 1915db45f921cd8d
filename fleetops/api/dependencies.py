"""FastAPI dependency injection helpers."""

import redis.asyncio as aioredis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fleetops.infrastructure.database import async_session_factory
from fleetops.infrastructure.email_client import EmailClient
from fleetops.infrastructure.redis_client import get_redis as _pooled_redis
from fleetops.services.notifications import Notifier


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_redis() -> aioredis.Redis:
    return await _pooled_redis()


def get_notifier() -> Notifier:
    return Notifier(EmailClient())


def provide(service_cls):
    """Dependency building *service_cls* over the request's session."""

    async def _provide(
        db: AsyncSession = Depends(get_db),
        redis: aioredis.Redis = Depends(get_redis),
        notifier: Notifier = Depends(get_notifier),
    ):
        return service_cls(db, redis, notifier)

    return _provide
