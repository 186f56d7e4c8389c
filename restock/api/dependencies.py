from functools import lru_cache

import redis.asyncio as aioredis

from restock.core.config import settings
from restock.core.reset_flow import PasswordResetFlow
from restock.db.session import SessionAsync
from restock.services.flow_registry import FlowRegistry
from restock.services.reset_backends import build_reset_backend


async def get_redis():
    redis = aioredis.from_url(settings.REDIS_URL)
    try:
        yield redis
    finally:
        await redis.aclose()


def build_flow() -> PasswordResetFlow:
    return PasswordResetFlow(
        build_reset_backend(SessionAsync),
        code_length=settings.RESET_CODE_LENGTH,
        password_min_length=settings.PASSWORD_MIN_LENGTH,
    )


@lru_cache()
def get_flow_registry() -> FlowRegistry:
    return FlowRegistry(
        build_flow,
        idle_ttl=settings.RESET_FLOW_IDLE_TTL_SEC,
        max_open=settings.RESET_FLOW_MAX_OPEN,
    )
