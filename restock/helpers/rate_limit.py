from redis.asyncio import Redis

from restock.core.security import normalize_email


async def allow(
    redis: Redis,
    scope: str,
    email: str,
    client_ip: str,
    max_attempts: int,
    window_sec: int,
) -> bool:
    """Fixed-window counter per (scope, email, ip)."""
    key = f"rl:{scope}:{normalize_email(email) or 'unknown'}:{client_ip or 'unknown'}"
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, window_sec)
    return count <= max_attempts
