import redis

from tracer.config import settings

# notifications publish through this client; a short timeout keeps a dead redis from stalling requests
redis_client = redis.Redis.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_timeout=settings.redis_timeout_seconds,
    socket_connect_timeout=settings.redis_timeout_seconds,
)

def redis_ping() -> tuple[bool, str | None]:
    try:
        redis_client.ping()
    except redis.RedisError as e:
        return False, type(e).__name__
    return True, None
