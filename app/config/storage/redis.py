"""Redis connection config for the default cache backend, resolved from settings."""

from dataclasses import dataclass, field

from app.config.settings import Settings, get_settings


@dataclass(frozen=True)
class RedisConfig:
    url: str = field(repr=False)
    max_connections: int
    socket_timeout: float


def get_redis_config(settings: Settings | None = None) -> RedisConfig:
    s = settings or get_settings()
    return RedisConfig(
        url=s.redis_url,
        max_connections=s.redis_max_connections,
        socket_timeout=s.redis_socket_timeout,
    )
