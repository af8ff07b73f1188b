"""Infrastructure services."""

from .redis_service import RedisService, redis_service

__all__ = [
    "RedisService",
    "redis_service",
]
