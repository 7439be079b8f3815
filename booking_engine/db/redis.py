# booking_engine/db/redis.py
import redis
from booking_engine.core.config import settings


def get_redis_client():
    """
    Creates and returns a new Redis client instance.
    No connection is opened until the first command is issued.
    """
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


# Shared instance used by the notification sink and the health check.
redis_client = get_redis_client()
