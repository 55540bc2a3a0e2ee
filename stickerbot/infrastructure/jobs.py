from __future__ import annotations

from redis import Redis
from rq import Queue, Retry

from stickerbot.config import settings


def get_redis_connection() -> Redis:
    return Redis.from_url(settings.redis_url)


def get_queue(connection: Redis | None = None) -> Queue:
    return Queue(settings.queue_name, connection=connection or get_redis_connection(), default_timeout=1200)


def enqueue_retry() -> Retry | None:
    if settings.job_retry_max <= 0:
        return None
    intervals = settings.job_retry_intervals
    if not intervals:
        return Retry(max=settings.job_retry_max)
    return Retry(max=settings.job_retry_max, interval=list(intervals))
