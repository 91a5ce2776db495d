"""Celery worker for scheduled background jobs.

Runs the daily good-first-issue digest: diff the live issue feed
against the stored snapshot and email opted-in users.

Docker Compose commands:
    celery -A app.celery_worker worker --loglevel=info --concurrency=2
    celery -A app.celery_worker beat --loglevel=info
"""

from __future__ import annotations

import asyncio

from celery import Celery
from celery.schedules import crontab

from app.config import get_settings
from app.exceptions import GitTogetherError
from app.logging_config import get_logger, setup_logging
from app.metrics import DIGEST_RUNS

settings = get_settings()
logger = get_logger(__name__)

# Celery app instance
celery_app = Celery(
    "gittogether",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes hard limit
    task_soft_time_limit=540,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue="digest",
    task_routes={
        "app.celery_worker.run_issue_digest": {"queue": "digest"},
    },
    beat_schedule={
        "daily-issue-digest": {
            "task": "app.celery_worker.run_issue_digest",
            "schedule": crontab(hour=settings.digest_hour_utc, minute=0),
        },
    },
)


async def _run_digest() -> dict:
    """Build the services against a fresh Redis connection and run once."""
    import redis.asyncio as aioredis

    from services.github_service import GitHubService
    from services.issue_digest import EmailNotifier, IssueDigestService
    from services.profile_store import ProfileStore

    redis = aioredis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    try:
        service = IssueDigestService(
            github=GitHubService(redis, settings),
            store=ProfileStore.from_settings(settings),
            notifier=EmailNotifier(settings),
            settings=settings,
        )
        result = await service.run()
    finally:
        await redis.aclose()
    return result.to_dict()


@celery_app.task(
    bind=True,
    name="app.celery_worker.run_issue_digest",
    max_retries=2,
    default_retry_delay=300,
)
def run_issue_digest(self) -> dict:
    """Compare issues with the stored snapshot and notify subscribers."""
    setup_logging()
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(_run_digest())
    except GitTogetherError as exc:
        DIGEST_RUNS.labels(outcome="failed").inc()
        logger.error("issue_digest_failed", code=exc.code)
        # Retry on transient errors
        if self.request.retries < self.max_retries:
            raise self.retry(exc=exc)
        return {"status": "failed", "error": exc.code}
    finally:
        loop.close()

    return {"status": "completed", **result}
