"""Celery application backing the Redis job queue."""

from __future__ import annotations

import os

from celery import Celery

from matter_opening.core.config import load_settings

SETTINGS = load_settings()

celery_app = Celery(
    "matter_opening",
    broker=SETTINGS.redis_url,
    backend=os.getenv("CELERY_RESULT_BACKEND", SETTINGS.redis_url),
)
celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_track_started=True,
    task_ignore_result=False,
    # one provisioning run per worker process at a time
    worker_prefetch_multiplier=1,
    task_acks_late=False,
    result_expires=7 * 24 * 3600,
    broker_connection_retry_on_startup=True,
)
celery_app.autodiscover_tasks(["matter_opening.api"], related_name="celery_tasks")
