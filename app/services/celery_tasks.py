"""
Celery worker tasks for notification delivery.

Start a worker with:
    celery -A app.services.celery_tasks worker -Q job-notifications --loglevel=info

Each task run opens its own Motor client, because a client is bound to the
event loop that first uses it and every run gets a fresh loop.
"""
import asyncio

from celery import Celery

from app.models.schemas import DeliveryTask
from app.services.db import create_client
from app.services.delivery import build_sink
from app.services.notifications import CHECK_NEW_JOBS, NOTIFY_NEW_JOBS, DeliveryWorker
from app.services.repository import MongoPipelineRepository
from app.utils.config import get_settings
from app.utils.logging_config import get_logger

logger = get_logger(__name__)
settings = get_settings()

celery_app = Celery(
    "resume_pipeline",
    broker=settings.queue_settings.broker_url,
    backend=settings.queue_settings.broker_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,
    worker_prefetch_multiplier=1,
)

celery_app.conf.task_routes = {
    NOTIFY_NEW_JOBS: {"queue": settings.queue_settings.queue_name},
    CHECK_NEW_JOBS: {"queue": settings.queue_settings.queue_name},
}

RETRY_POLICY = dict(
    autoretry_for=(Exception,),
    retry_backoff=int(settings.notification_settings.backoff_delay_seconds),
    retry_jitter=False,
    max_retries=settings.notification_settings.attempts - 1,
)


async def _run_handler(handler_name: str, task: DeliveryTask) -> None:
    client = create_client(settings.mongo_details)
    try:
        repository = MongoPipelineRepository(client[settings.db_name])
        sink = build_sink(settings.notification_settings, settings.smtp_settings)
        worker = DeliveryWorker(repository, sink, settings.notification_settings)
        await getattr(worker, handler_name)(task)
    finally:
        client.close()


@celery_app.task(name=NOTIFY_NEW_JOBS, **RETRY_POLICY)
def notify_new_jobs(**task_kwargs):
    asyncio.run(_run_handler("handle_job_notification", DeliveryTask(**task_kwargs)))


@celery_app.task(name=CHECK_NEW_JOBS, **RETRY_POLICY)
def check_new_jobs(**task_kwargs):
    asyncio.run(_run_handler("handle_check_new_jobs", DeliveryTask(**task_kwargs)))
