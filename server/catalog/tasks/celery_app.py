"""Celery application running background bulk jobs."""

from celery import Celery

from catalog.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "catalog_jobs",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.config_from_object("catalog.tasks.celery_config")
celery_app.autodiscover_tasks(["catalog.tasks"])


def get_celery_app() -> Celery:
    """Return the configured Celery application instance."""
    return celery_app
