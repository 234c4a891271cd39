"""Celery application bootstrap for periodic scraping."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict

from celery import Celery, signals
from celery.schedules import schedule as celery_schedule

from .settings import Settings, get_settings
from .utils.logging import configure_logging

SCRAPE_TASK_NAME = "opportunities.tasks.collect.scrape_all_sources"

_CELERY_APP: Celery | None = None


def create_celery_app(settings: Settings | None = None) -> Celery:
    """Build a Celery app whose beat runs the scrape task every SCRAPE_INTERVAL_MINUTES."""
    config = settings or get_settings()
    configure_logging(config.log_level, json_enabled=config.log_json)

    app = Celery("opportunities", broker=config.redis_url, backend=config.redis_url)
    app.conf.update(
        task_default_queue="opportunities.default",
        task_default_exchange="opportunities",
        task_default_routing_key="opportunities.default",
        task_soft_time_limit=config.celery_task_soft_time_limit,
        # one browser session per run; never scrape concurrently
        worker_concurrency=1,
        beat_schedule=_build_beat_schedule(config),
        timezone=config.timezone,
        enable_utc=True,
    )

    app.autodiscover_tasks(["opportunities.tasks"], related_name="collect")
    _install_signal_handlers()
    return app


def get_celery_app() -> Celery:
    """Return the memoized Celery app."""
    global _CELERY_APP
    if _CELERY_APP is None:
        _CELERY_APP = create_celery_app()
    return _CELERY_APP


def _build_beat_schedule(settings: Settings) -> Dict[str, Dict[str, Any]]:
    return {
        "scrape.all_sources": {
            "task": SCRAPE_TASK_NAME,
            "schedule": celery_schedule(timedelta(minutes=settings.scrape_interval_minutes)),
            "options": {"queue": "opportunities.default"},
        }
    }


def _install_signal_handlers() -> None:
    logger = logging.getLogger("opportunities.worker")

    @signals.worker_shutdown.connect(weak=False)  # type: ignore[attr-defined]
    def _on_worker_shutdown(sender=None, **kwargs):  # noqa: ANN001
        logger.info("Celery worker shutdown detected", extra={"sender": str(sender)})
