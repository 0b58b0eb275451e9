"""APScheduler job that drops cached activity sets for past days."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler

from calmday.core.config import settings
from calmday.observability.metrics import log_metric
from calmday.services.scheduling_service import activity_cache

logger = logging.getLogger(__name__)

JOB_ID = "activity_cache_prune"


def prune_stale_entries(today: Optional[date] = None) -> int:
    """Remove cached sets older than `today - cache_retention_days`; returns how many."""
    today = today or datetime.now(ZoneInfo(settings.scheduler_timezone)).date()
    cutoff = today - timedelta(days=settings.cache_retention_days)
    removed = activity_cache.prune(cutoff)
    logger.info("Cache prune finished: removed=%s cutoff=%s remaining=%s", removed, cutoff, len(activity_cache))
    log_metric("activities.cache_pruned", removed, metadata={"cutoff": cutoff.isoformat()})
    return removed


def build_scheduler() -> BackgroundScheduler:
    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)
    scheduler.add_job(
        _run_prune_job,
        trigger="cron",
        hour=settings.cache_prune_hour,
        minute=0,
        id=JOB_ID,
        replace_existing=True,
    )
    logger.info("Registered cache prune job at %02d:00 (%s)", settings.cache_prune_hour, settings.scheduler_timezone)
    return scheduler


def _run_prune_job() -> None:
    try:
        prune_stale_entries()
    except Exception:  # pragma: no cover - keep the scheduler alive
        logger.exception("Cache prune job failed")
