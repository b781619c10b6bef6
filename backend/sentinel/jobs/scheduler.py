# sentinel/jobs/scheduler.py
from __future__ import annotations

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..config import settings
from ..db import AsyncSessionLocal
from ..errors import SentinelError
from ..models import IngestMode, utcnow
from ..service_layer.predictive import run_prediction_batch
from ..service_layer.use_cases.cycle import run_ingestion_cycle

log = logging.getLogger(__name__)


async def _run_cycle(mode: str) -> None:
    try:
        res = await run_ingestion_cycle(settings.DEFAULT_COUNTIES, mode)
    except SentinelError as e:
        # store down or misconfigured counties: skip this tick, next one retries
        log.error("scheduled %s cycle skipped: %s", mode, e)
        return
    log.info("scheduled %s cycle done: %s", mode, res.totals())


async def _run_predictions() -> None:
    summary = await run_prediction_batch(AsyncSessionLocal, as_of=utcnow(), actor=settings.SYSTEM_ACTOR)
    log.info("scheduled prediction batch done: %s", summary)


def build_scheduler() -> AsyncIOScheduler:
    sched = AsyncIOScheduler()

    # broad sweep: crawler feeds + anything else that supports it
    sched.add_job(
        lambda: asyncio.create_task(_run_cycle(IngestMode.broad.value)),
        "interval",
        minutes=settings.SCHED_BROAD_INTERVAL_MINUTES,
    )

    # narrow pull against the paid source; slower cadence keeps API spend bounded
    sched.add_job(
        lambda: asyncio.create_task(_run_cycle(IngestMode.narrow.value)),
        "interval",
        minutes=settings.SCHED_NARROW_INTERVAL_MINUTES,
    )

    sched.add_job(
        lambda: asyncio.create_task(_run_predictions()),
        "interval",
        minutes=settings.SCHED_PREDICT_INTERVAL_MINUTES,
    )

    return sched
