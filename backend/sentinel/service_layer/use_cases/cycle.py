# sentinel/service_layer/use_cases/cycle.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...adapters.ingestion.attom import AttomAdapter
from ...adapters.ingestion.base import NormalizedSignal, SourceAdapter
from ...adapters.ingestion.crawler_feed import CrawlerFeedAdapter
from ...adapters.ingestion.propertyradar import PropertyRadarAdapter
from ...config import settings
from ...db import AsyncSessionLocal, ping_store
from ...domain.parsing import parse_date
from ...errors import IdentityConflict, InvalidCycleParameters, PersistenceFailure, SourceUnavailable
from ...models import IngestMode, JobRun, utcnow
from ..dedup import SignalOutcome
from ..identity import canonical_county
from ..ingest import process_record
from ..jobruns import finish_job_success, start_job
from ..unit_of_work import SqlAlchemyUnitOfWork

log = logging.getLogger(__name__)


@dataclass
class SourceCounts:
    source: str
    kind: str
    crawled: int = 0
    deduplicated: int = 0
    scored: int = 0
    promoted: int = 0
    held: int = 0
    errored: int = 0
    timed_out: bool = False
    error: str | None = None
    elapsed_ms: int = 0
    error_reasons: dict[str, int] = field(default_factory=dict)

    def fail(self, reason: str) -> None:
        self.errored += 1
        self.error_reasons[reason] = self.error_reasons.get(reason, 0) + 1


@dataclass
class CycleResult:
    counties: list[str]
    mode: str
    sources: list[SourceCounts]
    elapsed_ms: int
    job_run_id: int | None = None

    def totals(self) -> dict[str, int]:
        keys = ("crawled", "deduplicated", "scored", "promoted", "held", "errored")
        return {k: sum(getattr(s, k) for s in self.sources) for k in keys}

    def as_dict(self) -> dict[str, Any]:
        return {
            "counties": self.counties,
            "mode": self.mode,
            "elapsed_ms": self.elapsed_ms,
            "job_run_id": self.job_run_id,
            "totals": self.totals(),
            "sources": [asdict(s) for s in self.sources],
        }


def build_adapters(mode: IngestMode) -> list[SourceAdapter]:
    """
    Adapter set for a mode, from settings.

    narrow: commercial provider pulls (each skipped when its API key is not configured)
    broad:  crawler output feeds
    """
    adapters: list[SourceAdapter] = []
    if mode == IngestMode.narrow:
        if settings.PROPERTYRADAR_API_KEY:
            adapters.append(PropertyRadarAdapter.from_settings())
        else:
            log.warning("narrow cycle: PROPERTYRADAR_API_KEY not set, skipping propertyradar")
        if settings.ATTOM_API_KEY:
            adapters.append(AttomAdapter.from_settings())
        else:
            log.warning("narrow cycle: ATTOM_API_KEY not set, skipping attom")
    if mode == IngestMode.broad:
        adapters.append(CrawlerFeedAdapter.from_settings())
    return adapters


def _clean_counties(counties: Sequence[str] | None) -> list[str]:
    """Canonical, de-duplicated target counties; blanks dropped."""
    out: list[str] = []
    for c in counties or []:
        s = str(c).strip()
        if not s:
            continue
        canon = canonical_county(s)
        if canon not in out:
            out.append(canon)
    return out


async def _fetch(adapter: SourceAdapter, counties: list[str], as_of: datetime, timeout_s: float) -> list[NormalizedSignal]:
    return await asyncio.wait_for(adapter.produce_records(counties=counties, as_of=as_of), timeout=timeout_s)


async def _run_adapter(
    adapter: SourceAdapter,
    *,
    counties: list[str],
    as_of: datetime,
    actor: str,
    session_factory: Callable[[], AsyncSession],
    timeout_s: float,
    thresholds: dict[str, int] | None,
) -> SourceCounts:
    """
    One adapter's whole run. Never raises: every failure ends up in the counts.
    The timeout covers fetch + processing; records left when it expires are dropped
    for this cycle and picked up again by the next one.
    """
    counts = SourceCounts(source=adapter.name, kind=adapter.kind.value)
    started = time.monotonic()
    deadline = started + timeout_s

    try:
        records = await _fetch(adapter, counties, as_of, timeout_s)
    except asyncio.TimeoutError:
        counts.timed_out = True
        counts.error = f"timeout after {timeout_s:.1f}s"
        counts.fail("timeout")
        log.warning("adapter %s timed out fetching records", adapter.name)
        records = []
    except SourceUnavailable as e:
        counts.error = str(e)
        counts.fail("source_unavailable")
        log.warning("adapter %s unavailable: %s", adapter.name, e)
        records = []
    except Exception as e:  # noqa: BLE001 - sibling adapters must keep running
        counts.error = f"{type(e).__name__}: {e}"
        counts.fail("adapter_crashed")
        log.exception("adapter %s crashed", adapter.name)
        records = []

    counts.crawled = len(records)
    for i, rec in enumerate(records):
        if time.monotonic() >= deadline:
            counts.timed_out = True
            counts.error = f"timeout after {timeout_s:.1f}s, {len(records) - i} records left"
            log.warning("adapter %s: deadline hit, truncating %d records", adapter.name, len(records) - i)
            break
        try:
            async with SqlAlchemyUnitOfWork(session_factory) as uow:
                res = await process_record(
                    uow.session,
                    rec,
                    source_kind=adapter.kind,
                    as_of=as_of,
                    actor=actor,
                    thresholds=thresholds,
                )
        except IdentityConflict as e:
            counts.fail("identity_conflict")
            log.warning("adapter %s: skipped record (identity): %s", adapter.name, e)
        except (PersistenceFailure, SQLAlchemyError) as e:
            counts.fail("persistence_failure")
            log.error("adapter %s: skipped record (persistence): %s | record=%r", adapter.name, e, rec)
        except Exception as e:  # noqa: BLE001 - one bad record must not end the batch
            counts.fail("record_failed")
            log.exception("adapter %s: record failed: %s", adapter.name, e)
        else:
            if res.outcome == SignalOutcome.duplicate:
                counts.deduplicated += 1
                continue
            counts.scored += 1
            if res.promoted:
                counts.promoted += 1
            else:
                counts.held += 1

    counts.elapsed_ms = int((time.monotonic() - started) * 1000)

    try:
        async with SqlAlchemyUnitOfWork(session_factory) as uow:
            await uow.repos.audit.append(
                actor=actor,
                action="ingest.processed",
                entity_type="source",
                entity_id=adapter.name,
                detail={"counties": counties, **asdict(counts)},
            )
    except SQLAlchemyError as e:
        log.error("adapter %s: could not write ingest audit entry: %s", adapter.name, e)

    log.info(
        "adapter %s: crawled=%d dedup=%d scored=%d promoted=%d errored=%d (%dms)",
        adapter.name, counts.crawled, counts.deduplicated, counts.scored, counts.promoted, counts.errored, counts.elapsed_ms,
    )
    return counts


async def run_ingestion_cycle(
    counties: Sequence[str],
    mode: IngestMode | str,
    *,
    adapters: Sequence[SourceAdapter] | None = None,
    session_factory: Callable[[], AsyncSession] | None = None,
    actor: str | None = None,
    as_of: datetime | None = None,
    timeout_s: float | None = None,
    max_concurrency: int | None = None,
    thresholds: dict[str, int] | None = None,
) -> CycleResult:
    """
    The batch trigger: fan out to the mode's adapters and push every record through
    resolve -> dedup -> score -> promote.

    Raises only for the two fatal states (bad parameters, unreachable store); any
    adapter or record failure is reported in the per-source counts instead.
    """
    targets = _clean_counties(counties)
    if not targets:
        raise InvalidCycleParameters("run_ingestion_cycle needs at least one target county")
    try:
        mode = IngestMode(mode)
    except ValueError as e:
        raise InvalidCycleParameters(f"unknown mode {mode!r}; use narrow or broad") from e

    session_factory = session_factory or AsyncSessionLocal
    await ping_store(session_factory)

    actor = actor or settings.SYSTEM_ACTOR
    as_of = parse_date(as_of) if as_of is not None else utcnow()
    timeout_s = float(timeout_s if timeout_s is not None else settings.ADAPTER_TIMEOUT_S)
    pool = adapters if adapters is not None else build_adapters(mode)
    active = [a for a in pool if mode in a.modes]

    started = time.monotonic()
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        jr = await start_job(
            uow.session,
            f"ingest_cycle_{mode.value}",
            {"counties": targets, "mode": mode.value, "adapters": [a.name for a in active], "as_of": as_of},
        )
        job_run_id = jr.id

    sem = asyncio.Semaphore(max(1, int(max_concurrency or settings.CYCLE_MAX_CONCURRENCY)))

    async def _guarded(adapter: SourceAdapter) -> SourceCounts:
        async with sem:
            return await _run_adapter(
                adapter,
                counties=targets,
                as_of=as_of,
                actor=actor,
                session_factory=session_factory,
                timeout_s=timeout_s,
                thresholds=thresholds,
            )

    sources = list(await asyncio.gather(*(_guarded(a) for a in active)))

    result = CycleResult(
        counties=targets,
        mode=mode.value,
        sources=sources,
        elapsed_ms=int((time.monotonic() - started) * 1000),
        job_run_id=job_run_id,
    )
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        jr = await uow.session.get(JobRun, job_run_id)
        await finish_job_success(uow.session, jr, result.as_dict())

    log.info("ingestion cycle %s %s: %s", mode.value, targets, result.totals())
    return result
