# tests/test_cycle.py
import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from sentinel.adapters.ingestion.base import NormalizedSignal
from sentinel.adapters.ingestion.crawler_feed import CrawlerFeedAdapter
from sentinel.errors import InvalidCycleParameters, SourceUnavailable
from sentinel.models import (
    DistressEvent,
    DistressType,
    EventLog,
    IngestMode,
    JobRun,
    JobRunStatus,
    Lead,
    ScoringRecord,
    SourceKind,
)
from sentinel.service_layer.use_cases.cycle import run_ingestion_cycle


def _signal(dtype, severity, observed, **kw):
    base = dict(
        owner_name="Estate of Mary Smith",
        address="12 Oak St",
        city="Spokane",
        state="WA",
        county="spokane county",
        observed_date=observed,
        source_link=None,
        source_id="crawler_feed",
        distress_type=dtype,
        parcel_id="35123.4501",
        severity=severity,
        attributes={"estimated_value": 350000.0, "loan_balance": 250000.0, "equity_percent": 60.0},
    )
    base.update(kw)
    return NormalizedSignal(**base)


@dataclass
class FakeAdapter:
    records: list = field(default_factory=list)
    name: str = "fake_crawler"
    kind: SourceKind = SourceKind.crawler
    modes: tuple = (IngestMode.broad,)
    calls: int = 0

    async def produce_records(self, *, counties, as_of):
        self.calls += 1
        return list(self.records)


@dataclass
class CrashingAdapter:
    name: str = "crashy"
    kind: SourceKind = SourceKind.crawler
    modes: tuple = (IngestMode.broad,)

    async def produce_records(self, *, counties, as_of):
        raise RuntimeError("parser blew up")


@dataclass
class DownAdapter:
    name: str = "down"
    kind: SourceKind = SourceKind.commercial
    modes: tuple = (IngestMode.broad, IngestMode.narrow)

    async def produce_records(self, *, counties, as_of):
        raise SourceUnavailable("down", "HTTP 503")


@dataclass
class SlowAdapter:
    name: str = "slow"
    kind: SourceKind = SourceKind.crawler
    modes: tuple = (IngestMode.broad,)

    async def produce_records(self, *, counties, as_of):
        await asyncio.sleep(5)
        return []


def _scenario(as_of: datetime) -> FakeAdapter:
    return FakeAdapter(
        records=[
            _signal(DistressType.probate, 9, as_of - timedelta(days=10)),
            _signal(DistressType.vacant, 5, as_of - timedelta(days=40)),
        ]
    )


@pytest.mark.asyncio
async def test_end_to_end_probate_plus_vacant(async_session_maker, as_of):
    adapter = _scenario(as_of)
    res = await run_ingestion_cycle(
        ["Spokane"], "broad", adapters=[adapter], session_factory=async_session_maker, as_of=as_of, max_concurrency=1
    )

    counts = res.sources[0]
    assert counts.crawled == 2
    assert counts.scored == 2
    assert counts.deduplicated == 0
    assert counts.promoted == 2  # created on the first record, refreshed on the second
    assert counts.errored == 0

    async with async_session_maker() as session:
        latest = (await session.execute(select(ScoringRecord).order_by(ScoringRecord.id.desc()))).scalars().first()
        leads = (await session.execute(select(Lead))).scalars().all()
        jr = await session.get(JobRun, res.job_run_id)

    assert latest.composite == 84
    assert latest.label == "hot"
    assert len(leads) == 1
    assert leads[0].priority == 84
    assert jr.status == JobRunStatus.success


@pytest.mark.asyncio
async def test_second_cycle_is_all_duplicates(async_session_maker, as_of):
    adapter = _scenario(as_of)
    await run_ingestion_cycle(["Spokane"], "broad", adapters=[adapter], session_factory=async_session_maker, as_of=as_of)
    res = await run_ingestion_cycle(
        ["Spokane"], "broad", adapters=[adapter], session_factory=async_session_maker, as_of=as_of + timedelta(days=1)
    )

    counts = res.sources[0]
    assert counts.deduplicated == 2
    assert counts.scored == 0
    assert counts.promoted == 0

    async with async_session_maker() as session:
        events = (await session.execute(select(func.count()).select_from(DistressEvent))).scalar_one()
        leads = (await session.execute(select(func.count()).select_from(Lead))).scalar_one()
        scores = (await session.execute(select(func.count()).select_from(ScoringRecord))).scalar_one()
    assert events == 2
    assert leads == 1
    assert scores == 2


@pytest.mark.asyncio
async def test_failing_adapters_do_not_stop_siblings(async_session_maker, as_of):
    good = _scenario(as_of)
    res = await run_ingestion_cycle(
        ["Spokane"],
        IngestMode.broad,
        adapters=[CrashingAdapter(), DownAdapter(), good],
        session_factory=async_session_maker,
        as_of=as_of,
        max_concurrency=1,
    )

    by_name = {s.source: s for s in res.sources}
    assert by_name["crashy"].errored == 1
    assert by_name["crashy"].error_reasons == {"adapter_crashed": 1}
    assert by_name["down"].error_reasons == {"source_unavailable": 1}
    assert by_name["fake_crawler"].scored == 2
    assert res.totals()["errored"] == 2


@pytest.mark.asyncio
async def test_slow_adapter_times_out(async_session_maker, as_of):
    res = await run_ingestion_cycle(
        ["Spokane"],
        "broad",
        adapters=[SlowAdapter()],
        session_factory=async_session_maker,
        as_of=as_of,
        timeout_s=0.05,
        max_concurrency=1,
    )
    slow = res.sources[0]
    assert slow.timed_out is True
    assert slow.crawled == 0
    assert slow.error_reasons == {"timeout": 1}


@pytest.mark.asyncio
async def test_mode_filters_adapters(async_session_maker, as_of):
    adapter = _scenario(as_of)  # broad only
    res = await run_ingestion_cycle(
        ["Spokane"], "narrow", adapters=[adapter], session_factory=async_session_maker, as_of=as_of
    )
    assert res.sources == []
    assert adapter.calls == 0


@pytest.mark.asyncio
async def test_bad_record_is_counted_not_fatal(async_session_maker, as_of):
    adapter = FakeAdapter(
        records=[
            _signal(DistressType.probate, 9, as_of, parcel_id="...", owner_name=None, address=None, county=None),
            _signal(DistressType.tax_lien, 7, as_of, parcel_id="77-1"),
        ]
    )
    res = await run_ingestion_cycle(["Spokane"], "broad", adapters=[adapter], session_factory=async_session_maker, as_of=as_of)
    counts = res.sources[0]
    assert counts.crawled == 2
    assert counts.errored == 1
    assert counts.error_reasons == {"identity_conflict": 1}
    assert counts.scored == 1


@pytest.mark.asyncio
async def test_ingest_audit_entry_per_adapter(async_session_maker, as_of):
    await run_ingestion_cycle(
        ["Spokane"], "broad", adapters=[_scenario(as_of)], session_factory=async_session_maker, as_of=as_of
    )
    async with async_session_maker() as session:
        rows = (await session.execute(select(EventLog).where(EventLog.action == "ingest.processed"))).scalars().all()
    assert len(rows) == 1
    assert rows[0].entity_id == "fake_crawler"


@pytest.mark.asyncio
async def test_empty_counties_rejected(async_session_maker):
    with pytest.raises(InvalidCycleParameters):
        await run_ingestion_cycle([], "broad", adapters=[], session_factory=async_session_maker)
    with pytest.raises(InvalidCycleParameters):
        await run_ingestion_cycle(["  "], "broad", adapters=[], session_factory=async_session_maker)


@pytest.mark.asyncio
async def test_unknown_mode_rejected(async_session_maker):
    with pytest.raises(InvalidCycleParameters):
        await run_ingestion_cycle(["Spokane"], "everything", adapters=[], session_factory=async_session_maker)


@pytest.mark.asyncio
async def test_suffixed_county_targets_canonical_feed(async_session_maker, as_of, tmp_path):
    (tmp_path / "spokane.json").write_text(
        json.dumps(
            [
                {
                    "name": "Estate of Ann Lee",
                    "address": "4 Elm",
                    "apn": "88-12",
                    "date": "2026-02-20",
                    "distressType": "probate",
                    "source": "spokane_obits",
                }
            ]
        ),
        encoding="utf-8",
    )
    res = await run_ingestion_cycle(
        ["Spokane County", " spokane "],
        "broad",
        adapters=[CrawlerFeedAdapter(feeds_dir=tmp_path)],
        session_factory=async_session_maker,
        as_of=as_of,
    )

    assert res.counties == ["Spokane"]
    counts = res.sources[0]
    assert counts.crawled == 1
    assert counts.errored == 0
