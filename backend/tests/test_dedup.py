# tests/test_dedup.py
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from sentinel.models import DistressEvent, EventLog
from sentinel.service_layer.dedup import SignalOutcome, record_signal
from sentinel.service_layer.identity import resolve_property


async def _record(session, *, payload, observed_at, source="crawler_feed", event_type="probate"):
    res = await resolve_property(session, parcel_id="555-1", county="Spokane", actor="test")
    return await record_signal(
        session,
        res.property,
        event_type=event_type,
        source=source,
        severity=8,
        confidence=0.9,
        raw_payload=payload,
        observed_at=observed_at,
        actor="test",
    )


@pytest.mark.asyncio
async def test_same_signal_n_times_stores_one_row(async_session_maker, as_of):
    outcomes = []
    for i in range(4):
        async with async_session_maker() as session:
            # payload and observation time differ every time; fingerprint does not
            outcomes.append(await _record(session, payload={"run": i}, observed_at=as_of - timedelta(days=i)))
            await session.commit()

    assert outcomes[0] == SignalOutcome.inserted
    assert outcomes[1:] == [SignalOutcome.duplicate] * 3

    async with async_session_maker() as session:
        rows = (await session.execute(select(func.count()).select_from(DistressEvent))).scalar_one()
        dup_logs = (
            await session.execute(select(func.count()).select_from(EventLog).where(EventLog.action == "signal.duplicate"))
        ).scalar_one()
    assert rows == 1
    assert dup_logs == 3


@pytest.mark.asyncio
async def test_duplicate_does_not_poison_transaction(async_session_maker, as_of):
    async with async_session_maker() as session:
        assert await _record(session, payload={}, observed_at=as_of) == SignalOutcome.inserted
        assert await _record(session, payload={}, observed_at=as_of) == SignalOutcome.duplicate
        # a different type from the same source is a new signal, in the same transaction
        assert await _record(session, payload={}, observed_at=as_of, event_type="vacant") == SignalOutcome.inserted
        await session.commit()

    async with async_session_maker() as session:
        types = sorted(t.value for t in (await session.execute(select(DistressEvent.event_type))).scalars().all())
    assert types == ["probate", "vacant"]


@pytest.mark.asyncio
async def test_other_source_is_not_a_duplicate(async_session_maker, as_of):
    async with async_session_maker() as session:
        a = await _record(session, payload={}, observed_at=as_of, source="crawler_feed")
        b = await _record(session, payload={}, observed_at=as_of, source="propertyradar")
        await session.commit()
    assert (a, b) == (SignalOutcome.inserted, SignalOutcome.inserted)


@pytest.mark.asyncio
async def test_severity_is_clamped_on_write(async_session_maker, as_of):
    async with async_session_maker() as session:
        res = await resolve_property(session, parcel_id="999", county="Spokane", actor="test")
        await record_signal(
            session,
            res.property,
            event_type="tax_lien",
            source="x",
            severity=42,
            confidence=3.0,
            raw_payload=None,
            observed_at=as_of,
            actor="test",
        )
        await session.commit()
        ev = (await session.execute(select(DistressEvent))).scalars().one()
    assert ev.severity == 10
    assert ev.confidence == 1.0
