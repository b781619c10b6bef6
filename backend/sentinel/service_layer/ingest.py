# sentinel/service_layer/ingest.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.ingestion.base import NormalizedSignal
from ..domain.identity import synthetic_parcel_id
from ..domain.promotion import PROMOTE
from ..models import SourceKind
from .dedup import SignalOutcome, record_signal
from .identity import canonical_county, resolve_property
from .promotion import PromotionResult, promote_property
from .scoring import score_property


@dataclass(frozen=True)
class RecordResult:
    property_id: int
    outcome: SignalOutcome
    composite: int | None = None
    promotion: PromotionResult | None = None

    @property
    def promoted(self) -> bool:
        return self.promotion is not None and self.promotion.decision == PROMOTE


async def process_record(
    session: AsyncSession,
    record: NormalizedSignal,
    *,
    source_kind: SourceKind,
    as_of: datetime,
    actor: str,
    thresholds: dict[str, int] | None = None,
) -> RecordResult:
    """
    resolve -> record signal -> score -> blend/promote, for any source.

    A duplicate signal stops the record after dedup: nothing new to score, and
    the existing lead (if any) is left alone.
    """
    county = canonical_county(record.county)
    parcel = record.parcel_id or synthetic_parcel_id(record.owner_name, county, record.address)

    attributes = {
        "address": record.address,
        "city": record.city,
        "state": record.state,
        "owner_name": record.owner_name,
        **record.attributes,
        "owner_flags": record.owner_flags,
    }
    resolved = await resolve_property(session, parcel_id=parcel, county=county, attributes=attributes, actor=actor)
    prop = resolved.property

    outcome = await record_signal(
        session,
        prop,
        event_type=record.distress_type,
        source=record.source_id,
        severity=record.severity,
        confidence=record.confidence,
        raw_payload={**record.raw_payload, "source_link": record.source_link},
        observed_at=record.observed_date or as_of,
        actor=actor,
    )
    if outcome == SignalOutcome.duplicate:
        return RecordResult(property_id=prop.id, outcome=outcome)

    score = await score_property(session, prop, as_of=as_of, actor=actor)
    promotion = await promote_property(
        session,
        prop,
        composite=score.composite,
        source=record.source_id,
        source_kind=source_kind,
        actor=actor,
        thresholds=thresholds,
    )
    return RecordResult(property_id=prop.id, outcome=outcome, composite=score.composite, promotion=promotion)
