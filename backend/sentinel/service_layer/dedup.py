# sentinel/service_layer/dedup.py
from __future__ import annotations

import enum
import json
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.sqlalchemy_repos import SqlAlchemyRepos
from ..domain.identity import distress_fingerprint
from ..domain.scoring import clamp_severity
from ..models import DistressEvent, DistressType, Property


class SignalOutcome(str, enum.Enum):
    inserted = "inserted"
    duplicate = "duplicate"  # normal, counted outcome; never an error


async def record_signal(
    session: AsyncSession,
    prop: Property,
    *,
    event_type: DistressType | str,
    source: str,
    severity: Any,
    confidence: Any,
    raw_payload: dict[str, Any] | None,
    observed_at: datetime,
    actor: str,
) -> SignalOutcome:
    """
    Append one distress event; the fingerprint's unique key decides duplicates.
    No SELECT before the insert: concurrent writers are settled by the store.
    """
    etype = DistressType(event_type)
    try:
        conf = max(0.0, min(1.0, float(confidence)))
    except (TypeError, ValueError):
        conf = 0.5

    fp = distress_fingerprint(prop.parcel_id, prop.county, etype.value, source)
    event = DistressEvent(
        property_id=prop.id,
        event_type=etype,
        severity=clamp_severity(severity),
        source=source,
        fingerprint=fp,
        confidence=conf,
        raw_payload_json=json.dumps(raw_payload or {}, sort_keys=True, default=str),
        observed_at=observed_at,
    )

    repos = SqlAlchemyRepos(session)
    inserted = await repos.events.append(event)
    outcome = SignalOutcome.inserted if inserted else SignalOutcome.duplicate

    await repos.audit.append(
        actor=actor,
        action=f"signal.{outcome.value}",
        entity_type="property",
        entity_id=prop.id,
        detail={"event_type": etype.value, "source": source, "fingerprint": fp},
    )
    return outcome
