# sentinel/adapters/ingestion/base.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from ...models import DistressType, IngestMode, SourceKind


@dataclass(frozen=True)
class NormalizedSignal:
    """
    The one record shape every source is converted into at the adapter boundary.

    parcel_id is None when the source has no authoritative APN; the pipeline then
    synthesizes a lower-trust id from owner name + county + address.
    """
    owner_name: str | None
    address: str | None
    city: str | None
    state: str | None
    county: str | None
    observed_date: datetime | None
    source_link: str | None
    source_id: str
    distress_type: DistressType
    raw_payload: dict[str, Any] = field(default_factory=dict)

    parcel_id: str | None = None
    severity: int = 6
    confidence: float = 0.6
    # estimated_value, equity_percent, loan_balance, beds, baths, sqft, year_built, zipcode, property_type
    attributes: dict[str, Any] = field(default_factory=dict)
    owner_flags: dict[str, Any] = field(default_factory=dict)


class SourceAdapter(Protocol):
    name: str
    kind: SourceKind
    modes: tuple[IngestMode, ...]

    async def produce_records(self, *, counties: list[str], as_of: datetime) -> list[NormalizedSignal]:
        raise NotImplementedError
