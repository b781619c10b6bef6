# sentinel/adapters/ingestion/partner_push.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ...config import settings
from ...domain.identity import normalize_county
from ...domain.parsing import clean_str, parse_date, to_number
from ...models import DistressType, IngestMode, SourceKind
from .base import NormalizedSignal

_TAG_SEP = re.compile(r"[\s-]+")

_TAG_ALIASES = {
    "foreclosure": DistressType.pre_foreclosure,
    "preforeclosure": DistressType.pre_foreclosure,
    "tax_delinquent": DistressType.tax_lien,
    "tax_delinquency": DistressType.tax_lien,
    "deceased": DistressType.probate,
    "code_enforcement": DistressType.code_violation,
}


def map_partner_tag(tag: str) -> DistressType | None:
    key = _TAG_SEP.sub("_", str(tag).strip().lower())
    try:
        return DistressType(key)
    except ValueError:
        return _TAG_ALIASES.get(key)


def _county_key(raw: str | None) -> str:
    return normalize_county(raw, known=settings.KNOWN_COUNTIES, default=settings.DEFAULT_COUNTY).lower()


def partner_severity(heat_score: Any) -> int:
    """Partner heat 0-100 -> detector severity 1-10."""
    heat = to_number(heat_score) or 0.0
    return max(1, min(10, round(heat / 10.0)))


@dataclass
class PartnerPushAdapter:
    """
    Wraps payloads a partner pushed to us so they ride the same resolve/score/promote
    path as pulled sources. One signal per recognised tag; untagged pushes count as vacant.
    """

    partner_id: str
    payloads: list[dict[str, Any]] = field(default_factory=list)
    kind: SourceKind = SourceKind.partner
    modes: tuple[IngestMode, ...] = (IngestMode.narrow, IngestMode.broad)

    @property
    def name(self) -> str:
        return f"partner:{self.partner_id}"

    def counties(self) -> list[str]:
        seen: list[str] = []
        for p in self.payloads:
            c = clean_str(p.get("county"))
            if c and c not in seen:
                seen.append(c)
        return seen

    async def produce_records(self, *, counties: list[str], as_of: datetime) -> list[NormalizedSignal]:
        wanted = {_county_key(c) for c in counties if c and c.strip()}
        out: list[NormalizedSignal] = []
        for p in self.payloads:
            county = clean_str(p.get("county"))
            if wanted and _county_key(county) not in wanted:
                continue

            types = [t for t in (map_partner_tag(tag) for tag in p.get("tags") or []) if t is not None]
            if not types:
                types = [DistressType.vacant]

            severity = partner_severity(p.get("heat_score"))
            attrs = {
                "estimated_value": to_number(p.get("estimated_value")),
                "equity_percent": to_number(p.get("equity_percent")),
                "loan_balance": to_number(p.get("loan_balance")),
            }
            for dtype in dict.fromkeys(types):
                out.append(
                    NormalizedSignal(
                        owner_name=clean_str(p.get("owner_name")),
                        address=clean_str(p.get("address")),
                        city=clean_str(p.get("city")),
                        state=clean_str(p.get("state")),
                        county=county,
                        observed_date=parse_date(p.get("pushed_at")) or as_of,
                        source_link=None,
                        source_id=self.name,
                        distress_type=dtype,
                        raw_payload=dict(p),
                        parcel_id=clean_str(p.get("apn")),
                        severity=severity,
                        confidence=0.7,
                        attributes={k: v for k, v in attrs.items() if v is not None},
                        owner_flags={"provider": self.name, "partner_ref": clean_str(p.get("partner_ref"))},
                    )
                )
        return out
