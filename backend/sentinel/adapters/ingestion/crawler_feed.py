# sentinel/adapters/ingestion/crawler_feed.py
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from ...config import settings
from ...domain.identity import normalize_county, slugify
from ...domain.parsing import clean_str, get_first, is_truthy, parse_date, to_int, to_number
from ...models import DistressType, IngestMode, SourceKind
from .base import NormalizedSignal

log = logging.getLogger(__name__)

# crawler vocabulary -> distress type
_TYPE_ALIASES = {
    "obituary": DistressType.probate,
    "estate": DistressType.probate,
    "deceased": DistressType.probate,
    "foreclosure": DistressType.pre_foreclosure,
    "preforeclosure": DistressType.pre_foreclosure,
    "notice_of_default": DistressType.pre_foreclosure,
    "lis_pendens": DistressType.pre_foreclosure,
    "tax_delinquent": DistressType.tax_lien,
    "tax_delinquency": DistressType.tax_lien,
    "lien": DistressType.tax_lien,
    "dissolution": DistressType.divorce,
    "vacancy": DistressType.vacant,
    "inheritance": DistressType.inherited,
}


def _as_list_of_dicts(payload: Any) -> list[dict[str, Any]]:
    """
    Accept either:
      - list[dict]
      - {"records": list[dict]} (crawler run dump)
    """
    if isinstance(payload, list):
        return [x for x in payload if isinstance(x, dict)]
    if isinstance(payload, dict):
        v = payload.get("records")
        if isinstance(v, list):
            return [x for x in v if isinstance(x, dict)]
    return []


def map_distress_type(raw: Any) -> DistressType | None:
    key = slugify(clean_str(raw)).replace("-", "_")
    if not key:
        return None
    try:
        return DistressType(key)
    except ValueError:
        return _TYPE_ALIASES.get(key)


@dataclass
class CrawlerFeedAdapter:
    """
    Broad public-record crawl output (obituaries, court dockets, code enforcement).

    Reads the crawler's normalized dumps from:
      backend/data/crawler_feeds/<county>.json

    Each item is a crawled record: name, address, city, state, county, date,
    link, source, distressType, caseType, optional apn/severity/confidence, rawData.
    """

    feeds_dir: Path
    name: str = "crawler_feed"
    kind: SourceKind = SourceKind.crawler
    modes: tuple[IngestMode, ...] = (IngestMode.broad,)

    @classmethod
    def from_settings(cls) -> "CrawlerFeedAdapter":
        return cls(feeds_dir=Path(settings.CRAWLER_FEED_DIR))

    async def produce_records(self, *, counties: list[str], as_of: datetime) -> list[NormalizedSignal]:
        out: list[NormalizedSignal] = []
        for county in counties:
            canon = normalize_county(county, known=settings.KNOWN_COUNTIES, default=settings.DEFAULT_COUNTY)
            path = self.feeds_dir / f"{slugify(canon)}.json"
            if not path.exists():
                # missing feed means the crawler found nothing for that county
                continue

            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            items = _as_list_of_dicts(json.loads(text))
            for it in items:
                sig = self._canonicalize(it, fallback_county=canon, as_of=as_of)
                if sig is not None:
                    out.append(sig)
        return out

    def _canonicalize(self, it: dict[str, Any], *, fallback_county: str, as_of: datetime) -> NormalizedSignal | None:
        dtype = map_distress_type(get_first(it, "distressType", "distress_type", "caseType"))
        if dtype is None:
            log.debug("crawler_feed: dropping record with unknown type: %s", it.get("distressType"))
            return None

        severity = to_int(it.get("severity"))
        confidence = to_number(it.get("confidence"))
        flags = {k: True for k in ("absentee", "corporate", "elderly", "out_of_state", "inherited") if is_truthy(it.get(k))}
        flags["provider"] = clean_str(it.get("source")) or self.name
        attrs = {
            "estimated_value": to_number(get_first(it, "estimatedValue", "estimated_value")),
            "equity_percent": to_number(get_first(it, "equityPercent", "equity_percent")),
            "loan_balance": to_number(get_first(it, "loanBalance", "loan_balance")),
            "zipcode": clean_str(get_first(it, "zip", "zipCode")),
        }

        return NormalizedSignal(
            owner_name=clean_str(get_first(it, "name", "ownerName")),
            address=clean_str(it.get("address")),
            city=clean_str(it.get("city")),
            state=clean_str(it.get("state")),
            county=clean_str(it.get("county")) or fallback_county,
            observed_date=parse_date(it.get("date")) or as_of,
            source_link=clean_str(it.get("link")),
            source_id=clean_str(it.get("source")) or self.name,
            distress_type=dtype,
            raw_payload=it.get("rawData") if isinstance(it.get("rawData"), dict) else {"caseType": it.get("caseType")},
            parcel_id=clean_str(get_first(it, "apn", "parcelId")),
            severity=severity if severity is not None else 6,
            confidence=confidence if confidence is not None else 0.6,
            attributes={k: v for k, v in attrs.items() if v is not None},
            owner_flags=flags,
        )
