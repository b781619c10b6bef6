# sentinel/adapters/ingestion/propertyradar.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import httpx

from ...config import settings
from ...domain.parsing import clean_str, get_first, is_truthy, parse_date, to_int, to_number
from ...errors import SourceUnavailable
from ...models import DistressType, IngestMode, SourceKind
from ..clients.propertyradar import PropertyRadarClient
from .base import NormalizedSignal

log = logging.getLogger(__name__)

SOURCE_ID = "propertyradar"


@dataclass(frozen=True)
class DetectedSignal:
    distress_type: DistressType
    severity: int
    days_since_event: int
    detected_from: str


def _days_since(raw: Any, as_of: datetime, default: int) -> int:
    d = parse_date(raw)
    if d is None:
        return default
    return max(0, (as_of - d).days)


def detect_distress_signals(pr: dict[str, Any], as_of: datetime) -> list[DetectedSignal]:
    """
    Provider boolean flags -> distress signals with detector severity.

    Event dates are rarely supplied, so most signals carry a typical age
    for that flag; a property with no flag at all is still an absentee lead
    (the search criteria already require a non-owner-occupied mailing address).
    """
    out: list[DetectedSignal] = []

    if is_truthy(pr.get("isDeceasedProperty")):
        out.append(DetectedSignal(DistressType.probate, 9, 30, "isDeceasedProperty"))

    if is_truthy(pr.get("isPreforeclosure")) or is_truthy(pr.get("inForeclosure")):
        owed = to_number(pr.get("DefaultAmount")) or 0.0
        out.append(
            DetectedSignal(
                DistressType.pre_foreclosure,
                9 if owed > 50_000 else 7,
                _days_since(pr.get("ForeclosureRecDate"), as_of, 30),
                "isPreforeclosure" if is_truthy(pr.get("isPreforeclosure")) else "inForeclosure",
            )
        )

    if is_truthy(pr.get("inTaxDelinquency")):
        owed = to_number(pr.get("DelinquentAmount")) or 0.0
        year = to_int(pr.get("DelinquentYear"))
        days = max(365 * (as_of.year - year), 30) if year else 90
        out.append(DetectedSignal(DistressType.tax_lien, 8 if owed > 10_000 else 6, days, "inTaxDelinquency"))

    if is_truthy(pr.get("inBankruptcyProperty")):
        out.append(DetectedSignal(DistressType.bankruptcy, 8, 60, "inBankruptcyProperty"))
    if is_truthy(pr.get("inDivorce")):
        out.append(DetectedSignal(DistressType.divorce, 7, 60, "inDivorce"))

    if is_truthy(pr.get("isSiteVacant")) or is_truthy(pr.get("isMailVacant")):
        src = "isSiteVacant" if is_truthy(pr.get("isSiteVacant")) else "isMailVacant"
        out.append(DetectedSignal(DistressType.vacant, 5, 60, src))
    if is_truthy(pr.get("isNotSameMailingOrExempt")):
        out.append(DetectedSignal(DistressType.absentee, 4, 90, "isNotSameMailingOrExempt"))

    has_liens = is_truthy(pr.get("PropertyHasOpenLiens")) or is_truthy(pr.get("PropertyHasOpenPersonLiens"))
    if has_liens and not any(s.distress_type == DistressType.tax_lien for s in out):
        out.append(DetectedSignal(DistressType.tax_lien, 5, 90, "PropertyHasOpenLiens"))

    if not out:
        out.append(DetectedSignal(DistressType.absentee, 3, 180, "default_absentee"))
    return out


def signal_confidence(severity: int) -> float:
    if severity >= 7:
        return 0.9
    if severity >= 4:
        return 0.75
    return 0.6


def property_attributes(pr: dict[str, Any]) -> dict[str, Any]:
    return {
        "zipcode": clean_str(pr.get("ZipFive")),
        "property_type": clean_str(pr.get("PType")),
        "estimated_value": to_number(pr.get("AVM")),
        "equity_percent": to_number(pr.get("EquityPercent")),
        "loan_balance": to_number(pr.get("TotalLoanBalance")),
        "beds": to_int(pr.get("Beds")),
        "baths": to_number(pr.get("Baths")),
        "sqft": to_int(pr.get("SqFt")),
        "year_built": to_int(pr.get("YearBuilt")),
    }


def owner_flags_from(pr: dict[str, Any]) -> dict[str, Any]:
    flags: dict[str, Any] = {
        "provider": SOURCE_ID,
        "radar_id": clean_str(pr.get("RadarID")),
        "absentee": is_truthy(pr.get("isNotSameMailingOrExempt")),
        "vacant": is_truthy(pr.get("isSiteVacant")) or is_truthy(pr.get("isMailVacant")),
        "free_and_clear": is_truthy(pr.get("isFreeAndClear")),
        "high_equity": is_truthy(pr.get("isHighEquity")),
        "deceased": is_truthy(pr.get("isDeceasedProperty")),
        "foreclosure_stage": clean_str(pr.get("ForeclosureStage")),
        "delinquent_amount": to_number(pr.get("DelinquentAmount")),
        "last_sale_date": clean_str(pr.get("LastTransferRecDate")),
    }
    return {k: v for k, v in flags.items() if v is not None}


def to_signals(pr: dict[str, Any], as_of: datetime) -> list[NormalizedSignal]:
    apn = clean_str(pr.get("APN"))
    radar_id = clean_str(pr.get("RadarID"))
    link = f"https://app.propertyradar.com/#!/property/{radar_id}" if radar_id else None
    attrs = property_attributes(pr)
    flags = owner_flags_from(pr)

    return [
        NormalizedSignal(
            owner_name=clean_str(get_first(pr, "Owner", "Taxpayer")),
            address=clean_str(get_first(pr, "Address", "FullAddress")),
            city=clean_str(pr.get("City")),
            state=clean_str(pr.get("State")),
            county=clean_str(pr.get("County")),
            observed_date=as_of - timedelta(days=s.days_since_event),
            source_link=link,
            source_id=SOURCE_ID,
            distress_type=s.distress_type,
            raw_payload={"detected_from": s.detected_from, "radar_id": radar_id, "apn": apn},
            parcel_id=apn,
            severity=s.severity,
            confidence=signal_confidence(s.severity),
            attributes=attrs,
            owner_flags=flags,
        )
        for s in detect_distress_signals(pr, as_of)
    ]


@dataclass
class PropertyRadarAdapter:
    """Commercial pull: thin, strictly filtered, high-confidence."""

    client: PropertyRadarClient
    max_pull: int
    min_equity_percent: int
    name: str = SOURCE_ID
    kind: SourceKind = SourceKind.commercial
    modes: tuple[IngestMode, ...] = (IngestMode.narrow,)

    @classmethod
    def from_settings(cls) -> "PropertyRadarAdapter":
        if not settings.PROPERTYRADAR_API_KEY:
            raise ValueError("PROPERTYRADAR_API_KEY is not configured")
        return cls(
            client=PropertyRadarClient(api_key=settings.PROPERTYRADAR_API_KEY),
            max_pull=settings.PROPERTYRADAR_MAX_PULL,
            min_equity_percent=settings.PROPERTYRADAR_MIN_EQUITY_PERCENT,
        )

    async def produce_records(self, *, counties: list[str], as_of: datetime) -> list[NormalizedSignal]:
        try:
            rows = await self.client.search(counties, limit=self.max_pull, min_equity_percent=self.min_equity_percent)
        except httpx.HTTPError as e:
            raise SourceUnavailable(self.name, str(e)) from e

        out: list[NormalizedSignal] = []
        skipped = 0
        for pr in rows:
            if not clean_str(pr.get("APN")):
                skipped += 1
                continue
            out.extend(to_signals(pr, as_of))
        if skipped:
            log.info("propertyradar: skipped %d rows without APN", skipped)
        return out
