# sentinel/adapters/ingestion/attom.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import httpx

from ...config import settings
from ...domain.identity import normalize_county, normalize_parcel_id
from ...domain.parsing import clean_str, parse_date, to_int, to_number
from ...errors import SourceUnavailable
from ...models import DistressType, IngestMode, SourceKind
from ..clients.attom import AttomClient
from .base import NormalizedSignal
from .propertyradar import DetectedSignal

log = logging.getLogger(__name__)

SOURCE_ID = "attom"


def _dig(d: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(d, dict):
            return None
        d = d.get(key)
    return d


def foreclosure_severity(fc: dict[str, Any] | None) -> int:
    """Auction stage 9, notice / lis pendens 7, any other recorded default 6."""
    fc_type = str(_dig(fc, "FC", "FCType") or "").lower()
    fc_status = str(_dig(fc, "FC", "FCStatus") or "").lower()
    if "auction" in fc_type or "auction" in fc_status:
        return 9
    if "lis pendens" in fc_type or "notice" in fc_type:
        return 7
    return 6


def estimated_value(prop: dict[str, Any]) -> float | None:
    for path in (("avm", "amount", "value"), ("assessment", "market", "mktTtlValue"), ("assessment", "assessed", "assdTtlValue")):
        v = to_number(_dig(prop, *path))
        if v:
            return v
    return None


def loan_balance(prop: dict[str, Any]) -> float:
    first = to_number(_dig(prop, "assessment", "mortgage", "FirstConcurrent", "amount")) or 0.0
    second = to_number(_dig(prop, "assessment", "mortgage", "SecondConcurrent", "amount")) or 0.0
    return first + second


def equity_percent(prop: dict[str, Any]) -> float | None:
    """AVM (or market/assessed value) against recorded loans; free and clear is 100, floor -50."""
    value = estimated_value(prop)
    if not value or value <= 0:
        return None
    loans = loan_balance(prop)
    if loans <= 0:
        return 100.0
    return max(min(round((value - loans) / value * 100, 1), 100.0), -50.0)


def detect_attom_signals(prop: dict[str, Any], fc: dict[str, Any] | None = None) -> list[DetectedSignal]:
    out: list[DetectedSignal] = []

    absentee = _dig(prop, "summary", "absenteeInd") == "Y" or _dig(prop, "assessment", "owner", "absenteeOwnerStatus") == "O"
    if absentee:
        out.append(DetectedSignal(DistressType.absentee, 5, 0, "absenteeInd"))
    elif _dig(prop, "assessment", "owner", "corporateIndicator") == "Y":
        out.append(DetectedSignal(DistressType.absentee, 3, 0, "corporateIndicator"))

    # tax bill above 3% of assessed value reads as carried-forward arrears
    tax = to_number(_dig(prop, "assessment", "tax", "taxAmt")) or 0.0
    assessed = to_number(_dig(prop, "assessment", "assessed", "assdTtlValue")) or 0.0
    if assessed > 0 and tax > assessed * 0.03:
        out.append(DetectedSignal(DistressType.tax_lien, 7, 0, "taxAmt"))

    if fc and isinstance(fc.get("FC"), dict):
        out.append(DetectedSignal(DistressType.pre_foreclosure, foreclosure_severity(fc), 0, "foreclosure"))

    year_built = to_int(_dig(prop, "summary", "yearBuilt")) or 0
    living = to_number(_dig(prop, "building", "size", "livingSize")) or to_number(_dig(prop, "building", "size", "bldgSize")) or 0.0
    if 0 < year_built < 1960 and living < 600:
        out.append(DetectedSignal(DistressType.vacant, 4, 0, "condition"))

    return out


def _address(row: dict[str, Any]) -> tuple[str | None, str | None, str | None]:
    addr = row.get("address") or {}
    return (
        clean_str(addr.get("line1")) or clean_str(addr.get("oneLine")),
        clean_str(addr.get("locality")),
        clean_str(addr.get("postal1")),
    )


def _fc_flags(fc: dict[str, Any] | None) -> dict[str, Any]:
    body = (fc or {}).get("FC") or {}
    return {
        "fc_type": clean_str(body.get("FCType")),
        "fc_status": clean_str(body.get("FCStatus")),
        "fc_default_amount": to_number(body.get("defaultAmount")),
        "fc_auction_date": clean_str(body.get("FCAuctionDate")),
        "fc_lender": clean_str(body.get("lenderName")),
    }


def _fc_observed(fc: dict[str, Any] | None, as_of: datetime) -> datetime:
    return parse_date(_dig(fc, "FC", "FCRecDate")) or parse_date(_dig(fc, "FC", "FCDocDate")) or as_of


def property_to_signals(
    prop: dict[str, Any], fc: dict[str, Any] | None, *, county: str, state: str | None, fips: str, as_of: datetime
) -> list[NormalizedSignal]:
    """One signal per detected distress; a property with no distress yields nothing."""
    apn = clean_str(_dig(prop, "identifier", "apn"))
    found = detect_attom_signals(prop, fc)
    if not apn or not found:
        return []

    address, city, zipcode = _address(prop)
    loans = loan_balance(prop)
    attrs = {
        "zipcode": zipcode,
        "property_type": clean_str(_dig(prop, "summary", "propType")),
        "estimated_value": estimated_value(prop),
        "equity_percent": equity_percent(prop),
        "loan_balance": loans if loans > 0 else None,
        "beds": to_int(_dig(prop, "building", "rooms", "beds")),
        "baths": to_number(_dig(prop, "building", "rooms", "bathsTotal")),
        "sqft": to_int(_dig(prop, "building", "size", "livingSize")) or to_int(_dig(prop, "building", "size", "bldgSize")),
        "year_built": to_int(_dig(prop, "summary", "yearBuilt")),
    }
    flags = {
        "provider": SOURCE_ID,
        "attom_id": clean_str(_dig(prop, "identifier", "attomId")),
        "fips": fips,
        "absentee": _dig(prop, "summary", "absenteeInd") == "Y",
        "corporate": _dig(prop, "assessment", "owner", "corporateIndicator") == "Y",
        "free_and_clear": loans <= 0,
        "mailing_address": clean_str(_dig(prop, "assessment", "owner", "mailingAddressOneLine")),
        **_fc_flags(fc),
    }
    flags = {k: v for k, v in flags.items() if v is not None}

    return [
        NormalizedSignal(
            owner_name=clean_str(_dig(prop, "assessment", "owner", "owner1", "fullName")),
            address=address,
            city=city,
            state=state,
            county=county,
            observed_date=_fc_observed(fc, as_of) if s.distress_type == DistressType.pre_foreclosure else as_of,
            source_link=None,
            source_id=SOURCE_ID,
            distress_type=s.distress_type,
            raw_payload={
                "detected_from": s.detected_from,
                "attom_id": flags.get("attom_id"),
                "fips": fips,
                "last_modified": _dig(prop, "vintage", "lastModified"),
            },
            parcel_id=apn,
            severity=s.severity,
            confidence=0.9 if s.severity >= 7 else 0.6,
            attributes={k: v for k, v in attrs.items() if v is not None},
            owner_flags=flags,
        )
        for s in found
    ]


def foreclosure_to_signal(
    fc: dict[str, Any], *, county: str, state: str | None, fips: str, as_of: datetime
) -> NormalizedSignal | None:
    """A recorded foreclosure with no matching property row in the same delta."""
    apn = clean_str(_dig(fc, "identifier", "apn"))
    if not apn:
        return None
    address, city, zipcode = _address(fc)
    severity = foreclosure_severity(fc)
    loan = to_number(_dig(fc, "FC", "originalLoanAmount"))
    attrs = {"zipcode": zipcode, "loan_balance": loan}
    return NormalizedSignal(
        owner_name=clean_str(_dig(fc, "FC", "borrowerNameOwner")),
        address=address,
        city=city,
        state=state,
        county=county,
        observed_date=_fc_observed(fc, as_of),
        source_link=None,
        source_id=SOURCE_ID,
        distress_type=DistressType.pre_foreclosure,
        raw_payload={"detected_from": "foreclosure", "fips": fips, "fc_doc_nbr": _dig(fc, "FC", "FCDocNbr")},
        parcel_id=apn,
        severity=severity,
        confidence=0.9 if severity >= 7 else 0.7,
        attributes={k: v for k, v in attrs.items() if v is not None},
        owner_flags={k: v for k, v in {"provider": SOURCE_ID, "fips": fips, **_fc_flags(fc)}.items() if v is not None},
    )


def delta_to_signals(
    properties: list[dict[str, Any]],
    foreclosures: list[dict[str, Any]],
    *,
    county: str,
    state: str | None,
    fips: str,
    as_of: datetime,
) -> list[NormalizedSignal]:
    fc_by_apn: dict[str, dict[str, Any]] = {}
    for fc in foreclosures:
        key = normalize_parcel_id(clean_str(_dig(fc, "identifier", "apn")))
        if key:
            fc_by_apn[key] = fc

    out: list[NormalizedSignal] = []
    seen: set[str] = set()
    for prop in properties:
        key = normalize_parcel_id(clean_str(_dig(prop, "identifier", "apn")))
        if not key:
            continue
        seen.add(key)
        out.extend(property_to_signals(prop, fc_by_apn.get(key), county=county, state=state, fips=fips, as_of=as_of))

    for key, fc in fc_by_apn.items():
        if key in seen:
            continue
        sig = foreclosure_to_signal(fc, county=county, state=state, fips=fips, as_of=as_of)
        if sig is not None:
            out.append(sig)
    return out


@dataclass
class AttomAdapter:
    """Commercial daily delta: recently modified county properties plus new foreclosure filings."""

    client: AttomClient
    pagesize: int
    max_pages: int
    lookback: timedelta
    name: str = SOURCE_ID
    kind: SourceKind = SourceKind.commercial
    modes: tuple[IngestMode, ...] = (IngestMode.narrow,)

    @classmethod
    def from_settings(cls) -> "AttomAdapter":
        if not settings.ATTOM_API_KEY:
            raise ValueError("ATTOM_API_KEY is not configured")
        return cls(
            client=AttomClient(api_key=settings.ATTOM_API_KEY),
            pagesize=settings.ATTOM_PAGESIZE,
            max_pages=settings.ATTOM_MAX_PAGES,
            lookback=timedelta(hours=settings.ATTOM_LOOKBACK_HOURS),
        )

    async def produce_records(self, *, counties: list[str], as_of: datetime) -> list[NormalizedSignal]:
        since, until = (as_of - self.lookback).date(), as_of.date()
        out: list[NormalizedSignal] = []
        for raw in counties:
            county = normalize_county(raw, known=settings.KNOWN_COUNTIES, default=settings.DEFAULT_COUNTY)
            fips = settings.COUNTY_FIPS.get(county.lower())
            if not fips:
                log.info("attom: no FIPS code for county %s, skipped", county)
                continue
            try:
                properties, foreclosures = await self.client.daily_delta(
                    fips, since=since, until=until, pagesize=self.pagesize, max_pages=self.max_pages
                )
            except httpx.HTTPError as e:
                raise SourceUnavailable(self.name, str(e)) from e

            state = settings.COUNTY_STATES.get(county.lower())
            signals = delta_to_signals(properties, foreclosures, county=county, state=state, fips=fips, as_of=as_of)
            log.info(
                "attom: %s delta %d properties, %d foreclosures -> %d signals",
                county, len(properties), len(foreclosures), len(signals),
            )
            out.extend(signals)
        return out
