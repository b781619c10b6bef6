# tests/test_adapters.py
import json
from datetime import date, timedelta

import httpx
import pytest

from sentinel.adapters.clients.attom import AttomClient
from sentinel.adapters.clients.propertyradar import PropertyRadarClient
from sentinel.adapters.ingestion.attom import (
    AttomAdapter,
    delta_to_signals,
    detect_attom_signals,
    equity_percent,
    foreclosure_severity,
)
from sentinel.adapters.ingestion.crawler_feed import CrawlerFeedAdapter, map_distress_type
from sentinel.adapters.ingestion.partner_push import PartnerPushAdapter, map_partner_tag, partner_severity
from sentinel.adapters.ingestion.propertyradar import detect_distress_signals, owner_flags_from, to_signals
from sentinel.config import settings
from sentinel.errors import SourceUnavailable
from sentinel.models import DistressType, IngestMode, SourceKind
from sentinel.service_layer.use_cases.cycle import build_adapters


def test_propertyradar_flags_to_signals(as_of):
    pr = {
        "RadarID": "R1",
        "APN": "123-456",
        "County": "Spokane",
        "isDeceasedProperty": 1,
        "inTaxDelinquency": "true",
        "DelinquentAmount": "$12,500",
        "DelinquentYear": as_of.year - 1,
        "isSiteVacant": True,
    }
    found = {s.distress_type: s for s in detect_distress_signals(pr, as_of)}
    assert set(found) == {DistressType.probate, DistressType.tax_lien, DistressType.vacant}
    assert found[DistressType.probate].severity == 9
    assert found[DistressType.tax_lien].severity == 8
    assert found[DistressType.tax_lien].days_since_event == 365


def test_propertyradar_no_flags_defaults_to_absentee(as_of):
    found = detect_distress_signals({"APN": "1"}, as_of)
    assert [(s.distress_type, s.severity) for s in found] == [(DistressType.absentee, 3)]


def test_propertyradar_open_liens_only_once(as_of):
    pr = {"inTaxDelinquency": 1, "PropertyHasOpenLiens": 1}
    types = [s.distress_type for s in detect_distress_signals(pr, as_of)]
    assert types.count(DistressType.tax_lien) == 1


def test_propertyradar_record_shape(as_of):
    pr = {"RadarID": "R9", "APN": "9-9", "County": "Kootenai", "Owner": "A Owner", "inDivorce": 1, "AVM": "400000"}
    [sig] = to_signals(pr, as_of)
    assert sig.distress_type == DistressType.divorce
    assert sig.parcel_id == "9-9"
    assert sig.observed_date == as_of - timedelta(days=60)
    assert sig.attributes["estimated_value"] == 400000.0
    assert sig.source_link.endswith("R9")
    assert owner_flags_from(pr)["provider"] == "propertyradar"


def test_propertyradar_criteria():
    crit = PropertyRadarClient.build_criteria(["Spokane", "Kootenai"], min_equity_percent=50)
    assert {"name": "State", "value": ["ID", "WA"]} in crit
    assert {"name": "County", "value": ["Spokane", "Kootenai"]} in crit
    assert {"name": "EquityPercent", "value": ["50", "100"]} in crit


def test_crawler_type_aliases():
    assert map_distress_type("obituary") == DistressType.probate
    assert map_distress_type("Lis Pendens") == DistressType.pre_foreclosure
    assert map_distress_type("code_violation") == DistressType.code_violation
    assert map_distress_type("weather") is None
    assert map_distress_type(None) is None


@pytest.mark.asyncio
async def test_crawler_feed_reads_county_file(tmp_path, as_of):
    (tmp_path / "spokane.json").write_text(
        json.dumps(
            {
                "records": [
                    {
                        "name": "Estate of J Doe",
                        "address": "4 Pine",
                        "city": "Spokane",
                        "state": "WA",
                        "date": "2026-02-01",
                        "link": "https://example.org/obit/1",
                        "source": "obituaries",
                        "distressType": "obituary",
                        "severity": 8,
                        "absentee": "yes",
                    },
                    {"name": "X", "distressType": "weather"},
                    "not a record",
                ]
            }
        ),
        encoding="utf-8",
    )
    adapter = CrawlerFeedAdapter(feeds_dir=tmp_path)
    assert adapter.kind == SourceKind.crawler
    assert adapter.modes == (IngestMode.broad,)

    records = await adapter.produce_records(counties=["Spokane", "Kootenai"], as_of=as_of)
    assert len(records) == 1
    rec = records[0]
    assert rec.distress_type == DistressType.probate
    assert rec.county == "Spokane"
    assert rec.parcel_id is None
    assert rec.severity == 8
    assert rec.source_id == "obituaries"
    assert rec.owner_flags["absentee"] is True


def test_partner_tags_and_severity():
    assert map_partner_tag("Pre-Foreclosure") == DistressType.pre_foreclosure
    assert map_partner_tag("tax delinquent") == DistressType.tax_lien
    assert map_partner_tag("hot lead") is None
    assert partner_severity(87) == 9
    assert partner_severity(0) == 1
    assert partner_severity(250) == 10
    assert partner_severity(None) == 1


@pytest.mark.asyncio
async def test_partner_push_one_signal_per_tag(as_of):
    adapter = PartnerPushAdapter(
        partner_id="acme",
        payloads=[
            {"county": "Spokane", "owner_name": "B", "address": "5 Elm", "heat_score": 72, "tags": ["probate", "vacant", "probate"]},
            {"county": "Kootenai", "apn": "K-1", "heat_score": 40, "tags": ["shiny"]},
        ],
    )
    assert adapter.name == "partner:acme"
    assert adapter.counties() == ["Spokane", "Kootenai"]

    records = await adapter.produce_records(counties=["Spokane", "Kootenai"], as_of=as_of)
    types = [(r.county, r.distress_type) for r in records]
    assert types == [
        ("Spokane", DistressType.probate),
        ("Spokane", DistressType.vacant),
        ("Kootenai", DistressType.vacant),
    ]
    assert all(r.source_id == "partner:acme" for r in records)
    assert records[0].severity == 7

    only_spokane = await adapter.produce_records(counties=["spokane"], as_of=as_of)
    assert {r.county for r in only_spokane} == {"Spokane"}


@pytest.mark.asyncio
async def test_partner_push_matches_counties_by_canonical_name(as_of):
    adapter = PartnerPushAdapter(
        partner_id="acme",
        payloads=[
            {"county": "Spokane County", "apn": "S-1", "heat_score": 60, "tags": ["probate"]},
            {"county": "Bonner", "apn": "B-1", "heat_score": 60, "tags": ["probate"]},
        ],
    )
    records = await adapter.produce_records(counties=["Spokane"], as_of=as_of)
    assert [r.parcel_id for r in records] == ["S-1"]


def _attom_property(apn, **kw):
    prop = {"identifier": {"apn": apn, "attomId": 1000 + len(apn)}, "address": {"line1": "3 Pine", "locality": "Spokane", "postal1": "99201"}}
    prop.update(kw)
    return prop


def test_attom_signals_from_property_and_foreclosure():
    prop = _attom_property(
        "123-45",
        summary={"absenteeInd": "Y", "yearBuilt": 1948},
        building={"size": {"livingSize": 540}},
        assessment={
            "owner": {"corporateIndicator": "Y"},
            "tax": {"taxAmt": 9000},
            "assessed": {"assdTtlValue": 200000},
        },
    )
    fc = {"FC": {"FCType": "Notice of Default", "FCStatus": "Active"}}
    found = [(s.distress_type, s.severity) for s in detect_attom_signals(prop, fc)]
    assert found == [
        (DistressType.absentee, 5),
        (DistressType.tax_lien, 7),
        (DistressType.pre_foreclosure, 7),
        (DistressType.vacant, 4),
    ]
    assert detect_attom_signals(_attom_property("9")) == []


def test_attom_corporate_owner_counts_as_weak_absentee():
    prop = _attom_property("1", assessment={"owner": {"corporateIndicator": "Y"}})
    assert [(s.distress_type, s.severity) for s in detect_attom_signals(prop)] == [(DistressType.absentee, 3)]


def test_attom_foreclosure_stage_severity():
    assert foreclosure_severity({"FC": {"FCStatus": "Auction Scheduled"}}) == 9
    assert foreclosure_severity({"FC": {"FCType": "Lis Pendens"}}) == 7
    assert foreclosure_severity({"FC": {"FCType": "Default"}}) == 6
    assert foreclosure_severity(None) == 6


def test_attom_equity():
    mortgage = {"FirstConcurrent": {"amount": 250000}, "SecondConcurrent": {"amount": 50000}}
    assert equity_percent({"avm": {"amount": {"value": 400000}}, "assessment": {"mortgage": mortgage}}) == 25.0
    assert equity_percent({"assessment": {"market": {"mktTtlValue": 300000}}}) == 100.0
    assert equity_percent({"avm": {"amount": {"value": 100000}}, "assessment": {"mortgage": mortgage}}) == -50.0
    assert equity_percent({}) is None


def test_attom_delta_joins_foreclosures_by_apn(as_of):
    props = [
        _attom_property("123-45", summary={"absenteeInd": "Y"}),
        _attom_property("999"),  # no distress
    ]
    fcs = [
        {"identifier": {"apn": "123-45"}, "FC": {"FCType": "Default", "FCRecDate": "2026-02-15"}},
        {
            "identifier": {"apn": "777-1"},
            "address": {"line1": "9 Fir"},
            "FC": {"FCType": "Auction", "borrowerNameOwner": "C Debtor", "originalLoanAmount": 180000},
        },
    ]
    sigs = delta_to_signals(props, fcs, county="Spokane", state="WA", fips="53063", as_of=as_of)

    got = [(s.parcel_id, s.distress_type, s.severity) for s in sigs]
    assert got == [
        ("123-45", DistressType.absentee, 5),
        ("123-45", DistressType.pre_foreclosure, 6),
        ("777-1", DistressType.pre_foreclosure, 9),
    ]
    joined = sigs[1]
    assert joined.observed_date.date() == date(2026, 2, 15)
    assert joined.owner_flags["fc_type"] == "Default"
    assert "equity_percent" not in joined.attributes
    fc_only = sigs[2]
    assert fc_only.owner_name == "C Debtor"
    assert fc_only.observed_date == as_of
    assert fc_only.confidence == 0.9
    assert all(s.source_id == "attom" and s.county == "Spokane" for s in sigs)


@pytest.mark.asyncio
async def test_attom_client_filters_snapshot_by_vintage_and_pages():
    client = AttomClient(api_key="k", base_url="https://attom.test")
    snapshot_pages = {
        1: [
            {"identifier": {"apn": "1"}, "vintage": {"lastModified": "2026-02-28"}},
            {"identifier": {"apn": "2"}, "vintage": {"lastModified": "2025-01-01"}},
        ],
        2: [{"identifier": {"apn": "3"}}],
    }
    calls = []

    async def snapshot(fips, *, page=1, pagesize=50):
        calls.append(("snapshot", page))
        return snapshot_pages.get(page, [])

    async def foreclosures(fips, *, since, until, page=1, pagesize=50):
        calls.append(("foreclosure", page))
        return []

    client.property_snapshot = snapshot
    client.foreclosures = foreclosures

    props, fcs = await client.daily_delta("53063", since=date(2026, 2, 28), until=date(2026, 3, 1), pagesize=2, max_pages=3)
    assert [p["identifier"]["apn"] for p in props] == ["1", "3"]
    assert fcs == []
    assert calls == [("snapshot", 1), ("snapshot", 2), ("foreclosure", 1)]


class _FakeAttomClient:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    async def daily_delta(self, fips, *, since, until, pagesize, max_pages):
        self.calls.append((fips, since, until))
        if self.fail:
            raise httpx.ConnectError("connection refused")
        return [_attom_property("55-1", summary={"absenteeInd": "Y"})], []


@pytest.mark.asyncio
async def test_attom_adapter_pulls_counties_with_fips(as_of):
    client = _FakeAttomClient()
    adapter = AttomAdapter(client=client, pagesize=50, max_pages=2, lookback=timedelta(hours=24))
    assert adapter.kind == SourceKind.commercial
    assert adapter.modes == (IngestMode.narrow,)

    records = await adapter.produce_records(counties=["Spokane County", "Bonner"], as_of=as_of)
    assert client.calls == [("53063", date(2026, 2, 28), date(2026, 3, 1))]
    [rec] = records
    assert rec.county == "Spokane"
    assert rec.state == "WA"
    assert rec.owner_flags["fips"] == "53063"


@pytest.mark.asyncio
async def test_attom_adapter_outage_is_source_unavailable(as_of):
    adapter = AttomAdapter(client=_FakeAttomClient(fail=True), pagesize=50, max_pages=2, lookback=timedelta(hours=24))
    with pytest.raises(SourceUnavailable):
        await adapter.produce_records(counties=["Kootenai"], as_of=as_of)


def test_narrow_adapters_follow_configured_keys(monkeypatch):
    monkeypatch.setattr(settings, "PROPERTYRADAR_API_KEY", None)
    monkeypatch.setattr(settings, "ATTOM_API_KEY", None)
    assert build_adapters(IngestMode.narrow) == []

    monkeypatch.setattr(settings, "ATTOM_API_KEY", "attom-key")
    assert [a.name for a in build_adapters(IngestMode.narrow)] == ["attom"]
