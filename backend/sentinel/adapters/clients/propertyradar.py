# sentinel/adapters/clients/propertyradar.py
from __future__ import annotations

from typing import Any

from ...config import settings
from .http_resilience import resilient_request

RESULT_FIELDS = (
    "RadarID", "APN", "Address", "City", "State", "ZipFive", "County", "Owner",
    "PType", "SqFt", "Beds", "Baths", "YearBuilt",
    "AVM", "AvailableEquity", "EquityPercent", "TotalLoanBalance",
    "LastTransferValue", "LastTransferRecDate",
    "isDeceasedProperty", "isPreforeclosure", "inForeclosure",
    "inTaxDelinquency", "inDivorce", "inBankruptcyProperty",
    "isSiteVacant", "isMailVacant", "isNotSameMailingOrExempt",
    "isFreeAndClear", "isHighEquity",
    "PropertyHasOpenLiens", "PropertyHasOpenPersonLiens",
    "ForeclosureStage", "ForeclosureRecDate", "DefaultAmount",
    "DelinquentYear", "DelinquentAmount",
)


class PropertyRadarClient:
    """
    Low-level HTTP client for the PropertyRadar property search.
    Returns list[dict] (raw provider rows), not NormalizedSignal.
    """

    def __init__(self, *, api_key: str, base_url: str | None = None) -> None:
        self.api_key = api_key
        self.base_url = base_url or settings.PROPERTYRADAR_BASE_URL

    @staticmethod
    def build_criteria(counties: list[str], *, min_equity_percent: int) -> list[dict[str, Any]]:
        states = sorted({settings.COUNTY_STATES.get(c.strip().lower(), "WA") for c in counties})
        return [
            {"name": "State", "value": states},
            {"name": "County", "value": counties},
            {"name": "isNotSameMailingOrExempt", "value": ["1"]},
            {"name": "EquityPercent", "value": [str(min_equity_percent), "100"]},
        ]

    async def search(self, counties: list[str], *, limit: int, min_equity_percent: int) -> list[dict[str, Any]]:
        resp = await resilient_request(
            "POST",
            self.base_url,
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            params={"Purchase": 1, "Limit": int(limit), "Fields": ",".join(RESULT_FIELDS)},
            json={"Criteria": self.build_criteria(counties, min_equity_percent=min_equity_percent)},
        )
        data = resp.json() or {}
        results = data.get("results") if isinstance(data, dict) else None
        return [r for r in (results or []) if isinstance(r, dict)]
