# sentinel/adapters/clients/attom.py
from __future__ import annotations

from datetime import date
from typing import Any

from ...config import settings
from .http_resilience import resilient_request


def _rows(payload: Any) -> list[dict[str, Any]]:
    rows = payload.get("property") if isinstance(payload, dict) else None
    return [r for r in (rows or []) if isinstance(r, dict)]


class AttomClient:
    """
    Low-level HTTP client for the ATTOM property API (county snapshots + foreclosures).
    Counties are addressed by FIPS via geoIdV4=CO<fips>. Returns raw provider rows.
    """

    def __init__(self, *, api_key: str, base_url: str | None = None) -> None:
        self.api_key = api_key
        self.base_url = (base_url or settings.ATTOM_BASE_URL).rstrip("/")

    async def _get(self, endpoint: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        resp = await resilient_request(
            "GET",
            f"{self.base_url}{endpoint}",
            headers={"apikey": self.api_key, "Accept": "application/json"},
            params=params,
        )
        return _rows(resp.json())

    async def property_snapshot(self, fips: str, *, page: int = 1, pagesize: int = 50) -> list[dict[str, Any]]:
        return await self._get("/property/snapshot", {"geoIdV4": f"CO{fips}", "page": page, "pagesize": pagesize})

    async def foreclosures(
        self, fips: str, *, since: date, until: date, page: int = 1, pagesize: int = 50
    ) -> list[dict[str, Any]]:
        return await self._get(
            "/property/foreclosure",
            {
                "geoIdV4": f"CO{fips}",
                "page": page,
                "pagesize": pagesize,
                "startFCRecDate": since.isoformat(),
                "endFCRecDate": until.isoformat(),
            },
        )

    async def daily_delta(
        self, fips: str, *, since: date, until: date, pagesize: int, max_pages: int
    ) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """
        Properties modified in [since, until] plus foreclosures recorded in the window.

        The snapshot endpoint has no modified-date filter, so pages are filtered on
        vintage.lastModified here; rows without a vintage date are kept.
        Paging stops at the first short page or at max_pages.
        """
        lo, hi = since.isoformat(), until.isoformat()
        properties: list[dict[str, Any]] = []
        for page in range(1, max_pages + 1):
            rows = await self.property_snapshot(fips, page=page, pagesize=pagesize)
            for r in rows:
                vintage = r.get("vintage") or {}
                modified = str(vintage.get("lastModified") or vintage.get("pubDate") or "")[:10]
                if not modified or lo <= modified <= hi:
                    properties.append(r)
            if len(rows) < pagesize:
                break

        foreclosures: list[dict[str, Any]] = []
        for page in range(1, max_pages + 1):
            rows = await self.foreclosures(fips, since=since, until=until, page=page, pagesize=pagesize)
            foreclosures.extend(rows)
            if len(rows) < pagesize:
                break

        return properties, foreclosures
