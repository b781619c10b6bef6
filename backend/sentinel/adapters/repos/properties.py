# sentinel/adapters/repos/properties.py
from __future__ import annotations

import json
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import OperationalError, StatementError
from sqlalchemy.ext.asyncio import AsyncSession

from ...errors import IdentityConflict
from ...models import Property, utcnow

# attributes a sighting may overwrite (last write wins, None means "not supplied")
MERGEABLE_FIELDS = (
    "address",
    "city",
    "state",
    "zipcode",
    "owner_name",
    "estimated_value",
    "equity_percent",
    "loan_balance",
    "property_type",
    "beds",
    "baths",
    "sqft",
    "year_built",
)


def owner_flags(prop: Property) -> dict[str, Any]:
    try:
        flags = json.loads(prop.owner_flags_json or "{}")
    except ValueError:
        return {}
    return flags if isinstance(flags, dict) else {}


class PropertyRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    def _insert_stmt(self, values: dict[str, Any]):
        dialect = self.session.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        return insert(Property).values(**values).on_conflict_do_nothing(index_elements=["parcel_id", "county"])

    async def get(self, property_id: int) -> Property | None:
        return await self.session.get(Property, property_id)

    async def get_by_identity(self, parcel_id: str, county: str) -> Property | None:
        q = select(Property).where(Property.parcel_id == parcel_id, Property.county == county)
        return (await self.session.execute(q)).scalars().first()

    async def list_ids(self) -> list[int]:
        return list((await self.session.execute(select(Property.id).order_by(Property.id))).scalars().all())

    async def resolve(
        self,
        *,
        parcel_id: str,
        county: str,
        is_synthetic: bool,
        attributes: dict[str, Any],
        flags: dict[str, Any],
    ) -> tuple[Property, bool]:
        """
        Atomic insert-or-update keyed on (parcel_id, county).

        The INSERT ... ON CONFLICT DO NOTHING is the concurrency primitive: two writers
        racing on the same identity both end up reading the single surviving row.
        Attributes are then merged onto that row and updated_at is always bumped.
        Identity args must already be normalized.
        """
        now = utcnow()
        stmt = self._insert_stmt(
            {
                "parcel_id": parcel_id,
                "county": county,
                "is_synthetic_parcel": is_synthetic,
                "owner_flags_json": "{}",
                "created_at": now,
                "updated_at": now,
            }
        )
        try:
            res = await self.session.execute(stmt)
            created = (res.rowcount or 0) > 0

            prop = await self.get_by_identity(parcel_id, county)
            if prop is None:
                raise IdentityConflict(f"property vanished after upsert: {parcel_id}/{county}")

            self._merge(prop, attributes, flags, now)
            await self.session.flush()
        except StatementError as e:
            # lost connection or locked store is not the record's fault
            if isinstance(e, OperationalError):
                raise
            raise IdentityConflict(f"store rejected property {parcel_id}/{county}: {e.orig}") from e

        return prop, created

    def _merge(self, prop: Property, attributes: dict[str, Any], flags: dict[str, Any], now) -> None:
        for k in MERGEABLE_FIELDS:
            v = attributes.get(k)
            if v is not None:
                setattr(prop, k, v)

        merged = owner_flags(prop)
        merged.update({k: v for k, v in (flags or {}).items() if v is not None})
        prop.owner_flags_json = json.dumps(merged, sort_keys=True, default=str)

        # bumped even when nothing changed; staleness queries rely on it
        prop.updated_at = now
