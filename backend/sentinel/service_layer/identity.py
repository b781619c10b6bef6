# sentinel/service_layer/identity.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.sqlalchemy_repos import SqlAlchemyRepos
from ..config import settings
from ..domain.identity import is_synthetic_parcel_id, normalize_county, normalize_parcel_id
from ..errors import IdentityConflict
from ..models import Property


@dataclass(frozen=True)
class ResolvedProperty:
    property: Property
    created: bool


def canonical_county(raw: str | None) -> str:
    return normalize_county(raw, known=settings.KNOWN_COUNTIES, default=settings.DEFAULT_COUNTY)


async def resolve_property(
    session: AsyncSession,
    *,
    parcel_id: str | None,
    county: str | None,
    attributes: dict[str, Any] | None = None,
    actor: str,
) -> ResolvedProperty:
    """
    (parcel, county) -> the one Property row for it, created on first sighting.

    `attributes` may carry an "owner_flags" dict; it is merged key-wise into the
    stored flags, everything else is last-write-wins per field.
    """
    parcel = normalize_parcel_id(parcel_id)
    if not parcel:
        raise IdentityConflict(f"unusable parcel id {parcel_id!r}")
    county_n = canonical_county(county)

    attrs = dict(attributes or {})
    flags = attrs.pop("owner_flags", None) or {}

    repos = SqlAlchemyRepos(session)
    prop, created = await repos.properties.resolve(
        parcel_id=parcel,
        county=county_n,
        is_synthetic=is_synthetic_parcel_id(parcel),
        attributes=attrs,
        flags=flags,
    )
    await repos.audit.append(
        actor=actor,
        action="identity.resolved",
        entity_type="property",
        entity_id=prop.id,
        detail={"parcel_id": parcel, "county": county_n, "created": created},
    )
    return ResolvedProperty(property=prop, created=created)
