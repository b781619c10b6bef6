# sentinel/adapters/repos/leads.py
from __future__ import annotations

import json

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import ACTIVE_LEAD_STATUSES, Lead, LeadStatus, utcnow
from .constraints import is_unique_violation


def lead_tags(lead: Lead) -> list[str]:
    try:
        tags = json.loads(lead.tags_json or "[]")
    except ValueError:
        return []
    return [str(t) for t in tags] if isinstance(tags, list) else []


class LeadRepository:
    """
    Narrow write surface onto the CRM-owned leads table:
      - create a row in `prospect`
      - update priority + tags
    Status, assignment and notes are never written here.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active(self, property_id: int) -> Lead | None:
        q = (
            select(Lead)
            .where(Lead.property_id == property_id, Lead.status.in_(ACTIVE_LEAD_STATUSES))
            .order_by(Lead.id)
        )
        return (await self.session.execute(q)).scalars().first()

    async def create_prospect(self, *, property_id: int, priority: int, tags: list[str], source: str) -> Lead | None:
        """None when another writer created the active lead first (partial unique index)."""
        now = utcnow()
        lead = Lead(
            property_id=property_id,
            status=LeadStatus.prospect,
            priority=int(priority),
            tags_json=json.dumps(tags),
            source=source,
            promoted_at=now,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(lead)
        except IntegrityError as e:
            if is_unique_violation(e):
                return None
            raise
        return lead

    async def set_priority_and_tags(self, lead: Lead, *, priority: int, tags: list[str]) -> Lead:
        lead.priority = int(priority)
        lead.tags_json = json.dumps(tags)
        lead.updated_at = utcnow()
        await self.session.flush()
        return lead
