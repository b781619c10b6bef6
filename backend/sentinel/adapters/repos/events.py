# sentinel/adapters/repos/events.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ...errors import PersistenceFailure
from ...models import DistressEvent
from .constraints import is_unique_violation


class DistressEventRepository:
    """Append-only: there is deliberately no update or delete here."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, event: DistressEvent) -> bool:
        """
        Insert unconditionally; False when the fingerprint already exists.

        Runs under a SAVEPOINT so a duplicate does not poison the caller's transaction.
        """
        try:
            async with self.session.begin_nested():
                self.session.add(event)
        except IntegrityError as e:
            if is_unique_violation(e, "fingerprint"):
                return False
            raise PersistenceFailure(f"distress event rejected ({event.fingerprint}): {e.orig}") from e
        return True

    async def for_property(self, property_id: int) -> list[DistressEvent]:
        # stable order: scoring input must not depend on arrival order
        q = (
            select(DistressEvent)
            .where(DistressEvent.property_id == property_id)
            .order_by(DistressEvent.observed_at, DistressEvent.id)
        )
        return list((await self.session.execute(q)).scalars().all())
