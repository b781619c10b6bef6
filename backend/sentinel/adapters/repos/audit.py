# sentinel/adapters/repos/audit.py
from __future__ import annotations

import json
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ...models import EventLog, PromotionDecision


class EventLogRepository:
    """Producer side of the generic audit log. Write-only by design of this pipeline."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        *,
        actor: str,
        action: str,
        entity_type: str,
        entity_id: Any,
        detail: dict[str, Any] | None = None,
    ) -> EventLog:
        row = EventLog(
            actor=actor,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            detail_json=json.dumps(detail or {}, sort_keys=True, default=str),
        )
        self.session.add(row)
        await self.session.flush()
        return row


class PromotionDecisionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, decision: PromotionDecision) -> PromotionDecision:
        self.session.add(decision)
        await self.session.flush()
        return decision
