# sentinel/adapters/repos/scores.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import ScoringPrediction, ScoringRecord


class ScoringRecordRepository:
    """Append-only score history. Replays append; nothing is edited in place."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, record: ScoringRecord) -> ScoringRecord:
        self.session.add(record)
        await self.session.flush()
        return record

    async def history(self, property_id: int, *, limit: int = 50) -> list[ScoringRecord]:
        """Most recent `limit` rows, oldest first."""
        q = (
            select(ScoringRecord)
            .where(ScoringRecord.property_id == property_id)
            .order_by(ScoringRecord.scored_at.desc(), ScoringRecord.id.desc())
            .limit(limit)
        )
        rows = list((await self.session.execute(q)).scalars().all())
        rows.reverse()
        return rows


class ScoringPredictionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, prediction: ScoringPrediction) -> ScoringPrediction:
        self.session.add(prediction)
        await self.session.flush()
        return prediction

    async def latest(self, property_id: int) -> ScoringPrediction | None:
        q = (
            select(ScoringPrediction)
            .where(ScoringPrediction.property_id == property_id)
            .order_by(ScoringPrediction.predicted_at.desc(), ScoringPrediction.id.desc())
            .limit(1)
        )
        return (await self.session.execute(q)).scalars().first()
