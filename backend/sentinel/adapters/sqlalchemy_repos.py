# sentinel/adapters/sqlalchemy_repos.py
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from .repos.audit import EventLogRepository, PromotionDecisionRepository
from .repos.events import DistressEventRepository
from .repos.leads import LeadRepository
from .repos.properties import PropertyRepository
from .repos.scores import ScoringPredictionRepository, ScoringRecordRepository


class SqlAlchemyRepos:
    """All repositories bound to one session (one transaction)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.properties = PropertyRepository(session)
        self.events = DistressEventRepository(session)
        self.scores = ScoringRecordRepository(session)
        self.predictions = ScoringPredictionRepository(session)
        self.leads = LeadRepository(session)
        self.audit = EventLogRepository(session)
        self.decisions = PromotionDecisionRepository(session)
