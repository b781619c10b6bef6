# sentinel/service_layer/scoring.py
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Callable, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.properties import owner_flags
from ..adapters.sqlalchemy_repos import SqlAlchemyRepos
from ..config import settings
from ..domain.scoring import DEFAULT_SCORING_CONFIG, ScoringConfig, compute_score
from ..domain.types import ScoringSignal
from ..models import DistressEvent, Property, ScoringRecord
from .unit_of_work import SqlAlchemyUnitOfWork

log = logging.getLogger(__name__)

MAX_COMP_RATIO = 3.0


def days_since(as_of: datetime, when: datetime | None) -> float:
    if when is None:
        return 0.0
    return max(0.0, (as_of - when).total_seconds() / 86400.0)


def comp_ratio_for(prop: Property) -> float | None:
    """estimated value / outstanding loans; free-and-clear caps out, unknown stays None."""
    if not prop.estimated_value or prop.loan_balance is None:
        return None
    if prop.loan_balance <= 0:
        return MAX_COMP_RATIO
    return min(MAX_COMP_RATIO, prop.estimated_value / prop.loan_balance)


def conversion_rate_for(event_types: Iterable[str]) -> float:
    """Best historical close rate among the signal types present."""
    rates = [settings.CONVERSION_PRIORS[t] for t in set(event_types) if t in settings.CONVERSION_PRIORS]
    return max(rates) if rates else settings.DEFAULT_CONVERSION_RATE


def scoring_signals(events: Iterable[DistressEvent], as_of: datetime) -> list[ScoringSignal]:
    return [
        ScoringSignal(
            event_type=e.event_type.value,
            severity=e.severity,
            days_since_event=days_since(as_of, e.observed_at),
        )
        for e in events
    ]


async def score_property(
    session: AsyncSession,
    prop: Property,
    *,
    as_of: datetime,
    actor: str,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
    action: str = "score.computed",
) -> ScoringRecord:
    """Score the property's full signal set as of `as_of` and append the result."""
    repos = SqlAlchemyRepos(session)
    events = await repos.events.for_property(prop.id)
    signals = scoring_signals(events, as_of)

    comp = comp_ratio_for(prop)
    rate = conversion_rate_for(s.event_type for s in signals)
    result = compute_score(signals, owner_flags(prop), prop.equity_percent, comp, rate, config=config)

    inputs: dict[str, Any] = {
        "as_of": as_of.isoformat(),
        "equity_percent": prop.equity_percent,
        "comp_ratio": comp,
        "historical_conversion_rate": rate,
        "event_ids": [e.id for e in events],
    }
    record = await repos.scores.append(
        ScoringRecord(
            property_id=prop.id,
            model_version=result.model_version,
            composite=result.composite,
            label=result.label,
            motivation_score=result.motivation_score,
            deal_score=result.deal_score,
            severity_multiplier=result.severity_multiplier,
            recency_decay=result.recency_decay,
            stacking_bonus=result.stacking_bonus,
            owner_factor_score=result.owner_factor_score,
            equity_factor_score=result.equity_factor_score,
            ai_boost=result.ai_boost,
            factors_json=json.dumps([f.as_dict() for f in result.factors], default=str),
            inputs_json=json.dumps(inputs, default=str),
            actor=actor,
        )
    )
    await repos.audit.append(
        actor=actor,
        action=action,
        entity_type="property",
        entity_id=prop.id,
        detail={
            "scoring_record_id": record.id,
            "model_version": result.model_version,
            "composite": result.composite,
            "label": result.label,
        },
    )
    return record


async def replay_scores(
    session_factory: Callable[[], AsyncSession],
    *,
    as_of: datetime,
    actor: str,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
    max_concurrency: int | None = None,
) -> dict[str, Any]:
    """
    Re-score every property with `config`. Always appends; earlier records
    (including other model versions) are left as they were.
    """
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        ids = await uow.repos.properties.list_ids()

    sem = asyncio.Semaphore(max_concurrency or settings.BATCH_MAX_CONCURRENCY)
    errors: dict[int, str] = {}

    async def _one(pid: int) -> bool:
        async with sem:
            try:
                async with SqlAlchemyUnitOfWork(session_factory) as uow:
                    prop = await uow.repos.properties.get(pid)
                    if prop is None:
                        return False
                    await score_property(uow.session, prop, as_of=as_of, actor=actor, config=config, action="score.replayed")
                return True
            except SQLAlchemyError as e:
                log.error("replay failed for property %s: %s", pid, e)
                errors[pid] = str(e)
                return False

    done = await asyncio.gather(*(_one(pid) for pid in ids))
    summary = {
        "model_version": config.version,
        "as_of": as_of.isoformat(),
        "properties": len(ids),
        "replayed": sum(1 for ok in done if ok),
        "errors": len(errors),
    }
    log.info("score replay: %s", summary)
    return summary
