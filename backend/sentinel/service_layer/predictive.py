# sentinel/service_layer/predictive.py
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.properties import owner_flags
from ..adapters.sqlalchemy_repos import SqlAlchemyRepos
from ..config import settings
from ..domain.parsing import parse_date
from ..domain.predictive import (
    DEFAULT_PREDICTIVE_CONFIG,
    PredictiveConfig,
    PropertyFacts,
    compute_predictive_score,
)
from ..domain.types import PredictiveEvent, ScoreSnapshot
from ..models import Property, ScoringPrediction, ScoringRecord
from .scoring import days_since
from .unit_of_work import SqlAlchemyUnitOfWork

log = logging.getLogger(__name__)


def _snapshot(record: ScoringRecord, as_of: datetime) -> ScoreSnapshot:
    try:
        inputs = json.loads(record.inputs_json or "{}")
    except ValueError:
        inputs = {}
    # the as-of the record was computed for, not the wall-clock insert time
    when = parse_date(inputs.get("as_of")) or record.scored_at
    eq = inputs.get("equity_percent")
    return ScoreSnapshot(
        days_ago=days_since(as_of, when),
        composite=record.composite,
        equity_percent=float(eq) if isinstance(eq, (int, float)) else None,
    )


async def predict_property(
    session: AsyncSession,
    prop: Property,
    *,
    as_of: datetime,
    actor: str,
    config: PredictiveConfig = DEFAULT_PREDICTIVE_CONFIG,
) -> ScoringPrediction:
    """Run the predictive model for one property and append a ScoringPrediction."""
    repos = SqlAlchemyRepos(session)
    events = await repos.events.for_property(prop.id)
    history = await repos.scores.history(prop.id)

    facts = PropertyFacts(
        estimated_value=prop.estimated_value,
        equity_percent=prop.equity_percent,
        loan_balance=prop.loan_balance,
        owner_flags=owner_flags(prop),
    )
    result = compute_predictive_score(
        prop.id,
        facts,
        [PredictiveEvent(e.event_type.value, e.severity, days_since(as_of, e.observed_at)) for e in events],
        [_snapshot(r, as_of) for r in history],
        as_of=as_of,
        config=config,
    )
    f = result.features

    prediction = await repos.predictions.append(
        ScoringPrediction(
            property_id=prop.id,
            model_version=result.model_version,
            predictive_score=result.predictive_score,
            days_until_distress=result.days_until_distress,
            confidence=result.confidence,
            label=result.label,
            owner_age_inference=f.owner_age,
            equity_burn_rate=f.equity_burn_rate,
            absentee_duration_days=f.absentee_duration_days,
            tax_delinquency_trend=f.tax_delinquency_trend,
            life_event_probability=f.life_event_probability,
            features_json=json.dumps(f.as_dict(), default=str),
            factors_json=json.dumps([x.as_dict() for x in result.factors], default=str),
            actor=actor,
        )
    )
    await repos.audit.append(
        actor=actor,
        action="prediction.computed",
        entity_type="property",
        entity_id=prop.id,
        detail={
            "prediction_id": prediction.id,
            "model_version": result.model_version,
            "predictive_score": result.predictive_score,
            "days_until_distress": result.days_until_distress,
            "label": result.label,
        },
    )
    return prediction


async def run_prediction_batch(
    session_factory: Callable[[], AsyncSession],
    *,
    as_of: datetime,
    actor: str,
    property_ids: list[int] | None = None,
    config: PredictiveConfig = DEFAULT_PREDICTIVE_CONFIG,
    max_concurrency: int | None = None,
) -> dict[str, Any]:
    """Predict for many properties; no cross-property dependency, so they run side by side."""
    if property_ids is None:
        async with SqlAlchemyUnitOfWork(session_factory) as uow:
            property_ids = await uow.repos.properties.list_ids()

    sem = asyncio.Semaphore(max_concurrency or settings.BATCH_MAX_CONCURRENCY)
    labels: dict[str, int] = {}
    errors = 0
    missing = 0

    async def _one(pid: int) -> None:
        nonlocal errors, missing
        async with sem:
            try:
                async with SqlAlchemyUnitOfWork(session_factory) as uow:
                    prop = await uow.repos.properties.get(pid)
                    if prop is None:
                        missing += 1
                        return
                    pred = await predict_property(uow.session, prop, as_of=as_of, actor=actor, config=config)
                    labels[pred.label] = labels.get(pred.label, 0) + 1
            except SQLAlchemyError as e:
                log.error("prediction failed for property %s: %s", pid, e)
                errors += 1

    await asyncio.gather(*(_one(pid) for pid in property_ids))
    summary = {
        "model_version": config.version,
        "as_of": as_of.isoformat(),
        "requested": len(property_ids),
        "predicted": sum(labels.values()),
        "missing": missing,
        "errors": errors,
        "labels": labels,
    }
    log.info("prediction batch: %s", summary)
    return summary
