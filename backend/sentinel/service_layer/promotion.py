# sentinel/service_layer/promotion.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.leads import lead_tags
from ..adapters.sqlalchemy_repos import SqlAlchemyRepos
from ..config import settings
from ..domain.promotion import PROMOTE, blend_heat_score, decide_promotion, merge_tags, threshold_for
from ..models import Lead, PromotionDecision, PromotionOutcome, Property, SourceKind

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromotionResult:
    decision: str
    outcome: PromotionOutcome
    composite: int
    predictive_score: int | None
    blended: int
    threshold: int
    lead_id: int | None


def source_thresholds() -> dict[str, int]:
    return {
        SourceKind.commercial.value: settings.PROMOTION_THRESHOLD_COMMERCIAL,
        SourceKind.partner.value: settings.PROMOTION_THRESHOLD_PARTNER,
        SourceKind.crawler.value: settings.PROMOTION_THRESHOLD_CRAWLER,
    }


async def _promote(repos: SqlAlchemyRepos, prop: Property, *, blended: int, tags: list[str], source: str) -> tuple[Lead, PromotionOutcome]:
    lead = await repos.leads.get_active(prop.id)
    if lead is None:
        lead = await repos.leads.create_prospect(property_id=prop.id, priority=blended, tags=tags, source=source)
        if lead is not None:
            return lead, PromotionOutcome.created
        # another writer created it between our read and insert
        lead = await repos.leads.get_active(prop.id)
        if lead is None:
            raise RuntimeError(f"active lead for property {prop.id} neither creatable nor readable")

    await repos.leads.set_priority_and_tags(lead, priority=blended, tags=merge_tags(lead_tags(lead), tags))
    return lead, PromotionOutcome.updated


async def promote_property(
    session: AsyncSession,
    prop: Property,
    *,
    composite: int,
    source: str,
    source_kind: SourceKind,
    actor: str,
    thresholds: dict[str, int] | None = None,
) -> PromotionResult:
    """
    Blend the latest composite with the latest prediction and gate on the
    source's threshold. Promote = create a prospect lead or refresh the active
    one's priority/tags. Every decision, held or not, is written to the audit trail.
    """
    repos = SqlAlchemyRepos(session)

    prediction = await repos.predictions.latest(prop.id)
    predictive_score = prediction.predictive_score if prediction is not None else None
    blended = blend_heat_score(composite, predictive_score)
    threshold = threshold_for(source_kind.value, thresholds or source_thresholds())
    decision = decide_promotion(blended, threshold)

    events = await repos.events.for_property(prop.id)
    tags = sorted({e.event_type.value for e in events})
    signals = [{"type": e.event_type.value, "severity": e.severity, "source": e.source} for e in events]

    lead: Lead | None = None
    if decision == PROMOTE:
        lead, outcome = await _promote(repos, prop, blended=blended, tags=tags, source=source)
        action = "lead.created" if outcome == PromotionOutcome.created else "lead.promoted"
    else:
        outcome = PromotionOutcome.held
        action = "promotion.held"

    await repos.decisions.append(
        PromotionDecision(
            property_id=prop.id,
            lead_id=lead.id if lead is not None else None,
            source=source,
            source_kind=source_kind,
            composite=composite,
            predictive_score=predictive_score,
            blended=blended,
            threshold=threshold,
            decision=decision,
            outcome=outcome,
            signals_json=json.dumps(signals),
            actor=actor,
        )
    )
    await repos.audit.append(
        actor=actor,
        action=action,
        entity_type="lead" if lead is not None else "property",
        entity_id=lead.id if lead is not None else prop.id,
        detail={
            "property_id": prop.id,
            "source": source,
            "blended": blended,
            "threshold": threshold,
            "tags": tags,
        },
    )
    log.debug("promotion property=%s blended=%s threshold=%s -> %s", prop.id, blended, threshold, outcome.value)

    return PromotionResult(
        decision=decision,
        outcome=outcome,
        composite=composite,
        predictive_score=predictive_score,
        blended=blended,
        threshold=threshold,
        lead_id=lead.id if lead is not None else None,
    )
