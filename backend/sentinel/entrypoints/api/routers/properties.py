# sentinel/entrypoints/api/routers/properties.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import actor_from, get_session_factory, require_api_key
from ....domain.parsing import parse_date
from ....models import utcnow
from ....schemas import PredictionOut
from ....service_layer.predictive import predict_property
from ....service_layer.scoring import score_property
from ....service_layer.unit_of_work import SqlAlchemyUnitOfWork

router = APIRouter(tags=["properties"])


@router.post("/properties/{property_id}/predict", response_model=PredictionOut, dependencies=[Depends(require_api_key)])
async def predict_one(
    property_id: int,
    as_of: datetime | None = Query(None),
    actor: str = Depends(actor_from),
    session_factory: Callable[[], AsyncSession] = Depends(get_session_factory),
) -> Any:
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        prop = await uow.repos.properties.get(property_id)
        if prop is None:
            raise HTTPException(status_code=404, detail="property not found")
        return await predict_property(uow.session, prop, as_of=parse_date(as_of) or utcnow(), actor=actor)


@router.post("/properties/{property_id}/score", dependencies=[Depends(require_api_key)])
async def score_one(
    property_id: int,
    as_of: datetime | None = Query(None),
    actor: str = Depends(actor_from),
    session_factory: Callable[[], AsyncSession] = Depends(get_session_factory),
) -> dict[str, Any]:
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        prop = await uow.repos.properties.get(property_id)
        if prop is None:
            raise HTTPException(status_code=404, detail="property not found")
        rec = await score_property(uow.session, prop, as_of=parse_date(as_of) or utcnow(), actor=actor)
        return {
            "id": rec.id,
            "property_id": rec.property_id,
            "model_version": rec.model_version,
            "composite": rec.composite,
            "label": rec.label,
            "motivation_score": rec.motivation_score,
            "deal_score": rec.deal_score,
        }
