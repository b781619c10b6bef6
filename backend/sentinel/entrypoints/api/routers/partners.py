# sentinel/entrypoints/api/routers/partners.py
from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import actor_from, get_session_factory, require_api_key
from ....adapters.ingestion.partner_push import PartnerPushAdapter
from ....errors import InvalidCycleParameters, StoreUnavailable
from ....models import IngestMode
from ....schemas import CycleResultOut, PartnerPush
from ....service_layer.use_cases.cycle import run_ingestion_cycle

router = APIRouter(tags=["partners"])


@router.post("/partners/push", response_model=CycleResultOut, dependencies=[Depends(require_api_key)])
async def partner_push(
    body: PartnerPush,
    actor: str = Depends(actor_from),
    session_factory: Callable[[], AsyncSession] = Depends(get_session_factory),
) -> dict[str, Any]:
    """Pushed leads run through the same cycle path as pulled sources."""
    adapter = PartnerPushAdapter(
        partner_id=body.partner_id,
        payloads=[lead.model_dump() for lead in body.leads],
    )
    try:
        res = await run_ingestion_cycle(
            adapter.counties(),
            IngestMode.narrow,
            adapters=[adapter],
            session_factory=session_factory,
            actor=actor,
        )
    except InvalidCycleParameters as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return res.as_dict()
