# sentinel/entrypoints/api/routers/jobs.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import actor_from, get_session_factory, require_api_key
from ....errors import InvalidCycleParameters, StoreUnavailable
from ....domain.parsing import parse_date
from ....models import JobRun, utcnow
from ....schemas import CycleRequest, CycleResultOut
from ....service_layer.jobruns import finish_job_fail, finish_job_success, start_job
from ....service_layer.predictive import run_prediction_batch
from ....service_layer.scoring import replay_scores
from ....service_layer.unit_of_work import SqlAlchemyUnitOfWork
from ....service_layer.use_cases.cycle import run_ingestion_cycle

router = APIRouter(tags=["jobs"])


@router.post("/jobs/cycle", response_model=CycleResultOut, dependencies=[Depends(require_api_key)])
async def jobs_cycle(
    body: CycleRequest,
    actor: str = Depends(actor_from),
    session_factory: Callable[[], AsyncSession] = Depends(get_session_factory),
) -> dict[str, Any]:
    try:
        res = await run_ingestion_cycle(
            body.counties,
            body.mode,
            session_factory=session_factory,
            actor=actor,
            as_of=body.as_of,
        )
    except InvalidCycleParameters as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return res.as_dict()


async def _tracked(
    session_factory: Callable[[], AsyncSession],
    job_name: str,
    meta: dict[str, Any],
    run,
) -> dict[str, Any]:
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        jr_id = (await start_job(uow.session, job_name, meta)).id
    try:
        res = await run()
    except Exception as e:
        async with SqlAlchemyUnitOfWork(session_factory) as uow:
            await finish_job_fail(uow.session, await uow.session.get(JobRun, jr_id), e)
        raise
    async with SqlAlchemyUnitOfWork(session_factory) as uow:
        await finish_job_success(uow.session, await uow.session.get(JobRun, jr_id), res)
    return res


@router.post("/jobs/replay", dependencies=[Depends(require_api_key)])
async def jobs_replay(
    as_of: datetime | None = Query(None, description="Score as of this instant (default: now)"),
    actor: str = Depends(actor_from),
    session_factory: Callable[[], AsyncSession] = Depends(get_session_factory),
) -> dict[str, Any]:
    when = parse_date(as_of) or utcnow()
    return await _tracked(
        session_factory,
        "score_replay",
        {"as_of": when},
        lambda: replay_scores(session_factory, as_of=when, actor=actor),
    )


@router.post("/jobs/predict", dependencies=[Depends(require_api_key)])
async def jobs_predict(
    as_of: datetime | None = Query(None),
    actor: str = Depends(actor_from),
    session_factory: Callable[[], AsyncSession] = Depends(get_session_factory),
) -> dict[str, Any]:
    when = parse_date(as_of) or utcnow()
    return await _tracked(
        session_factory,
        "prediction_batch",
        {"as_of": when},
        lambda: run_prediction_batch(session_factory, as_of=when, actor=actor),
    )
