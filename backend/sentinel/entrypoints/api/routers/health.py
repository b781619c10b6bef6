# sentinel/entrypoints/api/routers/health.py
from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session_factory, require_api_key
from ....config import settings
from ....db import ping_store
from ....errors import StoreUnavailable

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/store", dependencies=[Depends(require_api_key)])
async def health_store(session_factory: Callable[[], AsyncSession] = Depends(get_session_factory)) -> dict[str, Any]:
    try:
        await ping_store(session_factory)
    except StoreUnavailable as e:
        return {"status": "down", "error": str(e), "env": settings.ENV}
    return {"status": "ok", "env": settings.ENV}
