# sentinel/entrypoints/api/deps.py
from __future__ import annotations

from typing import Callable

from fastapi import Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...db import AsyncSessionLocal


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    if settings.API_KEY:
        if not x_api_key or x_api_key != settings.API_KEY:
            raise HTTPException(status_code=401, detail="Invalid API key")


def get_session_factory() -> Callable[[], AsyncSession]:
    # cycles open one session per record, so routes get the factory, not a session
    return AsyncSessionLocal


def actor_from(x_actor: str | None = Header(default=None, alias="X-Actor")) -> str:
    return (x_actor or "").strip() or settings.SYSTEM_ACTOR
