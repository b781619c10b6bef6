# sentinel/service_layer/unit_of_work.py
from __future__ import annotations

from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.sqlalchemy_repos import SqlAlchemyRepos
from ..db import AsyncSessionLocal


class SqlAlchemyUnitOfWork:
    """One session, one transaction: commit on clean exit, rollback on exception."""

    def __init__(self, session_factory: Callable[[], AsyncSession] | None = None) -> None:
        self.session_factory = session_factory or AsyncSessionLocal
        self.session: AsyncSession | None = None
        self.repos: SqlAlchemyRepos | None = None

    async def __aenter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self.session_factory()
        self.repos = SqlAlchemyRepos(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc:
                await self.rollback()
            else:
                await self.commit()
        finally:
            if self.session:
                await self.session.close()

    async def commit(self) -> None:
        assert self.session is not None
        await self.session.commit()

    async def rollback(self) -> None:
        assert self.session is not None
        await self.session.rollback()
