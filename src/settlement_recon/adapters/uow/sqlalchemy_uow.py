# src/settlement_recon/adapters/uow/sqlalchemy_uow.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""SQLAlchemy unit of work.

One ``AsyncSession`` per ``async with`` scope. Repositories are resolved by
their domain protocol and cached for the scope, so every repository touched
inside one scope writes through the same transaction.

Usage:

    async with SqlAlchemyUnitOfWork(session_factory=factory) as uow:
        facts = uow.get_repository(FactRepository)
        await facts.delete_period(day, period)
        await facts.insert_many(rows)
        await uow.commit()

Layer:
    adapters/uow
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import TracebackType
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from settlement_recon.adapters.repositories.aggregate_repository import (
    SqlAlchemyAggregateRepository,
)
from settlement_recon.adapters.repositories.checkpoint_repository import (
    SqlAlchemyCheckpointRepository,
)
from settlement_recon.adapters.repositories.derived_calculation_repository import (
    SqlAlchemyDerivedCalculationRepository,
)
from settlement_recon.adapters.repositories.fact_repository import SqlAlchemyFactRepository
from settlement_recon.domain.interfaces.repositories.aggregate_repository import (
    AggregateRepository,
)
from settlement_recon.domain.interfaces.repositories.checkpoint_repository import (
    CheckpointRepository,
)
from settlement_recon.domain.interfaces.repositories.derived_calculation_repository import (
    DerivedCalculationRepository,
)
from settlement_recon.domain.interfaces.repositories.fact_repository import FactRepository

RepoFactory = Callable[[AsyncSession], Any]

DEFAULT_REPOSITORIES: Mapping[type[Any], RepoFactory] = {
    FactRepository: SqlAlchemyFactRepository,
    DerivedCalculationRepository: SqlAlchemyDerivedCalculationRepository,
    AggregateRepository: SqlAlchemyAggregateRepository,
    CheckpointRepository: SqlAlchemyCheckpointRepository,
}


class SqlAlchemyUnitOfWork:
    """Unit of work over an ``async_sessionmaker``.

    Args:
        session_factory: Factory for the scope's ``AsyncSession``.
        repo_factories: Per-protocol overrides merged over
            ``DEFAULT_REPOSITORIES`` (tests inject failing repositories here).
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        repo_factories: Mapping[type[Any], RepoFactory] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._factories: dict[type[Any], RepoFactory] = dict(DEFAULT_REPOSITORIES)
        if repo_factories:
            self._factories.update(repo_factories)
        self._session: AsyncSession | None = None
        self._resolved: dict[type[Any], Any] = {}
        self._finished = False

    async def __aenter__(self) -> SqlAlchemyUnitOfWork:
        if self._session is not None:
            raise RuntimeError("unit of work is already active; nesting is not supported")
        self._session = self._session_factory()
        self._finished = False
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        session, self._session = self._session, None
        self._resolved.clear()
        if session is None:
            return
        try:
            if not self._finished:
                # Leaving without commit() discards the scope's work.
                await session.rollback()
        finally:
            await session.close()

    async def commit(self) -> None:
        """Commit the scope's transaction.

        Raises:
            RuntimeError: If no scope is active.
        """
        session = self._require_session("commit")
        if self._finished:
            return
        await session.commit()
        self._finished = True

    async def rollback(self) -> None:
        """Discard the scope's work; a no-op outside a scope or after commit."""
        if self._session is None or self._finished:
            return
        await self._session.rollback()
        self._finished = True

    def get_repository(self, repo_type: type[Any]) -> Any:
        """Return the scope's repository for ``repo_type``.

        Raises:
            RuntimeError: Outside an active scope.
            KeyError: If nothing is registered for ``repo_type``.
        """
        session = self._require_session("get_repository")
        repo = self._resolved.get(repo_type)
        if repo is None:
            factory = self._factories.get(repo_type)
            if factory is None:
                raise KeyError(f"no repository registered for {repo_type!r}")
            repo = self._resolved[repo_type] = factory(session)
        return repo

    def _require_session(self, action: str) -> AsyncSession:
        if self._session is None:
            raise RuntimeError(f"{action}() called outside an active unit of work")
        return self._session
