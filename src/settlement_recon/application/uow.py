# src/settlement_recon/application/uow.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Transactional boundary for application services.

A unit of work scopes one database transaction. Every repository resolved
from it shares that transaction, so ``FactStore.replace`` can delete and
re-insert a settlement period as a single atomic step.

Concrete implementations live in ``settlement_recon.adapters.uow``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Any, Protocol, TypeVar, runtime_checkable

TResult = TypeVar("TResult")


@runtime_checkable
class UnitOfWork(Protocol):
    """One transaction plus the repositories bound to it.

    Leaving the ``async with`` block without ``commit()`` discards all work.
    """

    async def __aenter__(self) -> UnitOfWork: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    def get_repository(self, repo_type: type[Any]) -> Any:
        """Resolve the repository registered for ``repo_type`` (a protocol class)."""
        ...


# Fresh, not yet entered, unit of work per call.
UnitOfWorkFactory = Callable[[], UnitOfWork]


async def run_in_uow(  # noqa: UP047
    uow: UnitOfWork,
    fn: Callable[[UnitOfWork], Awaitable[TResult]],
) -> TResult:
    """Run ``fn`` inside ``uow`` and commit only if it returns normally.

    Args:
        uow: Unit of work that has not been entered yet.
        fn: Coroutine function receiving the active unit of work.

    Returns:
        Whatever ``fn`` returned.

    Raises:
        Exception: Anything ``fn`` or the commit raised, after a rollback.
    """
    async with uow as active:
        try:
            result = await fn(active)
            await active.commit()
        except Exception:
            await active.rollback()
            raise
    return result
