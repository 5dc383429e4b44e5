# src/settlement_recon/adapters/uow/__init__.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""
Unit of Work implementations (Adapters Layer)

Purpose:
    Provide concrete UnitOfWork implementations backed by SQLAlchemy
    AsyncSession. Application code depends only on the `UnitOfWork`
    protocol from `settlement_recon.application.uow`.

Exports:
    - SqlAlchemyUnitOfWork
"""

from __future__ import annotations

from .sqlalchemy_uow import SqlAlchemyUnitOfWork

__all__ = ["SqlAlchemyUnitOfWork"]
