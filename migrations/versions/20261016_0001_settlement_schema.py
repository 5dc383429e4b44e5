"""Create settlement reconciliation tables.

Revision ID: 20261016_0001_settlement_schema
Revises:
Create Date: 2026-10-16

Facts, derived calculations, Daily/Monthly/Yearly aggregates, reconciliation
checkpoints and per-date context values.
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "20261016_0001_settlement_schema"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

_AMOUNT = sa.Numeric(28, 8)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    op.create_table(
        "curtailment_records",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("settlement_date", sa.Date, nullable=False),
        sa.Column("settlement_period", sa.Integer, nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("lead_party_name", sa.String(length=255), nullable=True),
        sa.Column("quantity", _AMOUNT, nullable=False),
        sa.Column("unit_price", _AMOUNT, nullable=False),
        sa.Column("payment", _AMOUNT, nullable=False),
        sa.Column("so_flag", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("cadl_flag", sa.Boolean, nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_curtailment_records_date_period",
        "curtailment_records",
        ["settlement_date", "settlement_period"],
    )

    op.create_table(
        "historical_calculations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("settlement_date", sa.Date, nullable=False),
        sa.Column("settlement_period", sa.Integer, nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("model_parameter", sa.String(length=32), nullable=False),
        sa.Column("derived_value", _AMOUNT, nullable=False),
        sa.Column("context_value_used", sa.Numeric(38, 4), nullable=False),
        _timestamp("calculated_at"),
    )
    op.create_index(
        "ix_historical_calculations_date_model",
        "historical_calculations",
        ["settlement_date", "model_parameter"],
    )

    op.create_table(
        "fact_aggregates",
        sa.Column("level", sa.String(length=16), primary_key=True),
        sa.Column("period_key", sa.String(length=10), primary_key=True),
        sa.Column("total_quantity", _AMOUNT, nullable=False),
        sa.Column("total_payment", _AMOUNT, nullable=False),
        _timestamp("last_updated"),
    )

    op.create_table(
        "derived_aggregates",
        sa.Column("level", sa.String(length=16), primary_key=True),
        sa.Column("period_key", sa.String(length=10), primary_key=True),
        sa.Column("model_parameter", sa.String(length=32), primary_key=True),
        sa.Column("total_derived_value", _AMOUNT, nullable=False),
        _timestamp("last_updated"),
    )

    op.create_table(
        "reconciliation_checkpoints",
        sa.Column("settlement_date", sa.Date, primary_key=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("periods_repaired", sa.JSON, nullable=False),
        sa.Column("target_periods", sa.JSON, nullable=False),
        sa.Column("failed_periods", sa.JSON, nullable=False),
        sa.Column("run_id", sa.String(length=64), nullable=True),
        _timestamp("updated_at"),
    )

    op.create_table(
        "context_values",
        sa.Column("value_date", sa.Date, primary_key=True),
        sa.Column("value", sa.Numeric(38, 4), nullable=False),
        sa.Column("source", sa.String(length=64), nullable=True),
        _timestamp("updated_at"),
    )


def downgrade() -> None:
    op.drop_table("context_values")
    op.drop_table("reconciliation_checkpoints")
    op.drop_table("derived_aggregates")
    op.drop_table("fact_aggregates")
    op.drop_index("ix_historical_calculations_date_model", table_name="historical_calculations")
    op.drop_table("historical_calculations")
    op.drop_index("ix_curtailment_records_date_period", table_name="curtailment_records")
    op.drop_table("curtailment_records")
