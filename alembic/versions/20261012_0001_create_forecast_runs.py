"""create forecast_runs table

Revision ID: 20261012_0001
Revises:
Create Date: 2026-10-12 09:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261012_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "forecast_runs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("region", sa.String(length=255), nullable=False,
                  comment="Region or catchment the run was produced for"),
        sa.Column("horizon", sa.Integer(), nullable=False,
                  comment="Forecast horizon in years"),
        sa.Column("damping", sa.Float(), nullable=False,
                  comment="Trend damping parameter"),
        sa.Column("seasonal_model", sa.String(length=32), nullable=False),
        sa.Column(
            "seasonal_index",
            sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql"),
            nullable=False,
            comment="Normalised monthly seasonal index",
        ),
        sa.Column(
            "trend_forecast",
            sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql"),
            nullable=False,
            comment="Annual point forecasts with 80% intervals",
        ),
        sa.Column(
            "daily_estimates",
            sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql"),
            nullable=False,
            comment="Monthly daily-visitor estimates per visitor type",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_forecast_runs_region",
        "forecast_runs",
        ["region"],
        unique=False,
    )
    op.create_index(
        "ix_forecast_runs_region_created_at",
        "forecast_runs",
        ["region", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_forecast_runs_region_created_at", table_name="forecast_runs")
    op.drop_index("ix_forecast_runs_region", table_name="forecast_runs")
    op.drop_table("forecast_runs")
