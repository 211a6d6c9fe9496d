"""Initial schema: passenger registry.

Revision ID: 001_initial
Revises:
Create Date: 2024-11-04 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── passengers ──────────────────────────────────────────────────
    op.create_table(
        "passengers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("pnr", sa.String(10), nullable=False, comment="10-digit PNR"),
        sa.Column(
            "seat_type",
            sa.String(32),
            nullable=True,
            comment="lower / middle / upper / side_lower / side_upper",
        ),
        sa.Column(
            "coach_index",
            sa.Integer,
            nullable=True,
            comment="0-based position of the coach in the rake",
        ),
        sa.Column("group_size", sa.Integer, server_default="1", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "is_active",
            sa.Boolean,
            server_default="true",
            nullable=False,
        ),
        sa.CheckConstraint("group_size >= 1", name="ck_passenger_group_size"),
        sa.CheckConstraint(
            "coach_index IS NULL OR coach_index >= 0", name="ck_passenger_coach"
        ),
    )
    op.create_index("ix_passengers_pnr", "passengers", ["pnr"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_passengers_pnr", table_name="passengers")
    op.drop_table("passengers")
