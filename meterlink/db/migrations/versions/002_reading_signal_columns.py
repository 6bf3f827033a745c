"""
Reading signal columns: battery_mv, rssi and snr on readings.

Purely additive; existing readings keep NULL for the new columns.

Revision ID: 002
Revises: 001
Create Date: 2026-10-16

CHANGELOG:
- 2026-10-16: Initial creation
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# Revision identifiers used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Add nullable signal/battery columns to readings."""
    with op.batch_alter_table("readings") as batch:
        batch.add_column(sa.Column("battery_mv", sa.Integer(), nullable=True))
        batch.add_column(sa.Column("rssi", sa.Integer(), nullable=True))
        batch.add_column(sa.Column("snr", sa.Double(), nullable=True))


def downgrade() -> None:
    """Drop the signal/battery columns from readings."""
    with op.batch_alter_table("readings") as batch:
        batch.drop_column("snr")
        batch.drop_column("rssi")
        batch.drop_column("battery_mv")
