"""
Initial schema: uplink log and deduplicated reading series.

Creates the ``uplinks`` table (surrogate id, unique on dev_eui +
deduplication_id, indexed on dev_eui + at) and the ``readings`` table
(composite primary key dev_eui + at).

Revision ID: 001
Revises: None
Create Date: 2026-10-14

CHANGELOG:
- 2026-10-14: Initial creation

TODO:
- None
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# Revision identifiers used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the readings and uplinks tables."""
    op.create_table(
        "readings",
        sa.Column("dev_eui", sa.Text(), nullable=False),
        sa.Column("at", sa.Text(), nullable=False),
        sa.Column("meter_value", sa.Double(), nullable=False),
        sa.Column("meter_value_raw", sa.Text(), nullable=True),
        sa.Column("device_name", sa.Text(), nullable=True),
        sa.Column("application_id", sa.Text(), nullable=True),
        sa.Column("application_name", sa.Text(), nullable=True),
        sa.Column("deduplication_id", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("dev_eui", "at"),
    )

    op.create_table(
        "uplinks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("dev_eui", sa.Text(), nullable=False),
        sa.Column("at", sa.Text(), nullable=False),
        sa.Column("provider", sa.Text(), nullable=True),
        sa.Column("device_name", sa.Text(), nullable=True),
        sa.Column("application_id", sa.Text(), nullable=True),
        sa.Column("application_name", sa.Text(), nullable=True),
        sa.Column("deduplication_id", sa.Text(), nullable=False),
        sa.Column("meter_value", sa.Double(), nullable=True),
        sa.Column("meter_value_raw", sa.Text(), nullable=True),
        sa.Column("battery_mv", sa.Integer(), nullable=True),
        sa.Column("rssi", sa.Integer(), nullable=True),
        sa.Column("snr", sa.Double(), nullable=True),
        sa.Column("decoded_json", sa.JSON(none_as_null=True), nullable=True),
        sa.Column("payload_json", sa.JSON(none_as_null=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("dev_eui", "deduplication_id", name="uq_uplinks_dev_dedup"),
        sqlite_autoincrement=True,
    )
    op.create_index("idx_uplinks_dev_at", "uplinks", ["dev_eui", "at"])


def downgrade() -> None:
    """Drop both tables."""
    op.drop_index("idx_uplinks_dev_at", table_name="uplinks")
    op.drop_table("uplinks")
    op.drop_table("readings")
