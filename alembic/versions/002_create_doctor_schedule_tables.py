"""Create doctor working hours and unavailability tables.

Revision ID: 002
Revises: 001
Create Date: 2024-11-04 00:10:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "doctor_working_hours",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("doctor_id", sa.BigInteger(), nullable=False),
        sa.Column("weekday", sa.SmallInteger(), nullable=False),
        sa.Column("opens_at", sa.Time(), nullable=False),
        sa.Column("closes_at", sa.Time(), nullable=False),
        sa.CheckConstraint("weekday BETWEEN 0 AND 6", name="doctor_working_hours_weekday_check"),
        sa.CheckConstraint("closes_at > opens_at", name="doctor_working_hours_window_check"),
        sa.UniqueConstraint("doctor_id", "weekday", name="uq_doctor_working_hours_weekday"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_doctor_working_hours_doctor_id", "doctor_working_hours", ["doctor_id"]
    )

    op.create_table(
        "doctor_unavailability",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("doctor_id", sa.BigInteger(), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=False),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.CheckConstraint("end_at > start_at", name="doctor_unavailability_range_check"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_doctor_unavailability_doctor_id", "doctor_unavailability", ["doctor_id"]
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("ix_doctor_unavailability_doctor_id", table_name="doctor_unavailability")
    op.drop_table("doctor_unavailability")
    op.drop_index("ix_doctor_working_hours_doctor_id", table_name="doctor_working_hours")
    op.drop_table("doctor_working_hours")
