"""Forbid overlapping active appointments per doctor and per patient.

Revision ID: 003
Revises: 002
Create Date: 2024-11-12 00:00:00.000000

"""

from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Half-open range, so back-to-back appointments do not collide
APPOINTMENT_RANGE = "tsrange(start_at, start_at + duration_minutes * interval '1 minute', '[)')"


def upgrade() -> None:
    """Upgrade database schema."""
    # btree_gist lets the equality on the actor column share the gist index
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    for actor in ("doctor", "patient"):
        op.execute(
            f"""
            ALTER TABLE appointments
            ADD CONSTRAINT appointments_{actor}_no_overlap
            EXCLUDE USING gist (
                {actor}_id WITH =,
                ({APPOINTMENT_RANGE}) WITH &&
            )
            WHERE (status <> 'cancelled')
            """
        )


def downgrade() -> None:
    """Downgrade database schema."""
    for actor in ("patient", "doctor"):
        op.execute(f"ALTER TABLE appointments DROP CONSTRAINT IF EXISTS appointments_{actor}_no_overlap")
