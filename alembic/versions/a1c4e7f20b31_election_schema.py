"""election_schema

Revision ID: a1c4e7f20b31
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from collections.abc import Sequence

from alembic import op

from app.core.schema import DROP_SQL, SCHEMA_SQL

# revision identifiers, used by Alembic.
revision: str = "a1c4e7f20b31"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create geo, user, election, ballot and vote batch tables."""
    op.execute(SCHEMA_SQL)


def downgrade() -> None:
    """Drop all election tables."""
    op.execute(DROP_SQL)
