"""Initial workplace RBAC schema.

Notes:
- ULID string primary keys.
- Membership status uses VARCHAR + CHECK (native_enum=False).
- Active role names and active grants are unique through partial indexes.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from typing import Optional

from alembic import op

from workplace_rbac.db.metadata import Base

# Revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision: Optional[str] = None
branch_labels: Optional[str] = None
depends_on: Optional[str] = None


def upgrade() -> None:
    # Import models so Base.metadata is populated.
    import workplace_rbac.models  # noqa: F401

    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    import workplace_rbac.models  # noqa: F401

    Base.metadata.drop_all(bind=op.get_bind())
