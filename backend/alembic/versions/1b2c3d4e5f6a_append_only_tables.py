"""append_only_tables

Revision ID: 1b2c3d4e5f6a
Revises: 0a1b2c3d4e5f
Create Date: 2026-10-05 09:20:00.000000

Enforce append-only semantics at the DB level on the expense ledger, the
project value history and the audit trail:
- Revoke UPDATE and DELETE from PUBLIC
- Grant SELECT and INSERT only
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '1b2c3d4e5f6a'
down_revision: Union[str, None] = '0a1b2c3d4e5f'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

APPEND_ONLY_TABLES = ("expenses", "project_revisions", "audit_logs")


def upgrade() -> None:
    for table in APPEND_ONLY_TABLES:
        op.execute(f"REVOKE UPDATE, DELETE ON {table} FROM PUBLIC;")
        op.execute(f"GRANT SELECT, INSERT ON {table} TO PUBLIC;")


def downgrade() -> None:
    # Restore full DML access (only for disaster-recovery; normally never run)
    for table in APPEND_ONLY_TABLES:
        op.execute(f"GRANT UPDATE, DELETE ON {table} TO PUBLIC;")
