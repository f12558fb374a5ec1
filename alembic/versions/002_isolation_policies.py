"""Row-level security policies for organization isolation

Rendered from the same policy model the installer uses, so a migrated
database and one set up with ``python -m okrguard.manage install`` match.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op

from okrguard.modules.tenancy.policy import (
    POLICY_MODEL,
    drop_function_statements,
    function_statements,
    install_statements,
    reset_statements,
)

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- Helper functions ---
    for statement in function_statements():
        op.execute(statement)

    # --- Policies ---
    for entity in POLICY_MODEL:
        for statement in install_statements(entity):
            op.execute(statement)


def downgrade() -> None:
    for entity in reversed(POLICY_MODEL):
        for statement in reset_statements(entity):
            op.execute(statement)
    for statement in drop_function_statements():
        op.execute(statement)
