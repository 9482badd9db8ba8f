"""cost_centers

Revision ID: 9b2e6d41c8a5
Revises: 4f1c2a9e7b30
Create Date: 2026-10-19 14:03:27.906114+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '9b2e6d41c8a5'
down_revision: Union[str, None] = '4f1c2a9e7b30'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('cost_centers',
    sa.Column('id', sa.String(length=50), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )

    # Existing bindings must keep resolving after the check on new bindings.
    op.execute(
        "INSERT INTO cost_centers (id, name, description, version, created_at, updated_at) "
        "SELECT DISTINCT cost_center, cost_center, '', 1, now(), now() FROM cost_center_approvers"
    )


def downgrade() -> None:
    op.drop_table('cost_centers')
