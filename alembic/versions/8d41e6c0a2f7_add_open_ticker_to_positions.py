"""Add open_ticker to positions

Revision ID: 8d41e6c0a2f7
Revises: 3f9c2a7d1b40
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8d41e6c0a2f7'
down_revision: Union[str, Sequence[str], None] = '3f9c2a7d1b40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add a unique open_ticker column and backfill it for open positions."""
    with op.batch_alter_table('positions') as batch_op:
        batch_op.add_column(sa.Column('open_ticker', sa.String(), nullable=True))

    op.execute(
        "UPDATE positions SET open_ticker = ticker "
        "WHERE status IN ('PUT_OPEN', 'ASSIGNED', 'CALL_OPEN')"
    )

    with op.batch_alter_table('positions') as batch_op:
        batch_op.create_unique_constraint('uq_positions_open_ticker', ['open_ticker'])


def downgrade() -> None:
    """Drop open_ticker."""
    with op.batch_alter_table('positions') as batch_op:
        batch_op.drop_constraint('uq_positions_open_ticker', type_='unique')
        batch_op.drop_column('open_ticker')
