"""Create positions, trade_events and deposits tables

Revision ID: 3f9c2a7d1b40
Revises:
Create Date: 2026-03-02 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c2a7d1b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create ledger tables."""
    op.create_table(
        'positions',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('ticker', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shares_held', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cost_basis_per_share', sa.String(), nullable=True),
        sa.Column('premium_collected', sa.String(), nullable=False, server_default='0'),
        sa.Column('realized_pl', sa.String(), nullable=False, server_default='0'),
        sa.Column('open_contracts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('opened_at', sa.Date(), nullable=False),
        sa.Column('last_event_at', sa.Date(), nullable=False),
        sa.Column('closed_at', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_positions_ticker', 'positions', ['ticker'])
    op.create_index('ix_positions_status', 'positions', ['status'])
    op.create_index('ix_positions_closed_at', 'positions', ['closed_at'])

    op.create_table(
        'trade_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_id', sa.String(), nullable=False),
        sa.Column('position_id', sa.String(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('ticker', sa.String(), nullable=False),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('strike', sa.String(), nullable=False),
        sa.Column('premium_per_contract', sa.String(), nullable=False, server_default='0'),
        sa.Column('contracts', sa.Integer(), nullable=False),
        sa.Column('occurred_at', sa.Date(), nullable=False),
        sa.Column('expiration_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('recorded_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['position_id'], ['positions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('position_id', 'sequence', name='uq_trade_events_position_sequence'),
    )
    op.create_index('ix_trade_events_event_id', 'trade_events', ['event_id'], unique=True)
    op.create_index('ix_trade_events_position_id', 'trade_events', ['position_id'])
    op.create_index('ix_trade_events_ticker', 'trade_events', ['ticker'])
    op.create_index('ix_trade_events_occurred_at', 'trade_events', ['occurred_at'])

    op.create_table(
        'deposits',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('amount', sa.String(), nullable=False),
        sa.Column('deposit_type', sa.String(), nullable=False, server_default='DEPOSIT'),
        sa.Column('deposit_date', sa.Date(), nullable=False),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_deposits_deposit_type', 'deposits', ['deposit_type'])
    op.create_index('ix_deposits_deposit_date', 'deposits', ['deposit_date'])


def downgrade() -> None:
    """Drop ledger tables."""
    op.drop_index('ix_deposits_deposit_date', table_name='deposits')
    op.drop_index('ix_deposits_deposit_type', table_name='deposits')
    op.drop_table('deposits')

    op.drop_index('ix_trade_events_occurred_at', table_name='trade_events')
    op.drop_index('ix_trade_events_ticker', table_name='trade_events')
    op.drop_index('ix_trade_events_position_id', table_name='trade_events')
    op.drop_index('ix_trade_events_event_id', table_name='trade_events')
    op.drop_table('trade_events')

    op.drop_index('ix_positions_closed_at', table_name='positions')
    op.drop_index('ix_positions_status', table_name='positions')
    op.drop_index('ix_positions_ticker', table_name='positions')
    op.drop_table('positions')
