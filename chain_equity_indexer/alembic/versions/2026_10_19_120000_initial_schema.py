"""initial_schema

Revision ID: 2026_10_19_120000
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '2026_10_19_120000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        'meta',
        sa.Column('key', sa.Text(), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('key'),
    )
    op.create_table(
        'events',
        sa.Column('id', _ID, autoincrement=True, nullable=False),
        sa.Column('event_type', sa.Text(), nullable=False),
        sa.Column('contract_address', sa.Text(), nullable=False),
        sa.Column('topics', sa.JSON(), nullable=False),
        sa.Column('data', sa.LargeBinary(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('block_timestamp', sa.BigInteger(), nullable=True),
        sa.Column('tx_hash', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('block_number', 'log_index', name='uq_events_block_log'),
    )
    op.create_index('ix_events_type_block', 'events', ['event_type', 'block_number'])
    op.create_index('ix_events_contract_block', 'events', ['contract_address', 'block_number'])

    op.create_table(
        'transactions',
        sa.Column('id', _ID, autoincrement=True, nullable=False),
        sa.Column('tx_hash', sa.Text(), nullable=False),
        sa.Column('from_address', sa.Text(), nullable=True),
        sa.Column('to_address', sa.Text(), nullable=False),
        sa.Column('amount', sa.Text(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('block_timestamp', sa.BigInteger(), nullable=True),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('block_number', 'log_index', name='uq_transactions_block_log'),
    )
    op.create_index('ix_transactions_from', 'transactions', ['from_address'])
    op.create_index('ix_transactions_to', 'transactions', ['to_address'])

    op.create_table(
        'corporate_actions',
        sa.Column('id', _ID, autoincrement=True, nullable=False),
        sa.Column('action_id', sa.Text(), nullable=False),
        sa.Column('action_type', sa.Text(), nullable=False),
        sa.Column('data', sa.LargeBinary(), nullable=True),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('block_timestamp', sa.BigInteger(), nullable=True),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('block_number', 'log_index', name='uq_corporate_actions_block_log'),
    )

    op.create_table(
        'shareholders',
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('balance', sa.Text(), nullable=False),
        sa.Column('effective_balance', sa.Text(), nullable=False),
        sa.Column('last_updated_block', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('address'),
    )


def downgrade() -> None:
    op.drop_table('shareholders')
    op.drop_table('corporate_actions')
    op.drop_index('ix_transactions_to', table_name='transactions')
    op.drop_index('ix_transactions_from', table_name='transactions')
    op.drop_table('transactions')
    op.drop_index('ix_events_contract_block', table_name='events')
    op.drop_index('ix_events_type_block', table_name='events')
    op.drop_table('events')
    op.drop_table('meta')
