"""Helmet catalog and per-source prices.

Revision ID: 001_helmet_catalog
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_helmet_catalog'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'helmets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('player', sa.String(100), nullable=True),
        sa.Column('team', sa.String(100), nullable=True),
        sa.Column('helmet_type', sa.String(50), nullable=False),
        sa.Column('design_type', sa.String(50), nullable=False, server_default='regular'),
        sa.Column('auth_company', sa.String(50), nullable=True),
        sa.Column('ebay_search_query', sa.Text(), nullable=False),
        sa.Column('natural_key', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('ebay_search_query'),
        sa.UniqueConstraint('natural_key'),
    )

    op.create_table(
        'helmet_prices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('helmet_id', sa.Integer(), nullable=False),
        sa.Column('source', sa.String(50), nullable=False, server_default='ebay'),
        sa.Column('median_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('min_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('max_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('total_results', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('ebay_url', sa.Text(), nullable=True),
        sa.Column('scraped_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['helmet_id'], ['helmets.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('helmet_id', 'source', name='uq_helmet_prices_helmet_source'),
    )

    op.create_index('ix_helmets_player', 'helmets', ['player'])
    op.create_index('ix_helmet_prices_helmet_id', 'helmet_prices', ['helmet_id'])
    op.create_index('ix_helmet_prices_source', 'helmet_prices', ['source'])


def downgrade() -> None:
    op.drop_index('ix_helmet_prices_source', table_name='helmet_prices')
    op.drop_index('ix_helmet_prices_helmet_id', table_name='helmet_prices')
    op.drop_index('ix_helmets_player', table_name='helmets')
    op.drop_table('helmet_prices')
    op.drop_table('helmets')
