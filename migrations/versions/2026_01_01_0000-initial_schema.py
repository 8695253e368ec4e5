"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create initial database schema:
    - links table: original URL, short code, creation/expiry/last access times
    - link_clicks table: click counter per link, upserted on every redirect
    """
    op.create_table(
        'links',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('original_url', sa.Text(), nullable=False),
        sa.Column('short_code', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_accessed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_index('ix_links_short_code', 'links', ['short_code'], unique=True)
    op.create_index('ix_links_original_url', 'links', ['original_url'])
    op.create_index('ix_links_created_at', 'links', ['created_at'])
    op.create_index('ix_links_expires_at', 'links', ['expires_at'])

    op.create_table(
        'link_clicks',
        sa.Column('link_id', sa.Integer(), nullable=False),
        sa.Column('clicks', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['link_id'], ['links.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('link_id')
    )


def downgrade() -> None:
    op.drop_table('link_clicks')

    op.drop_index('ix_links_expires_at', table_name='links')
    op.drop_index('ix_links_created_at', table_name='links')
    op.drop_index('ix_links_original_url', table_name='links')
    op.drop_index('ix_links_short_code', table_name='links')
    op.drop_table('links')
