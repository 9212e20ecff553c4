"""create level and stored_value tables

Revision ID: 5b7c1e2d9a10
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b7c1e2d9a10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'level' not in existing_tables:
        op.create_table(
            'level',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('slug', sa.String(length=64), nullable=False),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('original_image', sa.String(length=256), nullable=True),
            sa.Column('modified_image', sa.String(length=256), nullable=True),
            sa.Column('time_limit', sa.Integer(), nullable=True),
            sa.Column('points_per_hit', sa.Integer(), nullable=True),
            sa.Column('penalty_per_miss', sa.Integer(), nullable=True),
            sa.Column('bonus_per_second', sa.Integer(), nullable=True),
            sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('differences', sa.Text(), nullable=False, server_default='[]'),
        )
        op.create_index('ix_level_slug', 'level', ['slug'], unique=True)

    if 'stored_value' not in existing_tables:
        op.create_table(
            'stored_value',
            sa.Column('key', sa.String(length=191), primary_key=True),
            sa.Column('value', sa.Text(), nullable=False),
        )


def downgrade():
    op.drop_table('stored_value')
    op.drop_index('ix_level_slug', table_name='level')
    op.drop_table('level')
