"""create store_record, game and match_record tables

Revision ID: 5a7c1e9d2b40
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5a7c1e9d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'store_record' not in existing_tables:
        op.create_table(
            'store_record',
            sa.Column('key', sa.String(length=255), primary_key=True),
            sa.Column('value', sa.Text(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )

    if 'game' not in existing_tables:
        op.create_table(
            'game',
            sa.Column('id', sa.String(length=32), primary_key=True),
            sa.Column('user_id', sa.String(length=64), nullable=False),
            sa.Column('status', sa.String(length=16), nullable=False),
            sa.Column('state', sa.Text(), nullable=True),
            sa.Column('settings', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_game_user_id', 'game', ['user_id'])

    if 'match_record' not in existing_tables:
        op.create_table(
            'match_record',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.String(length=64), nullable=False),
            sa.Column('game_id', sa.String(length=32), nullable=False),
            sa.Column('winner_id', sa.String(length=64), nullable=True),
            sa.Column('winner_name', sa.String(length=64), nullable=True),
            sa.Column('target_score', sa.Integer(), nullable=False),
            sa.Column('rounds', sa.Integer(), nullable=False),
            sa.Column('players', sa.Text(), nullable=False),
            sa.Column('final_scores', sa.Text(), nullable=False),
            sa.Column('settings', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_match_record_user_id', 'match_record', ['user_id'])


def downgrade():
    op.drop_index('ix_match_record_user_id', table_name='match_record')
    op.drop_table('match_record')
    op.drop_index('ix_game_user_id', table_name='game')
    op.drop_table('game')
    op.drop_table('store_record')
