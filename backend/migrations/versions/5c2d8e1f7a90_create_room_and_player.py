"""create room and player tables

Revision ID: 5c2d8e1f7a90
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2d8e1f7a90'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'room',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='lobby'),
        sa.Column('current_word', sa.String(length=128), nullable=True),
        sa.Column('expected_start_letter', sa.String(length=1), nullable=True),
        sa.Column('current_turn_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('winner_identity', sa.String(length=128), nullable=True),
        sa.Column('host_identity', sa.String(length=128), nullable=True),
        sa.Column('turn_deadline', sa.Float(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.Float(), nullable=False),
    )
    with op.batch_alter_table('room') as batch_op:
        batch_op.create_index('ix_room_code', ['code'], unique=True)

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id', ondelete='CASCADE'), nullable=False),
        sa.Column('connection_id', sa.String(length=64), nullable=True),
        sa.Column('persistent_identity', sa.String(length=128), nullable=False),
        sa.Column('display_name', sa.String(length=64), nullable=False),
        sa.Column('is_eliminated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('disconnected_at', sa.Float(), nullable=True),
        sa.UniqueConstraint('room_id', 'persistent_identity', name='uq_player_room_identity'),
    )
    with op.batch_alter_table('player') as batch_op:
        batch_op.create_index('ix_player_room_id', ['room_id'], unique=False)
        batch_op.create_index('ix_player_connection_id', ['connection_id'], unique=False)


def downgrade():
    with op.batch_alter_table('player') as batch_op:
        batch_op.drop_index('ix_player_connection_id')
        batch_op.drop_index('ix_player_room_id')
    op.drop_table('player')
    with op.batch_alter_table('room') as batch_op:
        batch_op.drop_index('ix_room_code')
    op.drop_table('room')
