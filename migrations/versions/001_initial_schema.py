"""initial chat schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from app.models.base import UTCDateTime


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'accounts',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('kind', sa.String(length=10), nullable=False),
        sa.Column('username', sa.String(length=30), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('avatar', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('login_attempts', sa.Integer(), nullable=False),
        sa.Column('lock_until', UTCDateTime, nullable=True),
        sa.Column('last_login', UTCDateTime, nullable=True),
        sa.Column('is_online', sa.Boolean(), nullable=True),
        sa.Column('last_seen', UTCDateTime, nullable=True),
        sa.Column('connection_id', sa.String(length=64), nullable=True),
        sa.Column(
            'role',
            sa.Enum('super_admin', 'admin', 'moderator', name='admin_role',
                    native_enum=False, create_constraint=True),
            nullable=True,
        ),
        sa.Column('first_name', sa.String(length=50), nullable=True),
        sa.Column('last_name', sa.String(length=50), nullable=True),
        sa.Column('created_by_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', UTCDateTime, nullable=False),
        sa.Column('updated_at', UTCDateTime, nullable=False),
        sa.ForeignKeyConstraint(['created_by_id'], ['accounts.id'],
                                name='fk_accounts_created_by_id_accounts', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_accounts'),
    )
    op.create_index('ix_accounts_kind', 'accounts', ['kind'])
    op.create_index('ix_accounts_username', 'accounts', ['username'], unique=True)
    op.create_index('ix_accounts_email', 'accounts', ['email'], unique=True)

    op.create_table(
        'conversations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column(
            'type',
            sa.Enum('direct', 'group', name='conversation_type',
                    native_enum=False, create_constraint=True),
            nullable=False,
        ),
        sa.Column('name', sa.String(length=100), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('avatar', sa.String(length=500), nullable=True),
        sa.Column('direct_key', sa.String(length=80), nullable=True),
        sa.Column('last_message_id', sa.String(length=36), nullable=True),
        sa.Column('last_activity', UTCDateTime, nullable=False),
        sa.Column('created_by_id', sa.String(length=36), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', UTCDateTime, nullable=False),
        sa.Column('updated_at', UTCDateTime, nullable=False),
        sa.ForeignKeyConstraint(['created_by_id'], ['accounts.id'],
                                name='fk_conversations_created_by_id_accounts'),
        sa.PrimaryKeyConstraint('id', name='pk_conversations'),
        sa.UniqueConstraint('direct_key', name='uq_conversations_direct_key'),
    )
    op.create_index('idx_conversations_last_activity', 'conversations', ['last_activity'])
    op.create_index('idx_conversations_type', 'conversations', ['type'])

    op.create_table(
        'conversation_participants',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('conversation_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('joined_at', UTCDateTime, nullable=False),
        sa.Column('removed_at', UTCDateTime, nullable=True),
        sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id'],
                                name='fk_conversation_participants_conversation_id_conversations',
                                ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['accounts.id'],
                                name='fk_conversation_participants_user_id_accounts',
                                ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_conversation_participants'),
        sa.UniqueConstraint('conversation_id', 'user_id', name='uq_participant_conversation_user'),
    )
    op.create_index('idx_participants_user', 'conversation_participants', ['user_id'])

    op.create_table(
        'messages',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('conversation_id', sa.String(length=36), nullable=False),
        sa.Column('sender_id', sa.String(length=36), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column(
            'kind',
            sa.Enum('text', 'image', 'file', 'system', name='message_kind',
                    native_enum=False, create_constraint=True),
            nullable=False,
        ),
        sa.Column('file_url', sa.String(length=500), nullable=True),
        sa.Column('file_name', sa.String(length=255), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('reply_to_id', sa.String(length=36), nullable=True),
        sa.Column('is_edited', sa.Boolean(), nullable=False),
        sa.Column('edited_at', UTCDateTime, nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('deleted_at', UTCDateTime, nullable=True),
        sa.Column('created_at', UTCDateTime, nullable=False),
        sa.Column('updated_at', UTCDateTime, nullable=False),
        sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id'],
                                name='fk_messages_conversation_id_conversations',
                                ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sender_id'], ['accounts.id'],
                                name='fk_messages_sender_id_accounts'),
        sa.ForeignKeyConstraint(['reply_to_id'], ['messages.id'],
                                name='fk_messages_reply_to_id_messages', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_messages'),
    )
    op.create_index('idx_messages_conversation_created', 'messages', ['conversation_id', 'created_at'])
    op.create_index('idx_messages_sender', 'messages', ['sender_id'])

    op.create_table(
        'message_reads',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('message_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('read_at', UTCDateTime, nullable=False),
        sa.ForeignKeyConstraint(['message_id'], ['messages.id'],
                                name='fk_message_reads_message_id_messages', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['accounts.id'],
                                name='fk_message_reads_user_id_accounts', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_message_reads'),
        sa.UniqueConstraint('message_id', 'user_id', name='uq_message_reads_message_user'),
    )
    op.create_index('idx_message_reads_user', 'message_reads', ['user_id'])


def downgrade() -> None:
    op.drop_table('message_reads')
    op.drop_table('messages')
    op.drop_table('conversation_participants')
    op.drop_table('conversations')
    op.drop_table('accounts')
