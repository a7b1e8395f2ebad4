"""create_messages_and_profiles

Revision ID: 4b1f2c7a9d10
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4b1f2c7a9d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'messages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('sender_id', sa.String(length=64), nullable=False, comment='发送方身份'),
        sa.Column('recipient_id', sa.String(length=64), nullable=False, comment='接收方身份'),
        sa.Column('text', sa.Text(), nullable=False, comment='消息正文'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间（由存储分配）'),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false(), comment='是否已读'),
        sa.PrimaryKeyConstraint('id', name='pk_messages'),
    )
    op.create_index('ix_messages_created_at', 'messages', ['created_at'], unique=False)
    # mark_read / unread 计数按 (sender, recipient, read) 查询
    op.create_index('ix_messages_pair_read', 'messages', ['sender_id', 'recipient_id', 'read'], unique=False)

    op.create_table(
        'profiles',
        sa.Column('user_id', sa.String(length=64), nullable=False, comment='外部身份提供方给出的用户ID'),
        sa.Column('display_name', sa.String(length=100), nullable=True, comment='展示名'),
        sa.Column('location', sa.String(length=100), nullable=False, comment='所在地（原样保存）'),
        sa.Column('location_key', sa.String(length=100), nullable=False, comment='所在地（小写，用于匹配）'),
        sa.Column('interests', sa.JSON(), nullable=False, comment='兴趣标签（已归一化）'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('user_id', name='pk_profiles'),
    )
    op.create_index('ix_profiles_location', 'profiles', ['location'], unique=False)
    op.create_index('ix_profiles_location_key', 'profiles', ['location_key'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_profiles_location_key', table_name='profiles')
    op.drop_index('ix_profiles_location', table_name='profiles')
    op.drop_table('profiles')
    op.drop_index('ix_messages_pair_read', table_name='messages')
    op.drop_index('ix_messages_created_at', table_name='messages')
    op.drop_table('messages')
