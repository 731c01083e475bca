"""SW initial schema: profiles, content, graph, ledger, invites, adjustments, weights, scores

Revision ID: 3f9a1c6d2e84
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c6d2e84'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('profiles',
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('username', sa.Text(), nullable=True),
        sa.Column('full_name', sa.Text(), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('country', sa.Text(), nullable=True),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('user_id'),
        sa.UniqueConstraint('username'),
    )

    op.create_table('posts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('author_id', sa.Text(), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_posts_author_id', 'posts', ['author_id'])
    op.create_index('ix_posts_created_at', 'posts', ['created_at'])

    op.create_table('post_reactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('post_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('kind', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_post_reactions_post_id', 'post_reactions', ['post_id'])

    op.create_table('comments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('post_id', sa.Integer(), nullable=True),
        sa.Column('author_id', sa.Text(), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_comments_author_id', 'comments', ['author_id'])

    op.create_table('follows',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('follower_id', sa.Text(), nullable=False),
        sa.Column('followee_id', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('follower_id', 'followee_id', name='uq_follows_pair'),
    )
    op.create_index('ix_follows_followee_id', 'follows', ['followee_id'])

    op.create_table('sw_ledger',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sw_ledger_user_id', 'sw_ledger', ['user_id'])

    op.create_table('invites',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('inviter_user_id', sa.Text(), nullable=False),
        sa.Column('consumed_by_user_id', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invites_inviter_user_id', 'invites', ['inviter_user_id'])

    op.create_table('admin_sw_adjustments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('adjustment_type', sa.Text(), nullable=False),
        sa.Column('permanent', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_admin_sw_adjustments_user_id', 'admin_sw_adjustments', ['user_id'])

    weights = op.create_table('sw_weights',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('registration_points', sa.Integer(), nullable=False),
        sa.Column('profile_complete_points', sa.Integer(), nullable=False),
        sa.Column('growth_total_points_multiplier', sa.Float(), nullable=False),
        sa.Column('follower_points', sa.Integer(), nullable=False),
        sa.Column('connection_first_points', sa.Integer(), nullable=False),
        sa.Column('connection_repeat_points', sa.Integer(), nullable=False),
        sa.Column('post_points', sa.Integer(), nullable=False),
        sa.Column('comment_points', sa.Integer(), nullable=False),
        sa.Column('reaction_points', sa.Integer(), nullable=False),
        sa.Column('invite_points', sa.Integer(), nullable=True),
        sa.Column('growth_bonus_percentage', sa.Float(), nullable=True),
        sa.Column('daily_inflation_rate', sa.Float(), nullable=True),
        sa.Column('user_growth_inflation_rate', sa.Float(), nullable=True),
        sa.Column('min_inflation_rate', sa.Float(), nullable=True),
        sa.Column('cache_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('sw_levels', sa.JSON(), nullable=True),
        sa.Column('updated_by', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('id = 1', name='sw_weights_singleton'),
    )

    op.create_table('sw_scores',
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('total', sa.Integer(), nullable=False),
        sa.Column('original_total', sa.Float(), nullable=False),
        sa.Column('base_total', sa.Float(), nullable=False),
        sa.Column('admin_adjustments', sa.Integer(), nullable=False),
        sa.Column('breakdown', sa.JSON(), nullable=True),
        sa.Column('inflation_rate', sa.Float(), nullable=False),
        sa.Column('current_level', sa.Text(), nullable=True),
        sa.Column('last_level_change', sa.DateTime(timezone=True), nullable=True),
        sa.Column('inflation_last_updated', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('user_id'),
    )

    # Seed the singleton weight row; tiers come from sw_levels.yaml until set
    op.bulk_insert(weights, [{
        'id': 1,
        'registration_points': 50,
        'profile_complete_points': 20,
        'growth_total_points_multiplier': 1,
        'follower_points': 5,
        'connection_first_points': 100,
        'connection_repeat_points': 40,
        'post_points': 20,
        'comment_points': 10,
        'reaction_points': 1,
        'invite_points': 50,
        'growth_bonus_percentage': 0.05,
        'daily_inflation_rate': 0.001,
        'user_growth_inflation_rate': 0.0001,
        'min_inflation_rate': 0.5,
        'cache_duration_minutes': 15,
    }])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('sw_scores')
    op.drop_table('sw_weights')
    op.drop_index('ix_admin_sw_adjustments_user_id', 'admin_sw_adjustments')
    op.drop_table('admin_sw_adjustments')
    op.drop_index('ix_invites_inviter_user_id', 'invites')
    op.drop_table('invites')
    op.drop_index('ix_sw_ledger_user_id', 'sw_ledger')
    op.drop_table('sw_ledger')
    op.drop_index('ix_follows_followee_id', 'follows')
    op.drop_table('follows')
    op.drop_index('ix_comments_author_id', 'comments')
    op.drop_table('comments')
    op.drop_index('ix_post_reactions_post_id', 'post_reactions')
    op.drop_table('post_reactions')
    op.drop_index('ix_posts_created_at', 'posts')
    op.drop_index('ix_posts_author_id', 'posts')
    op.drop_table('posts')
    op.drop_table('profiles')
