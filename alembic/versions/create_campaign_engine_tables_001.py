"""Create campaign engine tables

This migration adds:
1. users table
2. campaigns table
3. campaign_applications and campaign_participants tables
4. content_submissions, content_files and content_performance tables
5. published_posts and post_performance tables
6. payments table (with partial unique index on active payments per content)
7. user_earnings table
8. notifications table

Revision ID: create_campaign_engine_tables_001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = 'create_campaign_engine_tables_001'
down_revision = None
branch_labels = None
depends_on = None


MONEY = sa.Numeric(18, 6)

user_type = sa.Enum('brand', 'influencer', 'admin', name='usertype')
campaign_status = sa.Enum('draft', 'active', 'paused', 'completed', 'cancelled', name='campaignstatusdb')
application_status = sa.Enum('pending', 'accepted', 'rejected', name='applicationstatusdb')
participant_status = sa.Enum('active', 'completed', 'removed', name='participantstatusdb')
content_status = sa.Enum('pending', 'approved', 'rejected', 'completed', 'paid', name='contentstatusdb')
content_type = sa.Enum('image', 'video', 'carousel', 'story', 'reel', 'text', name='contenttypedb')
post_status = sa.Enum('published', 'removed', 'archived', name='poststatusdb')
payment_status = sa.Enum('pending', 'processing', 'completed', 'failed', 'cancelled', name='paymentstatusdb')


def _performance_columns():
    return [
        sa.Column('views', sa.Integer, nullable=False, server_default='0'),
        sa.Column('likes', sa.Integer, nullable=False, server_default='0'),
        sa.Column('comments', sa.Integer, nullable=False, server_default='0'),
        sa.Column('shares', sa.Integer, nullable=False, server_default='0'),
        sa.Column('engagement_rate', sa.Float),
        sa.Column('reach', sa.Integer),
        sa.Column('impressions', sa.Integer),
        sa.Column('last_updated', sa.DateTime),
    ]


def upgrade():
    # 1. Users
    op.create_table('users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255)),
        sa.Column('user_type', user_type, nullable=False, server_default='brand'),
        sa.Column('paystack_recipient_code', sa.String(100)),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # 2. Campaigns
    op.create_table('campaigns',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('brand_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('objective', sa.String(500), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('budget', MONEY),
        sa.Column('start_date', sa.DateTime),
        sa.Column('end_date', sa.DateTime),
        sa.Column('max_influencers', sa.Integer),
        sa.Column('target_criteria', sa.JSON),
        sa.Column('requirements', sa.JSON),
        sa.Column('requires_approval', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('auto_approve_influencers', sa.JSON),
        sa.Column('approval_instructions', sa.Text),
        sa.Column('content_brief', sa.Text),
        sa.Column('status', campaign_status, nullable=False, server_default='draft'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_campaigns_brand_id', 'campaigns', ['brand_id'])
    op.create_index('ix_campaigns_end_date', 'campaigns', ['end_date'])
    op.create_index('ix_campaigns_status', 'campaigns', ['status'])

    # 3. Applications and participants
    op.create_table('campaign_applications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False),
        sa.Column('influencer_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', application_status, nullable=False, server_default='pending'),
        sa.Column('application_data', sa.JSON),
        sa.Column('response_message', sa.Text),
        sa.Column('applied_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('responded_at', sa.DateTime),
        sa.UniqueConstraint('campaign_id', 'influencer_id', name='uq_application_campaign_influencer'),
    )
    op.create_index('ix_campaign_applications_influencer_id', 'campaign_applications', ['influencer_id'])

    op.create_table('campaign_participants',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False),
        sa.Column('influencer_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', participant_status, nullable=False, server_default='active'),
        sa.Column('joined_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('campaign_id', 'influencer_id', name='uq_participant_campaign_influencer'),
    )
    op.create_index('ix_campaign_participants_influencer_id', 'campaign_participants', ['influencer_id'])

    # 4. Content submissions
    op.create_table('content_submissions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False),
        sa.Column('influencer_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255)),
        sa.Column('description', sa.Text),
        sa.Column('caption', sa.Text),
        sa.Column('hashtags', sa.JSON),
        sa.Column('platforms', sa.JSON),
        sa.Column('content_type', content_type, nullable=False),
        sa.Column('status', content_status, nullable=False, server_default='pending'),
        sa.Column('amount', MONEY),
        sa.Column('feedback', sa.Text),
        sa.Column('submitted_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('approved_at', sa.DateTime),
        sa.Column('completed_at', sa.DateTime),
        sa.Column('paid_at', sa.DateTime),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('campaign_id', 'influencer_id', name='uq_submission_campaign_influencer'),
    )
    op.create_index('ix_content_submissions_influencer_id', 'content_submissions', ['influencer_id'])
    op.create_index('ix_content_submissions_status', 'content_submissions', ['status'])

    op.create_table('content_files',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('content_id', sa.String(36), sa.ForeignKey('content_submissions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('file_url', sa.String(1000), nullable=False),
        sa.Column('file_type', sa.String(100), nullable=False),
        sa.Column('file_size', sa.BigInteger),
        sa.Column('thumbnail_url', sa.String(1000)),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_content_files_content_id', 'content_files', ['content_id'])

    op.create_table('content_performance',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('content_id', sa.String(36), sa.ForeignKey('content_submissions.id', ondelete='CASCADE'), unique=True, nullable=False),
        *_performance_columns(),
    )

    # 5. Published posts
    op.create_table('published_posts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('content_id', sa.String(36), sa.ForeignKey('content_submissions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('post_url', sa.String(1000), nullable=False),
        sa.Column('platform_post_id', sa.String(255)),
        sa.Column('post_type', sa.String(50)),
        sa.Column('published_at', sa.DateTime, nullable=False),
        sa.Column('status', post_status, nullable=False, server_default='published'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_published_posts_content_id', 'published_posts', ['content_id'])

    op.create_table('post_performance',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('post_id', sa.String(36), sa.ForeignKey('published_posts.id', ondelete='CASCADE'), unique=True, nullable=False),
        *_performance_columns(),
    )

    # 6. Payments
    op.create_table('payments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('content_id', sa.String(36), sa.ForeignKey('content_submissions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('influencer_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('brand_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('platform_fee', MONEY, nullable=False),
        sa.Column('net_amount', MONEY, nullable=False),
        sa.Column('currency', sa.String(3), server_default='KES'),
        sa.Column('payment_method', sa.String(30)),
        sa.Column('status', payment_status, nullable=False, server_default='pending'),
        sa.Column('transaction_id', sa.String(255)),
        sa.Column('failure_reason', sa.Text),
        sa.Column('processing_started_at', sa.DateTime),
        sa.Column('processed_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_payments_influencer_id', 'payments', ['influencer_id'])
    op.create_index('ix_payments_brand_id', 'payments', ['brand_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index(
        'uq_payments_active_content', 'payments', ['content_id'], unique=True,
        postgresql_where=sa.text("status IN ('pending', 'processing', 'completed')"),
        sqlite_where=sa.text("status IN ('pending', 'processing', 'completed')"),
    )

    # 7. Earnings
    op.create_table('user_earnings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('total_earned', MONEY, nullable=False, server_default='0'),
        sa.Column('total_paid', MONEY, nullable=False, server_default='0'),
        sa.Column('pending_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('last_payout_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )

    # 8. Notifications
    op.create_table('notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text),
        sa.Column('data', sa.JSON),
        sa.Column('read', sa.Boolean, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade():
    op.drop_table('notifications')
    op.drop_table('user_earnings')
    op.drop_index('uq_payments_active_content', table_name='payments')
    op.drop_table('payments')
    op.drop_table('post_performance')
    op.drop_table('published_posts')
    op.drop_table('content_performance')
    op.drop_table('content_files')
    op.drop_table('content_submissions')
    op.drop_table('campaign_participants')
    op.drop_table('campaign_applications')
    op.drop_table('campaigns')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (
        payment_status, post_status, content_type, content_status,
        participant_status, application_status, campaign_status, user_type,
    ):
        enum_type.drop(bind, checkfirst=True)
