"""initial_schema

Revision ID: 20261019_1200_initial
Revises: None
Create Date: 2026-10-19 12:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261019_1200_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    Create subscribers, admin users, newsletter issues, the delivery queue and idempotency records.
    """
    op.create_table(
        'users',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('username', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('user_id'),
        sa.UniqueConstraint('username')
    )

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('name', sa.String(length=256), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('subscribed_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table(
        'subscription_tokens',
        sa.Column('subscription_token', sa.String(length=25), nullable=False),
        sa.Column('subscriber_id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(['subscriber_id'], ['subscriptions.id']),
        sa.PrimaryKeyConstraint('subscription_token')
    )

    op.create_table(
        'newsletter_issues',
        sa.Column('newsletter_issue_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=512), nullable=False),
        sa.Column('text_content', sa.Text(), nullable=False),
        sa.Column('html_content', sa.Text(), nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('newsletter_issue_id')
    )

    op.create_table(
        'issue_delivery_queue',
        sa.Column('newsletter_issue_id', sa.Uuid(), nullable=False),
        sa.Column('subscriber_email', sa.String(length=320), nullable=False),
        sa.ForeignKeyConstraint(['newsletter_issue_id'], ['newsletter_issues.newsletter_issue_id']),
        sa.PrimaryKeyConstraint('newsletter_issue_id', 'subscriber_email')
    )

    op.create_table(
        'idempotency',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=50), nullable=False),
        sa.Column('response_status_code', sa.SmallInteger(), nullable=True),
        sa.Column('response_headers', sa.JSON(), nullable=True),
        sa.Column('response_body', sa.LargeBinary(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id']),
        sa.PrimaryKeyConstraint('user_id', 'idempotency_key')
    )


def downgrade() -> None:
    op.drop_table('idempotency')
    op.drop_table('issue_delivery_queue')
    op.drop_table('newsletter_issues')
    op.drop_table('subscription_tokens')
    op.drop_table('subscriptions')
    op.drop_table('users')
