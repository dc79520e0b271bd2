"""Add metering tables

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'b7c1d2e3f4a5'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

tier_enum = postgresql.ENUM('STARTER', 'PRO', 'AGENCY', name='tier', create_type=False)
status_enum = postgresql.ENUM('ACTIVE', 'TRIALING', 'PAST_DUE', 'CANCELED', name='subscriptionstatus', create_type=False)
action_type_enum = postgresql.ENUM('ENHANCEMENT', 'CONSULTATION', name='actiontype', create_type=False)


def upgrade() -> None:
    """Upgrade schema."""
    # Enum types are shared between tables, create them once
    bind = op.get_bind()
    tier_enum.create(bind, checkfirst=True)
    status_enum.create(bind, checkfirst=True)
    action_type_enum.create(bind, checkfirst=True)

    # Create subscriptions table
    op.create_table('subscriptions',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('tier', tier_enum, nullable=False),
        sa.Column('status', status_enum, nullable=False),
        sa.Column('current_period_start', postgresql.TIMESTAMPTZ(), nullable=True),
        sa.Column('current_period_end', postgresql.TIMESTAMPTZ(), nullable=True),
        sa.Column('stripe_customer_id', sa.String(length=255), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', postgresql.TIMESTAMPTZ(), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', postgresql.TIMESTAMPTZ(), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_subscriptions_id'), 'subscriptions', ['id'], unique=False)
    op.create_index(op.f('ix_subscriptions_user_id'), 'subscriptions', ['user_id'], unique=True)
    op.create_index(op.f('ix_subscriptions_stripe_customer_id'), 'subscriptions', ['stripe_customer_id'], unique=False)

    # Create usage_periods table
    op.create_table('usage_periods',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=True),
        sa.Column('enhancement_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('consultation_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('enhancement_limit', sa.Integer(), nullable=False),
        sa.Column('consultation_limit', sa.Integer(), nullable=False),
        sa.Column('created_at', postgresql.TIMESTAMPTZ(), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', postgresql.TIMESTAMPTZ(), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'period_start', name='uq_usage_periods_user_period')
    )
    op.create_index(op.f('ix_usage_periods_id'), 'usage_periods', ['id'], unique=False)
    op.create_index(op.f('ix_usage_periods_user_id'), 'usage_periods', ['user_id'], unique=False)

    # Create overage_events table (append-only)
    op.create_table('overage_events',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('action_type', action_type_enum, nullable=False),
        sa.Column('rate', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('occurred_at', postgresql.TIMESTAMPTZ(), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_overage_events_id'), 'overage_events', ['id'], unique=False)
    op.create_index(op.f('ix_overage_events_user_id'), 'overage_events', ['user_id'], unique=False)
    op.create_index(op.f('ix_overage_events_occurred_at'), 'overage_events', ['occurred_at'], unique=False)

    # Create usage_alerts table
    op.create_table('usage_alerts',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('action_type', action_type_enum, nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('threshold', sa.Integer(), nullable=False),
        sa.Column('email_delivered', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', postgresql.TIMESTAMPTZ(), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'action_type', 'period_start', 'threshold', name='uq_usage_alerts_key')
    )
    op.create_index(op.f('ix_usage_alerts_id'), 'usage_alerts', ['id'], unique=False)
    op.create_index(op.f('ix_usage_alerts_user_id'), 'usage_alerts', ['user_id'], unique=False)

    # Create demo_usage table
    op.create_table('demo_usage',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('credits_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('credits_limit', sa.Integer(), nullable=False),
        sa.Column('created_at', postgresql.TIMESTAMPTZ(), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', postgresql.TIMESTAMPTZ(), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'period_start', name='uq_demo_usage_user_period')
    )
    op.create_index(op.f('ix_demo_usage_id'), 'demo_usage', ['id'], unique=False)
    op.create_index(op.f('ix_demo_usage_user_id'), 'demo_usage', ['user_id'], unique=False)

    # Create stripe_webhooks table
    op.create_table('stripe_webhooks',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('event_id', sa.String(length=255), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('stripe_customer_id', sa.String(length=255), nullable=True),
        sa.Column('tier', sa.String(length=50), nullable=True),
        sa.Column('subscription_status', sa.String(length=50), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=True),
        sa.Column('processed_at', postgresql.TIMESTAMPTZ(), nullable=True),
        sa.Column('created_at', postgresql.TIMESTAMPTZ(), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', postgresql.TIMESTAMPTZ(), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_stripe_webhooks_id'), 'stripe_webhooks', ['id'], unique=False)
    op.create_index(op.f('ix_stripe_webhooks_event_id'), 'stripe_webhooks', ['event_id'], unique=True)
    op.create_index(op.f('ix_stripe_webhooks_user_id'), 'stripe_webhooks', ['user_id'], unique=False)
    op.create_index(op.f('ix_stripe_webhooks_stripe_customer_id'), 'stripe_webhooks', ['stripe_customer_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('stripe_webhooks')
    op.drop_table('demo_usage')
    op.drop_table('usage_alerts')
    op.drop_table('overage_events')
    op.drop_table('usage_periods')
    op.drop_table('subscriptions')

    bind = op.get_bind()
    action_type_enum.drop(bind, checkfirst=True)
    status_enum.drop(bind, checkfirst=True)
    tier_enum.drop(bind, checkfirst=True)
