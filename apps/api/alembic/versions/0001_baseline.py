"""Baseline migration - tenants, billing lifecycle and CRM automation tables

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates organizations and billing state, the lifecycle audit log,
dunning email queue, buyer/seller profiles, CRM activities and
email sequences with their per-profile send queue.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create lifecycle and CRM tables."""

    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')  # For gen_random_uuid()

    # ==========================================================================
    # Organizations
    # ==========================================================================
    op.execute('''
        CREATE TABLE organizations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            contact_email VARCHAR(320),
            account_status VARCHAR(30) NOT NULL DEFAULT 'trial'
                CHECK (account_status IN (
                    'trial', 'trial_expired', 'payment_failed',
                    'unsubscribed', 'active', 'archived'
                )),
            trial_ends_at TIMESTAMPTZ,
            grace_period_ends_at TIMESTAMPTZ,
            archived_at TIMESTAMPTZ,
            read_only_reason TEXT,
            credit_spending_enabled BOOLEAN NOT NULL DEFAULT true,
            is_comped BOOLEAN NOT NULL DEFAULT false,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_organizations_status_trial ON organizations(account_status, trial_ends_at)')
    op.execute('CREATE INDEX idx_organizations_status_grace ON organizations(account_status, grace_period_ends_at)')

    # ==========================================================================
    # Billing profiles (1:1 with organizations)
    # ==========================================================================
    op.execute('''
        CREATE TABLE billing_profiles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL UNIQUE REFERENCES organizations(id) ON DELETE CASCADE,
            stripe_customer_id VARCHAR(255),
            stripe_subscription_id VARCHAR(255),
            subscription_status VARCHAR(30),
            subscription_plan VARCHAR(50),
            card_expires_at TIMESTAMPTZ,
            payment_failure_count INTEGER NOT NULL DEFAULT 0,
            last_payment_failed_at TIMESTAMPTZ,
            unsubscribed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    # ==========================================================================
    # Lifecycle audit log and dunning emails
    # ==========================================================================
    op.execute('''
        CREATE TABLE account_lifecycle_log (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            previous_status VARCHAR(30) NOT NULL,
            new_status VARCHAR(30) NOT NULL,
            reason TEXT,
            triggered_by VARCHAR(20) NOT NULL,
            metadata JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_lifecycle_log_org ON account_lifecycle_log(organization_id, created_at)')

    op.execute('''
        CREATE TABLE dunning_emails (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            email_type VARCHAR(30) NOT NULL,
            recipient_email VARCHAR(320),
            email_number INTEGER NOT NULL DEFAULT 1,
            metadata JSONB,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            sent_at TIMESTAMPTZ
        )
    ''')
    op.execute('CREATE INDEX idx_dunning_emails_org_type ON dunning_emails(organization_id, email_type, created_at)')

    # ==========================================================================
    # Buyer / seller profiles
    # ==========================================================================
    for table in ('seller_profiles', 'buyer_profiles'):
        op.execute(f'''
            CREATE TABLE {table} (
                id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
                name VARCHAR(255) NOT NULL,
                email VARCHAR(320) NOT NULL,
                phone VARCHAR(50),
                stage VARCHAR(30) NOT NULL DEFAULT 'lead',
                source VARCHAR(50) NOT NULL DEFAULT 'manual',
                notes TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                last_contact_at TIMESTAMPTZ
            )
        ''')
        op.execute(f'CREATE INDEX idx_{table}_org_stage ON {table}(organization_id, stage)')
        op.execute(f'CREATE INDEX idx_{table}_email ON {table}(email)')

    op.execute('''
        CREATE TABLE crm_activities (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            buyer_profile_id UUID REFERENCES buyer_profiles(id) ON DELETE CASCADE,
            seller_profile_id UUID REFERENCES seller_profiles(id) ON DELETE CASCADE,
            activity_type VARCHAR(30) NOT NULL,
            title VARCHAR(255) NOT NULL,
            description TEXT,
            metadata JSONB,
            created_by UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_crm_activities_one_profile
                CHECK ((buyer_profile_id IS NULL) <> (seller_profile_id IS NULL))
        )
    ''')
    op.execute('CREATE INDEX idx_crm_activities_buyer ON crm_activities(buyer_profile_id, created_at)')
    op.execute('CREATE INDEX idx_crm_activities_seller ON crm_activities(seller_profile_id, created_at)')

    # ==========================================================================
    # Email sequences
    # ==========================================================================
    op.execute('''
        CREATE TABLE email_sequences (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            name VARCHAR(200) NOT NULL,
            description TEXT,
            profile_type VARCHAR(10) NOT NULL CHECK (profile_type IN ('buyer', 'seller')),
            trigger_stage VARCHAR(30) NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_email_sequences_trigger ON email_sequences(organization_id, profile_type, trigger_stage)')

    op.execute('''
        CREATE TABLE email_sequence_steps (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            sequence_id UUID NOT NULL REFERENCES email_sequences(id) ON DELETE CASCADE,
            step_number INTEGER NOT NULL,
            template_key VARCHAR(100) NOT NULL,
            delay_hours INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT uq_sequence_step_number UNIQUE (sequence_id, step_number),
            CONSTRAINT ck_sequence_step_delay_non_negative CHECK (delay_hours >= 0),
            CONSTRAINT ck_sequence_step_number_positive CHECK (step_number >= 1)
        )
    ''')

    op.execute('''
        CREATE TABLE profile_email_queue (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            buyer_profile_id UUID REFERENCES buyer_profiles(id) ON DELETE CASCADE,
            seller_profile_id UUID REFERENCES seller_profiles(id) ON DELETE CASCADE,
            sequence_id UUID NOT NULL REFERENCES email_sequences(id) ON DELETE CASCADE,
            step_number INTEGER NOT NULL,
            template_key VARCHAR(100),
            scheduled_for TIMESTAMPTZ NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'sent', 'paused', 'cancelled')),
            cancelled_reason VARCHAR(50),
            sent_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_profile_email_queue_one_profile
                CHECK ((buyer_profile_id IS NULL) <> (seller_profile_id IS NULL))
        )
    ''')
    op.execute('CREATE INDEX idx_profile_email_queue_buyer_status ON profile_email_queue(buyer_profile_id, status)')
    op.execute('CREATE INDEX idx_profile_email_queue_seller_status ON profile_email_queue(seller_profile_id, status)')
    op.execute('CREATE INDEX idx_profile_email_queue_due ON profile_email_queue(status, scheduled_for)')


def downgrade() -> None:
    """Drop lifecycle and CRM tables."""
    for table in (
        'profile_email_queue',
        'email_sequence_steps',
        'email_sequences',
        'crm_activities',
        'buyer_profiles',
        'seller_profiles',
        'dunning_emails',
        'account_lifecycle_log',
        'billing_profiles',
        'organizations',
    ):
        op.execute(f'DROP TABLE IF EXISTS {table} CASCADE')
