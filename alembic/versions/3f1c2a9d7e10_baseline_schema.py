"""baseline_schema

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import tenantdesk.db.models


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

GUID = tenantdesk.db.models.GUID
UTCDateTime = tenantdesk.db.models.UTCDateTime


def upgrade() -> None:
    """Create the account tree, identity, navigation and support tables."""
    op.create_table('accounts',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('account_type', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=True),
        sa.Column('parent_account_id', GUID(), nullable=True),
        sa.Column('settings', sa.JSON(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', UTCDateTime(), nullable=False),
        sa.Column('updated_at', UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(['parent_account_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )
    op.create_index('ix_account_parent', 'accounts', ['parent_account_id'], unique=False)

    op.create_table('account_paths',
        sa.Column('ancestor_id', GUID(), nullable=False),
        sa.Column('descendant_id', GUID(), nullable=False),
        sa.Column('depth', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['ancestor_id'], ['accounts.id'], ),
        sa.ForeignKeyConstraint(['descendant_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('ancestor_id', 'descendant_id')
    )
    op.create_index('ix_account_path_descendant', 'account_paths', ['descendant_id', 'depth'], unique=False)

    op.create_table('persons',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('password_salt', sa.String(length=64), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', UTCDateTime(), nullable=False),
        sa.Column('updated_at', UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table('profiles',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('person_id', GUID(), nullable=False),
        sa.Column('system_role', sa.String(length=30), nullable=True),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('avatar_url', sa.String(length=1024), nullable=True),
        sa.Column('preferences', sa.JSON(), nullable=False),
        sa.Column('created_at', UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(['person_id'], ['persons.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('person_id')
    )

    op.create_table('memberships',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('person_id', GUID(), nullable=False),
        sa.Column('account_id', GUID(), nullable=False),
        sa.Column('account_role', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('scope', sa.String(length=50), nullable=True),
        sa.Column('is_test_data', sa.Boolean(), nullable=False),
        sa.Column('created_at', UTCDateTime(), nullable=False),
        sa.Column('updated_at', UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.ForeignKeyConstraint(['person_id'], ['persons.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('person_id', 'account_id', name='uq_membership_person_account')
    )
    op.create_index('ix_membership_account_status', 'memberships', ['account_id', 'status'], unique=False)

    op.create_table('app_definitions',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('account_id', GUID(), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('icon', sa.String(length=100), nullable=True),
        sa.Column('min_role', sa.String(length=20), nullable=False),
        sa.Column('nav_items', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', UTCDateTime(), nullable=False),
        sa.Column('updated_at', UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'slug', name='uq_app_slug_per_account')
    )

    op.create_table('nav_overrides',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('account_id', GUID(), nullable=False),
        sa.Column('nav_key', sa.String(length=255), nullable=False),
        sa.Column('label', sa.String(length=255), nullable=True),
        sa.Column('hidden', sa.Boolean(), nullable=False),
        sa.Column('min_role', sa.String(length=20), nullable=True),
        sa.Column('default_entity_id', GUID(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'nav_key', name='uq_nav_override_key')
    )

    op.create_table('tickets',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('account_id', GUID(), nullable=False),
        sa.Column('subject', sa.String(length=500), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('priority', sa.String(length=20), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('opened_by_person_id', GUID(), nullable=True),
        sa.Column('assigned_to_person_id', GUID(), nullable=True),
        sa.Column('entity_type', sa.String(length=50), nullable=True),
        sa.Column('entity_id', GUID(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', UTCDateTime(), nullable=False),
        sa.Column('updated_at', UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.ForeignKeyConstraint(['assigned_to_person_id'], ['persons.id'], ),
        sa.ForeignKeyConstraint(['opened_by_person_id'], ['persons.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_ticket_account_status', 'tickets', ['account_id', 'status'], unique=False)
    op.create_index('ix_ticket_account_created', 'tickets', ['account_id', 'created_at'], unique=False)

    op.create_table('documents',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('account_id', GUID(), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', GUID(), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('content_type', sa.String(length=255), nullable=True),
        sa.Column('size_bytes', sa.Integer(), nullable=True),
        sa.Column('storage_path', sa.String(length=1024), nullable=False),
        sa.Column('uploaded_by_person_id', GUID(), nullable=True),
        sa.Column('created_at', UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.ForeignKeyConstraint(['uploaded_by_person_id'], ['persons.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_document_entity', 'documents', ['account_id', 'entity_type', 'entity_id'], unique=False)

    op.create_table('activity_events',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('account_id', GUID(), nullable=True),
        sa.Column('person_id', GUID(), nullable=True),
        sa.Column('request_id', sa.String(length=64), nullable=True),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=True),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('summary', sa.String(length=1000), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_activity_account_created', 'activity_events', ['account_id', 'created_at'], unique=False)

    op.create_table('audit_log',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('account_id', GUID(), nullable=True),
        sa.Column('person_id', GUID(), nullable=True),
        sa.Column('request_id', sa.String(length=64), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('before_data', sa.JSON(), nullable=True),
        sa.Column('after_data', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_account_created', 'audit_log', ['account_id', 'created_at'], unique=False)
    op.create_index('ix_audit_entity', 'audit_log', ['entity_type', 'entity_id'], unique=False)

    op.create_table('tenant_themes',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('account_id', GUID(), nullable=False),
        sa.Column('preset', sa.String(length=50), nullable=False),
        sa.Column('logo_url', sa.String(length=1024), nullable=True),
        sa.Column('tokens', sa.JSON(), nullable=False),
        sa.Column('dark_tokens', sa.JSON(), nullable=False),
        sa.Column('created_at', UTCDateTime(), nullable=False),
        sa.Column('updated_at', UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id')
    )

    op.create_table('impersonation_sessions',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('admin_person_id', GUID(), nullable=False),
        sa.Column('target_person_id', GUID(), nullable=False),
        sa.Column('target_account_id', GUID(), nullable=False),
        sa.Column('target_account_role', sa.String(length=20), nullable=False),
        sa.Column('reason', sa.String(length=1000), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('started_at', UTCDateTime(), nullable=False),
        sa.Column('expires_at', UTCDateTime(), nullable=False),
        sa.Column('ended_at', UTCDateTime(), nullable=True),
        sa.ForeignKeyConstraint(['admin_person_id'], ['persons.id'], ),
        sa.ForeignKeyConstraint(['target_account_id'], ['accounts.id'], ),
        sa.ForeignKeyConstraint(['target_person_id'], ['persons.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_impersonation_admin_status', 'impersonation_sessions', ['admin_person_id', 'status'], unique=False)

    op.create_table('error_events',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('account_id', GUID(), nullable=True),
        sa.Column('request_id', sa.String(length=64), nullable=True),
        sa.Column('function_name', sa.String(length=255), nullable=False),
        sa.Column('error_code', sa.String(length=50), nullable=False),
        sa.Column('message', sa.String(length=1000), nullable=False),
        sa.Column('stack_summary', sa.String(length=500), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_error_event_created', 'error_events', ['created_at'], unique=False)

    op.create_table('admin_counts',
        sa.Column('account_id', GUID(), nullable=False),
        sa.Column('counter_key', sa.String(length=50), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False),
        sa.Column('updated_at', UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('account_id', 'counter_key')
    )


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    op.drop_table('admin_counts')
    op.drop_index('ix_error_event_created', table_name='error_events')
    op.drop_table('error_events')
    op.drop_index('ix_impersonation_admin_status', table_name='impersonation_sessions')
    op.drop_table('impersonation_sessions')
    op.drop_table('tenant_themes')
    op.drop_index('ix_audit_entity', table_name='audit_log')
    op.drop_index('ix_audit_account_created', table_name='audit_log')
    op.drop_table('audit_log')
    op.drop_index('ix_activity_account_created', table_name='activity_events')
    op.drop_table('activity_events')
    op.drop_index('ix_document_entity', table_name='documents')
    op.drop_table('documents')
    op.drop_index('ix_ticket_account_created', table_name='tickets')
    op.drop_index('ix_ticket_account_status', table_name='tickets')
    op.drop_table('tickets')
    op.drop_table('nav_overrides')
    op.drop_table('app_definitions')
    op.drop_index('ix_membership_account_status', table_name='memberships')
    op.drop_table('memberships')
    op.drop_table('profiles')
    op.drop_table('persons')
    op.drop_index('ix_account_path_descendant', table_name='account_paths')
    op.drop_table('account_paths')
    op.drop_index('ix_account_parent', table_name='accounts')
    op.drop_table('accounts')
