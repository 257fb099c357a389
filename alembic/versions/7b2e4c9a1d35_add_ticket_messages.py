"""add_ticket_messages

Revision ID: 7b2e4c9a1d35
Revises: 3f1c2a9d7e10
Create Date: 2026-10-19 15:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import tenantdesk.db.models


# revision identifiers, used by Alembic.
revision: str = '7b2e4c9a1d35'
down_revision: Union[str, Sequence[str], None] = '3f1c2a9d7e10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

GUID = tenantdesk.db.models.GUID
UTCDateTime = tenantdesk.db.models.UTCDateTime


def upgrade() -> None:
    """Add replies and internal notes on tickets."""
    op.create_table('ticket_messages',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('account_id', GUID(), nullable=False),
        sa.Column('ticket_id', GUID(), nullable=False),
        sa.Column('person_id', GUID(), nullable=True),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('is_internal', sa.Boolean(), nullable=False),
        sa.Column('created_at', UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.ForeignKeyConstraint(['person_id'], ['persons.id'], ),
        sa.ForeignKeyConstraint(['ticket_id'], ['tickets.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_ticket_message_ticket_created', 'ticket_messages', ['ticket_id', 'created_at'], unique=False)


def downgrade() -> None:
    """Drop the ticket_messages table."""
    op.drop_index('ix_ticket_message_ticket_created', table_name='ticket_messages')
    op.drop_table('ticket_messages')
