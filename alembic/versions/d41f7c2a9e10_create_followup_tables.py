"""Create lead, follow-up journal and remind config tables

Revision ID: d41f7c2a9e10
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'd41f7c2a9e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'customer_leads',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('customer_nickname', sa.Text(), nullable=False),
        sa.Column('source_platform', sa.Text()),
        sa.Column('source_account', sa.Text()),
        sa.Column('contact_account', sa.Text()),
        sa.Column('contact_name', sa.Text(), nullable=True),
        sa.Column('lead_time', sa.DateTime(), nullable=False),
        sa.Column('intention_level', sa.Text(), nullable=False),
        sa.Column('follow_up_person', sa.Text()),
        sa.Column('current_follower', sa.Integer(), nullable=True),
        sa.Column('enable_followup', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('end_followup', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('end_followup_reason', sa.Text(), nullable=True),
        sa.Column('current_cycle_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('need_followup', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        'ix_customer_leads_tracking', 'customer_leads',
        ['intention_level', 'enable_followup', 'end_followup'],
    )

    op.create_table(
        'follow_up_records',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('lead_id', sa.Integer(),
                  sa.ForeignKey('customer_leads.id', ondelete='CASCADE'), nullable=False),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
        sa.Column('method', sa.Text(), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('outcome', sa.Text(), nullable=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_follow_up_records_lead_occurred', 'follow_up_records', ['lead_id', 'occurred_at'])

    config_table = op.create_table(
        'followup_remind_config',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('intention_level', sa.Text(), nullable=False, unique=True),
        sa.Column('interval_days', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.bulk_insert(config_table, [
        {'intention_level': 'High', 'interval_days': 3},
        {'intention_level': 'Medium', 'interval_days': 7},
        {'intention_level': 'Low', 'interval_days': 14},
    ])

    op.create_table(
        'remind_email_list',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.Text(), nullable=False, unique=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('remind_email_list')
    op.drop_table('followup_remind_config')
    op.drop_index('ix_follow_up_records_lead_occurred', table_name='follow_up_records')
    op.drop_table('follow_up_records')
    op.drop_index('ix_customer_leads_tracking', table_name='customer_leads')
    op.drop_table('customer_leads')
