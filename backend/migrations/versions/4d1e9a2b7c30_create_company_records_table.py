"""create company_records table

Revision ID: 4d1e9a2b7c30
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4d1e9a2b7c30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

FLOAT_COLUMNS = (
    'arr_run_rate', 'carr', 'revenue_2024', 'revenue_2023', 'revenue_2022',
    'monthly_burn', 'cash', 'runway', 'raising', 'raised', 'last_round_valuation',
    'acv', 'acv_2', 'logo_churn_annual',
    'cac', 'payback_period', 'ltv_to_cac', 'gross_margin', 'saas_recurring_percent', 'nrr',
)
INTEGER_COLUMNS = ('customer_count', 'customer_count_2', 'team_size', 'year_founded')
TEXT_COLUMNS = (
    'description', 'competition', 'revenue_notes', 'funding_notes',
    'good', 'challenges', 'needs_action',
)


def upgrade() -> None:
    op.create_table(
        'company_records',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('company_name', sa.String(), nullable=True),
        sa.Column('website', sa.String(), nullable=True),
        sa.Column('doc_url', sa.String(), nullable=True),
        sa.Column('date_created', sa.DateTime(timezone=True), nullable=False),
        *[sa.Column(name, sa.Float(), nullable=True) for name in FLOAT_COLUMNS],
        *[sa.Column(name, sa.Integer(), nullable=True) for name in INTEGER_COLUMNS],
        sa.Column('location', sa.String(), nullable=True),
        *[sa.Column(name, sa.Text(), nullable=True) for name in TEXT_COLUMNS],
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_company_records_company_name'), 'company_records', ['company_name'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_company_records_company_name'), table_name='company_records')
    op.drop_table('company_records')
