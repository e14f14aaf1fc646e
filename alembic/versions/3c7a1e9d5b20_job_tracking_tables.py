"""job_tracking_tables

Revision ID: 3c7a1e9d5b20
Revises: 
Create Date: 2026-10-19 09:12:44.120391

Creates the discovery, interest and CRM tables. Dedup keys are unique
constraints so concurrent writers are resolved by the store:
external_jobs(canonical_url), external_jobs(provider, provider_job_id),
user_job_items(user_id, external_job_id), crm_companies(user_id, normalized_name),
crm_applications(user_id, external_job_id).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '3c7a1e9d5b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade() -> None:
    """Create tables that do not exist yet; existing tables are left untouched."""
    if not table_exists('users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('password_hash', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)

    if not table_exists('external_jobs'):
        op.create_table('external_jobs',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('provider', sa.String(), nullable=False),
            sa.Column('provider_job_id', sa.String(), nullable=True),
            sa.Column('canonical_url', sa.String(), nullable=True),
            sa.Column('title', sa.String(), nullable=False),
            sa.Column('company_name', sa.String(), nullable=False),
            sa.Column('location', sa.String(), nullable=True),
            sa.Column('location_type', sa.String(), nullable=True),
            sa.Column('description_snippet', sa.Text(), nullable=True),
            sa.Column('posted_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('apply_url', sa.String(), nullable=True),
            sa.Column('salary_min', sa.Integer(), nullable=True),
            sa.Column('salary_max', sa.Integer(), nullable=True),
            sa.Column('salary_currency', sa.String(length=3), nullable=False),
            sa.Column('raw', sa.JSON(), nullable=True),
            sa.Column('ingested_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('canonical_url', name='uq_external_jobs_canonical_url'),
            sa.UniqueConstraint('provider', 'provider_job_id', name='uq_external_jobs_provider_job')
        )
        op.create_index('idx_external_jobs_company_title', 'external_jobs', ['company_name', 'title'], unique=False)
        op.create_index(op.f('ix_external_jobs_company_name'), 'external_jobs', ['company_name'], unique=False)
        op.create_index(op.f('ix_external_jobs_ingested_at'), 'external_jobs', ['ingested_at'], unique=False)
        op.create_index(op.f('ix_external_jobs_provider'), 'external_jobs', ['provider'], unique=False)

    if not table_exists('user_job_items'):
        op.create_table('user_job_items',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('external_job_id', sa.String(), nullable=False),
            sa.Column('state', sa.String(), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(['external_job_id'], ['external_jobs.id'], ),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'external_job_id', name='uq_user_job_items_user_job')
        )
        op.create_index('idx_user_job_items_user_state', 'user_job_items', ['user_id', 'state'], unique=False)
        op.create_index(op.f('ix_user_job_items_external_job_id'), 'user_job_items', ['external_job_id'], unique=False)
        op.create_index(op.f('ix_user_job_items_id'), 'user_job_items', ['id'], unique=False)
        op.create_index(op.f('ix_user_job_items_user_id'), 'user_job_items', ['user_id'], unique=False)

    if not table_exists('crm_companies'):
        op.create_table('crm_companies',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('normalized_name', sa.String(), nullable=False),
            sa.Column('industry', sa.String(), nullable=True),
            sa.Column('location', sa.String(), nullable=True),
            sa.Column('website', sa.String(), nullable=True),
            sa.Column('linkedin_url', sa.String(), nullable=True),
            sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'normalized_name', name='uq_crm_companies_user_name')
        )
        op.create_index(op.f('ix_crm_companies_id'), 'crm_companies', ['id'], unique=False)
        op.create_index(op.f('ix_crm_companies_user_id'), 'crm_companies', ['user_id'], unique=False)

    if not table_exists('crm_applications'):
        op.create_table('crm_applications',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('company_id', sa.Integer(), nullable=False),
            sa.Column('external_job_id', sa.String(), nullable=True),
            sa.Column('job_title', sa.String(), nullable=False),
            sa.Column('job_url', sa.String(), nullable=True),
            sa.Column('job_description', sa.Text(), nullable=True),
            sa.Column('salary_min', sa.Integer(), nullable=True),
            sa.Column('salary_max', sa.Integer(), nullable=True),
            sa.Column('salary_currency', sa.String(length=3), nullable=False),
            sa.Column('location_type', sa.String(), nullable=True),
            sa.Column('work_location', sa.String(), nullable=True),
            sa.Column('application_date', sa.DateTime(timezone=True), nullable=True),
            sa.Column('source', sa.String(), nullable=True),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('priority', sa.String(), nullable=False),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.ForeignKeyConstraint(['company_id'], ['crm_companies.id'], ),
            sa.ForeignKeyConstraint(['external_job_id'], ['external_jobs.id'], ),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'external_job_id', name='uq_crm_applications_user_job')
        )
        op.create_index('idx_crm_applications_user_created', 'crm_applications', ['user_id', 'created_at'], unique=False)
        op.create_index(op.f('ix_crm_applications_company_id'), 'crm_applications', ['company_id'], unique=False)
        op.create_index(op.f('ix_crm_applications_created_at'), 'crm_applications', ['created_at'], unique=False)
        op.create_index(op.f('ix_crm_applications_external_job_id'), 'crm_applications', ['external_job_id'], unique=False)
        op.create_index(op.f('ix_crm_applications_id'), 'crm_applications', ['id'], unique=False)
        op.create_index(op.f('ix_crm_applications_status'), 'crm_applications', ['status'], unique=False)
        op.create_index(op.f('ix_crm_applications_user_id'), 'crm_applications', ['user_id'], unique=False)

    # Legacy table may already exist in older deployments
    if not table_exists('companies'):
        op.create_table('companies',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('job_title', sa.String(), nullable=True),
            sa.Column('job_posting_url', sa.String(), nullable=True),
            sa.Column('location', sa.String(), nullable=True),
            sa.Column('salary_range', sa.String(), nullable=True),
            sa.Column('status', sa.String(), nullable=True),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('referral_source', sa.String(), nullable=True),
            sa.Column('priority', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_companies_id'), 'companies', ['id'], unique=False)
        op.create_index(op.f('ix_companies_user_id'), 'companies', ['user_id'], unique=False)

    if not table_exists('crm_tracking_outcomes'):
        op.create_table('crm_tracking_outcomes',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('external_job_id', sa.String(), nullable=False),
            sa.Column('application_id', sa.Integer(), nullable=True),
            sa.Column('company_id', sa.Integer(), nullable=True),
            sa.Column('company_created', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('steps_completed', sa.JSON(), nullable=False),
            sa.Column('mirror_status', sa.String(), nullable=False),
            sa.Column('mirror_error', sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(['application_id'], ['crm_applications.id'], ),
            sa.ForeignKeyConstraint(['company_id'], ['crm_companies.id'], ),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_tracking_outcomes_user_mirror', 'crm_tracking_outcomes', ['user_id', 'mirror_status'], unique=False)
        op.create_index(op.f('ix_crm_tracking_outcomes_id'), 'crm_tracking_outcomes', ['id'], unique=False)
        op.create_index(op.f('ix_crm_tracking_outcomes_user_id'), 'crm_tracking_outcomes', ['user_id'], unique=False)


def downgrade() -> None:
    """Drop job tracking tables. The legacy companies table is kept."""
    op.drop_table('crm_tracking_outcomes')
    op.drop_table('crm_applications')
    op.drop_table('crm_companies')
    op.drop_table('user_job_items')
    op.drop_table('external_jobs')
