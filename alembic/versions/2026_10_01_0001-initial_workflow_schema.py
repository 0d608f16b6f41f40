"""Initial schema - directory, issues, tenders, bids, progress, documents, outbox.

Revision ID: initial_workflow_schema
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'initial_workflow_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUMS = {
    'actorrole': ('citizen', 'platform_admin', 'area_supervisor', 'department_admin', 'contractor'),
    'issuestage': (
        'reported', 'area_review', 'department_assigned', 'contractor_assigned',
        'in_progress', 'department_review', 'resolved',
    ),
    'issuepriority': ('low', 'medium', 'high', 'urgent'),
    'assignmenttype': ('admin_to_area', 'area_to_department', 'department_to_contractor'),
    'assignmentstatus': ('active', 'completed', 'reassigned', 'cancelled'),
    'tenderstage': (
        'created', 'bidding_open', 'bidding_closed', 'under_review', 'awarded',
        'work_in_progress', 'work_completed', 'verified', 'closed',
    ),
    'bidstatus': ('submitted', 'under_evaluation', 'accepted', 'rejected', 'withdrawn'),
    'recommendation': ('accept', 'reject', 'request_clarification'),
    'progresstype': ('update', 'milestone', 'completion', 'issue'),
    'progressstatus': ('draft', 'submitted', 'under_review', 'approved', 'rejected', 'requires_changes'),
    'documenttype': (
        'specification', 'drawing', 'contract', 'progress_report',
        'completion_certificate', 'invoice', 'other',
    ),
    'notificationkind': ('bid_accepted', 'work_completion_submitted'),
    'notificationstatus': ('pending', 'sent', 'failed'),
}


def enum(name: str) -> postgresql.ENUM:
    """Column type for an enum created up front."""
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def timestamps() -> list[sa.Column]:
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # Create enum types
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)

    # Directory
    op.create_table(
        'areas',
        *timestamps(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_areas_code', 'areas', ['code'], unique=True)
    op.create_index('ix_areas_is_active', 'areas', ['is_active'], unique=False)

    op.create_table(
        'departments',
        *timestamps(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('contact_phone', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_departments_code', 'departments', ['code'], unique=True)
    op.create_index('ix_departments_is_active', 'departments', ['is_active'], unique=False)

    op.create_table(
        'profiles',
        *timestamps(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('role', enum('actorrole'), nullable=False),
        sa.Column('assigned_area_id', sa.Integer(), nullable=True),
        sa.Column('assigned_department_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['assigned_area_id'], ['areas.id']),
        sa.ForeignKeyConstraint(['assigned_department_id'], ['departments.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)
    op.create_index('ix_profiles_role_department', 'profiles', ['role', 'assigned_department_id'], unique=False)
    op.create_index('ix_profiles_role_area', 'profiles', ['role', 'assigned_area_id'], unique=False)

    # Issues and the delegation chain
    op.create_table(
        'issues',
        *timestamps(),
        sa.Column('reporter_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('location', sa.String(length=500), nullable=True),
        sa.Column('priority', enum('issuepriority'), nullable=False),
        sa.Column('workflow_stage', enum('issuestage'), nullable=False),
        sa.Column('assigned_area_id', sa.Integer(), nullable=True),
        sa.Column('assigned_department_id', sa.Integer(), nullable=True),
        sa.Column('current_assignee_id', sa.Integer(), nullable=True),
        sa.Column('final_resolution_notes', sa.Text(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['reporter_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['assigned_area_id'], ['areas.id']),
        sa.ForeignKeyConstraint(['assigned_department_id'], ['departments.id']),
        sa.ForeignKeyConstraint(['current_assignee_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_issues_reporter_id', 'issues', ['reporter_id'], unique=False)
    op.create_index('ix_issues_workflow_stage', 'issues', ['workflow_stage'], unique=False)
    op.create_index('ix_issues_assigned_area_id', 'issues', ['assigned_area_id'], unique=False)
    op.create_index('ix_issues_assigned_department_id', 'issues', ['assigned_department_id'], unique=False)
    op.create_index('ix_issues_current_assignee_id', 'issues', ['current_assignee_id'], unique=False)
    op.create_index('ix_issues_stage_created', 'issues', ['workflow_stage', 'created_at'], unique=False)

    op.create_table(
        'issue_assignments',
        *timestamps(),
        sa.Column('issue_id', sa.Integer(), nullable=False),
        sa.Column('assigned_by', sa.Integer(), nullable=False),
        sa.Column('assigned_to', sa.Integer(), nullable=True),
        sa.Column('assigned_area_id', sa.Integer(), nullable=True),
        sa.Column('assigned_department_id', sa.Integer(), nullable=True),
        sa.Column('assignment_type', enum('assignmenttype'), nullable=False),
        sa.Column('assignment_notes', sa.Text(), nullable=True),
        sa.Column('status', enum('assignmentstatus'), nullable=False),
        sa.ForeignKeyConstraint(['issue_id'], ['issues.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_by'], ['profiles.id']),
        sa.ForeignKeyConstraint(['assigned_to'], ['profiles.id']),
        sa.ForeignKeyConstraint(['assigned_area_id'], ['areas.id']),
        sa.ForeignKeyConstraint(['assigned_department_id'], ['departments.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_issue_assignments_issue_id', 'issue_assignments', ['issue_id'], unique=False)
    op.create_index('ix_issue_assignments_assigned_to', 'issue_assignments', ['assigned_to'], unique=False)
    # One active assignment per (issue, tier)
    op.create_index(
        'uq_assignments_one_active_per_type',
        'issue_assignments',
        ['issue_id', 'assignment_type'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )

    # Tenders and bids
    op.create_table(
        'tenders',
        *timestamps(),
        sa.Column('title', sa.String(length=1000), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('department_id', sa.Integer(), nullable=False),
        sa.Column('source_issue_id', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('estimated_value', sa.Numeric(precision=15, scale=2), nullable=True),
        sa.Column('bid_deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('workflow_stage', enum('tenderstage'), nullable=False),
        sa.Column('awarded_contractor_id', sa.Integer(), nullable=True),
        sa.Column('awarded_amount', sa.Numeric(precision=15, scale=2), nullable=True),
        sa.Column('awarded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('work_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('work_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('verification_notes', sa.Text(), nullable=True),
        sa.Column('verified_by', sa.Integer(), nullable=True),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id']),
        sa.ForeignKeyConstraint(['source_issue_id'], ['issues.id']),
        sa.ForeignKeyConstraint(['created_by'], ['profiles.id']),
        sa.ForeignKeyConstraint(['awarded_contractor_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['verified_by'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tenders_department_id', 'tenders', ['department_id'], unique=False)
    op.create_index('ix_tenders_source_issue_id', 'tenders', ['source_issue_id'], unique=False)
    op.create_index('ix_tenders_workflow_stage', 'tenders', ['workflow_stage'], unique=False)
    op.create_index('ix_tenders_awarded_contractor_id', 'tenders', ['awarded_contractor_id'], unique=False)
    op.create_index('ix_tenders_stage_created', 'tenders', ['workflow_stage', 'created_at'], unique=False)

    op.create_table(
        'bids',
        *timestamps(),
        sa.Column('tender_id', sa.Integer(), nullable=False),
        sa.Column('bidder_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('proposal', sa.Text(), nullable=True),
        sa.Column('timeline_days', sa.Integer(), nullable=True),
        sa.Column('status', enum('bidstatus'), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['tender_id'], ['tenders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['bidder_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bids_tender_id', 'bids', ['tender_id'], unique=False)
    op.create_index('ix_bids_bidder_id', 'bids', ['bidder_id'], unique=False)
    op.create_index('ix_bids_tender_status', 'bids', ['tender_id', 'status'], unique=False)
    # At most one accepted bid per tender
    op.create_index(
        'uq_bids_one_accepted_per_tender',
        'bids',
        ['tender_id'],
        unique=True,
        postgresql_where=sa.text("status = 'accepted'"),
    )

    op.create_table(
        'bid_evaluations',
        *timestamps(),
        sa.Column('bid_id', sa.Integer(), nullable=False),
        sa.Column('evaluator_id', sa.Integer(), nullable=False),
        sa.Column('technical_score', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('financial_score', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('experience_score', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('total_score', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('evaluation_notes', sa.Text(), nullable=True),
        sa.Column('recommendation', enum('recommendation'), nullable=True),
        sa.ForeignKeyConstraint(['bid_id'], ['bids.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['evaluator_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('bid_id', 'evaluator_id', name='uq_bid_evaluations_bid_evaluator'),
    )
    op.create_index('ix_bid_evaluations_bid_id', 'bid_evaluations', ['bid_id'], unique=False)

    # Work progress
    op.create_table(
        'work_progress',
        *timestamps(),
        sa.Column('tender_id', sa.Integer(), nullable=False),
        sa.Column('contractor_id', sa.Integer(), nullable=False),
        sa.Column('progress_type', enum('progresstype'), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('progress_percentage', sa.Integer(), nullable=False),
        sa.Column('images', sa.JSON(), nullable=False),
        sa.Column('documents', sa.JSON(), nullable=False),
        sa.Column('location_notes', sa.Text(), nullable=True),
        sa.Column('quality_notes', sa.Text(), nullable=True),
        sa.Column('materials_used', sa.JSON(), nullable=False),
        sa.Column('labor_details', sa.Text(), nullable=True),
        sa.Column('challenges_faced', sa.Text(), nullable=True),
        sa.Column('next_steps', sa.Text(), nullable=True),
        sa.Column('estimated_completion_date', sa.Date(), nullable=True),
        sa.Column('is_milestone', sa.Boolean(), nullable=False),
        sa.Column('milestone_name', sa.String(length=255), nullable=True),
        sa.Column('requires_verification', sa.Boolean(), nullable=False),
        sa.Column('status', enum('progressstatus'), nullable=False),
        sa.Column('verified_by', sa.Integer(), nullable=True),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('verification_notes', sa.Text(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['tender_id'], ['tenders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['contractor_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['verified_by'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'progress_percentage >= 0 AND progress_percentage <= 100',
            name='ck_work_progress_percentage',
        ),
    )
    op.create_index('ix_work_progress_tender_id', 'work_progress', ['tender_id'], unique=False)
    op.create_index('ix_work_progress_contractor_id', 'work_progress', ['contractor_id'], unique=False)
    op.create_index('ix_work_progress_tender_milestone', 'work_progress', ['tender_id', 'is_milestone'], unique=False)

    # Documents
    op.create_table(
        'tender_documents',
        *timestamps(),
        sa.Column('tender_id', sa.Integer(), nullable=False),
        sa.Column('uploaded_by', sa.Integer(), nullable=False),
        sa.Column('document_type', enum('documenttype'), nullable=False),
        sa.Column('file_name', sa.String(length=500), nullable=False),
        sa.Column('file_url', sa.String(length=2000), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('mime_type', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('replaces_document_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['tender_id'], ['tenders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['uploaded_by'], ['profiles.id']),
        sa.ForeignKeyConstraint(['replaces_document_id'], ['tender_documents.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('replaces_document_id'),
    )
    op.create_index('ix_tender_documents_tender_id', 'tender_documents', ['tender_id'], unique=False)

    # Notification outbox
    op.create_table(
        'notifications',
        *timestamps(),
        sa.Column('recipient_id', sa.Integer(), nullable=False),
        sa.Column('kind', enum('notificationkind'), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('related_id', sa.Integer(), nullable=False),
        sa.Column('related_type', sa.String(length=50), nullable=False),
        sa.Column('status', enum('notificationstatus'), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_message', sa.String(length=1000), nullable=True),
        sa.ForeignKeyConstraint(['recipient_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_recipient_id', 'notifications', ['recipient_id'], unique=False)
    op.create_index('ix_notifications_status_created', 'notifications', ['status', 'created_at'], unique=False)
    op.create_index('ix_notifications_related', 'notifications', ['related_type', 'related_id'], unique=False)


def downgrade() -> None:
    # Drop tables
    op.drop_table('notifications')
    op.drop_table('tender_documents')
    op.drop_table('work_progress')
    op.drop_table('bid_evaluations')
    op.drop_table('bids')
    op.drop_table('tenders')
    op.drop_table('issue_assignments')
    op.drop_table('issues')
    op.drop_table('profiles')
    op.drop_table('departments')
    op.drop_table('areas')

    # Drop enum types
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)
