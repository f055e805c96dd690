"""create_membership_tables

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table('Projects',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )

    op.create_table('Teams',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )

    op.create_table('ProjectMembers',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('project_id', sa.Uuid(), nullable=False),
    sa.Column('user_id', sa.Uuid(), nullable=False),
    sa.Column('role', sa.String(length=50), nullable=False),
    sa.Column('joined_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['project_id'], ['Projects.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('project_id', 'user_id', name='uq_project_members_project_user')
    )
    op.create_index(op.f('ix_ProjectMembers_project_id'), 'ProjectMembers', ['project_id'], unique=False)
    op.create_index(op.f('ix_ProjectMembers_user_id'), 'ProjectMembers', ['user_id'], unique=False)

    op.create_table('TeamMembers',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('team_id', sa.Uuid(), nullable=False),
    sa.Column('user_id', sa.Uuid(), nullable=False),
    sa.Column('role', sa.String(length=50), nullable=False),
    sa.Column('joined_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['team_id'], ['Teams.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('team_id', 'user_id', name='uq_team_members_team_user')
    )
    op.create_index(op.f('ix_TeamMembers_team_id'), 'TeamMembers', ['team_id'], unique=False)
    op.create_index(op.f('ix_TeamMembers_user_id'), 'TeamMembers', ['user_id'], unique=False)

    op.create_table('TeamProjects',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('team_id', sa.Uuid(), nullable=False),
    sa.Column('project_id', sa.Uuid(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['team_id'], ['Teams.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['project_id'], ['Projects.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('team_id', 'project_id', name='uq_team_projects_team_project')
    )
    op.create_index(op.f('ix_TeamProjects_team_id'), 'TeamProjects', ['team_id'], unique=False)
    op.create_index(op.f('ix_TeamProjects_project_id'), 'TeamProjects', ['project_id'], unique=False)

    op.create_table('ProjectInvitations',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('project_id', sa.Uuid(), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('role', sa.String(length=50), nullable=False),
    sa.Column('status', sa.String(length=50), nullable=False),
    sa.Column('invited_by', sa.Uuid(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('expires_at', sa.DateTime(), nullable=False),
    sa.Column('accepted_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['project_id'], ['Projects.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_ProjectInvitations_project_id'), 'ProjectInvitations', ['project_id'], unique=False)
    op.create_index(op.f('ix_ProjectInvitations_email'), 'ProjectInvitations', ['email'], unique=False)
    op.create_index(op.f('ix_ProjectInvitations_status'), 'ProjectInvitations', ['status'], unique=False)
    # For the duplicate pending invitation check on create
    op.create_index('ix_project_invitations_project_email_status', 'ProjectInvitations', ['project_id', 'email', 'status'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index('ix_project_invitations_project_email_status', table_name='ProjectInvitations')
    op.drop_index(op.f('ix_ProjectInvitations_status'), table_name='ProjectInvitations')
    op.drop_index(op.f('ix_ProjectInvitations_email'), table_name='ProjectInvitations')
    op.drop_index(op.f('ix_ProjectInvitations_project_id'), table_name='ProjectInvitations')
    op.drop_table('ProjectInvitations')

    op.drop_index(op.f('ix_TeamProjects_project_id'), table_name='TeamProjects')
    op.drop_index(op.f('ix_TeamProjects_team_id'), table_name='TeamProjects')
    op.drop_table('TeamProjects')

    op.drop_index(op.f('ix_TeamMembers_user_id'), table_name='TeamMembers')
    op.drop_index(op.f('ix_TeamMembers_team_id'), table_name='TeamMembers')
    op.drop_table('TeamMembers')

    op.drop_index(op.f('ix_ProjectMembers_user_id'), table_name='ProjectMembers')
    op.drop_index(op.f('ix_ProjectMembers_project_id'), table_name='ProjectMembers')
    op.drop_table('ProjectMembers')

    op.drop_table('Teams')
    op.drop_table('Projects')
