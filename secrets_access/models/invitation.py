"""ProjectInvitation SQLAlchemy model for email invitations to projects."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Uuid

from ..database import Base


class ProjectInvitation(Base):
    """
    ProjectInvitation model representing an invitation sent to an email address.

    Attributes:
        id: Unique identifier (UUID)
        project_id: FK to the project being shared
        email: Invitee email address
        role: Project role granted on acceptance
        status: PENDING, ACCEPTED, REVOKED or EXPIRED
        invited_by: ID of the inviting user
        created_at: Timestamp when invitation was created
        expires_at: Timestamp after which the invitation can no longer be accepted
        accepted_at: Timestamp when invitation was accepted
    """

    __tablename__ = "ProjectInvitations"
    __allow_unmapped__ = True

    __table_args__ = (
        # For the duplicate pending invitation check on create
        Index("ix_project_invitations_project_email_status", "project_id", "email", "status"),
    )

    id = Column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )

    project_id = Column(
        Uuid,
        ForeignKey("Projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email = Column(
        String(255),
        nullable=False,
        index=True,
    )

    role = Column(
        String(50),
        nullable=False,
    )
    status = Column(
        String(50),
        nullable=False,
        default="PENDING",
        index=True,
    )
    invited_by = Column(
        Uuid,
        nullable=False,
    )

    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    expires_at = Column(
        DateTime,
        nullable=False,
    )
    accepted_at = Column(
        DateTime,
        nullable=True,
    )

    def __repr__(self) -> str:
        """String representation of ProjectInvitation."""
        return f"<ProjectInvitation(id={self.id}, project_id={self.project_id}, status={self.status})>"
