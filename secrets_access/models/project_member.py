"""ProjectMember SQLAlchemy model for direct project memberships."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid

from ..database import Base


class ProjectMember(Base):
    """
    ProjectMember model representing a user's direct role on a project.

    Attributes:
        id: Unique identifier (UUID)
        project_id: FK to the project
        user_id: ID of the member user (issued by the identity provider)
        role: OWNER, ADMIN, MEMBER or VIEWER
        joined_at: Timestamp when membership was created
    """

    __tablename__ = "ProjectMembers"
    __allow_unmapped__ = True

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
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
    user_id = Column(
        Uuid,
        nullable=False,
        index=True,
    )

    role = Column(
        String(50),
        nullable=False,
    )

    joined_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation of ProjectMember."""
        return f"<ProjectMember(project_id={self.project_id}, user_id={self.user_id}, role={self.role})>"
