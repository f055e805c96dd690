"""TeamProject SQLAlchemy model linking teams to projects."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, UniqueConstraint, Uuid

from ..database import Base


class TeamProject(Base):
    """Association of a team with a project."""

    __tablename__ = "TeamProjects"
    __allow_unmapped__ = True

    __table_args__ = (
        UniqueConstraint("team_id", "project_id", name="uq_team_projects_team_project"),
    )

    id = Column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )

    team_id = Column(
        Uuid,
        ForeignKey("Teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id = Column(
        Uuid,
        ForeignKey("Projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<TeamProject(team_id={self.team_id}, project_id={self.project_id})>"
