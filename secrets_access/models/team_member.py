"""TeamMember SQLAlchemy model."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid

from ..database import Base


class TeamMember(Base):
    """
    TeamMember model representing a user's role in a team.

    Attributes:
        id: Unique identifier (UUID)
        team_id: FK to the team
        user_id: ID of the member user
        role: TEAM_OWNER, TEAM_ADMIN or TEAM_MEMBER
        joined_at: Timestamp when membership was created
    """

    __tablename__ = "TeamMembers"
    __allow_unmapped__ = True

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
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
        return f"<TeamMember(team_id={self.team_id}, user_id={self.user_id}, role={self.role})>"
