"""Team SQLAlchemy model."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Uuid

from ..database import Base


class Team(Base):
    """
    Team model. Linking a team to a project gives its members VIEWER access.

    Attributes:
        id: Unique identifier (UUID)
        name: Team name
        version: Membership version for optimistic concurrency
        created_at: Timestamp when team was created
        updated_at: Timestamp when team was last updated
    """

    __tablename__ = "Teams"
    __allow_unmapped__ = True

    id = Column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )

    name = Column(
        String(255),
        nullable=False,
    )
    version = Column(
        Integer,
        nullable=False,
        default=0,
    )

    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name}, version={self.version})>"
