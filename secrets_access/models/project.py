"""Project SQLAlchemy model."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Uuid

from ..database import Base


class Project(Base):
    """
    Project model, the resource whose secrets members can reach.

    Attributes:
        id: Unique identifier (UUID)
        name: Project name
        version: Membership version, bumped on every committed membership
            change and compared on write to detect concurrent edits
        created_at: Timestamp when project was created
        updated_at: Timestamp when project was last updated
    """

    __tablename__ = "Projects"
    __allow_unmapped__ = True

    # Primary key - UUID
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

    # Timestamps
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
        """String representation of Project."""
        return f"<Project(id={self.id}, name={self.name}, version={self.version})>"
