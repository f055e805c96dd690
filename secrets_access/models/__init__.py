"""SQLAlchemy ORM models package."""

from .invitation import ProjectInvitation
from .project import Project
from .project_member import ProjectMember
from .team import Team
from .team_member import TeamMember
from .team_project import TeamProject

__all__ = [
    "Project",
    "ProjectInvitation",
    "ProjectMember",
    "Team",
    "TeamMember",
    "TeamProject",
]
