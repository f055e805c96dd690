"""API routers package.

This package contains all FastAPI routers for the application.
Each router handles a specific domain of the API.
"""

from .invitations import router as invitations_router
from .project_members import router as project_members_router
from .projects import router as projects_router
from .teams import router as teams_router

__all__ = [
    "invitations_router",
    "project_members_router",
    "projects_router",
    "teams_router",
]
