"""Role hierarchies for projects and teams.

Two distinct enums share one ranking capability. Each hierarchy has a
strict total order (higher priority = more authority) and exactly one top
role. Roles from different hierarchies are never comparable: doing so is
a caller error and raises TypeError.

Project roles: OWNER(4) > ADMIN(3) > MEMBER(2) > VIEWER(1)
Team roles:    TEAM_OWNER(3) > TEAM_ADMIN(2) > TEAM_MEMBER(1)
"""

from enum import Enum
from typing import Dict, List, Protocol, Type, TypeVar, Union
from uuid import UUID


class RoleScope(str, Enum):
    """Which kind of resource a role hierarchy governs."""

    PROJECT = "project"
    TEAM = "team"


R = TypeVar("R", bound="RankedRole")


class RankedRole:
    """
    Ranking behaviour shared by ProjectRole and TeamRole.

    Comparison operators use priority, not the string value, and refuse
    to compare across hierarchies.
    """

    @property
    def priority(self) -> int:
        return _PRIORITIES[type(self)][self]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def scope(self) -> RoleScope:
        return _SCOPES[type(self)]

    @property
    def is_top(self) -> bool:
        return self is type(self).top()

    @classmethod
    def top(cls: Type[R]) -> R:
        """The single highest role of this hierarchy."""
        return max(cls, key=lambda role: role.priority)

    @classmethod
    def roles_descending(cls: Type[R]) -> List[R]:
        return sorted(cls, key=lambda role: role.priority, reverse=True)

    @classmethod
    def fallback_after_transfer(cls: Type[R]) -> R:
        """Role a previous owner holds after handing ownership over."""
        return cls.roles_descending()[1]

    def at_least(self, other: "RankedRole") -> bool:
        return self >= other

    def _check_comparable(self, other: object) -> None:
        if type(other) is not type(self):
            raise TypeError(
                f"Cannot compare {type(self).__name__} with {type(other).__name__}"
            )

    def __lt__(self, other: object) -> bool:
        self._check_comparable(other)
        return self.priority < other.priority

    def __le__(self, other: object) -> bool:
        self._check_comparable(other)
        return self.priority <= other.priority

    def __gt__(self, other: object) -> bool:
        self._check_comparable(other)
        return self.priority > other.priority

    def __ge__(self, other: object) -> bool:
        self._check_comparable(other)
        return self.priority >= other.priority


class ProjectRole(RankedRole, str, Enum):
    """Project role enumeration, highest authority first."""

    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


class TeamRole(RankedRole, str, Enum):
    """Team role enumeration, highest authority first."""

    TEAM_OWNER = "TEAM_OWNER"
    TEAM_ADMIN = "TEAM_ADMIN"
    TEAM_MEMBER = "TEAM_MEMBER"


AnyRole = Union[ProjectRole, TeamRole]


_PRIORITIES: Dict[type, Dict[RankedRole, int]] = {
    ProjectRole: {
        ProjectRole.OWNER: 4,
        ProjectRole.ADMIN: 3,
        ProjectRole.MEMBER: 2,
        ProjectRole.VIEWER: 1,
    },
    TeamRole: {
        TeamRole.TEAM_OWNER: 3,
        TeamRole.TEAM_ADMIN: 2,
        TeamRole.TEAM_MEMBER: 1,
    },
}

_DISPLAY_NAMES: Dict[RankedRole, str] = {
    ProjectRole.OWNER: "Owner",
    ProjectRole.ADMIN: "Admin",
    ProjectRole.MEMBER: "Member",
    ProjectRole.VIEWER: "Viewer",
    TeamRole.TEAM_OWNER: "Team Owner",
    TeamRole.TEAM_ADMIN: "Team Admin",
    TeamRole.TEAM_MEMBER: "Team Member",
}

_SCOPES: Dict[type, RoleScope] = {
    ProjectRole: RoleScope.PROJECT,
    TeamRole: RoleScope.TEAM,
}


def priority(role: AnyRole) -> int:
    """Numeric authority of a role within its own hierarchy."""
    return role.priority


def parse_role(value: str) -> AnyRole:
    """
    Parse a role string into the hierarchy that defines it.

    Args:
        value: Role name such as "ADMIN" or "TEAM_ADMIN" (case-insensitive)

    Returns:
        The matching ProjectRole or TeamRole member

    Raises:
        ValueError: If neither hierarchy defines the value
    """
    normalized = value.strip().upper()
    for hierarchy in (ProjectRole, TeamRole):
        if normalized in hierarchy.__members__:
            return hierarchy[normalized]
    raise ValueError(f"Unknown role: {value!r}")


def role_type_for(scope: RoleScope) -> Type[RankedRole]:
    return ProjectRole if scope == RoleScope.PROJECT else TeamRole


class RoleHolder(Protocol):
    """Anything carrying a user and a role: member records, effective access."""

    user_id: UUID
    role: AnyRole
