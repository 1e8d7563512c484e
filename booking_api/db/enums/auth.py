"""Auth-related enums."""

from enum import Enum


class TeamRole(str, Enum):
    """
    Team member roles with increasing privilege levels.

    - MEMBER: Bookable staff; manages own availability and bookings
    - ADMIN: Manages services, rosters, holidays and completes bookings
    - SUPER_ADMIN: Team owner
    """

    MEMBER = "member"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_

    @property
    def is_admin(self) -> bool:
        return self in (TeamRole.ADMIN, TeamRole.SUPER_ADMIN)
