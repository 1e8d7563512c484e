"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from booking_api.db.enums import TeamRole


class UserSession(BaseModel):
    """
    Session context for authenticated staff requests.

    Returned by the get_current_session dependency. The role comes from
    team membership, not the token, so role changes apply immediately.
    """
    user_id: UUID
    team_id: UUID
    role: TeamRole
    email: str
    display_name: str

    @property
    def is_admin(self) -> bool:
        return self.role.is_admin
