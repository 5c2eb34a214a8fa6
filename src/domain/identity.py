from dataclasses import dataclass

ADMIN_ROLE = "admin"
USER_ROLE = "user"


@dataclass(frozen=True)
class Requester:
    """Authenticated identity handed over by the auth layer."""

    user_id: str
    role: str = USER_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    def can_access(self, owner_id: str) -> bool:
        return self.is_admin or self.user_id == owner_id
