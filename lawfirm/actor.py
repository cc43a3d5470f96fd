from dataclasses import dataclass

from lawfirm.models import UserRole


@dataclass(frozen=True)
class Actor:
    """The user on whose behalf a service operation runs."""

    user_id: str
    role: UserRole
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_lawyer(self) -> bool:
        return self.role == UserRole.LAWYER

    @property
    def is_client(self) -> bool:
        return self.role == UserRole.CLIENT
