"""The Identity record.

Learn: Identity is a frozen dataclass — there is no "save on mutation".
Changes are made by building a new record with dataclasses.replace()
and handing it to the repository explicitly.

The authority set is not a field: it is read from the role table every
time, so it can never drift from the role.
"""

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from userhub.auth.roles import DEFAULT_ROLE, ROLE_AUTHORITIES, Role


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Identity:
    user_id: str
    first_name: str
    last_name: str
    username: str
    email: str
    password_hash: str = dataclasses.field(repr=False)
    role: Role = DEFAULT_ROLE
    is_active: bool = True
    is_not_locked: bool = True
    profile_image_url: Optional[str] = None
    join_date: datetime = dataclasses.field(default_factory=utcnow)
    last_login_date: Optional[datetime] = None
    last_login_date_display: Optional[datetime] = None
    id: Optional[int] = None  # assigned by the repository on first save

    @property
    def authorities(self) -> tuple[str, ...]:
        return ROLE_AUTHORITIES[self.role]

    @property
    def is_locked(self) -> bool:
        return not self.is_not_locked

    def replace(self, **changes) -> "Identity":
        """Copy with changes. id, user_id and join_date are fixed once set."""
        for fixed in ("id", "user_id", "join_date"):
            if fixed in changes and getattr(self, fixed) is not None:
                if changes[fixed] != getattr(self, fixed):
                    raise ValueError(f"{fixed} cannot change once assigned")
        return dataclasses.replace(self, **changes)

    def stamp_login(self, now: datetime) -> "Identity":
        """Shift last login into the display slot and record a new one."""
        return self.replace(
            last_login_date_display=self.last_login_date,
            last_login_date=now,
        )
