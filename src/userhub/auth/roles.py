"""Roles and the authorities they grant.

Learn: A role is a fixed enum member; its authorities live in one lookup
table so there is exactly one place that says what a role may do. An
identity never stores authorities of its own — they are always derived
from the role (see Identity.authorities).
"""

import enum

from userhub.errors import UnknownRoleError

USER_READ = "user:read"
USER_CREATE = "user:create"
USER_UPDATE = "user:update"
USER_DELETE = "user:delete"


class Role(str, enum.Enum):
    USER = "USER"
    HR = "HR"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


ROLE_AUTHORITIES: dict[Role, tuple[str, ...]] = {
    Role.USER: (USER_READ,),
    Role.HR: (USER_READ, USER_UPDATE),
    Role.MANAGER: (USER_READ, USER_UPDATE),
    Role.ADMIN: (USER_READ, USER_CREATE, USER_UPDATE),
    Role.SUPER_ADMIN: (USER_READ, USER_CREATE, USER_UPDATE, USER_DELETE),
}

DEFAULT_ROLE = Role.USER


def parse_role(name: str) -> Role:
    """Match a role name case-insensitively. Raises UnknownRoleError."""
    if isinstance(name, Role):
        return name
    try:
        return Role[(name or "").upper()]
    except KeyError:
        raise UnknownRoleError(name) from None


def resolve(name: str) -> tuple[str, ...]:
    """Return the authorities granted by the named role."""
    return ROLE_AUTHORITIES[parse_role(name)]
