"""Role → authority resolution."""

import pytest

from userhub.auth.roles import (
    ROLE_AUTHORITIES,
    USER_DELETE,
    USER_READ,
    Role,
    parse_role,
    resolve,
)
from userhub.domain.identity import Identity
from userhub.errors import UnknownRoleError


def test_every_role_has_authorities():
    assert set(ROLE_AUTHORITIES) == set(Role)
    for authorities in ROLE_AUTHORITIES.values():
        assert USER_READ in authorities


def test_resolve_is_case_insensitive():
    assert resolve("user") == resolve("USER") == (USER_READ,)
    assert resolve("Super_Admin") == ROLE_AUTHORITIES[Role.SUPER_ADMIN]


def test_resolve_is_pure():
    first = resolve("ADMIN")
    second = resolve("ADMIN")
    assert first == second
    assert isinstance(first, tuple)


def test_only_super_admin_may_delete():
    holders = [role for role, auth in ROLE_AUTHORITIES.items() if USER_DELETE in auth]
    assert holders == [Role.SUPER_ADMIN]


@pytest.mark.parametrize("name", ["ROOT", "", "ROLE_USER", " user"])
def test_unknown_role_never_defaults(name):
    with pytest.raises(UnknownRoleError):
        resolve(name)


def test_parse_role_passes_enum_through():
    assert parse_role(Role.HR) is Role.HR
    assert parse_role("manager") is Role.MANAGER


def test_identity_authorities_follow_role():
    identity = Identity(
        user_id="1234567890",
        first_name="Ann",
        last_name="Lee",
        username="alee",
        email="a@x.com",
        password_hash="x",
    )
    assert identity.authorities == (USER_READ,)
    promoted = identity.replace(role=Role.SUPER_ADMIN)
    assert promoted.authorities == ROLE_AUTHORITIES[Role.SUPER_ADMIN]
    assert identity.authorities == (USER_READ,)
