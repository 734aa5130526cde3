"""UserService — registration, updates, reset, images and the login flow.

Learn: These run against InMemoryUserRepository with a fake clock on the
attempt tracker, so lockout windows are exercised without sleeping.
"""

import asyncio

import pytest

from userhub.auth.roles import ROLE_AUTHORITIES, USER_READ, Role
from userhub.errors import (
    AccountDisabledError,
    AccountLockedError,
    EmailConflictError,
    EmailNotFoundError,
    IdentityNotFoundError,
    InvalidCredentialsError,
    UnknownRoleError,
    UsernameConflictError,
)

PASSWORD = "correct-horse"  # make_user() default


# ─── Registration ───────────────────────────────────────


@pytest.mark.asyncio
async def test_register_creates_default_user(service, repo, hasher):
    issued = await service.register("Ann", "Lee", "alee", "a@x.com")
    identity = issued.identity

    assert identity.id is not None
    assert len(identity.user_id) == 10 and identity.user_id.isdigit()
    assert identity.role is Role.USER
    assert identity.authorities == (USER_READ,)
    assert identity.is_active and identity.is_not_locked
    assert identity.profile_image_url == "https://robohash.org/alee"
    assert identity.last_login_date is None

    assert len(issued.password) == 10 and issued.password.isalnum()
    assert identity.password_hash != issued.password
    assert hasher.verify(issued.password, identity.password_hash)
    assert await repo.find_by_username("alee") == identity


@pytest.mark.asyncio
async def test_register_generates_distinct_secrets(service):
    first = await service.register("Ann", "Lee", "alee", "a@x.com")
    second = await service.register("Bob", "Ray", "bray", "b@x.com")
    assert first.identity.user_id != second.identity.user_id
    assert first.password != second.password


@pytest.mark.asyncio
async def test_register_duplicate_username_does_not_write(service, repo):
    await service.register("Ann", "Lee", "alee", "a@x.com")
    saves = repo.saves
    with pytest.raises(UsernameConflictError):
        await service.register("Ann", "Other", "alee", "other@x.com")
    assert repo.saves == saves
    assert len(await repo.find_all()) == 1


@pytest.mark.asyncio
async def test_register_duplicate_email(service, repo):
    await service.register("Ann", "Lee", "alee", "a@x.com")
    with pytest.raises(EmailConflictError):
        await service.register("Bob", "Ray", "bray", "a@x.com")
    assert await repo.find_by_username("bray") is None


@pytest.mark.asyncio
async def test_concurrent_registrations_keep_usernames_unique(service, repo):
    results = await asyncio.gather(
        *(service.register("Ann", "Lee", "alee", f"a{i}@x.com") for i in range(5)),
        return_exceptions=True,
    )
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 4
    assert all(isinstance(r, UsernameConflictError) for r in failures)
    assert len(await repo.find_all()) == 1


# ─── Administrative create ──────────────────────────────


@pytest.mark.asyncio
async def test_add_new_with_role_and_flags(service):
    issued = await service.add_new(
        "Hal", "Ross", "hross", "h@x.com", role="hr", is_active=False, is_not_locked=False
    )
    identity = issued.identity
    assert identity.role is Role.HR
    assert identity.authorities == ROLE_AUTHORITIES[Role.HR]
    assert not identity.is_active
    assert identity.is_locked


@pytest.mark.asyncio
async def test_add_new_unknown_role_writes_nothing(service, repo):
    with pytest.raises(UnknownRoleError):
        await service.add_new(
            "X", "Y", "xy", "xy@x.com", role="ROOT", is_active=True, is_not_locked=True
        )
    assert repo.saves == 0


@pytest.mark.asyncio
async def test_add_new_with_profile_image(service, images):
    issued = await service.add_new(
        "Ann", "Lee", "alee", "a@x.com",
        role=Role.ADMIN, is_active=True, is_not_locked=True,
        profile_image=b"\xff\xd8jpeg",
    )
    assert issued.identity.profile_image_url == "http://test/api/v1/users/image/alee/alee.jpg"
    assert images.read("alee/alee.jpg") == b"\xff\xd8jpeg"


# ─── Updates ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_update_changes_fields_and_recomputes_authorities(service, make_user):
    original = await make_user("alee", "a@x.com")
    updated = await service.update(
        "alee", "Annie", "Lee", "annie", "annie@x.com",
        role="SUPER_ADMIN", is_not_locked=True, is_active=True,
    )
    assert updated.id == original.id
    assert updated.user_id == original.user_id
    assert updated.join_date == original.join_date
    assert updated.password_hash == original.password_hash
    assert updated.username == "annie"
    assert updated.authorities == ROLE_AUTHORITIES[Role.SUPER_ADMIN]


@pytest.mark.asyncio
async def test_update_may_keep_own_username_and_email(service, make_user):
    await make_user("alee", "a@x.com")
    updated = await service.update(
        "alee", "Ann", "Lee-Smith", "alee", "a@x.com",
        role="USER", is_not_locked=True, is_active=True,
    )
    assert updated.last_name == "Lee-Smith"


@pytest.mark.asyncio
async def test_update_unknown_user(service):
    with pytest.raises(IdentityNotFoundError):
        await service.update(
            "ghost", "G", "H", "ghost", "g@x.com",
            role="USER", is_not_locked=True, is_active=True,
        )


@pytest.mark.asyncio
async def test_update_unknown_role_writes_nothing(service, repo, make_user):
    await make_user("alee", "a@x.com")
    saves = repo.saves
    with pytest.raises(UnknownRoleError):
        await service.update(
            "alee", "Ann", "Lee", "alee", "a@x.com",
            role="GOD", is_not_locked=True, is_active=True,
        )
    assert repo.saves == saves


@pytest.mark.asyncio
async def test_admin_unlock_resets_failure_count(service, attempts, make_user):
    await make_user("alee", "a@x.com", is_not_locked=False)
    for _ in range(5):
        attempts.record_failure("alee")

    await service.update(
        "alee", "Ann", "Lee", "alee", "a@x.com",
        role="USER", is_not_locked=True, is_active=True,
    )
    assert attempts.attempts("alee") == 0

    result = await service.login("alee", PASSWORD)
    assert result.identity.is_not_locked


# ─── Password reset and delete ──────────────────────────


@pytest.mark.asyncio
async def test_reset_password_replaces_hash(service, hasher, make_user):
    original = await make_user("alee", "a@x.com")
    issued = await service.reset_password("a@x.com")

    assert issued.identity.id == original.id
    assert issued.identity.password_hash != original.password_hash
    assert hasher.verify(issued.password, issued.identity.password_hash)
    assert not hasher.verify(PASSWORD, issued.identity.password_hash)


@pytest.mark.asyncio
async def test_reset_password_unknown_email_does_not_write(service, repo, make_user):
    await make_user("alee", "a@x.com")
    saves = repo.saves
    with pytest.raises(EmailNotFoundError) as exc:
        await service.reset_password("nobody@x.com")
    assert str(exc.value) == "No user found for email: nobody@x.com"
    assert repo.saves == saves


@pytest.mark.asyncio
async def test_delete(service, repo, make_user):
    alee = await make_user("alee", "a@x.com")
    await service.delete(alee.id)
    assert await repo.find_by_username("alee") is None
    # Deleting again is a no-op.
    await service.delete(alee.id)


# ─── Queries ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_directory_queries(service, make_user):
    await make_user("alee", "a@x.com")
    await make_user("bray", "b@x.com")

    assert {i.username for i in await service.list_users()} == {"alee", "bray"}
    assert (await service.find_by_email("b@x.com")).username == "bray"
    assert await service.find_by_username("nobody") is None


# ─── Profile images ─────────────────────────────────────


@pytest.mark.asyncio
async def test_profile_image_overwrites_previous(service, make_user):
    await make_user("alee", "a@x.com")
    await service.associate_profile_image("alee", b"first")
    identity = await service.associate_profile_image("alee", b"second")

    assert identity.profile_image_url.endswith("/image/alee/alee.jpg")
    assert await service.read_profile_image("alee", "alee.jpg") == b"second"


@pytest.mark.asyncio
async def test_profile_image_unknown_user(service):
    with pytest.raises(IdentityNotFoundError):
        await service.associate_profile_image("ghost", b"x")


# ─── Login ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_login_success_stamps_and_issues_token(service, tokens, make_user):
    alee = await make_user("alee", "a@x.com")
    result = await service.login("alee", PASSWORD)

    assert result.identity.last_login_date is not None
    assert result.identity.last_login_date_display is None
    claims = tokens.verify(result.token)
    assert claims.user_id == alee.user_id
    assert claims.authorities == (USER_READ,)

    second = await service.login("alee", PASSWORD)
    assert second.identity.last_login_date_display == result.identity.last_login_date
    assert second.token != result.token


@pytest.mark.asyncio
async def test_login_wrong_password(service, attempts, make_user):
    await make_user("alee", "a@x.com")
    with pytest.raises(InvalidCredentialsError):
        await service.login("alee", "wrong")
    assert attempts.attempts("alee") == 1


@pytest.mark.asyncio
async def test_login_unknown_user_spends_a_verify_and_is_not_counted(
    service, repo, attempts, monkeypatch
):
    from userhub.auth import password as password_module

    checked = []
    real_verify = password_module.verify_password

    def spy(plaintext, password_hash):
        checked.append(password_hash)
        return real_verify(plaintext, password_hash)

    monkeypatch.setattr(password_module, "verify_password", spy)

    with pytest.raises(InvalidCredentialsError) as exc:
        await service.login("ghost", PASSWORD)
    assert str(exc.value) == "Username / password incorrect. Please try again"
    assert len(checked) == 1 and checked[0].startswith("$2b$")
    assert attempts.attempts("ghost") == 0
    assert repo.saves == 0


@pytest.mark.asyncio
async def test_fifth_failure_locks_account(service, repo, make_user):
    await make_user("alee", "a@x.com")
    for _ in range(5):
        with pytest.raises(InvalidCredentialsError):
            await service.login("alee", "wrong")

    assert (await repo.find_by_username("alee")).is_locked

    with pytest.raises(AccountLockedError):
        await service.login("alee", PASSWORD)
    stored = await repo.find_by_username("alee")
    assert stored.is_locked
    assert stored.last_login_date is None


@pytest.mark.asyncio
async def test_lock_is_lifted_once_window_expires(service, repo, clock, make_user):
    await make_user("alee", "a@x.com")
    for _ in range(5):
        with pytest.raises(InvalidCredentialsError):
            await service.login("alee", "wrong")

    clock.advance(901)
    result = await service.login("alee", PASSWORD)
    assert result.identity.is_not_locked
    assert (await repo.find_by_username("alee")).is_not_locked


@pytest.mark.asyncio
async def test_success_resets_consecutive_failures(service, attempts, make_user):
    await make_user("alee", "a@x.com")
    for _ in range(4):
        with pytest.raises(InvalidCredentialsError):
            await service.login("alee", "wrong")
    await service.login("alee", PASSWORD)
    assert attempts.attempts("alee") == 0


@pytest.mark.asyncio
async def test_disabled_account_cannot_log_in(service, repo, make_user):
    await make_user("alee", "a@x.com", is_active=False)
    with pytest.raises(AccountDisabledError):
        await service.login("alee", PASSWORD)
    assert (await repo.find_by_username("alee")).last_login_date is None


@pytest.mark.asyncio
async def test_disabled_account_wrong_password_is_invalid_credentials(service, make_user):
    await make_user("alee", "a@x.com", is_active=False)
    with pytest.raises(InvalidCredentialsError):
        await service.login("alee", "wrong")


@pytest.mark.asyncio
async def test_authenticate_lookup_unknown(service):
    with pytest.raises(IdentityNotFoundError):
        await service.authenticate_lookup("ghost")


@pytest.mark.asyncio
async def test_authenticate_lookup_keeps_lock_without_writing(service, repo, attempts, make_user):
    await make_user("alee", "a@x.com", is_not_locked=False)
    for _ in range(5):
        attempts.record_failure("alee")
    saves = repo.saves

    identity = await service.authenticate_lookup("alee")
    assert identity.is_locked
    assert identity.last_login_date is None
    assert repo.saves == saves


@pytest.mark.asyncio
async def test_authenticate_lookup_unlocks_below_threshold(service, make_user):
    await make_user("alee", "a@x.com", is_not_locked=False)
    identity = await service.authenticate_lookup("alee")
    assert identity.is_not_locked
    assert identity.last_login_date is not None


@pytest.mark.asyncio
async def test_token_keeps_authorities_from_issuance(service, tokens, make_user):
    await make_user("alee", "a@x.com")
    token = (await service.login("alee", PASSWORD)).token

    await service.update(
        "alee", "Ann", "Lee", "alee", "a@x.com",
        role="SUPER_ADMIN", is_not_locked=True, is_active=True,
    )
    assert tokens.verify(token).authorities == (USER_READ,)
    fresh = (await service.login("alee", PASSWORD)).token
    assert tokens.verify(fresh).authorities == ROLE_AUTHORITIES[Role.SUPER_ADMIN]


@pytest.mark.asyncio
async def test_lock_survives_a_full_tracker(service, repo, attempts, make_user):
    await make_user("alee", "a@x.com")
    for _ in range(5):
        with pytest.raises(InvalidCredentialsError):
            await service.login("alee", "wrong")

    # Flood with unknown names, then with enough real failures to fill the cache.
    for i in range(attempts.max_entries):
        with pytest.raises(InvalidCredentialsError):
            await service.login(f"ghost{i}", "x")
    for i in range(attempts.max_entries * 2):
        attempts.record_failure(f"other{i}")

    assert attempts.has_exceeded_max_attempts("alee")
    with pytest.raises(AccountLockedError):
        await service.login("alee", PASSWORD)
    assert (await repo.find_by_username("alee")).is_locked


# ─── Partial failures ───────────────────────────────────


@pytest.mark.asyncio
async def test_add_new_image_failure_reports_undelivered_password(
    repo, hasher, attempts, tokens, tmp_path
):
    from structlog.testing import capture_logs

    from userhub.errors import ImageStoreError
    from userhub.services.user_service import UserService
    from userhub.storage.images import ProfileImageStore

    blocker = tmp_path / "blocked"
    blocker.write_text("a file, not a directory")
    service = UserService(
        repo, hasher=hasher, attempts=attempts,
        images=ProfileImageStore(blocker), tokens=tokens,
    )

    with capture_logs() as logs, pytest.raises(ImageStoreError):
        await service.add_new(
            "Ann", "Lee", "alee", "a@x.com",
            role="USER", is_active=True, is_not_locked=True, profile_image=b"img",
        )

    saved = await repo.find_by_username("alee")
    assert saved is not None
    [event] = [e for e in logs if e["event"] == "user.added_without_credentials"]
    assert event["user_id"] == saved.user_id
    assert event["action"] == "reset_password"
