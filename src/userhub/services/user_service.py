"""User service — identity lifecycle and the login flow.

Learn: Service layer separates business logic from HTTP routing.
API routes and the CLI call this service; the service talks to its
collaborators only through the objects handed to its constructor:

- users      → UserRepository (find/save/delete)
- hasher     → hash(plaintext) / verify(plaintext, hash) / verify_dummy(plaintext)
- attempts   → LoginAttemptTracker (failed-login counter)
- images     → ProfileImageStore (profile image blobs)
- tokens     → TokenIssuer (signed access tokens)

Every write follows the same order: validate → build a new Identity in
memory → save → return. Nothing is persisted as a side effect of
touching a field.

Generated passwords are returned to the caller (IssuedCredentials) for
one-time delivery; this service never sends email itself.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import structlog

from userhub.auth.attempts import LoginAttemptTracker
from userhub.auth.jwt import TokenIssuer
from userhub.auth.password import BcryptHasher, generate_password, generate_user_id
from userhub.auth.roles import DEFAULT_ROLE, Role, parse_role
from userhub.domain.identity import Identity, utcnow
from userhub.errors import (
    AccountDisabledError,
    AccountLockedError,
    EmailNotFoundError,
    IdentityNotFoundError,
    ImageStoreError,
    InvalidCredentialsError,
)
from userhub.repositories import UserRepository
from userhub.services.validator import IdentityValidator
from userhub.storage.images import ProfileImageStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class IssuedCredentials:
    """An identity plus the plaintext password generated for it."""
    identity: Identity
    password: str


@dataclass(frozen=True)
class LoginResult:
    identity: Identity
    token: str


class UserService:
    """Registration, updates, password reset, images and login."""

    def __init__(
        self,
        users: UserRepository,
        *,
        hasher: BcryptHasher,
        attempts: LoginAttemptTracker,
        images: ProfileImageStore,
        tokens: TokenIssuer,
        user_id_length: int = 10,
        password_length: int = 10,
        public_base_url: str = "http://localhost:8000",
        default_image_url: str = "https://robohash.org/{username}",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.users = users
        self.validator = IdentityValidator(users)
        self.hasher = hasher
        self.attempts = attempts
        self.images = images
        self.tokens = tokens
        self.user_id_length = user_id_length
        self.password_length = password_length
        self.public_base_url = public_base_url.rstrip("/")
        self.default_image_url = default_image_url
        self.clock = clock

    # ─── Registration ───────────────────────────────────

    async def register(
        self, first_name: str, last_name: str, username: str, email: str
    ) -> IssuedCredentials:
        """Self-service sign-up: role USER, active, unlocked."""
        await self.validator.validate(None, username, email)
        issued = await self._create(
            first_name, last_name, username, email,
            role=DEFAULT_ROLE, is_active=True, is_not_locked=True,
        )
        logger.info("user.registered", username=username, user_id=issued.identity.user_id)
        return issued

    async def add_new(
        self,
        first_name: str,
        last_name: str,
        username: str,
        email: str,
        role: str | Role,
        is_active: bool,
        is_not_locked: bool,
        profile_image: Optional[bytes] = None,
    ) -> IssuedCredentials:
        """Administrative create with an explicit role and flags."""
        resolved_role = parse_role(role)
        await self.validator.validate(None, username, email)
        issued = await self._create(
            first_name, last_name, username, email,
            role=resolved_role, is_active=is_active, is_not_locked=is_not_locked,
        )
        logger.info(
            "user.added",
            username=username,
            user_id=issued.identity.user_id,
            role=resolved_role.value,
        )
        if profile_image is not None:
            try:
                identity = await self.associate_profile_image(username, profile_image)
            except ImageStoreError:
                # The account is saved but its password is never handed out.
                logger.error(
                    "user.added_without_credentials",
                    username=username,
                    user_id=issued.identity.user_id,
                    action="reset_password",
                )
                raise
            return IssuedCredentials(identity=identity, password=issued.password)
        return issued

    async def _create(
        self,
        first_name: str,
        last_name: str,
        username: str,
        email: str,
        *,
        role: Role,
        is_active: bool,
        is_not_locked: bool,
    ) -> IssuedCredentials:
        password = generate_password(self.password_length)
        identity = Identity(
            user_id=generate_user_id(self.user_id_length),
            first_name=first_name,
            last_name=last_name,
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
            role=role,
            is_active=is_active,
            is_not_locked=is_not_locked,
            profile_image_url=self.default_image_url.format(username=username),
            join_date=self.clock(),
        )
        saved = await self.users.save(identity)
        return IssuedCredentials(identity=saved, password=password)

    # ─── Updates ────────────────────────────────────────

    async def update(
        self,
        current_username: str,
        first_name: str,
        last_name: str,
        username: str,
        email: str,
        role: str | Role,
        is_not_locked: bool,
        is_active: bool,
        profile_image: Optional[bytes] = None,
    ) -> Identity:
        """Replace profile fields, role and flags of an existing identity."""
        resolved_role = parse_role(role)
        current = await self.validator.validate(current_username, username, email)
        saved = await self.users.save(
            current.replace(
                first_name=first_name,
                last_name=last_name,
                username=username,
                email=email,
                role=resolved_role,
                is_active=is_active,
                is_not_locked=is_not_locked,
            )
        )
        if current.is_locked and saved.is_not_locked:
            # Unlocked by an administrator: start counting failures afresh.
            self.attempts.evict(current.username)
            self.attempts.evict(saved.username)
        logger.info("user.updated", username=saved.username, previous=current_username)

        if profile_image is not None:
            saved = await self.associate_profile_image(saved.username, profile_image)
        return saved

    async def reset_password(self, email: str) -> IssuedCredentials:
        identity = await self.users.find_by_email(email)
        if identity is None:
            raise EmailNotFoundError(email)
        password = generate_password(self.password_length)
        saved = await self.users.save(
            identity.replace(password_hash=self.hasher.hash(password))
        )
        logger.info("user.password_reset", username=saved.username)
        return IssuedCredentials(identity=saved, password=password)

    async def delete(self, id: int) -> None:
        """Delete by id. Authorization is the caller's job."""
        await self.users.delete_by_id(id)
        logger.info("user.deleted", id=id)

    # ─── Profile images ─────────────────────────────────

    async def associate_profile_image(self, username: str, image: bytes) -> Identity:
        """Store image as the user's profile picture, replacing any old one."""
        identity = await self.users.find_by_username(username)
        if identity is None:
            raise IdentityNotFoundError(username)

        key = self.images.key_for(username)
        await asyncio.to_thread(self.images.store, key, image)
        url = f"{self.public_base_url}/api/v1/users/image/{key}"
        return await self.users.save(identity.replace(profile_image_url=url))

    async def read_profile_image(self, username: str, filename: str) -> bytes:
        return await asyncio.to_thread(self.images.read, f"{username}/{filename}")

    # ─── Queries ────────────────────────────────────────

    async def list_users(self) -> list[Identity]:
        return await self.users.find_all()

    async def find_by_username(self, username: str) -> Optional[Identity]:
        return await self.users.find_by_username(username)

    async def find_by_email(self, email: str) -> Optional[Identity]:
        return await self.users.find_by_email(email)

    # ─── Login ──────────────────────────────────────────

    async def login(self, username: str, password: str) -> LoginResult:
        """Check credentials, apply lockout, stamp login time, mint a token.

        Raises InvalidCredentialsError, AccountLockedError or
        AccountDisabledError.
        """
        identity = await self.users.find_by_username(username)
        if identity is None:
            # Not counted: unknown names would only churn the tracker.
            self.hasher.verify_dummy(password)
            logger.info("login.failed", username=username, reason="unknown_user")
            raise InvalidCredentialsError()

        if not self.hasher.verify(password, identity.password_hash):
            await self._record_failed_login(identity)
            raise InvalidCredentialsError()

        if not identity.is_active:
            logger.info("login.disabled", username=username)
            raise AccountDisabledError()

        identity = await self.authenticate_lookup(username)
        if identity.is_locked:
            logger.warning("login.locked", username=username)
            raise AccountLockedError()

        # A successful login ends the run of consecutive failures.
        self.attempts.evict(username)
        token = self.tokens.issue(identity)
        logger.info("login.succeeded", username=username, user_id=identity.user_id)
        return LoginResult(identity=identity, token=token)

    async def authenticate_lookup(self, username: str) -> Identity:
        """Re-evaluate the lock and stamp the login time.

        Call only after the password has been verified. A locked identity
        whose failure count has dropped below the threshold (window expired
        or evicted) is unlocked. One that is still over the threshold is
        returned unchanged and nothing is written.
        """
        identity = await self.users.find_by_username(username)
        if identity is None:
            raise IdentityNotFoundError(username)

        if identity.is_locked:
            if self.attempts.has_exceeded_max_attempts(username):
                return identity
            identity = identity.replace(is_not_locked=True)
            self.attempts.evict(username)
            logger.info("login.unlocked", username=username)

        return await self.users.save(identity.stamp_login(self.clock()))

    async def _record_failed_login(self, identity: Identity) -> None:
        count = self.attempts.record_failure(identity.username)
        logger.info("login.failed", username=identity.username, attempts=count)
        if identity.is_not_locked and count >= self.attempts.max_attempts:
            await self.users.save(identity.replace(is_not_locked=False))
            logger.warning(
                "login.lockout_imposed", username=identity.username, attempts=count
            )
