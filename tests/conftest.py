"""Test fixtures — in-memory storage, fast hashing, a controllable clock.

Learn: Testing pattern for the identity core:

1. UserService is built over InMemoryUserRepository, so no database is needed.
2. bcrypt runs with rounds=4 (the minimum) to keep the suite fast.
3. The login-attempt tracker gets a fake monotonic clock, so window expiry
   is tested by advancing time instead of sleeping.
4. The HTTP client overrides the service, notifier, token issuer and image
   store dependencies with these same objects via app.dependency_overrides.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from userhub.auth.attempts import LoginAttemptTracker
from userhub.auth.jwt import TokenIssuer
from userhub.auth.password import BcryptHasher
from userhub.auth.roles import Role
from userhub.domain.identity import Identity
from userhub.repositories import InMemoryUserRepository
from userhub.services.user_service import UserService
from userhub.storage.images import ProfileImageStore

TEST_SECRET = "test-secret-not-for-production"
PASSWORD = "correct-horse"


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier:
    """Stands in for EmailNotifier; remembers what it was asked to send."""

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    async def send_generated_password(self, name: str, password: str, email: str) -> bool:
        self.sent.append((name, password, email))
        return True


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def hasher():
    return BcryptHasher(rounds=4)


@pytest.fixture()
def repo():
    return InMemoryUserRepository()


@pytest.fixture()
def attempts(clock):
    return LoginAttemptTracker(
        max_attempts=5, window_seconds=900, max_entries=100, clock=clock
    )


@pytest.fixture()
def tokens():
    return TokenIssuer(secret=TEST_SECRET)


@pytest.fixture()
def images(tmp_path):
    return ProfileImageStore(tmp_path / "images")


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def service(repo, hasher, attempts, images, tokens):
    return UserService(
        repo,
        hasher=hasher,
        attempts=attempts,
        images=images,
        tokens=tokens,
        public_base_url="http://test",
    )


@pytest.fixture()
def make_user(repo, hasher):
    """Save an identity with a known password straight into the repository."""

    async def _make(
        username: str,
        email: str | None = None,
        *,
        role: Role = Role.USER,
        password: str = PASSWORD,
        is_active: bool = True,
        is_not_locked: bool = True,
    ) -> Identity:
        return await repo.save(
            Identity(
                user_id=f"{abs(hash(username)) % 10**10:010d}",
                first_name=username.title(),
                last_name="Tester",
                username=username,
                email=email or f"{username}@example.com",
                password_hash=hasher.hash(password),
                role=role,
                is_active=is_active,
                is_not_locked=is_not_locked,
            )
        )

    return _make


@pytest_asyncio.fixture()
async def client(service, notifier, tokens, images):
    """HTTP client with the app's collaborators swapped for the fixtures above."""
    from userhub.api.users import get_user_service
    from userhub.container import get_image_store, get_notifier, get_token_issuer
    from userhub.main import app

    app.dependency_overrides[get_user_service] = lambda: service
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_token_issuer] = lambda: tokens
    app.dependency_overrides[get_image_store] = lambda: images

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(make_user, tokens):
    """Bearer headers for a freshly created user with the given role."""

    async def _headers(role: Role = Role.USER, username: str | None = None) -> dict:
        identity = await make_user(username or f"{role.value.lower()}-caller", role=role)
        return {"Authorization": f"Bearer {tokens.issue(identity)}"}

    return _headers
