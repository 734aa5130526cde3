"""Process-wide collaborators, built once from settings.

Learn: The login-attempt tracker must be shared by every request in the
process, otherwise each request would count failures on its own. The
other collaborators are stateless but cheap to keep around, so they are
cached the same way.
"""

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.attempts import LoginAttemptTracker
from userhub.auth.jwt import TokenIssuer
from userhub.auth.password import BcryptHasher
from userhub.config import settings
from userhub.repositories import SqlUserRepository, UserRepository
from userhub.services.notifier import EmailNotifier
from userhub.services.user_service import UserService
from userhub.storage.images import ProfileImageStore


@lru_cache(maxsize=1)
def get_login_attempts() -> LoginAttemptTracker:
    return LoginAttemptTracker(
        max_attempts=settings.login_max_attempts,
        window_seconds=settings.login_attempt_window_seconds,
        max_entries=settings.login_attempt_max_entries,
    )


@lru_cache(maxsize=1)
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
        expire_minutes=settings.access_token_expire_minutes,
    )


@lru_cache(maxsize=1)
def get_hasher() -> BcryptHasher:
    return BcryptHasher()


@lru_cache(maxsize=1)
def get_image_store() -> ProfileImageStore:
    return ProfileImageStore(
        settings.profile_image_dir, extension=settings.profile_image_extension
    )


@lru_cache(maxsize=1)
def get_notifier() -> EmailNotifier:
    return EmailNotifier(
        smtp_host=settings.smtp_host,
        smtp_port=settings.smtp_port,
        smtp_user=settings.smtp_user,
        smtp_password=settings.smtp_password,
        smtp_use_tls=settings.smtp_use_tls,
        mail_from=settings.mail_from,
    )


def build_user_service(users: UserRepository) -> UserService:
    """UserService over the given repository with the shared collaborators."""
    return UserService(
        users,
        hasher=get_hasher(),
        attempts=get_login_attempts(),
        images=get_image_store(),
        tokens=get_token_issuer(),
        user_id_length=settings.user_id_length,
        password_length=settings.generated_password_length,
        public_base_url=settings.public_base_url,
        default_image_url=settings.default_profile_image_url,
    )


def user_service_for(db: AsyncSession) -> UserService:
    return build_user_service(SqlUserRepository(db))
