"""SQLAlchemy ORM models — the storage shape of an Identity.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
The services never see these rows; SqlUserRepository converts between
UserRow and the frozen Identity record in both directions.

Unique constraints on username and email are the backstop for the
service-level uniqueness check: two concurrent registrations can both pass
validation, but only one INSERT survives. Constraint names are matched by
the repository to report which field conflicted.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

USERNAME_CONSTRAINT = "uq_users_username"
EMAIL_CONSTRAINT = "uq_users_email"
USER_ID_CONSTRAINT = "uq_users_user_id"


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRow(Base):
    """A user account.

    Learn: authorities is stored denormalized for downstream readers
    (reports, other services). It is rewritten from the role on every
    save and never read back as a source of truth.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("username", name=USERNAME_CONSTRAINT),
        UniqueConstraint("email", name=EMAIL_CONSTRAINT),
        UniqueConstraint("user_id", name=USER_ID_CONSTRAINT),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    profile_image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    authorities: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_not_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    join_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    last_login_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_login_date_display: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=utcnow
    )
