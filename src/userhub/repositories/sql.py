"""PostgreSQL-backed UserRepository (async SQLAlchemy).

Learn: The repository owns the transaction for each write: save() and
delete_by_id() commit before returning, so a concurrent reader never sees
a half-applied identity. Unique-constraint violations are translated into
the same UsernameConflictError/EmailConflictError the service raises;
everything else from the driver becomes StorageError.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.roles import Role
from userhub.db.models import EMAIL_CONSTRAINT, USERNAME_CONSTRAINT, UserRow
from userhub.domain.identity import Identity
from userhub.errors import EmailConflictError, StorageError, UsernameConflictError

logger = structlog.get_logger()


def _to_identity(row: UserRow) -> Identity:
    return Identity(
        id=row.id,
        user_id=row.user_id,
        first_name=row.first_name,
        last_name=row.last_name,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        role=Role(row.role),
        is_active=row.is_active,
        is_not_locked=row.is_not_locked,
        profile_image_url=row.profile_image_url,
        join_date=row.join_date,
        last_login_date=row.last_login_date,
        last_login_date_display=row.last_login_date_display,
    )


def _apply(row: UserRow, identity: Identity) -> None:
    row.user_id = identity.user_id
    row.first_name = identity.first_name
    row.last_name = identity.last_name
    row.username = identity.username
    row.email = identity.email
    row.password_hash = identity.password_hash
    row.role = identity.role.value
    row.authorities = list(identity.authorities)
    row.is_active = identity.is_active
    row.is_not_locked = identity.is_not_locked
    row.profile_image_url = identity.profile_image_url
    row.join_date = identity.join_date
    row.last_login_date = identity.last_login_date
    row.last_login_date_display = identity.last_login_date_display


class SqlUserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, id: int) -> Optional[Identity]:
        async with self._storage_errors("find_by_id"):
            row = await self.db.get(UserRow, id)
        return _to_identity(row) if row else None

    async def find_by_username(self, username: str) -> Optional[Identity]:
        return await self._find_one(UserRow.username == username, "find_by_username")

    async def find_by_email(self, email: str) -> Optional[Identity]:
        return await self._find_one(UserRow.email == email, "find_by_email")

    async def find_all(self) -> list[Identity]:
        async with self._storage_errors("find_all"):
            result = await self.db.execute(select(UserRow).order_by(UserRow.id))
            rows = result.scalars().all()
        return [_to_identity(r) for r in rows]

    async def save(self, identity: Identity) -> Identity:
        async with self._storage_errors("save"):
            row = None
            if identity.id is not None:
                row = await self.db.get(UserRow, identity.id)
            if row is None:
                row = UserRow(id=identity.id)
                self.db.add(row)
            _apply(row, identity)
            try:
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                raise self._conflict(e, identity) from e
            await self.db.refresh(row)
        return _to_identity(row)

    async def delete_by_id(self, id: int) -> None:
        async with self._storage_errors("delete_by_id"):
            await self.db.execute(delete(UserRow).where(UserRow.id == id))
            await self.db.commit()

    # ─── Internals ──────────────────────────────────────

    async def _find_one(self, clause, op: str) -> Optional[Identity]:
        async with self._storage_errors(op):
            result = await self.db.execute(select(UserRow).where(clause))
            row = result.scalars().first()
        return _to_identity(row) if row else None

    @staticmethod
    def _conflict(error: IntegrityError, identity: Identity) -> Exception:
        message = str(error.orig)
        if USERNAME_CONSTRAINT in message or "users.username" in message:
            return UsernameConflictError(identity.username)
        if EMAIL_CONSTRAINT in message or "users.email" in message:
            return EmailConflictError(identity.email)
        return StorageError(f"integrity error on users: {message}")

    @asynccontextmanager
    async def _storage_errors(self, op: str):
        try:
            yield
        except (UsernameConflictError, EmailConflictError, StorageError):
            raise
        except SQLAlchemyError as e:
            logger.error("storage.error", op=op, error=str(e))
            raise StorageError(f"users.{op} failed") from e
