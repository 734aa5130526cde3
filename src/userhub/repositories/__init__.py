"""Storage collaborators for Identity records.

Learn: The services depend on the UserRepository protocol only. Two
implementations ship:
- SqlUserRepository → PostgreSQL via async SQLAlchemy (production)
- InMemoryUserRepository → dict-backed, for tests and local tooling

Both enforce username/email uniqueness themselves as a backstop: the
service-level check and the write are separate steps, so a concurrent
writer can slip in between them and must surface as a conflict.
"""

from typing import Optional, Protocol

from userhub.domain.identity import Identity


class UserRepository(Protocol):
    async def find_by_id(self, id: int) -> Optional[Identity]: ...

    async def find_by_username(self, username: str) -> Optional[Identity]: ...

    async def find_by_email(self, email: str) -> Optional[Identity]: ...

    async def find_all(self) -> list[Identity]: ...

    async def save(self, identity: Identity) -> Identity:
        """Insert (id is None) or replace by id. Returns the stored record."""
        ...

    async def delete_by_id(self, id: int) -> None: ...


from userhub.repositories.memory import InMemoryUserRepository  # noqa: E402
from userhub.repositories.sql import SqlUserRepository  # noqa: E402

__all__ = ["InMemoryUserRepository", "SqlUserRepository", "UserRepository"]
