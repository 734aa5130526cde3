"""Dict-backed UserRepository.

Learn: Holds Identity records keyed by id. Every operation runs under one
asyncio.Lock, so a save sees a consistent view of the other records while
it checks username/email uniqueness.
"""

import asyncio
from typing import Optional

from userhub.domain.identity import Identity
from userhub.errors import EmailConflictError, UsernameConflictError


class InMemoryUserRepository:
    def __init__(self, identities: Optional[list[Identity]] = None):
        self._rows: dict[int, Identity] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()
        self.saves = 0  # number of successful writes, handy in tests
        for identity in identities or []:
            self._insert(identity)

    async def find_by_id(self, id: int) -> Optional[Identity]:
        async with self._lock:
            return self._rows.get(id)

    async def find_by_username(self, username: str) -> Optional[Identity]:
        async with self._lock:
            return self._first(lambda i: i.username == username)

    async def find_by_email(self, email: str) -> Optional[Identity]:
        async with self._lock:
            return self._first(lambda i: i.email == email)

    async def find_all(self) -> list[Identity]:
        async with self._lock:
            return list(self._rows.values())

    async def save(self, identity: Identity) -> Identity:
        async with self._lock:
            if identity.id is None or identity.id not in self._rows:
                return self._insert(identity)
            self._check_unique(identity)
            self._rows[identity.id] = identity
            self.saves += 1
            return identity

    async def delete_by_id(self, id: int) -> None:
        async with self._lock:
            self._rows.pop(id, None)

    # ─── Internals (lock held) ──────────────────────────

    def _insert(self, identity: Identity) -> Identity:
        self._check_unique(identity)
        if identity.id is None:
            identity = identity.replace(id=self._next_id)
        self._next_id = max(self._next_id, identity.id + 1)
        self._rows[identity.id] = identity
        self.saves += 1
        return identity

    def _check_unique(self, identity: Identity) -> None:
        for other in self._rows.values():
            if other.id == identity.id:
                continue
            if other.username == identity.username:
                raise UsernameConflictError(identity.username)
            if other.email == identity.email:
                raise EmailConflictError(identity.email)

    def _first(self, predicate) -> Optional[Identity]:
        return next((i for i in self._rows.values() if predicate(i)), None)
