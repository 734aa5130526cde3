"""Username/email uniqueness checks run before any create or update.

Learn: validate() is the only place that decides whether a username or
email is free. It never writes. The caller builds the new record and
saves it right after; the repository's own uniqueness constraint catches
anyone who slips in between.
"""

from typing import Optional

from userhub.domain.identity import Identity
from userhub.errors import EmailConflictError, IdentityNotFoundError, UsernameConflictError
from userhub.repositories import UserRepository


class IdentityValidator:
    def __init__(self, users: UserRepository):
        self.users = users

    async def validate(
        self,
        current_username: Optional[str],
        new_username: str,
        new_email: str,
    ) -> Optional[Identity]:
        """Check new_username/new_email are free.

        Update path (current_username given): returns the identity being
        modified; the identity may keep its own username and email.
        Create path (current_username empty): returns None.
        """
        if current_username:
            current = await self.users.find_by_username(current_username)
            if current is None:
                raise IdentityNotFoundError(current_username)

            by_username = await self.users.find_by_username(new_username)
            if by_username is not None and by_username.id != current.id:
                raise UsernameConflictError(new_username)

            by_email = await self.users.find_by_email(new_email)
            if by_email is not None and by_email.id != current.id:
                raise EmailConflictError(new_email)

            return current

        if await self.users.find_by_username(new_username) is not None:
            raise UsernameConflictError(new_username)
        if await self.users.find_by_email(new_email) is not None:
            raise EmailConflictError(new_email)
        return None
