"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current identity from the request's bearer token.

Authorization is a capability check done here, at the edge, before the
route calls into UserService. The service itself never checks who is
calling — e.g. UserService.delete() trusts that require_authority
("user:delete") already ran.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException

from userhub.auth.jwt import TokenError, TokenIssuer
from userhub.container import get_token_issuer


class CurrentIdentity:
    """The authenticated caller, as asserted by a verified token."""

    def __init__(self, user_id: str, authorities: Optional[tuple[str, ...]] = None):
        self.user_id = user_id
        self.authorities = tuple(authorities or ())

    def has_authority(self, authority: str) -> bool:
        return authority in self.authorities


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> Optional[CurrentIdentity]:
    """Extract current identity (optional — returns None if no auth)."""
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:]
        return _authenticate_jwt(token, tokens)
    return None


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no auth)."""
    if not identity:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def require_authority(authority: str):
    """Dependency factory: 403 unless the caller holds authority."""

    async def _check(
        identity: CurrentIdentity = Depends(get_current_user),
    ) -> CurrentIdentity:
        if not identity.has_authority(authority):
            raise HTTPException(
                status_code=403, detail="You do not have enough permission"
            )
        return identity

    return _check


def _authenticate_jwt(token: str, tokens: TokenIssuer) -> CurrentIdentity:
    try:
        claims = tokens.verify(token)
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentIdentity(user_id=claims.user_id, authorities=claims.authorities)
