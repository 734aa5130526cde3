"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication. A token
issued here carries:
- sub: the identity's external user id (never the numeric row id)
- authorities: the authority set at the moment of issuance
- iat/exp: issuance and expiry (seconds since epoch)
- jti: a random id, so two tokens for the same identity never collide
  even when issued within the same second

Authorities are copied into the token when it is minted. A later role
change does not alter tokens already handed out; they simply expire.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from userhub.domain.identity import Identity


class TokenError(Exception):
    """Raised when token verification fails."""


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    authorities: tuple[str, ...]
    issued_at: datetime
    expires_at: datetime
    token_id: str


class TokenIssuer:
    """Mints signed, time-bounded tokens. Holds no mutable state."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        issuer: str = "userhub",
        audience: str = "userhub-api",
        expire_minutes: int = 60,
    ):
        if not secret:
            raise ValueError("token signing secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.expire_minutes = expire_minutes

    def issue(self, identity: Identity) -> str:
        """Create a signed access token for identity."""
        now = datetime.now(timezone.utc)
        payload = {
            "iss": self.issuer,
            "aud": self.audience,
            "sub": identity.user_id,
            "authorities": list(identity.authorities),
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Verify signature, expiry, issuer and audience.

        Returns the decoded claims on success.
        Raises TokenError on failure.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["sub", "exp", "iat", "jti"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise TokenError(f"Invalid token: {e}")

        return TokenClaims(
            user_id=payload["sub"],
            authorities=tuple(payload.get("authorities") or ()),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            token_id=payload["jti"],
        )
