"""Password hashing and secret generation.

Learn: Uses bcrypt for secure password hashing. bcrypt automatically
handles salting and is resistant to rainbow table attacks.
The work factor (rounds=12) takes ~100ms per hash on modern hardware.

Initial passwords and external user ids are generated here with the
secrets module, never with random.
"""

import secrets
import string

import bcrypt

_ALPHANUMERIC = string.ascii_letters + string.digits


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt.

    Learn: bcrypt includes a random salt automatically and produces
    hashes starting with "$2b$". Passwords are truncated to 72 bytes
    (bcrypt's limit).
    """
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its bcrypt hash."""
    if not password_hash:
        return False
    try:
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def generate_password(length: int = 10) -> str:
    """Random alphanumeric password for one-time out-of-band delivery."""
    return "".join(secrets.choice(_ALPHANUMERIC) for _ in range(length))


def generate_user_id(length: int = 10) -> str:
    """Random numeric external user id."""
    return "".join(secrets.choice(string.digits) for _ in range(length))


class BcryptHasher:
    """Credential hasher handed to the services.

    Tests build it with rounds=4 so hashing stays fast.
    """

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._dummy_hash: str | None = None

    def hash(self, plaintext: str) -> str:
        return hash_password(plaintext, rounds=self.rounds)

    def verify(self, plaintext: str, password_hash: str) -> bool:
        return verify_password(plaintext, password_hash)

    def verify_dummy(self, plaintext: str) -> bool:
        """Spend one verify on a throwaway hash. Always False.

        Used when there is no stored hash to check against, so an unknown
        username costs as much as a wrong password.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(generate_password())
        verify_password(plaintext, self._dummy_hash)
        return False
