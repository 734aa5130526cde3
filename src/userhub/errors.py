"""Error kinds raised by the identity core.

Learn: IdentityError subclasses are expected, user-displayable outcomes
(conflicts, unknown users, lockout). The HTTP layer maps each one to its own
status and message. StorageError and ImageStoreError are infrastructure
failures: they propagate untouched and are reported as a generic
processing error so no internal detail leaks to callers.
"""


class UserHubError(Exception):
    """Base class for all userhub errors."""


class IdentityError(UserHubError):
    """A recoverable identity/authentication outcome."""


class IdentityNotFoundError(IdentityError):
    def __init__(self, username: str):
        super().__init__(f"No user found by username: {username}")
        self.username = username


class UsernameConflictError(IdentityError):
    def __init__(self, username: str = ""):
        super().__init__("Username already taken")
        self.username = username


class EmailConflictError(IdentityError):
    def __init__(self, email: str = ""):
        super().__init__("Email already taken")
        self.email = email


class EmailNotFoundError(IdentityError):
    def __init__(self, email: str):
        super().__init__(f"No user found for email: {email}")
        self.email = email


class UnknownRoleError(IdentityError):
    def __init__(self, role: str):
        super().__init__(f"Unknown role: {role}")
        self.role = role


class InvalidCredentialsError(IdentityError):
    def __init__(self):
        super().__init__("Username / password incorrect. Please try again")


class AccountLockedError(IdentityError):
    def __init__(self):
        super().__init__("Your account has been locked. Please contact administrator")


class AccountDisabledError(IdentityError):
    def __init__(self):
        super().__init__(
            "Your account has been disabled. If this is an error, please contact administrator"
        )


class StorageError(UserHubError):
    """The storage collaborator failed. Not recoverable by the caller."""


class ImageStoreError(UserHubError):
    """Reading or writing a profile image failed."""
