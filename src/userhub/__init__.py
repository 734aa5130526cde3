"""userhub — user identity service.

Registration, credential checks with brute-force lockout, JWT issuance,
password reset and profile-image association for an application's users.
"""

__version__ = "0.1.0"
