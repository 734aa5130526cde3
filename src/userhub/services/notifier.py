"""Outbound email for generated passwords.

Learn: Delivery is fire-and-forget from the caller's point of view:
send_generated_password() never raises. SMTP errors are logged and
swallowed here because a failed email must not undo a registration or
password reset that has already been persisted.

When smtp_host is empty (local dev, tests) the message is logged instead
of sent — without the password itself.
"""

import asyncio
import smtplib
import ssl
from email.message import EmailMessage

import structlog

logger = structlog.get_logger()

SUBJECT = "userhub - New Password"


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class EmailNotifier:
    def __init__(
        self,
        *,
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        smtp_use_tls: bool = True,
        mail_from: str = "no-reply@userhub.local",
        timeout: float = 10.0,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.mail_from = mail_from
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.mail_from)

    async def send_generated_password(self, name: str, password: str, email: str) -> bool:
        """Email a freshly generated password. Returns True if handed off."""
        if not self.is_configured:
            logger.info("email.dev_mode", to=redact_email(email), subject=SUBJECT)
            return True

        message = self._build_message(name, password, email)
        try:
            await asyncio.to_thread(self._send, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("email.send_failed", to=redact_email(email), error=str(e))
            return False
        logger.info("email.sent", to=redact_email(email), subject=SUBJECT)
        return True

    def _build_message(self, name: str, password: str, email: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = SUBJECT
        message["From"] = self.mail_from
        message["To"] = email
        message.set_content(
            f"Hello {name},\n\n"
            f"Your new account password is: {password}\n\n"
            "Please change it after signing in.\n\n"
            "The Support Team"
        )
        return message

    def _send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as smtp:
            if self.smtp_use_tls:
                smtp.starttls(context=ssl.create_default_context())
            if self.smtp_user:
                smtp.login(self.smtp_user, self.smtp_password)
            smtp.send_message(message)
