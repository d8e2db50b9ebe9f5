"""SMTP client wrapper for digest delivery.

A thin wrapper around smtplib handling TLS, authentication and connection
cleanup. The smtplib factories are injectable so tests never open sockets.
"""

import smtplib
import ssl
from email.message import EmailMessage
from typing import Callable, List, Optional

from email_validator import EmailNotValidError, validate_email

from jobwatch.config.environment import EnvironmentConfig
from jobwatch.logging import get_logger

from .models import DeliveryError

logger = get_logger(__name__, component="notifications")

IMPLICIT_TLS_PORT = 465


class SMTPClient:
    """Sends EmailMessage objects over SMTP."""

    def __init__(
        self,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
    ):
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL

    def send(self, message: EmailMessage, env_config: EnvironmentConfig, use_tls: bool = True) -> None:
        """Send ``message``.

        Port 465 uses implicit TLS; other ports upgrade with STARTTLS when
        ``use_tls`` is set. Logs in when credentials are configured.

        Raises:
            DeliveryError: If connecting, authenticating or sending fails
        """
        smtp = None
        try:
            if env_config.smtp_port == IMPLICIT_TLS_PORT:
                smtp = self.smtp_ssl_factory(
                    env_config.smtp_host, env_config.smtp_port, context=ssl.create_default_context()
                )
            else:
                smtp = self.smtp_factory(env_config.smtp_host, env_config.smtp_port)
                if use_tls:
                    smtp.starttls(context=ssl.create_default_context())

            if env_config.smtp_user and env_config.smtp_pass:
                smtp.login(env_config.smtp_user, env_config.smtp_pass)

            smtp.send_message(message)
            logger.debug(
                f"Message sent to {message['To']}",
                extra={"event": "notification.smtp.sent"},
            )

        except smtplib.SMTPException as e:
            raise DeliveryError(f"SMTP error during message delivery: {e}") from e
        except OSError as e:
            raise DeliveryError(f"Network error during SMTP connection: {e}") from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.warning(
                        f"Error closing SMTP connection: {e}",
                        extra={"event": "notification.smtp.close_failed"},
                    )


def parse_recipients(recipient_string: Optional[str]) -> List[str]:
    """Validate comma-separated email addresses.

    Raises:
        ValueError: If any address is invalid or none are given
    """
    recipients = []
    for email in (recipient_string or "").split(","):
        email = email.strip()
        if not email:
            continue
        try:
            recipients.append(validate_email(email, check_deliverability=False).normalized)
        except EmailNotValidError as e:
            raise ValueError(f"Invalid recipient address '{email}': {e}") from e

    if not recipients:
        raise ValueError("No valid recipient addresses")
    return recipients


def build_sender_address(env_config: EnvironmentConfig) -> str:
    """``Name <address>`` built from SMTP_SENDER_NAME and SMTP_USER."""
    sender_email = env_config.smtp_user or f"noreply@{env_config.smtp_host}"
    return f"{env_config.smtp_sender_name} <{sender_email}>"
