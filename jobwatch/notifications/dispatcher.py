"""Digest dispatchers.

``NotificationDispatcher`` is the delivery interface the workflow service
uses. ``LogDispatcher`` writes digests to the structured log and
``EmailDispatcher`` sends them over SMTP with retry and backoff.
"""

import time
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Callable, Optional

from jobwatch.config.environment import EnvironmentConfig
from jobwatch.config.models import NotificationChannel, NotificationConfig
from jobwatch.logging import get_logger

from .models import AlertDigest, DeliveryError, DispatchResult
from .smtp_client import SMTPClient, build_sender_address, parse_recipients
from .templates import DigestRenderer

logger = get_logger(__name__, component="notifications")

MAX_RETRY_DELAY = 60.0


class NotificationDispatcher(ABC):
    """Delivers one digest."""

    channel = "log"

    @abstractmethod
    def dispatch(self, digest: AlertDigest) -> DispatchResult:
        """Deliver ``digest``.

        Raises:
            NotificationTemplateError: If the digest cannot be rendered
        """


class LogDispatcher(NotificationDispatcher):
    """Writes each digest as one structured log record per match."""

    channel = NotificationChannel.LOG.value

    def __init__(self, logger_instance=None):
        self.logger = logger_instance or logger

    def dispatch(self, digest: AlertDigest) -> DispatchResult:
        self.logger.info(
            f"{digest.total_matches} match(es) for profile {digest.profile_id}",
            extra={
                "event": "notification.digest.logged",
                "profile_id": digest.profile_id,
                "owner_id": digest.owner_id,
                "total_matches": digest.total_matches,
            },
        )
        for rank, match in enumerate(digest.matches, start=1):
            self.logger.info(
                f"#{rank} {match.posting.title} ({match.score}) {match.posting.url}",
                extra={
                    "event": "notification.digest.match",
                    "profile_id": digest.profile_id,
                    "rank": rank,
                    "score": match.score,
                    "source_site": match.posting.source_site,
                },
            )
        return DispatchResult(
            profile_id=digest.profile_id,
            channel=self.channel,
            status="sent",
            attempts=1,
            delivered_match_ids=digest.match_ids,
        )


class EmailDispatcher(NotificationDispatcher):
    """Renders a digest with Jinja2 and sends it by email.

    The recipient is the profile's notification email, else ALERT_TO_EMAIL.
    """

    channel = NotificationChannel.EMAIL.value

    def __init__(
        self,
        env_config: EnvironmentConfig,
        config: Optional[NotificationConfig] = None,
        renderer: Optional[DigestRenderer] = None,
        smtp_client: Optional[SMTPClient] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger_instance=None,
    ):
        self.env_config = env_config
        self.config = config or NotificationConfig()
        self.renderer = renderer or DigestRenderer()
        self.smtp_client = smtp_client or SMTPClient()
        self.sleep = sleep
        self.logger = logger_instance or logger

    def _build_message(self, digest: AlertDigest) -> EmailMessage:
        recipients = parse_recipients(digest.profile.notification_email or self.env_config.alert_to_email)
        rendered = self.renderer.render(digest)

        message = EmailMessage()
        message["Subject"] = rendered["subject"]
        message["From"] = build_sender_address(self.env_config)
        message["To"] = ", ".join(recipients)
        message.set_content(rendered["text_body"])
        message.add_alternative(rendered["html_body"], subtype="html")
        return message

    def dispatch(self, digest: AlertDigest) -> DispatchResult:
        try:
            message = self._build_message(digest)
        except ValueError as e:
            self.logger.warning(
                f"Digest for {digest.profile_id} not sent: {e}",
                extra={"event": "notification.send.skipped", "profile_id": digest.profile_id},
            )
            return DispatchResult(
                profile_id=digest.profile_id, channel=self.channel, status="skipped", error=str(e)
            )

        max_attempts = self.config.max_retries + 1
        last_error = None
        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = min(
                    self.config.retry_initial_delay
                    * (self.config.retry_backoff_multiplier ** (attempt - 2)),
                    MAX_RETRY_DELAY,
                )
                self.logger.warning(
                    f"Retrying digest for {digest.profile_id} (attempt {attempt}/{max_attempts}) after {delay:.1f}s",
                    extra={"event": "notification.send.retry", "attempt": attempt},
                )
                self.sleep(delay)

            try:
                self.smtp_client.send(message, self.env_config, self.config.use_tls)
            except DeliveryError as e:
                last_error = str(e)
                self.logger.warning(
                    f"Digest delivery failed for {digest.profile_id} (attempt {attempt}/{max_attempts}): {e}",
                    extra={
                        "event": "notification.send.failure",
                        "attempt": attempt,
                        "retry_remaining": attempt < max_attempts,
                    },
                )
                continue

            self.logger.info(
                f"Digest sent for {digest.profile_id} to {message['To']}",
                extra={
                    "event": "notification.send.success",
                    "profile_id": digest.profile_id,
                    "attempt": attempt,
                    "matches": len(digest.matches),
                },
            )
            return DispatchResult(
                profile_id=digest.profile_id,
                channel=self.channel,
                status="sent",
                attempts=attempt,
                delivered_match_ids=digest.match_ids,
            )

        self.logger.error(
            f"Digest delivery for {digest.profile_id} failed after {max_attempts} attempts",
            extra={"event": "notification.send.exhausted", "profile_id": digest.profile_id},
        )
        return DispatchResult(
            profile_id=digest.profile_id,
            channel=self.channel,
            status="failed",
            attempts=max_attempts,
            error=last_error,
        )


def get_dispatcher(config: NotificationConfig, env_config: EnvironmentConfig) -> NotificationDispatcher:
    """Dispatcher for the configured channel."""
    if config.channel == NotificationChannel.EMAIL.value:
        return EmailDispatcher(env_config, config)
    return LogDispatcher()
