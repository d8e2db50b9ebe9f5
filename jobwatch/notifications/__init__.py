"""Digest notifications for matched postings."""

from .digest import build_digests, digest_context
from .dispatcher import EmailDispatcher, LogDispatcher, NotificationDispatcher, get_dispatcher
from .models import (
    AlertDigest,
    DeliveryError,
    DispatchResult,
    NotificationError,
    NotificationTemplateError,
)
from .smtp_client import SMTPClient, build_sender_address, parse_recipients
from .templates import DigestRenderer

__all__ = [
    "AlertDigest",
    "DispatchResult",
    "NotificationError",
    "NotificationTemplateError",
    "DeliveryError",
    "build_digests",
    "digest_context",
    "DigestRenderer",
    "SMTPClient",
    "parse_recipients",
    "build_sender_address",
    "NotificationDispatcher",
    "LogDispatcher",
    "EmailDispatcher",
    "get_dispatcher",
]
