"""Environment variable loading and validation."""

import os
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/jobwatch.db"
_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EnvironmentConfig:
    """Settings that come from the process environment (or a .env file)."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        log_level: Optional[str] = None,
        environment: Optional[str] = None,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        smtp_sender_name: Optional[str] = None,
        alert_to_email: Optional[str] = None,
    ):
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.log_level = log_level
        self.environment = environment or "local"
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.smtp_sender_name = smtp_sender_name or "jobwatch"
        self.alert_to_email = alert_to_email

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_port)


def _invalid_addresses(value: str) -> List[str]:
    bad = []
    for address in (part.strip() for part in value.split(",")):
        if not address:
            continue
        try:
            validate_email(address, check_deliverability=False)
        except EmailNotValidError:
            bad.append(address)
    return bad


def load_environment_config(require_smtp: bool = False) -> EnvironmentConfig:
    """Load and validate environment variables.

    Always optional:
    - DATABASE_URL: SQLAlchemy URL (default sqlite:///./data/jobwatch.db)
    - LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL
    - ENVIRONMENT: label attached to log records (default "local")
    - ALERT_TO_EMAIL: fallback digest recipient(s), comma separated

    Required only when ``require_smtp`` is set (email notifications enabled):
    - SMTP_HOST, SMTP_PORT; SMTP_USER and SMTP_PASS must be set together

    Args:
        require_smtp: Whether SMTP settings must be present

    Returns:
        EnvironmentConfig

    Raises:
        ConfigurationError: If a variable is missing or invalid
    """
    errors = []

    log_level = os.getenv("LOG_LEVEL")
    if log_level and log_level.upper() not in _VALID_LEVELS:
        errors.append(f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(_VALID_LEVELS)}")

    smtp_host = os.getenv("SMTP_HOST")
    smtp_port_raw = os.getenv("SMTP_PORT")
    smtp_user = os.getenv("SMTP_USER")
    smtp_pass = os.getenv("SMTP_PASS")
    alert_to_email = os.getenv("ALERT_TO_EMAIL")

    smtp_port = None
    if smtp_port_raw:
        try:
            smtp_port = int(smtp_port_raw)
        except ValueError:
            errors.append(f"Invalid SMTP_PORT: '{smtp_port_raw}'. Must be a valid integer.")
        else:
            if not 1 <= smtp_port <= 65535:
                errors.append(f"Invalid SMTP_PORT: {smtp_port}. Must be between 1 and 65535.")

    if require_smtp:
        if not smtp_host:
            errors.append("Missing required environment variable: SMTP_HOST")
        if not smtp_port_raw:
            errors.append("Missing required environment variable: SMTP_PORT")

    if bool(smtp_user) != bool(smtp_pass):
        errors.append("SMTP_USER and SMTP_PASS must be set together for authentication.")

    if alert_to_email:
        for address in _invalid_addresses(alert_to_email):
            errors.append(f"Invalid email address format in ALERT_TO_EMAIL: '{address}'")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your settings",
                "SMTP settings are only needed when email notifications are enabled",
            ],
        )

    return EnvironmentConfig(
        database_url=os.getenv("DATABASE_URL"),
        log_level=log_level.upper() if log_level else None,
        environment=os.getenv("ENVIRONMENT"),
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        smtp_sender_name=os.getenv("SMTP_SENDER_NAME"),
        alert_to_email=alert_to_email,
    )
