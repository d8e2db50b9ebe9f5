"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from jobwatch.domain.models import SearchProfile

from .duration import DurationParseError, parse_duration, validate_duration_range


class SiteType(str, Enum):
    """Job boards with a scraper implementation."""

    GREENHOUSE = "greenhouse"
    LEVER = "lever"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    JSON = "json"
    KEY_VALUE = "key-value"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    LOG = "log"


class SiteConfig(BaseModel):
    """One job board to scrape."""

    name: str = Field(..., min_length=1, description="Unique site name, also the retry key")
    type: SiteType = Field(..., description="Board type (greenhouse, lever)")
    identifier: str = Field(..., min_length=1, description="Board token used in the API URL")
    enabled: bool = Field(True, description="Whether to scrape this site")
    min_request_interval: float = Field(
        1.0, ge=0.0, le=60.0, description="Minimum seconds between requests to this site"
    )

    model_config = {"use_enum_values": True}

    @field_validator("name", "identifier")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace-only")
        return stripped


class RetryConfig(BaseModel):
    """Backoff and circuit breaker settings, applied per site."""

    max_attempts: int = Field(3, ge=1, le=10, description="Total attempts per operation")
    base_delay: float = Field(1.0, ge=0.0, le=60.0, description="First retry delay (seconds)")
    multiplier: float = Field(2.0, ge=1.0, le=10.0, description="Backoff multiplier")
    max_delay: float = Field(30.0, ge=0.0, le=600.0, description="Delay cap before jitter")
    jitter_max: float = Field(1.0, ge=0.0, le=30.0, description="Upper bound of random jitter")
    circuit_breaker_threshold: int = Field(
        5, ge=1, le=100, description="Consecutive failures that open the circuit"
    )
    circuit_breaker_cooldown: float = Field(
        60.0, ge=0.0, le=3600.0, description="Seconds an open circuit waits before a trial call"
    )

    @model_validator(mode="after")
    def check_delays(self):
        if self.base_delay > self.max_delay:
            raise ValueError("retry.base_delay cannot exceed retry.max_delay")
        return self


class DuplicateConfig(BaseModel):
    """Text-similarity thresholds for the last duplicate detection tier."""

    similarity_threshold: float = Field(
        0.85, gt=0.0, le=1.0, description="Minimum similarity for a stored posting to count as similar"
    )
    strict_similarity_threshold: float = Field(
        0.9, gt=0.0, le=1.0, description="Similarity above which a similar posting is a duplicate"
    )
    similar_candidate_limit: int = Field(10, ge=1, le=100)

    @model_validator(mode="after")
    def check_thresholds(self):
        if self.strict_similarity_threshold < self.similarity_threshold:
            raise ValueError(
                "duplicates.strict_similarity_threshold must be >= duplicates.similarity_threshold"
            )
        return self


class ExecutorConfig(BaseModel):
    """Fan-out settings for a workflow run."""

    profile_batch_size: int = Field(10, ge=1, le=100, description="Profiles per batch")
    max_workers: int = Field(5, ge=1, le=32, description="Concurrent (profile, site) units")
    max_reported_errors: int = Field(
        50, ge=1, le=1000, description="Error entries kept in the execution report"
    )


class RetentionConfig(BaseModel):
    """How long stored matches and execution history are kept."""

    retention_days: int = Field(
        90, ge=1, le=3650, description="Rows older than this are removed by --cleanup"
    )


class NotificationConfig(BaseModel):
    """Digest delivery settings."""

    enabled: bool = Field(False, description="Send a digest per profile after each run")
    channel: NotificationChannel = Field(NotificationChannel.LOG)
    max_matches_per_digest: int = Field(25, ge=1, le=500)
    use_tls: bool = Field(True, description="Use STARTTLS (or implicit TLS on port 465)")
    max_retries: int = Field(3, ge=0, le=10, description="Retries for a failed email send")
    retry_backoff_multiplier: float = Field(2.0, ge=1.0, le=5.0)
    retry_initial_delay: float = Field(5.0, ge=0.0, le=60.0)

    model_config = {"use_enum_values": True}


class LoggingConfig(BaseModel):
    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.KEY_VALUE, description="json or key-value")

    model_config = {"use_enum_values": True}


class AdvancedConfig(BaseModel):
    """HTTP settings shared by all scrapers."""

    http_request_timeout: int = Field(30, ge=5, le=300, description="Request timeout (seconds)")
    user_agent: str = Field("jobwatch/0.1", min_length=1)
    max_postings_per_site: int = Field(
        1000, ge=0, description="Postings kept per site response (0 = unlimited)"
    )

    @field_validator("user_agent")
    @classmethod
    def strip_user_agent(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("user_agent cannot be empty")
        return stripped


class AppConfig(BaseModel):
    """Root configuration object for jobwatch."""

    sites: List[SiteConfig] = Field(..., min_length=1, description="Job boards to scrape")
    profiles: List[SearchProfile] = Field(..., min_length=1, description="Search profiles")
    scan_interval: str = Field("15m", description="Time between scheduled runs")
    retry: RetryConfig = Field(default_factory=RetryConfig)
    duplicates: DuplicateConfig = Field(default_factory=DuplicateConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    advanced: AdvancedConfig = Field(default_factory=AdvancedConfig)

    # Computed from scan_interval
    scan_interval_seconds: Optional[int] = None

    @field_validator("scan_interval")
    @classmethod
    def validate_scan_interval(cls, v: str) -> str:
        try:
            validate_duration_range(parse_duration(v), min_seconds=300, max_seconds=86400)
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def validate_sites_and_profiles(self):
        if not any(site.enabled for site in self.sites):
            raise ValueError("At least one site must be enabled. All sites have enabled=false.")

        names = set()
        boards = set()
        for site in self.sites:
            if site.name in names:
                raise ValueError(f"Duplicate site name: {site.name}")
            if (site.type, site.identifier) in boards:
                raise ValueError(f"Duplicate site: {site.type}/{site.identifier} appears multiple times")
            names.add(site.name)
            boards.add((site.type, site.identifier))

        profile_ids = set()
        for profile in self.profiles:
            if profile.id in profile_ids:
                raise ValueError(f"Duplicate profile id: {profile.id}")
            profile_ids.add(profile.id)

        self.scan_interval_seconds = parse_duration(self.scan_interval)
        return self

    def get_enabled_sites(self) -> List[SiteConfig]:
        return [site for site in self.sites if site.enabled]

    def get_profile(self, profile_id: str) -> Optional[SearchProfile]:
        for profile in self.profiles:
            if profile.id == profile_id:
                return profile
        return None
