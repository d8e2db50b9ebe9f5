"""Data models and exceptions for digest notifications."""

from dataclasses import dataclass, field
from typing import List, Optional

from jobwatch.domain.models import SearchProfile
from jobwatch.matching.models import MatchResult


class NotificationError(Exception):
    """Base exception for notification errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Template rendering failed (missing variable or broken template)."""

    pass


class DeliveryError(NotificationError):
    """A message could not be delivered."""

    pass


@dataclass
class AlertDigest:
    """
    Ranked matches for one profile, ready to deliver.

    Attributes:
        profile: Profile the matches belong to
        matches: Matches ranked best first, capped at the digest size
        total_matches: Matches found in the run before capping
        channel: Delivery channel ("email" or "log")
    """

    profile: SearchProfile
    matches: List[MatchResult] = field(default_factory=list)
    total_matches: int = 0
    channel: str = "log"

    @property
    def profile_id(self) -> str:
        return self.profile.id

    @property
    def owner_id(self) -> str:
        return self.profile.owner_id

    @property
    def match_ids(self) -> List[int]:
        return [m.match_id for m in self.matches if m.match_id is not None]


@dataclass
class DispatchResult:
    """
    Outcome of delivering one digest.

    Attributes:
        profile_id: Profile the digest was for
        channel: Channel used
        status: "sent", "skipped" or "failed"
        attempts: Delivery attempts made
        delivered_match_ids: Ids of matches included in a delivered digest
        error: Error message when delivery failed or was skipped
    """

    profile_id: str
    channel: str
    status: str
    attempts: int = 0
    delivered_match_ids: List[int] = field(default_factory=list)
    error: Optional[str] = None

    def is_success(self) -> bool:
        return self.status == "sent"
