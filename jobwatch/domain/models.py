"""Core domain models: search profiles, postings and stored job matches.

- SearchProfile: one user's search criteria, immutable for a run
- RawPosting: a posting exactly as a scraper produced it
- NormalizedPosting: a cleaned posting with canonical salary and hashes
- JobMatchRecord: a persisted (posting, profile) match
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from jobwatch.utils.timestamps import ensure_utc


class ContractType(str, Enum):
    """Canonical contract types."""

    PERMANENT = "permanent"
    CONTRACT = "contract"
    PART_TIME = "part-time"
    INTERNSHIP = "internship"

    @classmethod
    def from_label(cls, label: str) -> "ContractType":
        """Fold a free-form label ("full-time", "freelance", "intern"...) to a type.

        Raises:
            ValueError: If the label is not a known synonym
        """
        key = " ".join(str(label).strip().lower().replace("_", " ").split())
        try:
            return _CONTRACT_SYNONYMS[key]
        except KeyError:
            raise ValueError(f"Unknown contract type: {label!r}") from None


_CONTRACT_SYNONYMS: Dict[str, ContractType] = {
    "permanent": ContractType.PERMANENT,
    "perm": ContractType.PERMANENT,
    "full-time": ContractType.PERMANENT,
    "full time": ContractType.PERMANENT,
    "fulltime": ContractType.PERMANENT,
    "full": ContractType.PERMANENT,
    "contract": ContractType.CONTRACT,
    "contractor": ContractType.CONTRACT,
    "temporary": ContractType.CONTRACT,
    "temp": ContractType.CONTRACT,
    "freelance": ContractType.CONTRACT,
    "consultant": ContractType.CONTRACT,
    "part-time": ContractType.PART_TIME,
    "part time": ContractType.PART_TIME,
    "parttime": ContractType.PART_TIME,
    "internship": ContractType.INTERNSHIP,
    "intern": ContractType.INTERNSHIP,
}


class PayUnit(str, Enum):
    """Period a quoted salary figure refers to."""

    YEAR = "year"
    DAY = "day"
    HOUR = "hour"


class ApplicationStatus(str, Enum):
    """Where the user is with a matched posting. NOT_APPLIED is the default."""

    NOT_APPLIED = "not_applied"
    APPLIED = "applied"
    INTERVIEWED = "interviewed"
    REJECTED = "rejected"
    OFFERED = "offered"


class MoneyRange(BaseModel):
    """A min/max money range. A missing bound is unbounded on that side."""

    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)

    model_config = {"frozen": True}

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min is None and self.max is None:
            raise ValueError("Range must set at least one of min or max")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"Range min ({self.min}) is greater than max ({self.max})")
        return self

    def overlaps(self, low: float, high: float) -> bool:
        """True when ``[low, high]`` intersects this range."""
        if self.min is not None and high < self.min:
            return False
        if self.max is not None and low > self.max:
            return False
        return True


class LocationCriteria(BaseModel):
    """Where a profile accepts work."""

    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    remote: bool = Field(False, description="Remote postings are acceptable")

    model_config = {"frozen": True}

    @field_validator("city", "state", "country")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None

    @property
    def places(self) -> List[str]:
        """Configured city/state/country values, in that order."""
        return [p for p in (self.city, self.state, self.country) if p]


class SearchProfile(BaseModel):
    """A user's saved job-search criteria.

    Every criterion is optional. An unset criterion is vacuously satisfied
    when matching.
    """

    id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    name: Optional[str] = None
    title: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    location: LocationCriteria = Field(default_factory=LocationCriteria)
    contract_types: List[ContractType] = Field(default_factory=list)
    salary_range: Optional[MoneyRange] = None
    day_rate_range: Optional[MoneyRange] = None
    notification_email: Optional[EmailStr] = None

    model_config = {"frozen": True}

    @field_validator("id", "owner_id")
    @classmethod
    def strip_ids(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Identifier cannot be empty or whitespace-only")
        return stripped

    @field_validator("title")
    @classmethod
    def clean_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return " ".join(v.split()) or None

    @field_validator("keywords")
    @classmethod
    def normalize_keywords(cls, v: List[str]) -> List[str]:
        """Lower-case, trim and de-duplicate keywords, keeping first-seen order."""
        seen = []
        for keyword in v:
            cleaned = " ".join(keyword.lower().split())
            if cleaned and cleaned not in seen:
                seen.append(cleaned)
        return seen

    @field_validator("contract_types", mode="before")
    @classmethod
    def fold_contract_types(cls, v):
        if v is None:
            return []
        folded = []
        for item in v:
            contract_type = item if isinstance(item, ContractType) else ContractType.from_label(item)
            if contract_type not in folded:
                folded.append(contract_type)
        return folded

    @property
    def has_criteria(self) -> bool:
        """False when the profile would match every posting."""
        return bool(
            self.title
            or self.keywords
            or self.location.places
            or self.contract_types
            or self.salary_range
            or self.day_rate_range
        )


class RawPosting(BaseModel):
    """A posting as produced by a scraper. Lives for one run only."""

    title: str
    url: str
    source_site: str
    company: Optional[str] = None
    location: Optional[str] = None
    salary_text: Optional[str] = None
    contract_type_text: Optional[str] = None
    description: Optional[str] = None
    posted_at: Optional[datetime] = None
    external_id: Optional[str] = None

    @field_validator("posted_at")
    @classmethod
    def posted_at_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class SalaryRange(BaseModel):
    """Parsed salary. ``min``/``max`` are annualized, ``period_*`` are as quoted."""

    min: float
    max: float
    currency: str = "USD"
    unit: PayUnit = PayUnit.YEAR
    period_min: float
    period_max: float

    @property
    def is_day_rate(self) -> bool:
        return self.unit == PayUnit.DAY


class NormalizedPosting(BaseModel):
    """A cleaned posting with canonical fields and identity hashes."""

    title: str
    company: str = ""
    location: str = ""
    description: str = ""
    url: str
    normalized_url: str
    source_site: str
    external_id: Optional[str] = None
    contract_type: Optional[ContractType] = None
    salary: Optional[SalaryRange] = None
    salary_text: Optional[str] = None
    posted_at: datetime
    found_at: datetime
    primary_hash: str
    fuzzy_hashes: List[str] = Field(default_factory=list)

    @field_validator("posted_at", "found_at")
    @classmethod
    def timestamps_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def is_remote(self) -> bool:
        return self.location == "Remote"

    @property
    def all_hashes(self) -> List[str]:
        """Primary hash followed by the fuzzy variants, without repeats."""
        hashes = [self.primary_hash]
        for value in self.fuzzy_hashes:
            if value not in hashes:
                hashes.append(value)
        return hashes


class JobMatchRecord(BaseModel):
    """A stored (posting, profile) match as returned by the persistence layer."""

    id: Optional[int] = None
    profile_id: str
    title: str
    company: str = ""
    location: str = ""
    description: str = ""
    url: str
    normalized_url: str
    source_site: str
    salary_text: Optional[str] = None
    contract_type: Optional[ContractType] = None
    posted_at: Optional[datetime] = None
    found_at: datetime
    primary_hash: str
    fuzzy_hashes: List[str] = Field(default_factory=list)
    score: int = Field(0, ge=0, le=100)
    criteria: Dict[str, bool] = Field(default_factory=dict)
    application_status: ApplicationStatus = ApplicationStatus.NOT_APPLIED
    alert_sent: bool = False

    @field_validator("posted_at", "found_at")
    @classmethod
    def record_timestamps_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class ExecutionRunRecord(BaseModel):
    """One row of workflow execution history."""

    execution_id: str
    status: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    processed_jobs: int = 0
    matched_jobs: int = 0
    duplicate_jobs: int = 0
    stale_jobs: int = 0
    rejected_jobs: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    error_count: int = 0

    @field_validator("started_at", "finished_at")
    @classmethod
    def run_timestamps_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)
