"""Domain models shared across jobwatch layers."""

from .models import (
    ApplicationStatus,
    ContractType,
    ExecutionRunRecord,
    JobMatchRecord,
    LocationCriteria,
    MoneyRange,
    NormalizedPosting,
    PayUnit,
    RawPosting,
    SalaryRange,
    SearchProfile,
)

__all__ = [
    "ApplicationStatus",
    "ContractType",
    "ExecutionRunRecord",
    "JobMatchRecord",
    "LocationCriteria",
    "MoneyRange",
    "NormalizedPosting",
    "PayUnit",
    "RawPosting",
    "SalaryRange",
    "SearchProfile",
]
