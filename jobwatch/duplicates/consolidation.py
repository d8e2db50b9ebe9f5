"""Consolidation of stored matches that share a primary hash."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from jobwatch.domain.models import ApplicationStatus, JobMatchRecord
from jobwatch.logging import get_logger

logger = get_logger(__name__, component="duplicates")


def _newest_first(group: Iterable[JobMatchRecord]) -> List[JobMatchRecord]:
    return sorted(group, key=lambda record: (record.found_at, record.id or 0), reverse=True)


def select_posting_to_keep(group: Sequence[JobMatchRecord]) -> JobMatchRecord:
    """Pick the record to retain from a duplicate group.

    Precedence: the newest record with a non-default application status,
    else the newest record whose alert was sent, else the newest record.

    Raises:
        ValueError: If the group is empty
    """
    if not group:
        raise ValueError("Cannot select from an empty duplicate group")

    ordered = _newest_first(group)
    for record in ordered:
        if record.application_status != ApplicationStatus.NOT_APPLIED:
            return record
    for record in ordered:
        if record.alert_sent:
            return record
    return ordered[0]


def merge_flags(
    keep: JobMatchRecord, group: Sequence[JobMatchRecord]
) -> Tuple[bool, ApplicationStatus]:
    """Flags the retained record should carry after consolidation.

    ``alert_sent`` is OR-ed across the group. The retained record keeps its
    own application status when it has one; otherwise the newest
    non-default status in the group wins.
    """
    alert_sent = any(record.alert_sent for record in group)
    if keep.application_status != ApplicationStatus.NOT_APPLIED:
        return alert_sent, keep.application_status
    for record in _newest_first(group):
        if record.application_status != ApplicationStatus.NOT_APPLIED:
            return alert_sent, record.application_status
    return alert_sent, ApplicationStatus.NOT_APPLIED


@dataclass
class ConsolidationSummary:
    """Counts from one consolidation pass."""

    profile_id: str
    groups: int = 0
    kept: int = 0
    removed: int = 0


class DuplicateConsolidator:
    """Collapses each duplicate group of a profile down to one stored match."""

    def __init__(self, store, logger_instance: Optional[logging.Logger] = None):
        self.store = store
        self.logger = logger_instance or logger

    def consolidate_profile(self, profile_id: str) -> ConsolidationSummary:
        """Consolidate every duplicate group stored for ``profile_id``.

        Args:
            profile_id: Profile whose matches are consolidated

        Returns:
            ConsolidationSummary with group and record counts

        Raises:
            PersistenceError: If loading or updating groups fails
        """
        summary = ConsolidationSummary(profile_id=profile_id)

        for group in self.store.find_duplicate_groups(profile_id):
            if len(group) < 2:
                continue
            keep = select_posting_to_keep(group)
            alert_sent, status = merge_flags(keep, group)
            remove_ids = [record.id for record in group if record.id != keep.id]

            self.store.consolidate(keep.id, remove_ids, alert_sent, status)
            summary.groups += 1
            summary.kept += 1
            summary.removed += len(remove_ids)

        self.logger.info(
            "Duplicate consolidation finished",
            extra={
                "event": "duplicate.consolidation.completed",
                "profile_id": profile_id,
                "groups": summary.groups,
                "removed": summary.removed,
            },
        )
        return summary


def duplicate_statistics(records: Iterable[JobMatchRecord]) -> Dict[str, object]:
    """Totals of stored records and hash-level duplicates, overall and per site."""
    by_hash: Dict[str, int] = defaultdict(int)
    by_site: Dict[str, Dict[str, int]] = defaultdict(lambda: {"total": 0, "duplicates": 0})
    total = 0

    for record in records:
        total += 1
        by_hash[record.primary_hash] += 1
        site = by_site[record.source_site]
        site["total"] += 1
        if by_hash[record.primary_hash] > 1:
            site["duplicates"] += 1

    duplicates = sum(count - 1 for count in by_hash.values() if count > 1)
    return {
        "total": total,
        "unique": len(by_hash),
        "duplicates": duplicates,
        "duplicate_rate": round(duplicates / total, 4) if total else 0.0,
        "by_site": dict(by_site),
    }
