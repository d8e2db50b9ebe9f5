"""Tiered duplicate detection against the persistence store.

Tiers are checked in order and the first hit wins:

1. same normalized URL on the same site      -> confidence 1.0
2. primary hash already stored               -> confidence 0.95
3. any fuzzy hash already stored             -> confidence 0.90
4. weighted text similarity above the strict
   threshold among same-site postings        -> confidence 0.85

Otherwise the posting is new (confidence 0.0). Postings that were similar
but not similar enough are still returned in ``similar_jobs``.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Tuple

from jobwatch.config.models import DuplicateConfig
from jobwatch.domain.models import JobMatchRecord, NormalizedPosting
from jobwatch.logging import get_logger

from .similarity import posting_similarity

logger = get_logger(__name__, component="duplicates")

CONFIDENCE_URL = 1.0
CONFIDENCE_PRIMARY_HASH = 0.95
CONFIDENCE_FUZZY_HASH = 0.90
CONFIDENCE_SIMILAR = 0.85
CONFIDENCE_NONE = 0.0


@dataclass
class DuplicateCheckResult:
    """Outcome of a duplicate check.

    Attributes:
        is_duplicate: Whether the posting should be skipped
        confidence: Tier confidence, 0.0 when not a duplicate
        matched_existing: Stored record the posting duplicates, if any
        match_type: Tier that fired (url, primary_hash, fuzzy_hash, similarity, batch)
        similar_jobs: Similar stored records that did not reach the strict threshold
    """

    is_duplicate: bool
    confidence: float = CONFIDENCE_NONE
    matched_existing: Optional[JobMatchRecord] = None
    match_type: Optional[str] = None
    similar_jobs: List[JobMatchRecord] = field(default_factory=list)


class DuplicateDetector:
    """Decides whether a posting duplicates one already in the store.

    Lookups are scoped to a profile when ``profile_id`` is given, so a
    posting is stored once per (posting, profile) pair.
    """

    def __init__(
        self,
        store,
        config: Optional[DuplicateConfig] = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize DuplicateDetector.

        Args:
            store: PersistenceStore used for lookups
            config: Similarity thresholds (defaults to DuplicateConfig())
            logger_instance: Logger override
        """
        self.store = store
        self.config = config or DuplicateConfig()
        self.logger = logger_instance or logger

    def is_duplicate(
        self, posting: NormalizedPosting, profile_id: Optional[str] = None
    ) -> DuplicateCheckResult:
        """Run the tiered checks for one posting.

        Args:
            posting: Normalized posting to check
            profile_id: Restrict the comparison to one profile's stored matches

        Returns:
            DuplicateCheckResult

        Raises:
            PersistenceError: If a store lookup fails
        """
        existing = self.store.find_by_url(posting.normalized_url, posting.source_site, profile_id)
        if existing is not None:
            return self._duplicate(posting, existing, CONFIDENCE_URL, "url")

        existing = self.store.find_by_hash(posting.primary_hash, profile_id)
        if existing is not None:
            return self._duplicate(posting, existing, CONFIDENCE_PRIMARY_HASH, "primary_hash")

        existing = self.store.find_by_any_hash(posting.all_hashes, profile_id)
        if existing is not None:
            return self._duplicate(posting, existing, CONFIDENCE_FUZZY_HASH, "fuzzy_hash")

        similar = self.store.find_similar(
            posting,
            self.config.similarity_threshold,
            profile_id=profile_id,
            limit=self.config.similar_candidate_limit,
        )
        for candidate in similar:
            if posting_similarity(posting, candidate) > self.config.strict_similarity_threshold:
                return self._duplicate(posting, candidate, CONFIDENCE_SIMILAR, "similarity")

        return DuplicateCheckResult(is_duplicate=False, similar_jobs=list(similar))

    def detect_batch(
        self, postings: Iterable[NormalizedPosting], profile_id: Optional[str] = None
    ) -> List[DuplicateCheckResult]:
        """Check a list of postings, also catching repeats inside the list.

        A posting repeating an earlier one in the same batch (same URL on the
        same site, or any shared hash) is flagged with match_type "batch"
        even though nothing is stored yet.
        """
        seen_urls: Set[Tuple[str, str]] = set()
        seen_hashes: Set[str] = set()
        results = []

        for posting in postings:
            url_key = (posting.source_site, posting.normalized_url)
            if url_key in seen_urls:
                results.append(DuplicateCheckResult(True, CONFIDENCE_URL, match_type="batch"))
                continue
            if posting.primary_hash in seen_hashes:
                results.append(
                    DuplicateCheckResult(True, CONFIDENCE_PRIMARY_HASH, match_type="batch")
                )
                continue
            if any(value in seen_hashes for value in posting.fuzzy_hashes):
                results.append(
                    DuplicateCheckResult(True, CONFIDENCE_FUZZY_HASH, match_type="batch")
                )
                continue

            results.append(self.is_duplicate(posting, profile_id))
            seen_urls.add(url_key)
            seen_hashes.update(posting.all_hashes)

        return results

    def _duplicate(
        self,
        posting: NormalizedPosting,
        existing: JobMatchRecord,
        confidence: float,
        match_type: str,
    ) -> DuplicateCheckResult:
        self.logger.debug(
            "Duplicate posting detected",
            extra={
                "event": "duplicate.detected",
                "match_type": match_type,
                "confidence": confidence,
                "existing_id": existing.id,
                "posting_hash": posting.primary_hash[:12],
                "source_site": posting.source_site,
            },
        )
        return DuplicateCheckResult(
            is_duplicate=True,
            confidence=confidence,
            matched_existing=existing,
            match_type=match_type,
        )
