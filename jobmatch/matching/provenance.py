"""Provenance recording: one append-only audit row per persisted match."""

from datetime import datetime
from typing import Iterable, Optional

from jobmatch.domain.models import MatchProvenance
from jobmatch.logging import get_logger
from jobmatch.persistence.exceptions import DataIntegrityError
from jobmatch.persistence.repositories import MatchRepository
from jobmatch.utils.timestamps import utc_now

from .exceptions import ProvenanceIntegrityError
from .models import ScoringTelemetry

logger = get_logger(__name__, component="provenance")


def build_provenance(
    match_id: int,
    telemetry: ScoringTelemetry,
    confidence: float,
    now: Optional[datetime] = None,
) -> MatchProvenance:
    """Provenance row for one match from the telemetry of its scoring run."""
    return MatchProvenance(
        match_id=match_id,
        match_algorithm=telemetry.algorithm,
        ai_model=telemetry.ai_model,
        prompt_version=telemetry.prompt_version,
        ai_latency_ms=telemetry.ai_latency_ms,
        ai_cost_usd=telemetry.ai_cost_usd,
        cache_hit=telemetry.cache_hit,
        fallback_reason=telemetry.fallback_reason,
        retry_count=telemetry.retry_count,
        error_category=telemetry.error_category,
        confidence_score=confidence,
        created_at=now or utc_now(),
    )


class ProvenanceRecorder:
    """Appends provenance rows and checks that every match has one.

    Args:
        match_repo: Repository bound to the caller's transaction
    """

    def __init__(self, match_repo: MatchRepository):
        self.match_repo = match_repo

    def record(
        self,
        match_id: int,
        telemetry: ScoringTelemetry,
        confidence: float,
        now: Optional[datetime] = None,
    ) -> MatchProvenance:
        """Append the provenance row for a persisted match.

        Raises:
            ProvenanceIntegrityError: If the match already has a provenance row
            RecordNotFoundError: If the match does not exist
        """
        provenance = build_provenance(match_id, telemetry, confidence, now)
        try:
            return self.match_repo.add_provenance(provenance)
        except DataIntegrityError as e:
            raise ProvenanceIntegrityError(str(e)) from e

    def verify_completeness(self, match_ids: Optional[Iterable[int]] = None) -> None:
        """Raise if any of the given matches (or any match at all) lacks provenance.

        Raises:
            ProvenanceIntegrityError: Listing the offending match ids
        """
        missing = self.match_repo.find_matches_without_provenance(match_ids)
        if missing:
            logger.error(
                f"{len(missing)} matches have no provenance row",
                extra={"event": "provenance.missing", "match_ids": missing},
            )
            raise ProvenanceIntegrityError(f"Matches without provenance: {missing}")
