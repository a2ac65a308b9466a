"""Distribution engine: turns scored matches into one tier-sized delivery.

Selection is pure (``distribute``); recording the delivery (SeenJob rows and
the weekly SendLedger counter) is a separate step the pipeline runs inside
the per-user commit.
"""

import math
from collections import Counter
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Set

from jobmatch.logging import get_logger
from jobmatch.persistence.repositories import SeenJobRepository, SendLedgerRepository
from jobmatch.utils.timestamps import iso_week_key, utc_now

from .categories import work_type_categories
from .models import DistributionResult, ScoredMatch, sort_key

logger = get_logger(__name__, component="distribution")

_UNKNOWN_CITY = "__unknown__"


def diversity_cap(quota: int, max_fraction: float) -> int:
    """Maximum matches sharing one city or one category."""
    return max(1, math.ceil(round(quota * max_fraction, 6)))


def _city_key(match: ScoredMatch) -> str:
    return (match.job.city or _UNKNOWN_CITY).strip().lower()


class DistributionEngine:
    """Allocates scored matches into a tier quota.

    Steps, in order:

    1. drop jobs the user has already been sent, and duplicate job hashes;
    2. sort by score, then confidence, then recency, then job_hash;
    3. take matches in rank order while no city and no work-type category
       exceeds the diversity cap;
    4. if that leaves the quota unfilled, backfill from the remaining
       eligible matches in rank order, ignoring the cap.

    Already-seen jobs are never used to pad a quota, so the result may be
    shorter than ``quota``.
    """

    def distribute(
        self,
        scored: Sequence[ScoredMatch],
        seen_jobs: Iterable[str],
        quota: int,
        max_fraction: float = 1.0,
    ) -> DistributionResult:
        """Select up to ``quota`` matches for delivery.

        Args:
            scored: Matches from the scoring engine, in any order
            seen_jobs: Job hashes previously delivered to this user
            quota: Tier quota for this send
            max_fraction: Largest share of the quota one city or category may take

        Returns:
            DistributionResult with the selected matches in delivery order
        """
        seen: Set[str] = set(seen_jobs)
        unseen: List[ScoredMatch] = []
        removed_seen = 0
        removed_duplicates = 0
        taken_hashes: Set[str] = set()

        for match in sorted(scored, key=sort_key):
            if match.job_hash in seen:
                removed_seen += 1
                continue
            if match.job_hash in taken_hashes:
                removed_duplicates += 1
                continue
            taken_hashes.add(match.job_hash)
            unseen.append(match)

        if quota <= 0 or not unseen:
            return DistributionResult(
                matches=[],
                quota=max(quota, 0),
                removed_seen=removed_seen,
                removed_duplicates=removed_duplicates,
            )

        cap = diversity_cap(quota, max_fraction)
        city_counts: Counter = Counter()
        category_counts: Counter = Counter()
        selected: List[ScoredMatch] = []
        deferred: List[ScoredMatch] = []

        for match in unseen:
            if len(selected) >= quota:
                break
            city = _city_key(match)
            categories = work_type_categories(match.job.categories)
            over_cap = city_counts[city] >= cap or any(
                category_counts[c] >= cap for c in categories
            )
            if over_cap:
                deferred.append(match)
                continue
            selected.append(match)
            city_counts[city] += 1
            category_counts.update(categories)

        cap_relaxed = False
        if len(selected) < quota and deferred:
            # Under-filled by the cap alone: reuse the best deferred matches.
            needed = quota - len(selected)
            selected.extend(deferred[:needed])
            cap_relaxed = True

        selected.sort(key=sort_key)
        return DistributionResult(
            matches=selected,
            quota=quota,
            removed_seen=removed_seen,
            removed_duplicates=removed_duplicates,
            cap_relaxed=cap_relaxed,
        )

    def record_delivery(
        self,
        user_email: str,
        tier: str,
        matches: Sequence[ScoredMatch],
        seen_repo: SeenJobRepository,
        ledger_repo: SendLedgerRepository,
        now: Optional[datetime] = None,
        sends_allowed: Optional[int] = None,
    ) -> int:
        """Mark delivered jobs as seen and count the send.

        An empty delivery writes nothing and does not consume a weekly send.
        Runs inside the caller's transaction. With ``sends_allowed`` the
        ledger increment fails once the week's allowance is used up.

        Returns:
            Number of SeenJob rows written

        Raises:
            DataIntegrityError: If a job was already marked seen for the user
            SendQuotaExceededError: If the weekly allowance is already used
        """
        if not matches:
            return 0
        now = now or utc_now()
        written = seen_repo.add_many(user_email, [m.job_hash for m in matches], now)
        entry = ledger_repo.record_send(
            user_email, iso_week_key(now), tier, len(matches), now, allowed=sends_allowed
        )
        logger.info(
            f"Delivered {written} matches",
            extra={
                "event": "distribution.completed",
                "user_email": user_email,
                "tier": tier,
                "match_count": written,
                "sends_used": entry.sends_used,
                "week_key": entry.week_key,
            },
        )
        return written
