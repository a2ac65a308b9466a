"""Matching pipeline: per-user orchestration and the batch driver."""

import threading
import time
from datetime import datetime
from typing import Callable, ContextManager, Dict, Iterable, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy.orm import Session

from jobmatch.config.models import AppConfig
from jobmatch.domain.models import Job, Match, UserPreferences
from jobmatch.embeddings.service import EmbeddingService
from jobmatch.logging import get_logger
from jobmatch.logging.context import log_context
from jobmatch.matching.ai_scoring import AIScorer
from jobmatch.matching.distribution import DistributionEngine
from jobmatch.matching.models import DistributionResult, ScoringOutcome, SelectionResult
from jobmatch.matching.prefilter import CandidateSelector
from jobmatch.matching.provenance import ProvenanceRecorder
from jobmatch.matching.rule_scoring import RuleScorer
from jobmatch.matching.scoring import ScoringEngine
from jobmatch.matching.semantic import SemanticRetriever
from jobmatch.persistence.database import get_session
from jobmatch.persistence.exceptions import SendQuotaExceededError
from jobmatch.persistence.repositories import (
    EmbeddingRepository,
    JobRepository,
    MatchRepository,
    SeenJobRepository,
    SendLedgerRepository,
    UserRepository,
)
from jobmatch.providers.factory import Providers
from jobmatch.utils.timestamps import iso_week_key, utc_now

from .models import (
    STATUS_FAILED,
    STATUS_LOW_MATCH,
    STATUS_MATCHED,
    STATUS_QUOTA_EXHAUSTED,
    STATUS_ZERO_MATCH,
    BatchRunResult,
    UserRunResult,
)

logger = get_logger(__name__, component="pipeline")

SessionFactory = Callable[[], ContextManager[Session]]


class MatchingPipeline:
    """
    Runs the matching core for one user or a batch of users.

    Per user: quota gate -> semantic similarity -> candidate selection ->
    scoring (with fallback) -> distribution -> one commit that writes
    SeenJob, SendLedger, Match and MatchProvenance rows together.
    """

    def __init__(
        self,
        app_config: AppConfig,
        providers: Optional[Providers] = None,
        session_factory: SessionFactory = get_session,
        scoring_engine: Optional[ScoringEngine] = None,
    ):
        """
        Initialize the matching pipeline.

        Args:
            app_config: Application configuration
            providers: Embedding and LLM clients (None runs rules-only)
            session_factory: Context manager yielding a transactional session
            scoring_engine: Scoring engine override (built from config if None)
        """
        self.app_config = app_config
        self.providers = providers or Providers()
        self.session_factory = session_factory
        self.selector = CandidateSelector(app_config.matching)
        self.distribution = DistributionEngine()

        if scoring_engine is None:
            ai_scorer = None
            if self.providers.llm is not None:
                ai_scorer = AIScorer(self.providers.llm, app_config.ai, app_config.scoring)
            scoring_engine = ScoringEngine(
                RuleScorer(app_config.scoring.rule_weights),
                ai_scorer,
                app_config.scoring.rules_min_signal_score,
            )
        self.scoring_engine = scoring_engine
        self._lock = threading.Lock()

    def run_batch(
        self,
        user_emails: Optional[Iterable[str]] = None,
        now: Optional[datetime] = None,
    ) -> BatchRunResult:
        """
        Match every active user (or the given users) against the active job pool.

        A failure in one user's run is logged and recorded as a failed
        UserRunResult; the batch always continues with the next user.

        Args:
            user_emails: Restrict the batch to these users
            now: Reference time (defaults to current UTC time)

        Returns:
            BatchRunResult with per-user outcomes and aggregate metrics
        """
        run_started_at = utc_now()
        now = now or run_started_at
        run_id = uuid4().hex

        if not self._lock.acquire(blocking=False):
            with log_context(run_id=run_id):
                logger.warning(
                    "Matching batch skipped: previous batch still in progress",
                    extra={"event": "matching.batch.skipped", "reason": "lock_held"},
                )
            return BatchRunResult(
                run_id=run_id,
                run_started_at=run_started_at,
                run_finished_at=utc_now(),
                skipped=True,
            )

        try:
            with log_context(run_id=run_id):
                users, job_pool = self._load_batch_inputs(user_emails)
                logger.info(
                    "Matching batch started",
                    extra={
                        "event": "matching.batch.started",
                        "user_count": len(users),
                        "job_pool_size": len(job_pool),
                    },
                )

                results: List[UserRunResult] = []
                for user in users:
                    results.append(self._run_user_isolated(user, job_pool, run_id, now))

                result = BatchRunResult(
                    run_id=run_id,
                    run_started_at=run_started_at,
                    run_finished_at=utc_now(),
                    user_results=results,
                    jobs_in_pool=len(job_pool),
                )
                logger.info(
                    "Matching batch completed",
                    extra={
                        "event": "matching.batch.completed",
                        "duration_ms": int(result.total_duration_seconds * 1000),
                        **result.to_dict(),
                    },
                )
                return result
        finally:
            self._lock.release()

    def run_for_user(
        self,
        user: UserPreferences,
        job_pool: Sequence[Job],
        run_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> UserRunResult:
        """
        Match one user against a job pool and persist the delivery.

        Args:
            user: The user's preferences
            job_pool: Active jobs (read-only)
            run_id: Correlation id stored on every Match row
            now: Reference time (defaults to current UTC time)

        Returns:
            UserRunResult describing the outcome

        Raises:
            DataIntegrityError: A duplicate SeenJob or provenance row; the
                user's transaction is rolled back
            PersistenceError: Any other datastore failure
        """
        started = time.time()
        now = now or utc_now()
        run_id = run_id or uuid4().hex
        policy = self.app_config.tier_policy(user.tier)
        week_key = iso_week_key(now)

        with log_context(user_email=user.email, tier=user.tier):
            logger.debug("Matching user", extra={"event": "matching.user.started"})

            with self.session_factory() as session:
                seen = SeenJobRepository(session).get_seen_hashes(user.email)
                sends_used = SendLedgerRepository(session).sends_used(
                    user.email, week_key, user.tier
                )

            if sends_used >= policy.sends_per_week:
                logger.info(
                    f"Weekly quota exhausted ({sends_used}/{policy.sends_per_week})",
                    extra={
                        "event": "matching.user.quota_exhausted",
                        "sends_used": sends_used,
                        "week_key": week_key,
                    },
                )
                return UserRunResult(
                    user_email=user.email,
                    tier=user.tier,
                    status=STATUS_QUOTA_EXHAUSTED,
                    quota=policy.jobs_per_send,
                    duration_seconds=time.time() - started,
                )

            pool = [job for job in job_pool if job.job_hash not in seen]
            similarities = self._similarities(user, pool)
            selection = self.selector.select_candidates(user, pool, similarities, now)
            outcome = self.scoring_engine.score(user, selection.candidates, policy)
            distribution = self.distribution.distribute(
                outcome.matches,
                seen,
                policy.jobs_per_send,
                policy.diversity_max_fraction,
            )

            try:
                match_ids = self._persist(
                    user, run_id, selection, outcome, distribution, now, policy.sends_per_week
                )
            except SendQuotaExceededError:
                logger.warning(
                    "Weekly quota used up by a concurrent run; delivery rolled back",
                    extra={"event": "matching.user.quota_exhausted", "week_key": week_key},
                )
                return UserRunResult(
                    user_email=user.email,
                    tier=user.tier,
                    status=STATUS_QUOTA_EXHAUSTED,
                    quota=policy.jobs_per_send,
                    duration_seconds=time.time() - started,
                )
            result = UserRunResult(
                user_email=user.email,
                tier=user.tier,
                status=self._status(distribution),
                match_count=len(match_ids),
                quota=policy.jobs_per_send,
                candidate_count=len(selection.candidates),
                relaxation_level=selection.relaxation_level,
                accuracy_score=selection.accuracy_score,
                algorithm=outcome.algorithm,
                fallback_reason=outcome.telemetry.fallback_reason,
                error_category=outcome.telemetry.error_category,
                semantic_used=similarities is not None,
                match_ids=match_ids,
                duration_seconds=time.time() - started,
            )
            self._log_user_result(result)
            return result

    def _run_user_isolated(
        self, user: UserPreferences, job_pool: Sequence[Job], run_id: str, now: datetime
    ) -> UserRunResult:
        started = time.time()
        try:
            return self.run_for_user(user, job_pool, run_id, now)
        except Exception as e:
            logger.error(
                f"Matching failed for user: {e}",
                extra={
                    "event": "matching.user.failed",
                    "user_email": user.email,
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            return UserRunResult(
                user_email=user.email,
                tier=user.tier,
                status=STATUS_FAILED,
                error_message=str(e),
                duration_seconds=time.time() - started,
            )

    def _load_batch_inputs(self, user_emails: Optional[Iterable[str]]):
        with self.session_factory() as session:
            users = UserRepository(session).get_active_users()
            job_pool = JobRepository(session).get_active_jobs()
        if user_emails is not None:
            wanted = {email.strip().lower() for email in user_emails}
            users = [u for u in users if u.email.lower() in wanted]
        return users, job_pool

    def _similarities(
        self, user: UserPreferences, pool: Sequence[Job]
    ) -> Optional[Dict[str, float]]:
        """Semantic similarity per job, or None when semantic search is unavailable."""
        matching = self.app_config.matching
        if not matching.semantic_enabled or self.providers.embedding is None or not pool:
            return None
        # Embedding cache writes commit independently of the match delivery.
        with self.session_factory() as session:
            store = EmbeddingRepository(session)
            service = EmbeddingService(
                self.providers.embedding, store, self.app_config.embeddings.dimension
            )
            retriever = SemanticRetriever(service, store)
            return retriever.similarity_map(user, pool, matching.semantic_limit)

    def _persist(
        self,
        user: UserPreferences,
        run_id: str,
        selection: SelectionResult,
        outcome: ScoringOutcome,
        distribution: DistributionResult,
        now: datetime,
        sends_allowed: int,
    ) -> List[int]:
        """The single commit point of a user's run."""
        if distribution.is_empty:
            return []

        with self.session_factory() as session:
            match_repo = MatchRepository(session)
            recorder = ProvenanceRecorder(match_repo)
            self.distribution.record_delivery(
                user.email,
                user.tier,
                distribution.matches,
                SeenJobRepository(session),
                SendLedgerRepository(session),
                now,
                sends_allowed=sends_allowed,
            )

            match_ids: List[int] = []
            for scored in distribution.matches:
                match = match_repo.add(
                    Match(
                        run_id=run_id,
                        user_email=user.email,
                        job_hash=scored.job_hash,
                        match_score=scored.match_score,
                        confidence_score=scored.confidence,
                        match_reason=scored.match_reason,
                        match_quality=scored.quality,
                        relaxation_level=scored.relaxation_level,
                        accuracy_score=selection.accuracy_score,
                        created_at=now,
                    )
                )
                recorder.record(match.id, outcome.telemetry, scored.confidence, now)
                match_ids.append(match.id)

            recorder.verify_completeness(match_ids)
        return match_ids

    @staticmethod
    def _status(distribution: DistributionResult) -> str:
        if distribution.is_empty:
            return STATUS_ZERO_MATCH
        if distribution.under_quota:
            return STATUS_LOW_MATCH
        return STATUS_MATCHED

    def _log_user_result(self, result: UserRunResult) -> None:
        fields = {
            "match_count": result.match_count,
            "quota": result.quota,
            "candidate_count": result.candidate_count,
            "relaxation_level": result.relaxation_level,
            "accuracy_score": result.accuracy_score,
            "algorithm": result.algorithm,
            "fallback_reason": result.fallback_reason,
        }
        if result.status == STATUS_ZERO_MATCH:
            logger.warning(
                "No matches for user",
                extra={"event": "matching.user.zero_matches", **fields},
            )
        elif result.status == STATUS_LOW_MATCH:
            logger.warning(
                f"Under quota: {result.match_count}/{result.quota} matches",
                extra={"event": "matching.user.low_matches", **fields},
            )
        logger.info(
            f"User matched: {result.match_count} matches ({result.status})",
            extra={"event": "matching.user.completed", "status": result.status, **fields},
        )
