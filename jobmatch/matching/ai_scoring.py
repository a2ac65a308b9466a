"""AI scoring strategy.

One structured-output LLM call per user scores the pre-filtered candidates.
The call is bounded by a hard timeout and retried only on provider errors;
any failure surfaces as ``AIScoringError`` so the scoring engine can fall
back to rules.
"""

import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from jobmatch.config.models import AIConfig, ScoringConfig
from jobmatch.domain.models import ErrorCategory, MatchAlgorithm, UserPreferences
from jobmatch.logging import get_logger
from jobmatch.providers.base import CompletionRequest, LLMCompletion, LLMProvider
from jobmatch.providers.exceptions import (
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from jobmatch.providers.pricing import estimate_cost_usd
from jobmatch.utils.hashing import fingerprint

from .exceptions import AIScoringError
from .models import (
    MatchCandidate,
    ScoreBreakdown,
    ScoredMatch,
    ScoringOutcome,
    ScoringTelemetry,
    sort_key,
)
from .prompts import PromptBuilder, get_prompt_builder

logger = get_logger(__name__, component="ai_scoring")

DEFAULT_CONFIDENCE = 0.8


def _first(entry: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in entry and entry[key] is not None:
            return entry[key]
    return None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(round(value))
    if isinstance(value, str):
        try:
            return int(round(float(value.strip())))
        except ValueError:
            return None
    return None


def _clamp_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    # Some models answer on a 0-100 scale.
    if value > 1:
        value = value / 100.0
    return round(min(max(float(value), 0.0), 1.0), 3)


def _parse_breakdown(raw: Any, match_score: int) -> ScoreBreakdown:
    values = {}
    raw = raw if isinstance(raw, dict) else {}
    for dimension in ("skills", "experience", "location", "company"):
        score = _as_int(raw.get(dimension))
        values[dimension] = score if score is not None and 0 <= score <= 100 else match_score
    return ScoreBreakdown(overall=match_score, **values)


def parse_ai_matches(
    payload: Any,
    candidates: Sequence[MatchCandidate],
    max_results: int,
) -> Tuple[List[ScoredMatch], int]:
    """Validate a model response against the candidate list.

    Entries with an unknown index, a score outside 0-100 or no usable
    reason are dropped. A later entry for an already scored index is
    ignored. Both ``job_index`` and ``jobIndex`` spellings are accepted.

    Args:
        payload: Decoded function-call arguments
        candidates: Candidates in prompt order (index 1 is ``candidates[0]``)
        max_results: Upper bound on returned matches

    Returns:
        Tuple of (valid matches sorted for delivery, number of dropped entries)

    Raises:
        AIScoringError: If the payload has no ``matches`` list at all
    """
    if isinstance(payload, dict):
        entries = payload.get("matches")
    else:
        entries = payload
    if not isinstance(entries, list):
        raise AIScoringError(
            "Response has no matches array", ErrorCategory.SCHEMA_VIOLATION.value
        )

    matches: List[ScoredMatch] = []
    seen_indexes = set()
    dropped = 0
    for entry in entries:
        if not isinstance(entry, dict):
            dropped += 1
            continue
        index = _as_int(_first(entry, "job_index", "jobIndex"))
        score = _as_int(_first(entry, "match_score", "matchScore"))
        reason = _first(entry, "match_reason", "matchReason")
        if index is None or not 1 <= index <= len(candidates) or index in seen_indexes:
            dropped += 1
            continue
        if score is None or not 0 <= score <= 100:
            dropped += 1
            continue
        if not isinstance(reason, str) or not reason.strip():
            dropped += 1
            continue

        candidate = candidates[index - 1]
        claimed_hash = _first(entry, "job_hash", "jobHash")
        if claimed_hash and claimed_hash != candidate.job_hash:
            dropped += 1
            continue

        seen_indexes.add(index)
        matches.append(
            ScoredMatch(
                candidate=candidate,
                match_score=score,
                confidence=_clamp_confidence(_first(entry, "confidence_score", "confidenceScore")),
                match_reason=reason.strip(),
                breakdown=_parse_breakdown(
                    _first(entry, "score_breakdown", "scoreBreakdown"), score
                ),
            )
        )

    matches.sort(key=sort_key)
    return matches[:max_results], dropped


@dataclass
class _CacheEntry:
    completion: LLMCompletion
    stored_at: float


class AIResponseCache:
    """Small in-process LRU cache of model responses with a TTL.

    Args:
        ttl_seconds: Entry lifetime
        max_entries: Capacity; 0 disables caching
    """

    def __init__(self, ttl_seconds: int, max_entries: int):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, _CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[LLMCompletion]:
        if self.max_entries <= 0:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if time.monotonic() - entry.stored_at > self.ttl_seconds:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry.completion

    def put(self, key: str, completion: LLMCompletion) -> None:
        if self.max_entries <= 0:
            return
        with self._lock:
            self._entries[key] = _CacheEntry(completion, time.monotonic())
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def cache_key(profile: UserPreferences, candidates: Sequence[MatchCandidate], prompt_version: str) -> str:
    """Identity of one scoring request: profile, candidate order and prompt."""
    return fingerprint(
        [profile.model_dump_json(), prompt_version]
        + [c.job_hash for c in candidates]
    )


class AIScorer:
    """Scores candidates with an LLM.

    Args:
        provider: Structured-output LLM client
        ai_config: Model, temperature and token settings
        scoring_config: Timeout, retry and cache settings
        cache: Response cache (a private one is created if None)
    """

    def __init__(
        self,
        provider: LLMProvider,
        ai_config: AIConfig,
        scoring_config: ScoringConfig,
        cache: Optional[AIResponseCache] = None,
    ):
        self.provider = provider
        self.ai_config = ai_config
        self.scoring_config = scoring_config
        self.cache = cache or AIResponseCache(
            scoring_config.ai_cache_ttl_seconds, scoring_config.ai_cache_max_entries
        )
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="ai-scoring")

    def score(
        self,
        profile: UserPreferences,
        candidates: Sequence[MatchCandidate],
        match_count: int,
    ) -> ScoringOutcome:
        """Score candidates for one user.

        Args:
            profile: The user's preferences
            candidates: Pre-filtered candidates, best first
            match_count: Matches to request from the model

        Returns:
            ScoringOutcome with AI-produced matches and their telemetry

        Raises:
            AIScoringError: Timeout, schema violation or provider error
        """
        builder = get_prompt_builder(profile.tier, self.ai_config, match_count)
        listed = builder.select_jobs(candidates)
        if not listed:
            raise AIScoringError("No candidates to score", ErrorCategory.SCHEMA_VIOLATION.value)

        settings = builder.settings
        key = cache_key(profile, listed, settings.prompt_version)
        started = time.monotonic()

        completion = self.cache.get(key)
        cache_hit = completion is not None
        retry_count = 0
        if completion is None:
            completion, retry_count = self._complete_with_retries(builder, profile, listed)

        latency_ms = int((time.monotonic() - started) * 1000)
        matches, dropped = parse_ai_matches(completion.payload, listed, match_count)
        if dropped:
            logger.warning(
                f"Dropped {dropped} invalid AI match entries",
                extra={"event": "scoring.ai.partial", "dropped": dropped, "kept": len(matches)},
            )
        if not matches:
            raise AIScoringError(
                "AI response contained no valid matches",
                ErrorCategory.SCHEMA_VIOLATION.value,
                retry_count=retry_count,
                latency_ms=latency_ms,
                model=completion.model,
            )

        if not cache_hit:
            self.cache.put(key, completion)

        cost = 0.0 if cache_hit else estimate_cost_usd(
            completion.model, completion.prompt_tokens, completion.completion_tokens
        )
        telemetry = ScoringTelemetry(
            algorithm=MatchAlgorithm.AI.value,
            ai_model=completion.model,
            prompt_version=settings.prompt_version,
            ai_latency_ms=latency_ms,
            ai_cost_usd=cost,
            cache_hit=cache_hit,
            retry_count=retry_count,
        )
        return ScoringOutcome(matches=matches, telemetry=telemetry)

    def _complete_with_retries(
        self,
        builder: PromptBuilder,
        profile: UserPreferences,
        candidates: Sequence[MatchCandidate],
    ) -> Tuple[LLMCompletion, int]:
        settings = builder.settings
        request = CompletionRequest(
            system_prompt=builder.system_message(),
            prompt=builder.build_prompt(profile, candidates),
            schema=builder.response_schema,
            schema_name=settings.schema_name,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            timeout_seconds=float(self.scoring_config.ai_timeout_seconds),
        )

        max_retries = self.scoring_config.ai_max_retries
        attempt = 0
        started = time.monotonic()
        while True:
            try:
                return self._call_with_timeout(request), attempt
            except (ProviderTimeoutError, ProviderResponseError) as e:
                # Neither is retried: a timeout must not extend the run and a
                # malformed answer is not transient.
                raise AIScoringError(
                    str(e),
                    e.error_category,
                    retry_count=attempt,
                    latency_ms=int((time.monotonic() - started) * 1000),
                    model=self.ai_config.model,
                ) from e
            except ProviderError as e:
                if attempt >= max_retries:
                    raise AIScoringError(
                        str(e),
                        e.error_category,
                        retry_count=attempt,
                        latency_ms=int((time.monotonic() - started) * 1000),
                        model=self.ai_config.model,
                    ) from e
                attempt += 1
                logger.warning(
                    f"AI provider error, retrying ({attempt}/{max_retries}): {e}",
                    extra={"event": "scoring.ai.retry", "attempt": attempt},
                )
            except Exception as e:
                # Anything else from the provider is a bug on its side; not retried.
                logger.error(
                    f"Unexpected error from AI provider: {e}",
                    extra={"event": "scoring.ai.unexpected_error", "error_type": type(e).__name__},
                    exc_info=True,
                )
                raise AIScoringError(
                    str(e),
                    ErrorCategory.PROVIDER_ERROR.value,
                    retry_count=attempt,
                    latency_ms=int((time.monotonic() - started) * 1000),
                    model=self.ai_config.model,
                ) from e

    def _call_with_timeout(self, request: CompletionRequest) -> LLMCompletion:
        future = self._executor.submit(self.provider.complete, request)
        try:
            return future.result(timeout=request.timeout_seconds)
        except FutureTimeoutError as e:
            # The worker thread cannot be interrupted; its result is discarded.
            future.cancel()
            raise ProviderTimeoutError(
                f"AI call exceeded {request.timeout_seconds:.0f}s timeout"
            ) from e

    def close(self) -> None:
        self._executor.shutdown(wait=False)
