"""Matching core: candidate selection, scoring, distribution and provenance.

This package provides:
- CandidateSelector: Hard filters with the ordered relaxation protocol
- SemanticRetriever: Embedding-similarity ranking of the job pool
- AIScorer / RuleScorer: The two scoring strategies
- ScoringEngine: Primary-strategy selection and fallback per tier
- DistributionEngine: Seen-job dedup, tier quota and diversity cap
- ProvenanceRecorder: One audit row per persisted match
"""

from .ai_scoring import AIResponseCache, AIScorer, parse_ai_matches
from .distribution import DistributionEngine, diversity_cap
from .exceptions import AIScoringError, MatchingError, PromptRenderError, ProvenanceIntegrityError
from .models import (
    DistributionResult,
    MatchCandidate,
    ScoreBreakdown,
    ScoredMatch,
    ScoringOutcome,
    ScoringTelemetry,
    SelectionResult,
    accuracy_score,
    match_quality,
)
from .prefilter import CandidateSelector
from .prompts import FreePromptBuilder, PremiumPromptBuilder, get_prompt_builder
from .provenance import ProvenanceRecorder, build_provenance
from .rule_scoring import RuleScorer
from .scoring import ScoringEngine
from .semantic import SemanticRetriever, cosine_similarity

__all__ = [
    "AIResponseCache",
    "AIScorer",
    "AIScoringError",
    "CandidateSelector",
    "DistributionEngine",
    "DistributionResult",
    "FreePromptBuilder",
    "MatchCandidate",
    "MatchingError",
    "PremiumPromptBuilder",
    "PromptRenderError",
    "ProvenanceIntegrityError",
    "ProvenanceRecorder",
    "RuleScorer",
    "ScoreBreakdown",
    "ScoredMatch",
    "ScoringEngine",
    "ScoringOutcome",
    "ScoringTelemetry",
    "SelectionResult",
    "SemanticRetriever",
    "accuracy_score",
    "build_provenance",
    "cosine_similarity",
    "diversity_cap",
    "get_prompt_builder",
    "match_quality",
    "parse_ai_matches",
]
