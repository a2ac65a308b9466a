"""Semantic retrieval: rank jobs by cosine similarity to the user's profile."""

import math
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from jobmatch.domain.models import Job, UserPreferences
from jobmatch.embeddings.service import EmbeddingService
from jobmatch.logging import get_logger

logger = get_logger(__name__, component="semantic")


class JobVectorStore(Protocol):
    """Source of precomputed job vectors (see ``EmbeddingRepository``)."""

    def get_job_vectors(self, job_hashes: Iterable[str]) -> Dict[str, List[float]]: ...


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 for empty, zero or mismatched vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


class SemanticRetriever:
    """Vector-similarity candidate ranking.

    Job vectors are read from the store (written by the queue worker); the
    profile vector comes from the embedding service. Any missing piece makes
    retrieval return an empty list, which callers treat as "no semantic
    signal".
    """

    def __init__(self, embedding_service: EmbeddingService, vector_store: JobVectorStore):
        self.embedding_service = embedding_service
        self.vector_store = vector_store

    def get_candidates(
        self, profile: UserPreferences, jobs: Sequence[Job], limit: int
    ) -> List[Tuple[Job, float]]:
        """Return up to ``limit`` (job, similarity) pairs, most similar first.

        Ties are broken by recency (newest first), then job_hash.
        """
        if not jobs or limit <= 0:
            return []

        profile_vector = self.embedding_service.profile_embedding(profile)
        if profile_vector is None:
            logger.info(
                "No profile embedding; semantic retrieval skipped",
                extra={"event": "semantic.unavailable", "reason": "profile_embedding"},
            )
            return []

        job_vectors = self.vector_store.get_job_vectors(job.job_hash for job in jobs)
        if not job_vectors:
            logger.info(
                "No job embeddings; semantic retrieval skipped",
                extra={"event": "semantic.unavailable", "reason": "job_embeddings"},
            )
            return []

        scored: List[Tuple[Job, float]] = []
        for job in jobs:
            vector = job_vectors.get(job.job_hash)
            if vector is None or len(vector) != len(profile_vector):
                continue
            scored.append((job, cosine_similarity(profile_vector, vector)))

        scored.sort(key=lambda pair: (-pair[1], -_timestamp(pair[0]), pair[0].job_hash))
        logger.debug(
            "Semantic retrieval ranked jobs",
            extra={
                "event": "semantic.ranked",
                "ranked": len(scored),
                "coverage": round(len(scored) / len(jobs), 3),
            },
        )
        return scored[:limit]

    def similarity_map(
        self, profile: UserPreferences, jobs: Sequence[Job], limit: int
    ) -> Optional[Dict[str, float]]:
        """Like ``get_candidates`` but keyed by job_hash; None when unavailable."""
        ranked = self.get_candidates(profile, jobs, limit)
        if not ranked:
            return None
        return {job.job_hash: similarity for job, similarity in ranked}


def _timestamp(job: Job) -> float:
    return job.created_at.timestamp() if job.created_at else float("-inf")
