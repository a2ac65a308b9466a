"""Embedding generation with a content-addressed cache.

Vectors are cached per subject (user e-mail or job_hash) together with the
hash of the text that produced them. Editing a profile or a posting changes
the text, which changes the hash, which turns the next lookup into a miss.
"""

from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from jobmatch.domain.models import Job, UserPreferences
from jobmatch.logging import get_logger
from jobmatch.providers.base import EmbeddingProvider
from jobmatch.utils.hashing import compute_content_hash

logger = get_logger(__name__, component="embeddings")

USER_SUBJECT = "user"
JOB_SUBJECT = "job"


class EmbeddingStore(Protocol):
    """Storage used as the embedding cache (see ``EmbeddingRepository``)."""

    def get_vector(
        self, subject_type: str, subject_id: str, content_hash: str
    ) -> Optional[List[float]]: ...

    def save_vector(
        self,
        subject_type: str,
        subject_id: str,
        content_hash: str,
        vector: Sequence[float],
        model_name: str,
    ) -> None: ...


class InMemoryEmbeddingStore:
    """Dict-backed store for tests and one-off runs without a database."""

    def __init__(self) -> None:
        self._vectors: Dict[Tuple[str, str], Tuple[str, List[float]]] = {}

    def get_vector(self, subject_type, subject_id, content_hash):
        entry = self._vectors.get((subject_type, subject_id))
        if entry is None or entry[0] != content_hash:
            return None
        return list(entry[1])

    def save_vector(self, subject_type, subject_id, content_hash, vector, model_name):
        self._vectors[(subject_type, subject_id)] = (content_hash, [float(x) for x in vector])

    def get_job_vectors(self, job_hashes):
        vectors = {}
        for job_hash in job_hashes:
            entry = self._vectors.get((JOB_SUBJECT, job_hash))
            if entry is not None:
                vectors[job_hash] = list(entry[1])
        return vectors

    def __len__(self) -> int:
        return len(self._vectors)


def build_job_text(job: Job) -> str:
    """Text embedded for a job posting."""
    lines = [
        f"Title: {job.title}",
        f"Company: {job.company}",
        f"City: {job.city or 'Unknown'}",
        f"Country: {job.country or 'Unknown'}",
        f"Categories: {', '.join(job.categories) or 'none'}",
    ]
    if job.work_environment:
        lines.append(f"Work environment: {job.work_environment}")
    if job.description:
        lines.append(f"Description: {job.description[:1500]}")
    return "\n".join(lines)


def build_profile_text(user: UserPreferences) -> str:
    """Text embedded for a user's preference profile."""
    lines = [
        f"Target cities: {', '.join(user.target_cities)}",
        f"Career paths: {', '.join(user.career_path)}",
    ]
    optional = (
        ("Roles", ", ".join(user.roles_selected)),
        ("Skills", ", ".join(user.skills)),
        ("Industries", ", ".join(user.industries)),
        ("Experience level", user.entry_level_preference),
        ("Company size", user.company_size_preference),
        ("Work environment", user.work_environment),
    )
    lines.extend(f"{label}: {value}" for label, value in optional if value)
    return "\n".join(lines)


class EmbeddingService:
    """Cached access to embeddings for users and jobs.

    Args:
        provider: Embedding client, or None when embeddings are disabled
        store: Cache backend
        dimension: Expected vector length; other lengths are discarded
    """

    def __init__(
        self,
        provider: Optional[EmbeddingProvider],
        store: EmbeddingStore,
        dimension: Optional[int] = None,
    ):
        self.provider = provider
        self.store = store
        self.dimension = dimension
        self.cache_hits = 0
        self.cache_misses = 0
        self.provider_failures = 0

    @property
    def available(self) -> bool:
        return self.provider is not None

    def get_embedding(
        self, subject_id: str, text: str, subject_type: str = JOB_SUBJECT
    ) -> Optional[List[float]]:
        """Return the vector for ``text``, computing and caching it on a miss.

        Returns:
            The vector, or None when the provider is missing or failed.
            Callers treat None as "no semantic signal", never as an error.
        """
        content_hash = compute_content_hash(text)
        cached = self.store.get_vector(subject_type, subject_id, content_hash)
        if cached is not None:
            self.cache_hits += 1
            logger.debug(
                "Embedding cache hit",
                extra={"event": "embedding.cache.hit", "subject_type": subject_type},
            )
            return cached

        self.cache_misses += 1
        if self.provider is None:
            return None

        vector = self.provider.embed(text)
        if not self._usable(vector):
            self.provider_failures += 1
            logger.warning(
                "Embedding unavailable; semantic retrieval skipped for this subject",
                extra={"event": "embedding.provider.failed", "subject_type": subject_type},
            )
            return None

        self.store.save_vector(subject_type, subject_id, content_hash, vector, self.provider.model)
        logger.debug(
            "Embedding computed",
            extra={"event": "embedding.cache.miss", "subject_type": subject_type},
        )
        return vector

    def profile_embedding(self, user: UserPreferences) -> Optional[List[float]]:
        return self.get_embedding(user.email, build_profile_text(user), USER_SUBJECT)

    def job_embedding(self, job: Job) -> Optional[List[float]]:
        return self.get_embedding(job.job_hash, build_job_text(job), JOB_SUBJECT)

    def embed_jobs(self, jobs: Sequence[Job]) -> Dict[str, Optional[List[float]]]:
        """Embed many jobs with one provider call for all cache misses.

        Returns:
            Mapping job_hash -> vector, with None for jobs that could not be
            embedded (provider missing, failed, or wrong dimension)
        """
        results: Dict[str, Optional[List[float]]] = {}
        pending: List[Tuple[Job, str, str]] = []

        for job in jobs:
            text = build_job_text(job)
            content_hash = compute_content_hash(text)
            cached = self.store.get_vector(JOB_SUBJECT, job.job_hash, content_hash)
            if cached is not None:
                self.cache_hits += 1
                results[job.job_hash] = cached
            else:
                self.cache_misses += 1
                pending.append((job, text, content_hash))

        if not pending:
            return results
        if self.provider is None:
            results.update({job.job_hash: None for job, _, _ in pending})
            return results

        vectors = self.provider.embed_batch([text for _, text, _ in pending])
        if vectors is None or len(vectors) != len(pending):
            self.provider_failures += len(pending)
            results.update({job.job_hash: None for job, _, _ in pending})
            return results

        for (job, _, content_hash), vector in zip(pending, vectors):
            if self._usable(vector):
                self.store.save_vector(
                    JOB_SUBJECT, job.job_hash, content_hash, vector, self.provider.model
                )
                results[job.job_hash] = vector
            else:
                self.provider_failures += 1
                results[job.job_hash] = None
        return results

    def _usable(self, vector: Optional[Sequence[float]]) -> bool:
        if not vector:
            return False
        return self.dimension is None or len(vector) == self.dimension
