"""Tests for the embedding service and its content-addressed cache."""

import pytest

from jobmatch.embeddings import (
    EmbeddingService,
    InMemoryEmbeddingStore,
    build_job_text,
    build_profile_text,
)
from jobmatch.utils.hashing import compute_content_hash
from tests.helpers.factories import make_job, make_user
from tests.helpers.fakes import FakeEmbeddingProvider


@pytest.fixture
def provider():
    return FakeEmbeddingProvider(dimension=16)


@pytest.fixture
def store():
    return InMemoryEmbeddingStore()


class TestTextBuilders:
    """Test the text sent to the embedding provider."""

    def test_job_text(self):
        job = make_job("h1", title="Graduate Analyst", work_environment="hybrid")
        text = build_job_text(job)

        assert text.splitlines()[0] == "Title: Graduate Analyst"
        assert "City: Berlin" in text
        assert "Categories: early-career, tech-transformation" in text
        assert "Work environment: hybrid" in text

    def test_job_text_missing_location(self):
        text = build_job_text(make_job("h1", city=None, country=None))

        assert "City: Unknown" in text
        assert "Country: Unknown" in text

    def test_job_description_truncated(self):
        text = build_job_text(make_job("h1", description="x" * 5000))

        assert text.endswith("x" * 1500)
        assert "x" * 1501 not in text

    def test_profile_text_skips_empty_fields(self):
        user = make_user(skills=["Python", "SQL"])
        text = build_profile_text(user)

        assert "Target cities: Berlin" in text
        assert "Skills: Python, SQL" in text
        assert "Roles" not in text
        assert "Company size" not in text


class TestInMemoryEmbeddingStore:
    """Test the dict-backed store."""

    def test_hash_must_match(self, store):
        store.save_vector("job", "h1", "c1", [1, 2], "fake")

        assert store.get_vector("job", "h1", "c1") == [1.0, 2.0]
        assert store.get_vector("job", "h1", "c2") is None
        assert store.get_vector("user", "h1", "c1") is None

    def test_job_vectors(self, store):
        store.save_vector("job", "h1", "c1", [1.0], "fake")
        store.save_vector("user", "h2", "c1", [2.0], "fake")

        assert store.get_job_vectors(["h1", "h2", "h3"]) == {"h1": [1.0]}
        assert len(store) == 2


class TestEmbeddingService:
    """Test cache behaviour and failure handling."""

    def test_miss_then_hit(self, provider, store):
        service = EmbeddingService(provider, store, dimension=16)

        first = service.get_embedding("h1", "graduate engineer berlin")
        second = service.get_embedding("h1", "graduate engineer berlin")

        assert first == second
        assert len(provider.calls) == 1
        assert service.cache_misses == 1
        assert service.cache_hits == 1

    def test_changed_text_is_a_miss(self, provider, store):
        service = EmbeddingService(provider, store, dimension=16)

        service.get_embedding("h1", "graduate engineer")
        service.get_embedding("h1", "graduate engineer munich")

        assert len(provider.calls) == 2
        assert store.get_vector(
            "job", "h1", compute_content_hash("graduate engineer munich")
        ) is not None

    def test_provider_failure_returns_none(self, store):
        service = EmbeddingService(FakeEmbeddingProvider(fail=True), store, dimension=16)

        assert service.get_embedding("h1", "graduate engineer") is None
        assert service.provider_failures == 1
        assert len(store) == 0

    def test_no_provider(self, store):
        service = EmbeddingService(None, store)

        assert service.available is False
        assert service.get_embedding("h1", "graduate engineer") is None

    def test_no_provider_still_serves_cache(self, store):
        text = "graduate engineer"
        store.save_vector("job", "h1", compute_content_hash(text), [1.0, 0.0], "fake")

        assert EmbeddingService(None, store).get_embedding("h1", text) == [1.0, 0.0]

    def test_dimension_mismatch_discarded(self, store):
        service = EmbeddingService(FakeEmbeddingProvider(dimension=8), store, dimension=16)

        assert service.get_embedding("h1", "graduate engineer") is None
        assert service.provider_failures == 1

    def test_profile_embedding_uses_user_subject(self, provider, store):
        user = make_user()
        service = EmbeddingService(provider, store, dimension=16)

        vector = service.profile_embedding(user)

        content_hash = compute_content_hash(build_profile_text(user))
        assert store.get_vector("user", user.email, content_hash) == vector


class TestEmbedJobs:
    """Test batched job embedding."""

    def test_one_provider_call_for_misses(self, provider, store):
        service = EmbeddingService(provider, store, dimension=16)
        jobs = [make_job(f"h{i}") for i in range(3)]
        service.job_embedding(jobs[0])

        vectors = service.embed_jobs(jobs)

        assert set(vectors) == {"h0", "h1", "h2"}
        assert all(v is not None for v in vectors.values())
        assert len(provider.calls) == 2
        assert len(provider.calls[1]) == 2

    def test_all_cached(self, provider, store):
        service = EmbeddingService(provider, store, dimension=16)
        jobs = [make_job("h1"), make_job("h2")]
        service.embed_jobs(jobs)

        service.embed_jobs(jobs)

        assert len(provider.calls) == 1
        assert service.cache_hits == 2

    def test_batch_failure(self, store):
        service = EmbeddingService(FakeEmbeddingProvider(fail=True), store, dimension=16)

        vectors = service.embed_jobs([make_job("h1"), make_job("h2")])

        assert vectors == {"h1": None, "h2": None}
        assert service.provider_failures == 2

    def test_without_provider(self, store):
        vectors = EmbeddingService(None, store).embed_jobs([make_job("h1")])

        assert vectors == {"h1": None}
