"""Unit tests for hashing utilities."""

from jobmatch.utils.hashing import (
    compute_content_hash,
    compute_job_hash,
    fingerprint,
    hash_string,
    normalize_text,
)


class TestComputeJobHash:
    """Tests for compute_job_hash function."""

    def test_returns_sha256_hex(self):
        """Test the hash is a 64-character hex string."""
        job_hash = compute_job_hash("Data Analyst", "Acme", "Berlin")

        assert len(job_hash) == 64
        assert all(c in "0123456789abcdef" for c in job_hash)

    def test_cosmetic_differences_hash_identically(self):
        """Test case and whitespace do not change the identity."""
        assert compute_job_hash("Data Analyst", "Acme", "Berlin") == compute_job_hash(
            "  data   ANALYST ", "ACME", "berlin "
        )

    def test_different_fields_hash_differently(self):
        base = compute_job_hash("Data Analyst", "Acme", "Berlin")

        assert base != compute_job_hash("Data Analyst", "Acme", "Munich")
        assert base != compute_job_hash("Data Analyst", "Beta", "Berlin")
        assert base != compute_job_hash("Data Engineer", "Acme", "Berlin")

    def test_missing_location(self):
        assert compute_job_hash("Analyst", "Acme") == compute_job_hash("Analyst", "Acme", None)
        assert compute_job_hash("Analyst", "Acme") != compute_job_hash("Analyst", "Acme", "Berlin")

    def test_field_boundaries_are_preserved(self):
        """Test moving text between fields changes the hash."""
        assert compute_job_hash("Analyst Acme", "Berlin") != compute_job_hash("Analyst", "Acme Berlin")


class TestContentHash:
    """Tests for compute_content_hash and normalize_text."""

    def test_normalize_text(self):
        assert normalize_text("  Hello \n  World ") == "hello world"
        assert normalize_text(None) == ""

    def test_content_hash_ignores_whitespace_changes(self):
        assert compute_content_hash("Python  SQL\n") == compute_content_hash("python sql")

    def test_content_hash_detects_edits(self):
        assert compute_content_hash("python sql") != compute_content_hash("python sql excel")


class TestFingerprint:
    """Tests for fingerprint and hash_string."""

    def test_order_insensitive(self):
        assert fingerprint(["b", "a", "c"]) == fingerprint(["c", "b", "a"])

    def test_distinguishes_sets(self):
        assert fingerprint(["a", "b"]) != fingerprint(["a", "b", "c"])

    def test_hash_string_known_value(self):
        assert hash_string("") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )
