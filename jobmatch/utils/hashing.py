"""Hashing utilities for job identity and cache keys.

This module provides deterministic hashing functions for:
- job_hash: content-derived job identity from title + company + location
- content_hash: cache key for the text sent to the embedding provider
- fingerprint: order-insensitive key for a set of identifiers
"""

import hashlib
import re
from typing import Iterable, Optional

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, trim and collapse whitespace so cosmetic edits hash identically."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text.lower().strip())


def compute_job_hash(title: str, company: str, location: Optional[str] = None) -> str:
    """Compute the content-derived identity of a job posting.

    Ingestion uses this value for dedup and idempotent upsert; the matching
    core only reads it.

    Args:
        title: Job title
        company: Company name
        location: City or free-text location

    Returns:
        Hexadecimal SHA256 digest (64 characters)

    Example:
        >>> compute_job_hash("Data Analyst", "Acme", "Berlin") == compute_job_hash(
        ...     "  data   analyst", "ACME", "berlin ")
        True
    """
    composite = "|".join(
        (normalize_text(title), normalize_text(company), normalize_text(location))
    )
    return hash_string(composite)


def compute_content_hash(text: str) -> str:
    """Hash the normalized form of ``text`` (used to invalidate embedding caches).

    Args:
        text: Text about to be embedded

    Returns:
        Hexadecimal SHA256 digest (64 characters)
    """
    return hash_string(normalize_text(text))


def fingerprint(values: Iterable[str]) -> str:
    """Order-insensitive digest of a collection of strings."""
    return hash_string("\n".join(sorted(values)))


def hash_string(value: str) -> str:
    """Compute SHA256 hash of a string value.

    Args:
        value: String to hash

    Returns:
        Hexadecimal string representation of SHA256 hash (64 characters)
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
