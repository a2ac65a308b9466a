"""Load deterministic users and jobs from YAML fixtures.

Used by integration tests and by ``scripts/run_sample_match.py`` to seed a
database without a scraper or signup flow.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml

from jobmatch.domain.models import Job, UserPreferences
from jobmatch.utils.hashing import compute_job_hash


def load_fixture_pool(
    fixture_path: Path, now: datetime
) -> Tuple[List[UserPreferences], List[Job]]:
    """Load users and jobs from a YAML fixture file.

    Job ``age_days`` is turned into ``created_at`` relative to ``now`` and
    ``job_hash`` is derived from title, company and city when absent.

    Raises:
        FileNotFoundError: If the fixture file doesn't exist
        yaml.YAMLError: If YAML parsing fails
    """
    if not fixture_path.exists():
        raise FileNotFoundError(f"Fixture file not found: {fixture_path}")

    with open(fixture_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    users = [UserPreferences(**entry) for entry in data.get("users", [])]
    jobs = [_build_job(entry, now) for entry in data.get("jobs", [])]
    return users, jobs


def _build_job(entry: Dict[str, Any], now: datetime) -> Job:
    entry = dict(entry)
    age_days = entry.pop("age_days", None)
    if age_days is not None:
        entry["created_at"] = now - timedelta(days=age_days)
    entry.setdefault(
        "job_hash", compute_job_hash(entry["title"], entry["company"], entry.get("city"))
    )
    entry.setdefault("source", "fixture")
    return Job(**entry)
