#!/usr/bin/env python3
"""Sample match harness for end-to-end validation.

Seeds a SQLite database with deterministic users and jobs from a YAML
fixture, runs one matching batch and prints a summary. Without
OPENAI_API_KEY the batch runs rules-only; with it, AI scoring and
embeddings are used.

Usage:
    python scripts/run_sample_match.py
    python scripts/run_sample_match.py --fixtures tests/fixtures/sample_pool.yaml --database /tmp/match.db
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from jobmatch.config.loader import load_config
from jobmatch.logging.config import configure_logging
from jobmatch.persistence.database import close_database, get_session, init_database
from jobmatch.persistence.repositories import JobRepository, MatchRepository, UserRepository
from jobmatch.pipeline import MatchingPipeline
from jobmatch.providers.factory import build_providers
from jobmatch.utils.timestamps import utc_now
from tests.helpers.fixture_pool import load_fixture_pool


def print_header(title: str):
    """Print a formatted section header."""
    width = 80
    print("\n" + "=" * width)
    print(f" {title}")
    print("=" * width + "\n")


def print_summary_table(result):
    """Print a formatted summary table of batch results."""
    print_header("Matching Batch Summary")

    metrics = list(result.to_dict().items())
    metrics.append(("duration_seconds", f"{result.total_duration_seconds:.2f}"))
    width = max(len(label) for label, _ in metrics)

    print("┌" + "─" * (width + 2) + "┬" + "─" * 22 + "┐")
    print(f"│ {'Metric':<{width}} │ {'Value':<20} │")
    print("├" + "─" * (width + 2) + "┼" + "─" * 22 + "┤")
    for label, value in metrics:
        print(f"│ {label:<{width}} │ {str(value):<20} │")
    print("└" + "─" * (width + 2) + "┴" + "─" * 22 + "┘")

    print("\n" + "-" * 80)
    print(" Per-User Breakdown")
    print("-" * 80 + "\n")
    for user in result.user_results:
        print(f"User: {user.user_email} ({user.tier})")
        print(f"  Status: {user.status}")
        print(f"  Matches: {user.match_count}/{user.quota}")
        print(f"  Candidates: {user.candidate_count}")
        print(f"  Relaxation level: {user.relaxation_level} (accuracy {user.accuracy_score}%)")
        print(f"  Algorithm: {user.algorithm}")
        if user.fallback_reason:
            print(f"  Fallback: {user.fallback_reason}")
        if user.error_message:
            print(f"  Error: {user.error_message}")
        print()


def main(argv=None):
    """Main entry point for the sample match harness."""
    parser = argparse.ArgumentParser(
        description="Run a sample matching batch for end-to-end validation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, default=None, help="Configuration file")
    parser.add_argument(
        "--fixtures",
        type=Path,
        default=Path("tests/fixtures/sample_pool.yaml"),
        help="Users and jobs fixture (default: tests/fixtures/sample_pool.yaml)",
    )
    parser.add_argument(
        "--database",
        type=Path,
        default=Path("data/sample_match.db"),
        help="Path to SQLite database (default: data/sample_match.db)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    args = parser.parse_args(argv)

    load_dotenv()
    print_header("Job Match Engine - Sample Match Harness")

    if not args.fixtures.exists():
        print(f"❌ Error: Fixture file not found: {args.fixtures}")
        return 1

    app_config, env_config = load_config(args.config, allow_missing=True)
    env_config.database_url = f"sqlite:///{args.database.absolute()}"
    configure_logging(level=args.log_level, format_type="key-value", environment="validation")

    init_database(env_config.database_url)
    now = utc_now()
    users, jobs = load_fixture_pool(args.fixtures, now)
    with get_session() as session:
        for user in users:
            UserRepository(session).upsert(user)
        for job in jobs:
            JobRepository(session).upsert(job)
    print(f"✓ Seeded {len(users)} users and {len(jobs)} jobs into {args.database}")
    print(f"✓ AI scoring {'enabled' if env_config.ai_enabled else 'disabled (rules only)'}")

    pipeline = MatchingPipeline(app_config, build_providers(app_config, env_config))
    result = pipeline.run_batch(now=now)
    print_summary_table(result)

    print_header("Persisted Matches")
    with get_session() as session:
        repo = MatchRepository(session)
        for user in users:
            for match in repo.get_for_user(user.email):
                print(f"{user.email}: [{match.match_score}] {match.job_hash[:12]} {match.match_reason}")

    close_database()
    print("\n" + "-" * 80)
    print(f"To clean up: rm {args.database.absolute()}")
    print("-" * 80 + "\n")
    return 1 if result.had_errors else 0


if __name__ == "__main__":
    sys.exit(main())
