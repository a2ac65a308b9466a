"""Main entry point for the Job Match Engine service."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import signal
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional, Tuple

from jobmatch.config.environment import EnvironmentConfig
from jobmatch.config.exceptions import ConfigurationError
from jobmatch.config.loader import load_config
from jobmatch.config.models import AppConfig
from jobmatch.embeddings.worker import EmbeddingQueueWorker
from jobmatch.logging import get_logger
from jobmatch.logging.config import configure_logging
from jobmatch.persistence.database import close_database, init_database
from jobmatch.persistence.exceptions import DatabaseConnectionError
from jobmatch.pipeline import MatchingPipeline
from jobmatch.providers.exceptions import ProviderConfigurationError
from jobmatch.providers.factory import build_providers
from jobmatch.scheduler import ScheduledJob, SchedulerService
from jobmatch.scheduler.service import EMBEDDING_JOB_ID, MATCHING_JOB_ID

logger = get_logger(__name__, component="cli")

EXIT_INTERRUPTED = 130


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and resolve the effective log level.

    Log level priority: CLI > environment (LOG_LEVEL) > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level

    return app_config, env_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Job Match Engine - ranked, deduplicated job recommendations per user"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--manual-run",
        action="store_true",
        help="Run one matching batch immediately and exit",
    )
    mode.add_argument(
        "--drain-embeddings",
        action="store_true",
        help="Drain the embedding queue once and exit",
    )
    mode.add_argument(
        "--backfill-embeddings",
        action="store_true",
        help="Queue every active job without an embedding and exit",
    )
    parser.add_argument(
        "--user",
        action="append",
        dest="users",
        metavar="EMAIL",
        help="Restrict a manual run to this user (repeatable)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the Job Match Engine.

    Returns:
        Exit code (0 for success, 1 for errors, 130 when interrupted).
    """
    start_time = time.time()
    args = build_parser().parse_args(argv)

    if args.users and not args.manual_run:
        print("--user can only be combined with --manual-run", file=sys.stderr)
        return 2

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
            redact_emails=app_config.logging.redact_emails,
        )

        logger.info(
            "Job Match Engine starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "manual_run": args.manual_run,
                "ai_enabled": env_config.ai_enabled,
            },
        )

        init_database(env_config.database_url)
        providers = build_providers(app_config, env_config)
        worker = EmbeddingQueueWorker(providers.embedding, app_config.embeddings)

        if args.backfill_embeddings:
            queued = worker.enqueue_missing()
            print(f"Queued {queued} jobs for embedding")
            close_database()
            return 0

        if args.drain_embeddings:
            result = worker.drain()
            print(
                f"Embedding queue: {result.processed} processed, "
                f"{result.retried} retried, {result.failed} failed"
            )
            close_database()
            return 1 if result.failed else 0

        pipeline = MatchingPipeline(app_config, providers)

        if args.manual_run:
            logger.info("Executing manual matching batch", extra={"event": "service.manual_run.starting"})
            result = pipeline.run_batch(user_emails=args.users)
            summary = result.to_dict()
            logger.info(
                f"Manual run completed: {summary['users_processed']} users, "
                f"{summary['total_matches']} matches, {summary['failed']} failed",
                extra={
                    "event": "service.manual_run.completed",
                    "duration_seconds": result.total_duration_seconds,
                    **summary,
                },
            )
            close_database()
            _log_stopping(start_time)
            return 1 if result.had_errors else 0

        return _run_daemon(app_config, pipeline, worker, start_time)

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1
    except (DatabaseConnectionError, ProviderConfigurationError) as e:
        print(f"Startup Error: {e}", file=sys.stderr)
        logger.error(
            f"Startup failed: {e}",
            extra={"event": "service.startup.failed", "error_type": type(e).__name__},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        close_database()
        return EXIT_INTERRUPTED


def _run_daemon(
    app_config: AppConfig,
    pipeline: MatchingPipeline,
    worker: EmbeddingQueueWorker,
    start_time: float,
) -> int:
    shutdown_event = threading.Event()
    scheduler_service = SchedulerService(
        jobs=[
            ScheduledJob(
                job_id=MATCHING_JOB_ID,
                name="Matching batch",
                func=pipeline.run_batch,
                interval_seconds=app_config.schedule.match_interval_seconds,
            ),
            ScheduledJob(
                job_id=EMBEDDING_JOB_ID,
                name="Embedding queue drain",
                func=worker.drain,
                interval_seconds=app_config.schedule.embedding_interval_seconds,
            ),
        ],
        shutdown_event=shutdown_event,
    )

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler_service.start()
    logger.info(
        "Scheduler started. Press Ctrl+C to stop",
        extra={"event": "service.daemon_mode.started"},
    )

    try:
        shutdown_event.wait()
    except KeyboardInterrupt:
        scheduler_service.shutdown(wait=False)
        close_database()
        _log_stopping(start_time)
        return EXIT_INTERRUPTED

    close_database()
    _log_stopping(start_time)
    return 0


def _log_stopping(start_time: float) -> None:
    logger.info(
        "Job Match Engine stopped",
        extra={
            "event": "service.stopping",
            "uptime_seconds": round(time.time() - start_time, 2),
        },
    )


if __name__ == "__main__":
    sys.exit(main())
