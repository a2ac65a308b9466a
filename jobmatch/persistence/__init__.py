"""Persistence layer: engine/session management, ORM schema and repositories.

Example usage:
    >>> from jobmatch.persistence import init_database, get_session, SeenJobRepository
    >>> init_database("sqlite:///./data/jobmatch.db")
    >>> with get_session() as session:
    ...     seen = SeenJobRepository(session).get_seen_hashes("ana@example.com")
"""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
    SendQuotaExceededError,
)
from .repositories import (
    EmbeddingQueueRepository,
    EmbeddingRepository,
    JobRepository,
    MatchRepository,
    SeenJobRepository,
    SendLedgerRepository,
    UserRepository,
)

__all__ = [
    # Database functions
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    # Repositories
    "JobRepository",
    "UserRepository",
    "EmbeddingRepository",
    "EmbeddingQueueRepository",
    "MatchRepository",
    "SeenJobRepository",
    "SendLedgerRepository",
    # Exceptions
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
    "SendQuotaExceededError",
]
