"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError so callers can catch
every storage failure with one except clause.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""


class DatabaseConnectionError(PersistenceError):
    """Database URL invalid, file not accessible, or engine not initialized."""


class RecordNotFoundError(PersistenceError):
    """A record that must exist was not found.

    Optional lookups return None instead of raising this.
    """


class DataIntegrityError(PersistenceError):
    """A constraint was violated.

    Examples:
    - A job_hash inserted twice into a user's seen set
    - A second provenance row for the same match
    - A persisted match without a provenance row
    """


class SendQuotaExceededError(DataIntegrityError):
    """A send would take a user's weekly ledger past the tier allowance.

    Raised at commit time, so a concurrent run that already passed the
    quota gate rolls back instead of overspending.
    """
