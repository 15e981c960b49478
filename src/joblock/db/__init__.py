"""
Lock store persistence.
"""

from joblock.db.connector import Base, JobLock, LockDbConnector, as_utc
from joblock.db.store import LockCandidate, LockStore

__all__ = [
    "Base",
    "JobLock",
    "LockDbConnector",
    "LockCandidate",
    "LockStore",
    "as_utc",
]
