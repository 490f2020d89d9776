"""Database models."""
from satsession.models.db.attempt import Attempt, AttemptAnswer, AttemptStatus
from satsession.models.db.kv_entry import KeyValueEntry

__all__ = [
    "Attempt",
    "AttemptAnswer",
    "AttemptStatus",
    "KeyValueEntry",
]
