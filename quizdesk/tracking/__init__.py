"""Wrong-answer tracking."""

from .cache import WrongAnswerCache
from .store import RecordStore, SqlRecordStore
from .sync import SyncOutcome, SyncReport, WrongAnswerSync

__all__ = [
    "RecordStore",
    "SqlRecordStore",
    "SyncOutcome",
    "SyncReport",
    "WrongAnswerCache",
    "WrongAnswerSync",
]
