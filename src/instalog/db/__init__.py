"""instalog local history layer."""

from instalog.db.commits import new_commits_since_last_changelog
from instalog.db.history import HistoryStore
from instalog.db.models import HistoryEntry, LastRunInfo, NewCommitsInfo, RepositoryRecord, StoreData

__all__ = [
    "HistoryStore",
    "HistoryEntry",
    "LastRunInfo",
    "NewCommitsInfo",
    "RepositoryRecord",
    "StoreData",
    "new_commits_since_last_changelog",
]
