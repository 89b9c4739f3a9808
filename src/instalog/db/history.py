"""JSON-file history store: repositories used and changelogs generated.

The whole document ``{"repositories": [...], "history": [...]}`` is read and
rewritten on every call; nothing is cached between calls. Read and write
failures are logged and never propagate, so a broken history file cannot block
changelog generation.

Single-process, single-user: there is no locking and the last writer wins.
"""

from __future__ import annotations

import json
import logging
import math
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from instalog.changelog.models import parse_timestamp
from instalog.db.models import HistoryEntry, LastRunInfo, RepositoryRecord, StoreData

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 24 * 60 * 60
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sort_key(value: str) -> datetime:
    """Timestamp sort key; unparseable values sort as oldest."""
    try:
        return parse_timestamp(value)
    except ValueError:
        return _EPOCH


def _parse_or_none(value: str) -> datetime | None:
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


class HistoryStore:
    """File-backed mapping from repository URL to past changelog runs.

    Args:
        path:  JSON file location (parent directory created on setup/write).
        clock: Returns the current aware UTC datetime (injectable for tests).
    """

    def __init__(self, path: Path | str, clock: Callable[[], datetime] | None = None) -> None:
        self.path = Path(path).expanduser()
        self._clock = clock or _utcnow

    # ------------------------------------------------------------------
    # File layer
    # ------------------------------------------------------------------

    def setup(self) -> None:
        """Create the directory and reset the file if it is missing or structurally invalid."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self._needs_initialization():
                self.write(StoreData())
        except OSError as exc:
            logger.error("Error setting up history store at %s: %s", self.path, exc)

    def _needs_initialization(self) -> bool:
        if not self.path.exists():
            return True
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return True
        return not (
            isinstance(raw, dict)
            and isinstance(raw.get("repositories"), list)
            and isinstance(raw.get("history"), list)
        )

    def read(self) -> StoreData:
        """Return the stored data; never raises.

        Missing file → empty. Unreadable or unparseable file → empty with
        ``degraded=True``. A non-array top-level field is treated as empty, and
        individual malformed records are skipped.
        """
        if not self.path.exists():
            return StoreData()

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Error reading history store %s: %s", self.path, exc)
            return StoreData(degraded=True)

        if not isinstance(raw, dict):
            logger.warning("History store %s is not a JSON object; treating as empty.", self.path)
            return StoreData(degraded=True)

        return StoreData(
            repositories=_load_records(raw.get("repositories"), RepositoryRecord.from_dict),
            history=_load_records(raw.get("history"), HistoryEntry.from_dict),
        )

    def write(self, data: StoreData) -> None:
        """Rewrite the whole file atomically (temp file → rename); errors are logged."""
        tmp_path: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data.to_dict(), f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.error("Error writing history store %s: %s", self.path, exc)
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass

    def _now_iso(self) -> str:
        return self._clock().astimezone(timezone.utc).isoformat()

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def save_repository(self, url: str, name: str) -> None:
        """Insert *url* or refresh its ``lastUsed`` timestamp."""
        data = self.read()
        _upsert_repository(data, url, name, self._now_iso())
        self.write(data)

    def get_repository(self, url: str) -> RepositoryRecord | None:
        for repo in self.read().repositories:
            if repo.url == url:
                return repo
        return None

    def recent_repositories(self, limit: int = 5) -> list[RepositoryRecord]:
        """Return repositories sorted by ``lastUsed`` (most recent first)."""
        repos = sorted(self.read().repositories, key=lambda r: _sort_key(r.last_used), reverse=True)
        return repos[:limit]

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def record_generation(
        self,
        repo_url: str,
        repo_name: str,
        start_date: str,
        end_date: str,
        last_commit_hash: str | None = None,
    ) -> HistoryEntry:
        """Upsert the repository and append a history entry in one rewrite."""
        data = self.read()
        now = self._now_iso()
        _upsert_repository(data, repo_url, repo_name, now)
        entry = HistoryEntry(
            repo_url=repo_url,
            generated_at=now,
            start_date=start_date,
            end_date=end_date,
            last_commit_hash=last_commit_hash or None,
        )
        data.history.append(entry)
        data.history.sort(key=lambda h: _sort_key(h.generated_at), reverse=True)
        self.write(data)
        return entry

    def history_for(self, repo_url: str, limit: int = 10) -> list[HistoryEntry]:
        """Return entries for *repo_url*, newest first.

        Entries whose ``generatedAt`` does not parse are skipped.
        """
        dated = []
        for entry in self.read().history:
            if entry.repo_url != repo_url:
                continue
            generated = _parse_or_none(entry.generated_at)
            if generated is None:
                logger.debug("Skipping history entry with bad generatedAt %r", entry.generated_at)
                continue
            dated.append((generated, entry))
        dated.sort(key=lambda pair: pair[0], reverse=True)
        return [entry for _, entry in dated[:limit]]

    def last_run_info(self, repo_url: str) -> LastRunInfo | None:
        """Summarise the most recent run for *repo_url*; None means no history."""
        latest = self.history_for(repo_url, limit=1)
        if not latest:
            return None
        entry = latest[0]
        elapsed = (self._clock() - parse_timestamp(entry.generated_at)).total_seconds()
        return LastRunInfo(
            days=math.ceil(elapsed / _SECONDS_PER_DAY),
            last_date=entry.end_date,
            last_commit_hash=entry.last_commit_hash,
        )


def _upsert_repository(data: StoreData, url: str, name: str, now: str) -> None:
    for repo in data.repositories:
        if repo.url == url:
            repo.last_used = now
            break
    else:
        data.repositories.append(RepositoryRecord(url=url, name=name, last_used=now))
    data.repositories.sort(key=lambda r: _sort_key(r.last_used), reverse=True)


def _load_records(raw: object, loader: Callable[[dict], object]) -> list:
    if not isinstance(raw, list):
        return []
    records = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            records.append(loader(item))
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("Skipping malformed history record %r: %s", item, exc)
    return records
