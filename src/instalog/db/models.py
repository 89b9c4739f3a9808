"""Persisted records for the local run history.

Field names are snake_case in Python and camelCase in the JSON file.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class RepositoryRecord:
    url: str
    name: str
    last_used: str

    def to_dict(self) -> dict:
        return {"url": self.url, "name": self.name, "lastUsed": self.last_used}

    @classmethod
    def from_dict(cls, data: dict) -> RepositoryRecord:
        return cls(url=str(data["url"]), name=str(data.get("name") or ""), last_used=str(data["lastUsed"]))


@dataclass
class HistoryEntry:
    repo_url: str
    generated_at: str
    start_date: str
    end_date: str
    last_commit_hash: str | None = None

    def to_dict(self) -> dict:
        return {
            "repoUrl": self.repo_url,
            "generatedAt": self.generated_at,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "lastCommitHash": self.last_commit_hash,
        }

    @classmethod
    def from_dict(cls, data: dict) -> HistoryEntry:
        last_hash = data.get("lastCommitHash")
        return cls(
            repo_url=str(data["repoUrl"]),
            generated_at=str(data["generatedAt"]),
            start_date=str(data.get("startDate") or ""),
            end_date=str(data.get("endDate") or ""),
            last_commit_hash=str(last_hash) if last_hash else None,
        )


@dataclass
class StoreData:
    repositories: list[RepositoryRecord] = field(default_factory=list)
    history: list[HistoryEntry] = field(default_factory=list)
    degraded: bool = False  # in-memory only: the read path fell back to empty

    def to_dict(self) -> dict:
        return {
            "repositories": [r.to_dict() for r in self.repositories],
            "history": [h.to_dict() for h in self.history],
        }


@dataclass(frozen=True)
class LastRunInfo:
    days: int
    last_date: str
    last_commit_hash: str | None


@dataclass(frozen=True)
class NewCommitsInfo:
    new_commits: int | None  # None = unknown
    last_commit_hash: str | None
    message: str
    exact: bool = True
