"""Domain models for commits and generated changelogs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

NO_COMMITS_CONTENT = "No commits found for the specified period."
NO_COMMITS_TITLE = "No Changes"


class Layout(str, Enum):
    """Changelog rendering: developer-facing or user-facing."""

    INTERNAL = "internal"
    EXTERNAL = "external"


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix accepted) into an aware UTC datetime."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class Commit:
    hash: str
    message: str
    author: str
    timestamp: datetime

    @property
    def short_hash(self) -> str:
        return self.hash[:7]

    @property
    def subject(self) -> str:
        """First line of the commit message."""
        return self.message.splitlines()[0].strip() if self.message else ""

    @classmethod
    def from_api(cls, payload: dict) -> Commit:
        """Build a Commit from a GitHub ``/commits`` list item.

        Raises:
            KeyError, TypeError, ValueError: If the payload is malformed.
        """
        detail = payload["commit"]
        author = detail.get("author") or {}
        return cls(
            hash=str(payload["sha"]),
            message=str(detail.get("message") or ""),
            author=str(author.get("name") or "unknown"),
            timestamp=parse_timestamp(str(author["date"])),
        )


@dataclass(frozen=True)
class ClassifiedCommit:
    commit: Commit
    type: str
    category: str | None = None  # feature | fix | performance | breaking | None (excluded)


@dataclass(frozen=True)
class ChangelogDocument:
    title: str
    content: str
    date_range: str = ""
