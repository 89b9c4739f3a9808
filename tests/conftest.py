"""Shared pytest fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from instalog.changelog.models import Commit
from instalog.db.history import HistoryStore

_NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Mutable clock for HistoryStore tests."""

    def __init__(self, now: datetime = _NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def now() -> datetime:
    """Fixed 'current time' used by window and date-range tests."""
    return _NOW


@pytest.fixture
def make_commit():
    """Factory for Commit objects with sensible defaults."""

    def _make(
        message: str,
        hash: str = "abc1234def5678",
        author: str = "Alice",
        timestamp: datetime | None = None,
    ) -> Commit:
        return Commit(
            hash=hash,
            message=message,
            author=author,
            timestamp=timestamp or datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc),
        )

    return _make


@pytest.fixture
def api_commit():
    """Factory for GitHub /commits list items."""

    def _make(message: str, sha: str, author: str = "Alice", date: str = "2024-01-02T09:30:00Z") -> dict:
        return {"sha": sha, "commit": {"message": message, "author": {"name": author, "date": date}}}

    return _make


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path, clock) -> HistoryStore:
    """History store in tmp_path with the fake clock, already set up."""
    s = HistoryStore(tmp_path / "history.json", clock=clock)
    s.setup()
    return s


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """No credentials, HOME and CWD inside tmp_path, history file in tmp_path."""
    home = tmp_path / "home"
    home.mkdir()
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    for var in (
        "GITHUB_TOKEN",
        "ANTHROPIC_API_KEY",
        "INSTALOG_AI_MODEL",
        "INSTALOG_GITHUB_API_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    history = tmp_path / "history.json"
    monkeypatch.setenv("INSTALOG_HISTORY_FILE", str(history))
    monkeypatch.setattr("instalog.config._GLOBAL_CONFIG_PATH", home / ".instalog" / "config.yaml")
    return {"home": home, "work": work, "history": history}
