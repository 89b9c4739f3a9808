"""Tests for new_commits_since_last_changelog."""

from __future__ import annotations

import pytest

from instalog.db.commits import new_commits_since_last_changelog
from instalog.github.commits import GitHubError

_URL = "https://github.com/octo/hello"


class FakeFetcher:
    def __init__(self, commits=None, error: Exception | None = None) -> None:
        self.commits = commits or []
        self.error = error
        self.called = False

    def list_commits(self, repo_url):
        self.called = True
        if self.error is not None:
            raise self.error
        return list(self.commits)


@pytest.fixture
def page(make_commit):
    """Build a first page of commits, newest first, from bare hashes."""

    def _page(*hashes: str):
        return [make_commit(f"feat: {h}", hash=h) for h in hashes]

    return _page


def test_no_history_skips_network(store, page):
    fetcher = FakeFetcher(page("c" * 40))
    info = new_commits_since_last_changelog(store, fetcher, _URL)
    assert info.new_commits is None
    assert info.message == "No previous changelog commit hash found"
    assert fetcher.called is False


def test_history_without_hash(store):
    store.record_generation(_URL, "hello", "2024-01-03", "2024-01-10")
    info = new_commits_since_last_changelog(store, FakeFetcher(), _URL)
    assert info.new_commits is None


def test_counts_commits_above_recorded_hash(store, page):
    store.record_generation(_URL, "hello", "2024-01-03", "2024-01-10", "b" * 40)
    info = new_commits_since_last_changelog(store, FakeFetcher(page("d" * 40, "c" * 40, "b" * 40, "a" * 40)), _URL)
    assert info.new_commits == 2
    assert info.last_commit_hash == "d" * 40
    assert info.message == "Found 2 new commits since last changelog"
    assert info.exact is True


def test_short_recorded_hash_matches_prefix(store, page):
    store.record_generation(_URL, "hello", "2024-01-03", "2024-01-10", "bbbbbbb")
    info = new_commits_since_last_changelog(store, FakeFetcher(page("c" * 40, "b" * 40)), _URL)
    assert info.new_commits == 1


def test_recorded_hash_is_newest(store, page):
    store.record_generation(_URL, "hello", "2024-01-03", "2024-01-10", "c" * 40)
    info = new_commits_since_last_changelog(store, FakeFetcher(page("c" * 40, "b" * 40)), _URL)
    assert info.new_commits == 0


def test_recorded_hash_not_on_page(store, page):
    store.record_generation(_URL, "hello", "2024-01-03", "2024-01-10", "z" * 40)
    info = new_commits_since_last_changelog(store, FakeFetcher(page("c" * 40, "b" * 40)), _URL)
    assert info.new_commits == 2
    assert info.exact is False
    assert info.message == "Previous commit not found in recent history"


def test_empty_page(store):
    store.record_generation(_URL, "hello", "2024-01-03", "2024-01-10", "c" * 40)
    info = new_commits_since_last_changelog(store, FakeFetcher([]), _URL)
    assert info.new_commits == 0
    assert info.last_commit_hash == "c" * 40
    assert info.message == "No commits found"


def test_fetch_error_reported(store):
    store.record_generation(_URL, "hello", "2024-01-03", "2024-01-10", "c" * 40)
    error = GitHubError("Error fetching commits from GitHub: No response received from server", kind="no_response")
    info = new_commits_since_last_changelog(store, FakeFetcher(error=error), _URL)
    assert info.new_commits is None
    assert info.message.startswith("Error: ")
