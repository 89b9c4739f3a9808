"""New-commit counting against the last recorded changelog."""

from __future__ import annotations

import logging

from instalog.db.history import HistoryStore
from instalog.db.models import NewCommitsInfo
from instalog.github.commits import CommitFetcher, GitHubError

logger = logging.getLogger(__name__)


def new_commits_since_last_changelog(
    store: HistoryStore,
    fetcher: CommitFetcher,
    repo_url: str,
) -> NewCommitsInfo:
    """Count commits newer than the last recorded changelog's newest commit.

    Only the API's first page is scanned. When the recorded hash is not on that
    page the whole page count is returned with ``exact=False``.
    """
    last = store.last_run_info(repo_url)
    if last is None or not last.last_commit_hash:
        return NewCommitsInfo(
            new_commits=None,
            last_commit_hash=None,
            message="No previous changelog commit hash found",
        )

    try:
        commits = fetcher.list_commits(repo_url)
    except (GitHubError, ValueError) as exc:
        logger.error("GitHub API error: %s", exc)
        return NewCommitsInfo(new_commits=None, last_commit_hash=None, message=f"Error: {exc}")

    if not commits:
        return NewCommitsInfo(
            new_commits=0,
            last_commit_hash=last.last_commit_hash,
            message="No commits found",
        )

    newest = commits[0].hash
    for index, commit in enumerate(commits):
        if commit.hash.startswith(last.last_commit_hash):
            return NewCommitsInfo(
                new_commits=index,
                last_commit_hash=newest,
                message=f"Found {index} new commits since last changelog",
            )

    return NewCommitsInfo(
        new_commits=len(commits),
        last_commit_hash=newest,
        message="Previous commit not found in recent history",
        exact=False,
    )
