"""Changelog generation: fetch → classify → (AI rewrite | render).

The fetcher and rewriter are constructed by the caller from the resolved
config and credentials; this module reads no ambient state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from instalog.ai.rewriter import AIRewriter, RewriteResult
from instalog.changelog.models import ChangelogDocument, Commit, Layout
from instalog.changelog.renderer import date_range as make_date_range
from instalog.changelog.renderer import empty_document, render_document
from instalog.github.commits import CommitFetcher, GitHubError, repo_name_from_url, validate_days

logger = logging.getLogger(__name__)


class Strategy(str, Enum):
    AI = "ai"
    STANDARD = "standard"
    EMPTY = "empty"
    ERROR = "error"


@dataclass
class GenerationResult:
    document: ChangelogDocument
    strategy: Strategy
    commits: list[Commit] = field(default_factory=list)
    rewrite: RewriteResult | None = None  # set whenever a rewrite was attempted
    error: str | None = None

    @property
    def last_commit_hash(self) -> str | None:
        """Newest fetched commit hash (commits arrive newest first)."""
        return self.commits[0].hash if self.commits else None


def generate_changelog(
    repo_url: str,
    days: int,
    layout: Layout,
    fetcher: CommitFetcher,
    rewriter: AIRewriter | None = None,
    now: datetime | None = None,
) -> GenerationResult:
    """Build the changelog document for *repo_url* over the last *days* days.

    Raises:
        ValueError: On an invalid URL or day count, before any network call.
    """
    layout = Layout(layout)
    repo_name = repo_name_from_url(repo_url)
    validate_days(days)
    now = now or datetime.now(timezone.utc)
    range_ = make_date_range(days, now)

    try:
        commits = fetcher.fetch_commits(repo_url, days, now=now)
    except GitHubError as exc:
        logger.error("%s", exc)
        return GenerationResult(
            document=ChangelogDocument(
                title="Error",
                content=f"Error generating changelog: {exc}",
                date_range=range_,
            ),
            strategy=Strategy.ERROR,
            error=str(exc),
        )

    if not commits:
        return GenerationResult(document=empty_document(range_), strategy=Strategy.EMPTY)

    rewrite: RewriteResult | None = None
    if rewriter is not None:
        rewrite = rewriter.rewrite(commits, layout, repo_name, range_)
        if rewrite.ok and rewrite.changelog is not None:
            ai_doc = rewrite.changelog
            document = ChangelogDocument(
                title=ai_doc.title or f"{repo_name} Changelog",
                content=ai_doc.content,
                date_range=range_,
            )
            return GenerationResult(document=document, strategy=Strategy.AI, commits=commits, rewrite=rewrite)
        logger.info("Falling back to standard changelog (%s).", rewrite.status.value)

    document = render_document(repo_name, commits, range_, layout)
    return GenerationResult(document=document, strategy=Strategy.STANDARD, commits=commits, rewrite=rewrite)
