"""Deterministic Markdown rendering of classified commits (no I/O)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from instalog.changelog.classifier import (
    CATEGORY_KEYWORDS,
    classify,
    format_commit_type,
    group_by_category,
    group_by_type,
    strip_prefix,
)
from instalog.changelog.models import (
    NO_COMMITS_CONTENT,
    NO_COMMITS_TITLE,
    ChangelogDocument,
    ClassifiedCommit,
    Commit,
    Layout,
)

# External sections, in output order.
_EXTERNAL_SECTIONS: tuple[tuple[str, str], ...] = (
    ("feature", "Added"),
    ("breaking", "Breaking Changes"),
    ("fix", "Bug Fixes"),
    ("performance", "Performance Improvements"),
)


# ------------------------------------------------------------------
# Dates
# ------------------------------------------------------------------


def format_date(dt: datetime) -> str:
    """Format *dt* as YYYY-MM-DD in UTC."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%d")


def window_dates(days: int, now: datetime | None = None) -> tuple[str, str]:
    """Return the (start, end) dates of a *days*-long window ending at *now*."""
    end = now or datetime.now(timezone.utc)
    start = end - timedelta(days=days)
    return format_date(start), format_date(end)


def date_range(days: int, now: datetime | None = None) -> str:
    start, end = window_dates(days, now)
    return f"{start} - {end}"


# ------------------------------------------------------------------
# Layouts
# ------------------------------------------------------------------


def render_internal(repo_name: str, classified: list[ClassifiedCommit], date_range_: str) -> str:
    """Developer changelog: one section per commit type, with hash, author and date."""
    lines = [f"# Changelog: {repo_name}", "", f"**Date Range:** {date_range_}", ""]

    for type_, items in group_by_type(classified).items():
        lines.append(f"## {format_commit_type(type_)}")
        lines.append("")
        for item in items:
            c = item.commit
            lines.append(f"- **{c.short_hash}** {c.subject} ({c.author}, {format_date(c.timestamp)})")
        lines.append("")

    return "\n".join(lines) + "\n"


def render_external(repo_name: str, classified: list[ClassifiedCommit], date_range_: str) -> str:
    """User-facing changelog: features, breaking changes, fixes and performance only.

    Commit prefixes are stripped; hashes, authors and dates are never emitted.
    """
    lines = [f"# {repo_name} - Changelog", "", f"**{date_range_}**", ""]

    groups = group_by_category(classified)
    for category, heading in _EXTERNAL_SECTIONS:
        items = groups[category]
        if not items:
            continue
        lines.append(f"## {heading}")
        lines.append("")
        keyword = CATEGORY_KEYWORDS[category]
        for item in items:
            lines.append(f"- {strip_prefix(item.commit.subject, keyword)}")
        lines.append("")

    return "\n".join(lines) + "\n"


def render(
    repo_name: str,
    classified: list[ClassifiedCommit],
    date_range_: str,
    layout: Layout = Layout.INTERNAL,
) -> str:
    if Layout(layout) is Layout.EXTERNAL:
        return render_external(repo_name, classified, date_range_)
    return render_internal(repo_name, classified, date_range_)


def empty_document(date_range_: str = "") -> ChangelogDocument:
    return ChangelogDocument(title=NO_COMMITS_TITLE, content=NO_COMMITS_CONTENT, date_range=date_range_)


def render_document(
    repo_name: str,
    commits: list[Commit],
    date_range_: str,
    layout: Layout = Layout.INTERNAL,
) -> ChangelogDocument:
    """Classify and render *commits*; zero commits short-circuit to the 'No Changes' document."""
    if not commits:
        return empty_document(date_range_)
    content = render(repo_name, classify(commits), date_range_, layout)
    return ChangelogDocument(title=f"{repo_name} Changelog", content=content, date_range=date_range_)
