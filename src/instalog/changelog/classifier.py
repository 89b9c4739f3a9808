"""Conventional-commit classification.

Internal layout groups commits by the type keyword of ``type(scope): subject``.
External layout keeps only four user-relevant buckets; everything else is noise
and is dropped from that layout entirely.
"""

from __future__ import annotations

import re

from instalog.changelog.models import ClassifiedCommit, Commit

_TYPE_RE = re.compile(r"^(\w+)(\([^)]+\))?:")

# Checked in this order against the lower-cased message.
_CATEGORY_PREFIXES: tuple[tuple[str, str], ...] = (
    ("feat", "feature"),
    ("fix", "fix"),
    ("perf", "performance"),
    ("breaking", "breaking"),
)

CATEGORY_KEYWORDS: dict[str, str] = {category: prefix for prefix, category in _CATEGORY_PREFIXES}

_TYPE_HEADINGS: dict[str, str] = {
    "feat": "Features",
    "fix": "Bug Fixes",
    "docs": "Documentation",
    "style": "Style Improvements",
    "refactor": "Code Refactoring",
    "perf": "Performance Improvements",
    "test": "Tests",
    "build": "Build System",
    "ci": "CI/CD",
    "chore": "Chores",
    "other": "Other Changes",
}


def commit_type(message: str) -> str:
    """Return the lower-cased conventional-commit type of *message*, or 'other'."""
    first_line = message.splitlines()[0] if message else ""
    match = _TYPE_RE.match(first_line)
    return match.group(1).lower() if match else "other"


def external_category(message: str) -> str | None:
    """Return the external-layout bucket for *message*, or None if it is excluded."""
    lowered = message.lower()
    for prefix, category in _CATEGORY_PREFIXES:
        if lowered.startswith(prefix):
            return category
    return None


def classify(commits: list[Commit]) -> list[ClassifiedCommit]:
    """Annotate each commit with its type and external category (input order kept)."""
    return [
        ClassifiedCommit(
            commit=c,
            type=commit_type(c.message),
            category=external_category(c.message),
        )
        for c in commits
    ]


def group_by_type(classified: list[ClassifiedCommit]) -> dict[str, list[ClassifiedCommit]]:
    """Group by type; keys appear in first-occurrence order."""
    groups: dict[str, list[ClassifiedCommit]] = {}
    for item in classified:
        groups.setdefault(item.type, []).append(item)
    return groups


def group_by_category(classified: list[ClassifiedCommit]) -> dict[str, list[ClassifiedCommit]]:
    """Group the external buckets; excluded commits (category None) are dropped."""
    groups: dict[str, list[ClassifiedCommit]] = {category: [] for category in CATEGORY_KEYWORDS}
    for item in classified:
        if item.category is not None:
            groups[item.category].append(item)
    return groups


def format_commit_type(type_: str) -> str:
    """Human heading for a commit type; unknown types are capitalised."""
    if type_ in _TYPE_HEADINGS:
        return _TYPE_HEADINGS[type_]
    return type_[:1].upper() + type_[1:]


def strip_prefix(message: str, keyword: str) -> str:
    """Remove a leading ``keyword(scope):`` or ``keyword:`` (case-insensitive)."""
    pattern = re.compile(rf"^{re.escape(keyword)}(\([^)]+\))?:\s*", re.IGNORECASE)
    return pattern.sub("", message, count=1)
