"""LLM changelog rewriter.

Sends the fetched commits to an LLM with a fixed prompt and returns a
replacement Markdown document plus an extracted title. The rewriter is a
best-effort layer: it never raises. Every outcome is reported as a
RewriteResult so the caller decides whether to fall back to the renderer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from instalog.ai.llm_client import complete, is_rate_limited
from instalog.changelog.models import ChangelogDocument, Commit, Layout
from instalog.changelog.renderer import format_date

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "anthropic/claude-3-haiku-20240307"
_DEFAULT_TITLE = "Changelog"
_TITLE_SUFFIX = " - Changelog"

_SYSTEM_PROMPT = (
    "You are an expert changelog writer. Your task is to create well-structured, "
    "informative changelogs that highlight the most important changes in a repository. "
    "You categorize changes properly, eliminate noise, and ensure the content is "
    "appropriately detailed for the audience. For developer-focused changelogs, include "
    "technical details; for user-focused changelogs, emphasize features and benefits."
)

_PROMPT_TEMPLATE = """\
Generate a {tone} changelog for repository "{repo_name}" covering the period {date_range}.

The changelog is intended for {audience}. {detail}.

First, create a descriptive version-style title that captures the essence of the changes in this period.
The title should be concise but informative about the main themes of changes.

Here are the commits to include:
{commits}
Please format the changelog with the following EXACT structure:

# [DESCRIPTIVE TITLE] - Changelog
**{date_range}**

Begin with a brief 1-2 sentence summary describing the focus of this release.

## Added
- List any new features or functionalities that were added
- Include enhancements to existing features

## Changed
- List any changes or modifications made to existing features
- Include performance improvements and code refactoring

## Fixed
- List any bugs that were fixed
- Include patches and issue resolutions

## Removed
- List any features or elements that were deprecated or removed (if any)

## Security
- List any security-related changes (if any)

If there are no items for a particular category, you can omit that category completely.

IMPORTANT:
1. Replace [DESCRIPTIVE TITLE] with a meaningful, version-style title (like "Feature Enhancement Sprint" or "Bug Fix Release")
2. DO NOT include commit hashes, author names, or dates in the changelog entries.

Ensure the changelog is clear, concise, and provides valuable information about the changes in this release period.
"""


class RewriteStatus(str, Enum):
    OK = "ok"
    UNAVAILABLE = "unavailable"  # no credential; no request was made
    QUOTA = "quota"  # HTTP 429 / rate limit / exhausted credits
    FAILED = "failed"  # any other request error or an empty response


@dataclass(frozen=True)
class RewriteResult:
    status: RewriteStatus
    changelog: ChangelogDocument | None = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status is RewriteStatus.OK


# ------------------------------------------------------------------
# Prompt + parsing
# ------------------------------------------------------------------


def build_prompt(commits: list[Commit], repo_name: str, date_range: str, layout: Layout) -> str:
    """Render the fixed rewrite prompt; every commit is listed regardless of layout."""
    internal = Layout(layout) is Layout.INTERNAL
    commit_lines = "".join(
        f'- SHA: {c.short_hash}, Message: "{c.message}", Author: {c.author}, '
        f"Date: {format_date(c.timestamp)}\n"
        for c in commits
    )
    return _PROMPT_TEMPLATE.format(
        tone="technical" if internal else "user-friendly",
        repo_name=repo_name,
        date_range=date_range,
        audience="developers" if internal else "end-users",
        detail=(
            "Include technical details but DO NOT include commit hashes or author names"
            if internal
            else "Focus on user-facing changes, features, and improvements"
        ),
        commits=commit_lines,
    )


def extract_title(markdown: str) -> str:
    """Return the first ``# `` heading without its marker and ``- Changelog`` suffix."""
    for line in markdown.splitlines():
        if line.startswith("# "):
            title = line[2:].strip()
            if title.endswith(_TITLE_SUFFIX):
                title = title[: -len(_TITLE_SUFFIX)]
            return title
    return _DEFAULT_TITLE


# ------------------------------------------------------------------
# Rewriter
# ------------------------------------------------------------------


class AIRewriter:
    """Rewrite a set of commits into a changelog with an LLM.

    Args:
        api_key:      Provider key resolved at start-up (None if absent).
        model:        LiteLLM model string.
        max_tokens:   Output token limit for the completion.
        temperature:  Sampling temperature.
        num_retries:  LiteLLM retries on transient errors.
        key_required: False for providers that need no key (local models).
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = _DEFAULT_MODEL,
        max_tokens: int = 4_000,
        temperature: float = 0.2,
        num_retries: int = 0,
        key_required: bool = True,
    ) -> None:
        self._api_key = api_key or None
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._num_retries = num_retries
        self._key_required = key_required

    @property
    def model(self) -> str:
        return self._model

    @property
    def available(self) -> bool:
        return self._api_key is not None or not self._key_required

    def rewrite(
        self,
        commits: list[Commit],
        layout: Layout,
        repo_name: str,
        date_range: str,
    ) -> RewriteResult:
        """Ask the model for a changelog. Never raises."""
        if not self.available:
            logger.info("No API key for %s; AI changelog disabled.", self._model)
            return RewriteResult(RewriteStatus.UNAVAILABLE, reason="API key not found")

        prompt = build_prompt(commits, repo_name, date_range, layout)
        try:
            content = complete(
                model=self._model,
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                num_retries=self._num_retries,
                api_key=self._api_key,
            )
        except Exception as exc:
            if is_rate_limited(exc):
                logger.warning(
                    "AI quota exceeded for %s: the account is out of credits or hit a rate limit.",
                    self._model,
                )
                return RewriteResult(RewriteStatus.QUOTA, reason=str(exc))
            logger.warning("AI changelog request failed: %s", exc)
            return RewriteResult(RewriteStatus.FAILED, reason=str(exc))

        if not content.strip():
            logger.warning("AI changelog request failed: empty response from %s", self._model)
            return RewriteResult(RewriteStatus.FAILED, reason="Empty response from API")

        document = ChangelogDocument(
            title=extract_title(content),
            content=content,
            date_range=date_range,
        )
        return RewriteResult(RewriteStatus.OK, changelog=document)

    def enhance_changelog(
        self,
        commits: list[Commit],
        layout: Layout,
        repo_name: str,
        date_range: str,
    ) -> ChangelogDocument | None:
        """Return the AI document, or None when the rewriter is unavailable or failed."""
        result = self.rewrite(commits, layout, repo_name, date_range)
        return result.changelog if result.ok else None
