"""GitHub commit fetcher — REST ``/repos/{owner}/{repo}/commits``.

- One GET per call; no retry, failures surface as a single GitHubError.
- The bearer token is attached only when one is configured; otherwise the call
  is unauthenticated (and subject to GitHub's unauthenticated rate limit).
- The token is never logged and never included in error messages.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime, timedelta, timezone

from instalog.changelog.models import Commit

logger = logging.getLogger(__name__)

_USER_AGENT = "instalog/0.1 (+https://github.com/instalog/instalog)"
_ACCEPT = "application/vnd.github+json"
_DEFAULT_API_URL = "https://api.github.com"
_ERROR_PREFIX = "Error fetching commits from GitHub"


class GitHubError(RuntimeError):
    """Raised when the commit list cannot be fetched.

    Attributes:
        kind: 'status' (error response), 'no_response' (network failure) or
            'other' (malformed body, unexpected payload).
        status: HTTP status code for kind 'status', else None.
    """

    def __init__(self, message: str, kind: str = "other", status: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status = status


# ------------------------------------------------------------------
# Input validation
# ------------------------------------------------------------------


def parse_repo_url(repo_url: str) -> tuple[str, str]:
    """Return ``(owner, repo)`` from the last two path segments of *repo_url*.

    Accepts ``https://github.com/o/r``, ``https://github.com/o/r.git`` and
    ``git@github.com:o/r.git``.

    Raises:
        ValueError: If the URL does not contain an owner and a repository name.
    """
    url = (repo_url or "").strip().rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    if url.startswith("git@") and ":" in url:
        url = url.replace(":", "/", 1)

    parts = url.split("/")
    if len(parts) < 2 or not parts[-1] or not parts[-2]:
        raise ValueError(
            f"Cannot parse owner/repository from '{repo_url}'. "
            "Expected a URL like https://github.com/<owner>/<repo>."
        )
    return parts[-2], parts[-1]


def repo_name_from_url(repo_url: str) -> str:
    return parse_repo_url(repo_url)[1]


def validate_days(days: int) -> int:
    """Return *days* if it is a positive integer, else raise ValueError."""
    if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
        raise ValueError(f"Number of days must be a positive integer, got {days!r}.")
    return days


# ------------------------------------------------------------------
# Fetcher
# ------------------------------------------------------------------


class CommitFetcher:
    """Fetch commit lists from the GitHub REST API.

    Args:
        token: Optional GitHub token (sent as a bearer credential).
        api_url: API base URL (GitHub Enterprise installs differ).
        timeout: Socket timeout in seconds.
        per_page: Page size requested from the API (1–100).
    """

    def __init__(
        self,
        token: str | None = None,
        api_url: str = _DEFAULT_API_URL,
        timeout: int = 30,
        per_page: int = 30,
    ) -> None:
        self._token = token or None
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._per_page = per_page

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    def fetch_commits(self, repo_url: str, days: int, now: datetime | None = None) -> list[Commit]:
        """Return commits authored in the last *days* days, newest first.

        Raises:
            ValueError: On an unparseable URL or a non-positive day count (no I/O).
            GitHubError: On network failure, error status, or malformed body.
        """
        owner, repo = parse_repo_url(repo_url)
        validate_days(days)
        since = (now or datetime.now(timezone.utc)) - timedelta(days=days)
        since_iso = since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        return self._get_commits(owner, repo, {"since": since_iso})

    def list_commits(self, repo_url: str) -> list[Commit]:
        """Return the first page of commits with no date filter, newest first."""
        owner, repo = parse_repo_url(repo_url)
        return self._get_commits(owner, repo, {})

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _commits_url(self, owner: str, repo: str, params: dict[str, str]) -> str:
        query = dict(params)
        query["per_page"] = str(self._per_page)
        path = f"/repos/{urllib.parse.quote(owner)}/{urllib.parse.quote(repo)}/commits"
        return f"{self._api_url}{path}?{urllib.parse.urlencode(query)}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": _ACCEPT, "User-Agent": _USER_AGENT}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _get_commits(self, owner: str, repo: str, params: dict[str, str]) -> list[Commit]:
        url = self._commits_url(owner, repo, params)
        logger.debug("GET %s (authenticated=%s)", url, self.authenticated)
        request = urllib.request.Request(url, headers=self._headers())

        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                body = response.read()
        except urllib.error.HTTPError as exc:
            raise GitHubError(
                f"{_ERROR_PREFIX}: {exc.code} - {_error_detail(exc)}",
                kind="status",
                status=exc.code,
            ) from None
        except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
            logger.debug("No response from %s: %s", url, exc)
            raise GitHubError(
                f"{_ERROR_PREFIX}: No response received from server",
                kind="no_response",
            ) from exc

        return _parse_commits(body)


def _error_detail(exc: urllib.error.HTTPError) -> str:
    """Prefer the API's JSON ``message``; fall back to the HTTP reason phrase."""
    try:
        payload = json.loads(exc.read().decode("utf-8", errors="replace") or "{}")
    except (ValueError, OSError, AttributeError):
        payload = {}
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return str(exc.reason)


def _parse_commits(body: bytes) -> list[Commit]:
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise GitHubError(f"{_ERROR_PREFIX}: Malformed response body ({exc})") from exc

    if not isinstance(payload, list):
        raise GitHubError(f"{_ERROR_PREFIX}: Expected a list of commits, got {type(payload).__name__}")

    try:
        return [Commit.from_api(item) for item in payload]
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise GitHubError(f"{_ERROR_PREFIX}: Malformed commit object ({exc})") from exc
