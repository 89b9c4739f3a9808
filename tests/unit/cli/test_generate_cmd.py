"""Tests for instalog generate."""

from __future__ import annotations

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from instalog.cli.main import app
from instalog.db.history import HistoryStore

runner = CliRunner()

_URL = "https://github.com/octo/hello"
_URLOPEN = "instalog.github.commits.urllib.request.urlopen"
_COMPLETE = "instalog.ai.rewriter.complete"

_AI_MARKDOWN = "# Login Sprint - Changelog\n**range**\n\n## Added\n- Sign in with SSO\n"


def _response(payload) -> MagicMock:
    resp = MagicMock()
    resp.read.return_value = json.dumps(payload).encode("utf-8")
    resp.__enter__.return_value = resp
    return resp


@pytest.fixture
def page(api_commit):
    return [
        api_commit("feat: add login", "b" * 40, "Ann"),
        api_commit("fix: crash on start", "a" * 40, "Bob"),
    ]


class _StatusError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


def _history(isolated_env) -> dict:
    return json.loads(isolated_env["history"].read_text(encoding="utf-8"))


# ------------------------------------------------------------------
# Input validation
# ------------------------------------------------------------------


def test_no_repo_and_no_remote(isolated_env):
    with patch("instalog.cli.common.current_repo_url", return_value=None):
        result = runner.invoke(app, ["generate"])
    assert result.exit_code == 1
    assert "No repository URL" in result.output


def test_bad_repo_url(isolated_env):
    with patch(_URLOPEN) as mock_open:
        result = runner.invoke(app, ["generate", "--repo", "nonsense"])
    assert result.exit_code == 1
    mock_open.assert_not_called()


def test_days_must_be_positive(isolated_env):
    with patch(_URLOPEN) as mock_open:
        result = runner.invoke(app, ["generate", "--repo", _URL, "--days", "0"])
    assert result.exit_code == 2
    mock_open.assert_not_called()


def test_output_traversal_rejected_before_fetch(isolated_env):
    with patch(_URLOPEN) as mock_open:
        result = runner.invoke(app, ["generate", "--repo", _URL, "-o", "../../escape.md"])
    assert result.exit_code == 1
    assert "not allowed" in result.output
    mock_open.assert_not_called()


def test_remote_origin_used_when_repo_omitted(isolated_env, page):
    with patch("instalog.cli.common.current_repo_url", return_value=_URL + ".git"), patch(
        _URLOPEN, return_value=_response(page)
    ):
        result = runner.invoke(app, ["generate", "--no-ai"])
    assert result.exit_code == 0, result.output
    assert "# Changelog: hello" in result.output


# ------------------------------------------------------------------
# Standard changelog
# ------------------------------------------------------------------


def test_first_run_standard_changelog_recorded(isolated_env, page):
    with patch(_URLOPEN, return_value=_response(page)) as mock_open:
        result = runner.invoke(app, ["generate", "--repo", _URL, "--days", "7", "--no-ai"])

    assert result.exit_code == 0, result.output
    assert mock_open.call_count == 1
    assert "No previous changelog history" in result.output
    assert "# Changelog: hello" in result.output
    assert "Standard changelog generated" in result.output

    data = _history(isolated_env)
    assert data["repositories"][0]["url"] == _URL
    assert data["repositories"][0]["name"] == "hello"
    assert data["history"][0]["lastCommitHash"] == "b" * 40


def test_external_format(isolated_env, page):
    with patch(_URLOPEN, return_value=_response(page)):
        result = runner.invoke(
            app, ["generate", "--repo", _URL, "--format", "EXTERNAL", "--no-ai", "--no-record"]
        )
    assert result.exit_code == 0, result.output
    assert "# hello - Changelog" in result.output
    assert "- add login" in result.output
    assert "bbbbbbb" not in result.output
    assert not isolated_env["history"].exists() or _history(isolated_env)["history"] == []


def test_missing_ai_key_warns_and_falls_back(isolated_env, page):
    with patch(_URLOPEN, return_value=_response(page)), patch(_COMPLETE) as mock_complete:
        result = runner.invoke(app, ["generate", "--repo", _URL])
    assert result.exit_code == 0, result.output
    assert "No AI key found" in result.output
    assert "ANTHROPIC_API_KEY" in result.output
    mock_complete.assert_not_called()


def test_empty_window_records_run(isolated_env):
    with patch(_URLOPEN, return_value=_response([])):
        result = runner.invoke(app, ["generate", "--repo", _URL, "--no-ai"])
    assert result.exit_code == 0, result.output
    assert "No commits found" in result.output
    assert _history(isolated_env)["history"][0]["lastCommitHash"] is None


def test_second_run_uses_history(isolated_env, page, api_commit):
    HistoryStore(isolated_env["history"]).record_generation(
        _URL, "hello", "2024-01-01", "2024-01-02", "a" * 40
    )
    newer = [api_commit("feat: newer", "c" * 40)] + page
    with patch(_URLOPEN, side_effect=[_response(newer), _response(newer)]) as mock_open:
        result = runner.invoke(app, ["generate", "--repo", _URL, "--no-ai"])

    assert result.exit_code == 0, result.output
    assert mock_open.call_count == 2
    assert "Found 2 new commits since last changelog" in result.output

    data = _history(isolated_env)
    assert len(data["history"]) == 2
    assert data["history"][0]["lastCommitHash"] == "c" * 40


def test_empty_run_keeps_previous_baseline(isolated_env, page):
    HistoryStore(isolated_env["history"]).record_generation(
        _URL, "hello", "2024-01-01", "2024-01-02", "a" * 40
    )
    with patch(_URLOPEN, side_effect=[_response(page), _response([])]):
        result = runner.invoke(app, ["generate", "--repo", _URL, "--no-ai"])
    assert result.exit_code == 0, result.output
    assert _history(isolated_env)["history"][0]["lastCommitHash"] == "a" * 40


def test_unreadable_history_warns(isolated_env, page):
    isolated_env["history"].write_text("{broken", encoding="utf-8")
    with patch(_URLOPEN, return_value=_response(page)):
        result = runner.invoke(app, ["generate", "--repo", _URL, "--no-ai"])
    assert result.exit_code == 0, result.output
    assert "could not be read" in " ".join(result.output.split())
    assert len(_history(isolated_env)["history"]) == 1


# ------------------------------------------------------------------
# AI changelog
# ------------------------------------------------------------------


def test_ai_changelog(isolated_env, page, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    with patch(_URLOPEN, return_value=_response(page)), patch(
        _COMPLETE, return_value=_AI_MARKDOWN
    ) as mock_complete:
        result = runner.invoke(app, ["generate", "--repo", _URL])

    assert result.exit_code == 0, result.output
    assert "Generated AI-enhanced changelog" in result.output
    assert "Sign in with SSO" in result.output
    assert mock_complete.call_args.kwargs["api_key"] == "sk-test"


def test_ai_key_from_home_file(isolated_env, page):
    (isolated_env["home"] / ".anthropic_key").write_text("sk-file\n", encoding="utf-8")
    with patch(_URLOPEN, return_value=_response(page)), patch(
        _COMPLETE, return_value=_AI_MARKDOWN
    ) as mock_complete:
        result = runner.invoke(app, ["generate", "--repo", _URL])
    assert result.exit_code == 0, result.output
    assert mock_complete.call_args.kwargs["api_key"] == "sk-file"


def test_ai_quota_falls_back(isolated_env, page, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    with patch(_URLOPEN, return_value=_response(page)), patch(
        _COMPLETE, side_effect=_StatusError(429, "credit balance too low")
    ):
        result = runner.invoke(app, ["generate", "--repo", _URL])
    assert result.exit_code == 0, result.output
    assert "AI quota exceeded" in result.output
    assert "# Changelog: hello" in result.output


def test_ai_failure_falls_back(isolated_env, page, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    with patch(_URLOPEN, return_value=_response(page)), patch(
        _COMPLETE, side_effect=RuntimeError("boom")
    ):
        result = runner.invoke(app, ["generate", "--repo", _URL])
    assert result.exit_code == 0, result.output
    assert "AI enhancement failed" in result.output
    assert "# Changelog: hello" in result.output


def test_ai_title_with_brackets_printed_literally(isolated_env, page, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    markdown = "# Release [/beta] - Changelog\n**range**\n\n## Added\n- x\n"
    with patch(_URLOPEN, return_value=_response(page)), patch(_COMPLETE, return_value=markdown):
        result = runner.invoke(app, ["generate", "--repo", _URL])
    assert result.exit_code == 0, result.output
    assert "Release [/beta]" in result.output
    assert len(_history(isolated_env)["history"]) == 1


def test_ai_failure_reason_with_brackets(isolated_env, page, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    with patch(_URLOPEN, return_value=_response(page)), patch(
        _COMPLETE, side_effect=RuntimeError("role [/system] rejected")
    ):
        result = runner.invoke(app, ["generate", "--repo", _URL])
    assert result.exit_code == 0, result.output
    assert "[/system]" in result.output
    assert len(_history(isolated_env)["history"]) == 1


def test_no_ai_flag_skips_rewrite(isolated_env, page, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    with patch(_URLOPEN, return_value=_response(page)), patch(_COMPLETE) as mock_complete:
        result = runner.invoke(app, ["generate", "--repo", _URL, "--no-ai"])
    assert result.exit_code == 0, result.output
    mock_complete.assert_not_called()


# ------------------------------------------------------------------
# Fetch failures
# ------------------------------------------------------------------


def test_fetch_error_exits_without_recording(isolated_env):
    error = urllib.error.HTTPError(_URL, 404, "Not Found", {}, io.BytesIO(b'{"message": "Not Found"}'))
    with patch(_URLOPEN, side_effect=error):
        result = runner.invoke(app, ["generate", "--repo", _URL])
    assert result.exit_code == 1
    assert "404 - Not Found" in result.output
    assert "GITHUB_TOKEN" in result.output
    assert _history(isolated_env)["history"] == []


def test_token_sent_when_configured(isolated_env, page, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
    with patch(_URLOPEN, return_value=_response(page)) as mock_open:
        result = runner.invoke(app, ["generate", "--repo", _URL, "--no-ai"])
    assert result.exit_code == 0, result.output
    assert mock_open.call_args.args[0].get_header("Authorization") == "Bearer ghp_test"
    assert "ghp_test" not in result.output


# ------------------------------------------------------------------
# Output file
# ------------------------------------------------------------------


def test_output_written(isolated_env, page):
    with patch(_URLOPEN, return_value=_response(page)):
        result = runner.invoke(app, ["generate", "--repo", _URL, "--no-ai", "-o", "CHANGELOG.md"])
    assert result.exit_code == 0, result.output
    written = (isolated_env["work"] / "CHANGELOG.md").read_text(encoding="utf-8")
    assert written.startswith("# Changelog: hello")


def test_output_overwrite_declined(isolated_env, page):
    target = isolated_env["work"] / "CHANGELOG.md"
    target.write_text("keep me", encoding="utf-8")
    with patch(_URLOPEN, return_value=_response(page)):
        result = runner.invoke(
            app, ["generate", "--repo", _URL, "--no-ai", "-o", "CHANGELOG.md"], input="n\n"
        )
    assert result.exit_code == 0, result.output
    assert target.read_text(encoding="utf-8") == "keep me"


@pytest.mark.parametrize("flags", [["--yes"], ["--prepend"]])
def test_output_existing_without_prompt(isolated_env, page, flags):
    target = isolated_env["work"] / "CHANGELOG.md"
    target.write_text("# Older\n", encoding="utf-8")
    with patch(_URLOPEN, return_value=_response(page)):
        result = runner.invoke(
            app, ["generate", "--repo", _URL, "--no-ai", "-o", "CHANGELOG.md", *flags]
        )
    assert result.exit_code == 0, result.output
    content = target.read_text(encoding="utf-8")
    assert content.startswith("# Changelog: hello")
    assert ("# Older" in content) is ("--prepend" in flags)
