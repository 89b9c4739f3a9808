"""instalog generate — build a changelog for a GitHub repository.

Usage:
  instalog generate [--repo URL] [--days N] [--format internal|external] [--output PATH]

Flags:
  --repo URL        Repository URL (default: git remote 'origin' of the CWD)
  --days N          Lookback window (default: days since last changelog, else config)
  --format LAYOUT   internal (developers) or external (end-users)
  --no-ai           Skip the LLM rewrite and render the standard changelog
  --output PATH     Also write the changelog to a file; path traversal blocked
  --prepend         Keep an existing file's content below the new changelog
  --yes             Skip the overwrite prompt
  --no-record       Do not add this run to the local history
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from instalog.ai.llm_client import provider_env_var, provider_of
from instalog.ai.rewriter import AIRewriter, RewriteStatus
from instalog.changelog.models import Layout
from instalog.changelog.pipeline import GenerationResult, Strategy, generate_changelog
from instalog.changelog.renderer import window_dates
from instalog.cli.common import load_config_or_exit, open_store, resolve_repo_or_exit
from instalog.cli.errors import (
    err_fetch_failed,
    err_invalid_input,
    err_output_path_unsafe,
    warn_ai_failed,
    warn_ai_quota,
    warn_new_commits_approximate,
    warn_no_ai_key,
)
from instalog.config import InstalogConfig, resolve_credentials
from instalog.db.commits import new_commits_since_last_changelog
from instalog.db.history import HistoryStore
from instalog.db.models import LastRunInfo
from instalog.github.commits import CommitFetcher, repo_name_from_url
from instalog.output.writer import check_overwrite, validate_output_path, write_output

console = Console()


def generate_cmd(
    repo: Annotated[
        str | None,
        typer.Option("--repo", "-r", help="GitHub repository URL (default: git remote 'origin')."),
    ] = None,
    days: Annotated[
        int | None,
        typer.Option("--days", "-d", min=1, help="Number of days to include."),
    ] = None,
    layout: Annotated[
        Layout | None,
        typer.Option("--format", "-f", case_sensitive=False, help="Changelog layout."),
    ] = None,
    no_ai: Annotated[
        bool,
        typer.Option("--no-ai", help="Skip the AI rewrite; use the standard changelog."),
    ] = False,
    output: Annotated[
        str | None,
        typer.Option("--output", "-o", help="Write the changelog to this file."),
    ] = None,
    prepend: Annotated[
        bool,
        typer.Option("--prepend", help="Prepend to an existing output file instead of replacing it."),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompts."),
    ] = False,
    no_record: Annotated[
        bool,
        typer.Option("--no-record", help="Do not save this run to the local history."),
    ] = False,
    history_file: Annotated[
        Path | None,
        typer.Option("--history-file", help="Override the history file location."),
    ] = None,
) -> None:
    """Generate a changelog from recent GitHub commits."""
    cfg = load_config_or_exit(history_file)
    repo_url = resolve_repo_or_exit(repo)
    repo_name = repo_name_from_url(repo_url)

    # ---- Output path validation (before any network call) ----
    output_path: Path | None = None
    if output:
        try:
            output_path = validate_output_path(output)
        except ValueError:
            console.print(err_output_path_unsafe(output))
            raise typer.Exit(1)

    creds = resolve_credentials(cfg.ai.model)
    fetcher = CommitFetcher(
        token=creds.github_token,
        api_url=cfg.github.api_url,
        timeout=cfg.github.timeout,
        per_page=cfg.github.per_page,
    )

    # ---- History: suggested window + baseline ----
    store = open_store(cfg)
    last = store.last_run_info(repo_url)
    _show_history(store, fetcher, repo_url, last)

    if days is None:
        days = last.days if last and last.days > 0 else cfg.defaults.days
    layout = Layout(layout or cfg.defaults.layout)

    rewriter = _build_rewriter(cfg, creds.ai_key, creds.ai_available, no_ai)

    # ---- Generate ----
    now = datetime.now(timezone.utc)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=console,
    ) as prog:
        prog.add_task(f"Fetching commits and building changelog for {escape(repo_name)}…", total=None)
        try:
            result = generate_changelog(repo_url, days, layout, fetcher, rewriter, now=now)
        except ValueError as exc:
            console.print(err_invalid_input(str(exc)))
            raise typer.Exit(1)

    if result.strategy is Strategy.ERROR:
        console.print(err_fetch_failed(result.error or "", fetcher.authenticated))
        raise typer.Exit(1)

    _report(result, days)

    # ---- Preview ----
    console.rule(f"[bold]{escape(result.document.title)}[/]")
    console.print(result.document.content, markup=False, highlight=False)
    console.rule()

    # ---- Write ----
    if output_path is not None:
        if not check_overwrite(output_path, yes=yes, prepend=prepend):
            console.print("  [dim]Not written.[/]")
        else:
            write_output(output_path, result.document.content, prepend=prepend)
            console.print(f"  [green]✓[/] Written to [bold]{escape(str(output_path))}[/]")

    # ---- Record ----
    if not no_record:
        start_date, end_date = window_dates(days, now)
        baseline = result.last_commit_hash or (last.last_commit_hash if last else None)
        store.record_generation(repo_url, repo_name, start_date, end_date, baseline)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _show_history(
    store: HistoryStore,
    fetcher: CommitFetcher,
    repo_url: str,
    last: LastRunInfo | None,
) -> None:
    if last is None:
        console.print("  [dim]No previous changelog history found for this repository.[/]")
        return

    info = new_commits_since_last_changelog(store, fetcher, repo_url)
    if info.new_commits is None:
        console.print(
            f"  [dim]Last changelog was generated {last.days} days ago on {escape(last.last_date)}[/]"
        )
    elif not info.exact:
        console.print(warn_new_commits_approximate(info.new_commits))
    else:
        console.print(
            f"  [dim]✓ Found {info.new_commits} new commits since last changelog on {escape(last.last_date)}[/]"
        )


def _build_rewriter(
    cfg: InstalogConfig,
    ai_key: str | None,
    ai_available: bool,
    no_ai: bool,
) -> AIRewriter | None:
    if no_ai or not cfg.ai.enabled:
        return None
    if not ai_available:
        key_file = f".{provider_of(cfg.ai.model)}_key"
        console.print(warn_no_ai_key(provider_env_var(cfg.ai.model), key_file))
        return None
    return AIRewriter(
        api_key=ai_key,
        model=cfg.ai.model,
        max_tokens=cfg.ai.max_tokens,
        temperature=cfg.ai.temperature,
        num_retries=cfg.ai.num_retries,
        key_required=provider_env_var(cfg.ai.model) is not None,
    )


def _report(result: GenerationResult, days: int) -> None:
    if result.strategy is Strategy.EMPTY:
        console.print(f"  [yellow]No commits found in the last {days} days.[/]")
        return

    console.print(f"  [dim]✓ Found {len(result.commits)} commits[/]")
    if result.strategy is Strategy.AI:
        console.print("  [green]✓[/] Generated AI-enhanced changelog")
        return

    rewrite = result.rewrite
    if rewrite is not None:
        if rewrite.status is RewriteStatus.QUOTA:
            console.print(warn_ai_quota())
        else:
            console.print(warn_ai_failed(rewrite.reason))
    console.print("  [green]✓[/] Standard changelog generated")
