"""instalog history / repos / since — read-only views of the local run history."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from instalog.cli.common import load_config_or_exit, open_store, resolve_repo_or_exit
from instalog.cli.errors import warn_new_commits_approximate
from instalog.config import resolve_credentials
from instalog.db.commits import new_commits_since_last_changelog
from instalog.github.commits import CommitFetcher, repo_name_from_url

console = Console()

_RepoOpt = Annotated[
    str | None,
    typer.Option("--repo", "-r", help="GitHub repository URL (default: git remote 'origin')."),
]
_HistoryFileOpt = Annotated[
    Path | None,
    typer.Option("--history-file", help="Override the history file location."),
]


def history_cmd(
    repo: _RepoOpt = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", min=1, help="Maximum number of runs to show."),
    ] = None,
    history_file: _HistoryFileOpt = None,
) -> None:
    """Show past changelog runs for a repository."""
    cfg = load_config_or_exit(history_file)
    repo_url = resolve_repo_or_exit(repo)
    store = open_store(cfg)

    entries = store.history_for(repo_url, limit=limit or cfg.defaults.history_limit)
    if not entries:
        console.print(f"[dim]No changelog history for {escape(repo_url)}.[/]")
        return

    table = Table(title=f"Changelog history — {escape(repo_name_from_url(repo_url))}")
    table.add_column("Generated", style="bold")
    table.add_column("Window")
    table.add_column("Last commit", style="dim")
    for entry in entries:
        table.add_row(
            escape(entry.generated_at[:16].replace("T", " ")),
            escape(f"{entry.start_date} → {entry.end_date}"),
            escape((entry.last_commit_hash or "—")[:7]),
        )
    console.print(table)


def repos_cmd(
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", min=1, help="Maximum number of repositories to show."),
    ] = None,
    history_file: _HistoryFileOpt = None,
) -> None:
    """List recently used repositories."""
    cfg = load_config_or_exit(history_file)
    store = open_store(cfg)

    repos = store.recent_repositories(limit=limit or cfg.defaults.recent_limit)
    if not repos:
        console.print("[dim]No repositories used yet.[/]  Run:  instalog generate")
        return

    table = Table(title="Recent repositories")
    table.add_column("Name", style="bold")
    table.add_column("URL")
    table.add_column("Last changelog", style="dim")
    for record in repos:
        last = store.last_run_info(record.url)
        when = f"{last.days} days ago" if last else "never"
        table.add_row(escape(record.name), escape(record.url), when)
    console.print(table)


def since_cmd(
    repo: _RepoOpt = None,
    history_file: _HistoryFileOpt = None,
) -> None:
    """Count commits made since the last recorded changelog."""
    cfg = load_config_or_exit(history_file)
    repo_url = resolve_repo_or_exit(repo)
    store = open_store(cfg)

    last = store.last_run_info(repo_url)
    if last is None:
        console.print("[dim]No previous changelog history found for this repository.[/]")
        return

    creds = resolve_credentials(cfg.ai.model)
    fetcher = CommitFetcher(
        token=creds.github_token,
        api_url=cfg.github.api_url,
        timeout=cfg.github.timeout,
        per_page=cfg.github.per_page,
    )
    info = new_commits_since_last_changelog(store, fetcher, repo_url)

    console.print(f"Last changelog: [bold]{last.days} days ago[/] (window ending {escape(last.last_date)})")
    if info.new_commits is None:
        console.print(f"  [dim]{escape(info.message)}[/]")
    elif not info.exact:
        console.print(warn_new_commits_approximate(info.new_commits))
    else:
        console.print(f"  [green]✓[/] {escape(info.message)}")
