"""Helpers shared by the instalog commands: config, store, repository detection."""

from __future__ import annotations

import subprocess
from pathlib import Path

import typer
from rich.console import Console

from instalog.cli.errors import err_config, err_invalid_input, err_no_repo, warn_history_unreadable
from instalog.config import ConfigError, InstalogConfig, load_config
from instalog.db.history import HistoryStore
from instalog.github.commits import parse_repo_url

console = Console()


def load_config_or_exit(history_file: Path | None = None) -> InstalogConfig:
    """Load config (exit 1 on ConfigError) and apply the --history-file override."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    if history_file is not None:
        cfg.history.path = history_file.expanduser()
    return cfg


def open_store(cfg: InstalogConfig) -> HistoryStore:
    """Open the history store, warning first if setup is about to reset an unreadable file."""
    store = HistoryStore(cfg.history.path)
    if store.read().degraded:
        console.print(warn_history_unreadable(str(store.path)))
    store.setup()
    return store


def current_repo_url(cwd: Path | None = None) -> str | None:
    """Return ``remote.origin.url`` of the git checkout at *cwd*, or None."""
    try:
        proc = subprocess.run(
            ["git", "config", "--get", "remote.origin.url"],
            shell=False,
            check=True,
            capture_output=True,
            text=True,
            cwd=cwd,
        )
    except (subprocess.CalledProcessError, OSError):
        return None
    url = proc.stdout.strip()
    return url or None


def resolve_repo_or_exit(repo: str | None) -> str:
    """Return the --repo value or the detected origin URL, validated (exit 1 otherwise)."""
    repo_url = repo or current_repo_url()
    if not repo_url:
        console.print(err_no_repo())
        raise typer.Exit(1)
    try:
        parse_repo_url(repo_url)
    except ValueError as exc:
        console.print(err_invalid_input(str(exc)))
        raise typer.Exit(1)
    return repo_url
