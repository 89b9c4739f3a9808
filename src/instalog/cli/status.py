"""instalog status / init — credential sources, model, and history file health."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from instalog.ai.llm_client import provider_env_var
from instalog.cli.common import load_config_or_exit
from instalog.config import InstalogConfig, ensure_global_config, resolve_credentials
from instalog.db.history import HistoryStore

console = Console()


def status_cmd(
    history_file: Annotated[
        Path | None,
        typer.Option("--history-file", help="Override the history file location."),
    ] = None,
) -> None:
    """Show which credentials were found and where history is kept."""
    cfg = load_config_or_exit(history_file)
    _show_credentials_panel(cfg)
    _show_history_panel(HistoryStore(cfg.history.path))


def init_cmd(
    config_path: Annotated[
        Path | None,
        typer.Option("--config-path", hidden=True, help="Override the global config path (for testing)."),
    ] = None,
) -> None:
    """Create the global config file (~/.instalog/config.yaml) if missing."""
    target = ensure_global_config(config_path)
    console.print(f"  [green]✓[/] Global config: [bold]{escape(str(target))}[/]")


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_credentials_panel(cfg: InstalogConfig) -> None:
    creds = resolve_credentials(cfg.ai.model)

    if creds.github_token_source:
        github_line = f"GitHub token:  [green]✓[/] {creds.github_token_source}"
    else:
        github_line = "GitHub token:  [yellow]✗ not found[/] (unauthenticated, rate limited)"

    if not cfg.ai.enabled:
        ai_line = "AI key:        [dim]AI disabled in config[/]"
    elif creds.ai_available:
        ai_line = f"AI key:        [green]✓[/] {creds.ai_key_source}"
    else:
        env_var = provider_env_var(cfg.ai.model)
        ai_line = f"AI key:        [yellow]✗ not found[/] (set {env_var})"

    lines = [
        github_line,
        ai_line,
        f"AI model:      {escape(cfg.ai.model)}",
        f"GitHub API:    [dim]{escape(cfg.github.api_url)}[/]",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Credentials[/]", expand=False))


def _show_history_panel(store: HistoryStore) -> None:
    if not store.path.exists():
        console.print(
            Panel(
                f"History file: {escape(str(store.path))} [dim](not created yet)[/]",
                title="[bold]History[/]",
                expand=False,
            )
        )
        return

    data = store.read()
    if data.degraded:
        health = "[yellow]✗ unreadable — will be reset on next run[/]"
    else:
        health = "[green]✓[/]"
    lines = [
        f"History file: {escape(str(store.path))} {health}",
        f"Repositories: [bold]{len(data.repositories)}[/]  |  Runs: [bold]{len(data.history)}[/]",
    ]
    console.print(Panel("\n".join(lines), title="[bold]History[/]", expand=False))
