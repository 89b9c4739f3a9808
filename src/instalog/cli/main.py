"""instalog CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer

from instalog.cli.generate import generate_cmd
from instalog.cli.history import history_cmd, repos_cmd, since_cmd
from instalog.cli.status import init_cmd, status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("instalog")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"instalog {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="instalog",
    help=(
        "instalog — changelogs from GitHub commit history.\n\n"
        "  instalog generate  Fetch commits, build (and optionally AI-rewrite) a changelog.\n"
        "  instalog history   Past runs for a repository."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging."),
    ] = False,
) -> None:
    """instalog — changelogs from GitHub commit history."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )
    if not verbose:
        logging.getLogger("LiteLLM").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)


app.command("generate")(generate_cmd)
app.command("history")(history_cmd)
app.command("repos")(repos_cmd)
app.command("since")(since_cmd)
app.command("status")(status_cmd)
app.command("init")(init_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed instalog version."""
    typer.echo(f"instalog {_installed_version()}")


if __name__ == "__main__":
    app()
