"""instalog user-facing messages — what went wrong and what to do about it.

Usage:
    from instalog.cli.errors import err_no_repo
    console.print(err_no_repo())
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape


def err_no_repo() -> str:
    """No --repo given and no git remote detected."""
    return (
        "[red]Error:[/] No repository URL given and no git remote found.\n"
        "  Run inside a clone with an 'origin' remote, or pass:\n"
        "    instalog generate --repo https://github.com/<owner>/<repo>"
    )


def err_invalid_input(message: str) -> str:
    """Bad URL shape or day count, rejected before any network call."""
    return f"[red]Error:[/] {escape(message)}"


def err_fetch_failed(message: str, authenticated: bool) -> str:
    """GitHub commit list could not be fetched."""
    hint = (
        "  Check the repository URL and that your token can read it."
        if authenticated
        else "  Private repository or rate limited? Set:  export GITHUB_TOKEN=ghp_..."
    )
    return f"[red]Error:[/] {escape(message)}\n{hint}"


def err_config(message: str) -> str:
    """Invalid or forbidden config value."""
    return f"[red]Error:[/] {escape(message)}"


def warn_no_ai_key(env_var: str | None, key_file: str) -> str:
    """No LLM key: the standard changelog is used."""
    env_hint = f"export {escape(env_var)}=sk-...  or  " if env_var else ""
    return (
        "[yellow]⚠[/] No AI key found. Using standard changelog generation.\n"
        f"  Enable AI summaries:  {env_hint}save the key to ~/{escape(key_file)}"
    )


def warn_ai_quota() -> str:
    """HTTP 429 from the LLM provider."""
    return (
        "[yellow]⚠[/] AI quota exceeded: the account has run out of credits or hit a rate limit.\n"
        "  To fix this issue:\n"
        "    1. Check your provider account billing\n"
        "    2. Consider upgrading your plan or adding payment information\n"
        "    3. Or try again later if you hit a rate limit\n"
        "  Falling back to standard changelog generation…"
    )


def warn_ai_failed(reason: str) -> str:
    """Any other AI failure."""
    return (
        f"[yellow]⚠[/] AI enhancement failed: {escape(reason)}\n"
        "  Falling back to standard changelog generation…"
    )


def err_output_path_unsafe(path: str) -> str:
    """--output path fails security validation."""
    return (
        f"[red]Error:[/] Output path is not allowed: '{escape(path)}'\n"
        "  Use a path within the current working directory."
    )


def warn_history_unreadable(path: str) -> str:
    """History file exists but could not be parsed."""
    return (
        f"[yellow]⚠[/] History file '{escape(path)}' could not be read; starting with empty history.\n"
        "  Run:  instalog status  to check its location."
    )


def warn_new_commits_approximate(count: int) -> str:
    """Last recorded commit has aged out of the first API page."""
    return (
        f"[yellow]⚠[/] At least {count} new commits: the previous changelog's commit\n"
        "  is older than the most recent page of history."
    )
