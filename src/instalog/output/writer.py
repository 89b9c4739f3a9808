"""Changelog file output: path guard, overwrite prompt, atomic write.

Responsibilities:
  1. Validate the output path: relative paths are confined to CWD.
     Path traversal (../../etc/passwd) → hard fail.
  2. Overwrite protection: if the file exists, prompt the user (--yes skips).
     Prepending to an existing changelog needs no confirmation.
  3. Write the final document atomically (temp file → rename).
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import typer


# ------------------------------------------------------------------
# Path validation (path traversal prevention)
# ------------------------------------------------------------------


def validate_output_path(output: str, allowed_base: Path | None = None) -> Path:
    """Normalize and validate the output path.

    - Absolute paths are accepted as-is (user explicitly chose the location).
    - Relative paths are confined to *allowed_base* (default: CWD).

    Raises:
        ValueError: If a relative path escapes the allowed base directory.
    """
    path = Path(output)

    if path.is_absolute():
        return path.resolve()

    if allowed_base is None:
        allowed_base = Path.cwd()

    allowed_base = allowed_base.resolve()
    resolved = (allowed_base / path).resolve()

    try:
        resolved.relative_to(allowed_base)
    except ValueError:
        raise ValueError(
            f"Output path '{output}' resolves outside the allowed directory "
            f"('{allowed_base}'). Path traversal is not permitted."
        )

    return resolved


# ------------------------------------------------------------------
# Overwrite guard
# ------------------------------------------------------------------


def check_overwrite(path: Path, yes: bool, prepend: bool = False) -> bool:
    """Return True if writing may proceed, False if the user declines."""
    if yes or prepend or not path.exists():
        return True

    return typer.confirm(f"  File exists: {path.name}\n  Overwrite?", default=False)


# ------------------------------------------------------------------
# Atomic write
# ------------------------------------------------------------------


def write_output(path: Path, content: str, prepend: bool = False) -> None:
    """Write *content* to *path* atomically (temp → rename).

    With *prepend*, an existing file's content is kept below the new changelog,
    separated by a blank line. Creates parent directories if needed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    if prepend and path.exists():
        existing = path.read_text(encoding="utf-8")
        content = f"{content.rstrip()}\n\n{existing}"

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
