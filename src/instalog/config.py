"""instalog configuration loader.

Priority (high → low):
  1. CLI flags           (handled at the call site, not in this module)
  2. Environment variables  (INSTALOG_AI_MODEL, INSTALOG_HISTORY_FILE, INSTALOG_GITHUB_API_URL)
  3. Per-project instalog.yaml  (current working directory)
  4. Global ~/.instalog/config.yaml
  5. Hardcoded defaults

Config files must never contain credentials; tokens and API keys come from
environment variables or the dedicated key files (see resolve_credentials()).
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from instalog.ai.llm_client import provider_env_var, provider_of

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".instalog"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "instalog.yaml"

_GITHUB_TOKEN_ENV: str = "GITHUB_TOKEN"
_GITHUB_TOKEN_FILE: str = ".github_token"

_LAYOUTS: frozenset[str] = frozenset(["internal", "external"])

# Fields that suggest a credential are forbidden in config files.
# Does NOT match legitimate keys like max_tokens or per_page.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(["github", "ai", "history", "defaults"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class GitHubCfg:
    """GitHub REST API settings (instalog.yaml: github:)."""

    api_url: str = "https://api.github.com"
    timeout: int = 30
    per_page: int = 30


@dataclass
class AICfg:
    """LLM rewriter settings (instalog.yaml: ai:)."""

    enabled: bool = True
    model: str = "anthropic/claude-3-haiku-20240307"
    max_tokens: int = 4_000
    temperature: float = 0.2
    num_retries: int = 0


@dataclass
class HistoryCfg:
    """Location of the local run history (instalog.yaml: history:)."""

    path: Path = field(default_factory=lambda: _GLOBAL_CONFIG_DIR / "history.json")


@dataclass
class DefaultsCfg:
    """Fallback values for CLI options (instalog.yaml: defaults:).

    Attributes:
        days: Lookback window used when there is no history for a repository.
        layout: Changelog layout, 'internal' or 'external'.
        recent_limit: Rows shown by ``instalog repos``.
        history_limit: Rows shown by ``instalog history``.
    """

    days: int = 1
    layout: str = "internal"
    recent_limit: int = 5
    history_limit: int = 10


@dataclass
class InstalogConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    github: GitHubCfg = field(default_factory=GitHubCfg)
    ai: AICfg = field(default_factory=AICfg)
    history: HistoryCfg = field(default_factory=HistoryCfg)
    defaults: DefaultsCfg = field(default_factory=DefaultsCfg)


@dataclass(frozen=True)
class Credentials:
    """Secrets resolved once at process start and handed to the fetcher/rewriter.

    The ``*_source`` fields describe where a value came from (for ``instalog
    status``); they never contain the secret itself.
    """

    github_token: str | None = None
    github_token_source: str | None = None
    ai_key: str | None = None
    ai_key_source: str | None = None
    ai_key_required: bool = True

    @property
    def ai_available(self) -> bool:
        return bool(self.ai_key) or not self.ai_key_required


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any credential-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  Credentials must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: InstalogConfig) -> None:
    if cfg.defaults.layout not in _LAYOUTS:
        raise ConfigError(
            f"defaults.layout must be one of {', '.join(sorted(_LAYOUTS))}, "
            f"got '{cfg.defaults.layout}'."
        )
    if cfg.defaults.days <= 0:
        raise ConfigError(f"defaults.days must be a positive integer, got {cfg.defaults.days}.")
    if cfg.github.per_page <= 0 or cfg.github.per_page > 100:
        raise ConfigError(f"github.per_page must be between 1 and 100, got {cfg.github.per_page}.")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _load_yaml(path: Path) -> dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config '{path}' must contain a mapping at the top level.")
    return raw


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> InstalogConfig:
    """Build an *InstalogConfig* from a merged raw YAML dict."""
    cfg = InstalogConfig()

    if "github" in data:
        g = data["github"] or {}
        cfg.github = GitHubCfg(
            api_url=str(g.get("api_url", cfg.github.api_url)).rstrip("/"),
            timeout=int(g.get("timeout", cfg.github.timeout)),
            per_page=int(g.get("per_page", cfg.github.per_page)),
        )

    if "ai" in data:
        a = data["ai"] or {}
        cfg.ai = AICfg(
            enabled=bool(a.get("enabled", cfg.ai.enabled)),
            model=str(a.get("model", cfg.ai.model)),
            max_tokens=int(a.get("max_tokens", cfg.ai.max_tokens)),
            temperature=float(a.get("temperature", cfg.ai.temperature)),
            num_retries=int(a.get("num_retries", cfg.ai.num_retries)),
        )

    if "history" in data:
        h = data["history"] or {}
        if h.get("path"):
            cfg.history = HistoryCfg(path=Path(str(h["path"])).expanduser())

    if "defaults" in data:
        d = data["defaults"] or {}
        cfg.defaults = DefaultsCfg(
            days=int(d.get("days", cfg.defaults.days)),
            layout=str(d.get("layout", cfg.defaults.layout)).lower(),
            recent_limit=int(d.get("recent_limit", cfg.defaults.recent_limit)),
            history_limit=int(d.get("history_limit", cfg.defaults.history_limit)),
        )

    return cfg


def _apply_env_overrides(cfg: InstalogConfig) -> InstalogConfig:
    """Apply INSTALOG_* environment variable overrides."""
    if model := os.environ.get("INSTALOG_AI_MODEL"):
        cfg.ai.model = model
    if history_file := os.environ.get("INSTALOG_HISTORY_FILE"):
        cfg.history.path = Path(history_file).expanduser()
    if api_url := os.environ.get("INSTALOG_GITHUB_API_URL"):
        cfg.github.api_url = api_url.rstrip("/")
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> InstalogConfig:
    """Load and return a merged *InstalogConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *instalog.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *InstalogConfig* with env var overrides applied.

    Raises:
        ConfigError: If a config file contains credential-like fields or an
            invalid value.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _load_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _load_yaml(project_cfg_path)
        _check_no_api_keys(raw_project, project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg


def _read_key_file(path: Path) -> str | None:
    try:
        value = path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return value or None


def resolve_credentials(
    ai_model: str,
    *,
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
    home: Path | None = None,
) -> Credentials:
    """Resolve the GitHub token and the LLM key for *ai_model*.

    GitHub token: ``GITHUB_TOKEN``, else ``./.github_token``.
    LLM key: the provider's env var (``ANTHROPIC_API_KEY`` for ``anthropic/…``),
    else ``./.<provider>_key``, else ``~/.<provider>_key``.

    Missing credentials are not an error: the fetcher runs unauthenticated and
    the rewriter reports itself unavailable.
    """
    env = os.environ if env is None else env
    cwd = Path.cwd() if cwd is None else cwd
    home = Path.home() if home is None else home

    github_token: str | None = env.get(_GITHUB_TOKEN_ENV) or None
    github_source: str | None = "environment" if github_token else None
    if github_token is None:
        github_token = _read_key_file(cwd / _GITHUB_TOKEN_FILE)
        if github_token:
            github_source = f"{_GITHUB_TOKEN_FILE} file"

    provider = provider_of(ai_model)
    env_var = provider_env_var(ai_model)
    if env_var is None:
        return Credentials(
            github_token=github_token,
            github_token_source=github_source,
            ai_key_source="not required",
            ai_key_required=False,
        )

    key_file = f".{provider}_key"
    ai_key: str | None = env.get(env_var) or None
    ai_source: str | None = "environment" if ai_key else None
    if ai_key is None:
        for base, label in ((cwd, "current directory"), (home, "home directory")):
            ai_key = _read_key_file(base / key_file)
            if ai_key:
                ai_source = f"{key_file} file ({label})"
                break

    return Credentials(
        github_token=github_token,
        github_token_source=github_source,
        ai_key=ai_key,
        ai_key_source=ai_source,
    )


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.instalog/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# instalog global configuration.\n"
            "# NEVER store tokens or API keys here — use environment variables:\n"
            "#   export GITHUB_TOKEN=ghp_...\n"
            "#   export ANTHROPIC_API_KEY=sk-ant-...\n"
            "\n"
            "github:\n"
            "  api_url: https://api.github.com\n"
            "\n"
            "ai:\n"
            "  model: anthropic/claude-3-haiku-20240307\n"
            "\n"
            "defaults:\n"
            "  days: 1\n"
            "  layout: internal\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
