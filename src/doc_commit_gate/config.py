"""Configuration loading for the docgate CLI."""

import os
import sys
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from doc_commit_gate.constants import DEFAULT_HOOKS_FILE


@dataclass
class Config:
    """Runtime configuration loaded from environment."""

    hooks_file: str = DEFAULT_HOOKS_FILE
    lint_config_file: Optional[str] = None
    skip_hooks: bool = False
    excluded_commands: List[str] = field(default_factory=list)


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""
    pass


def _env_flag(name: str) -> bool:
    value = os.environ.get(name, "").strip().lower()
    return value in ("1", "true", "yes", "on")


def load_config() -> Config:
    """
    Load configuration from environment variables (and a .env file).

    Variables:
        DOCGATE_HOOKS_FILE: hook configuration path (default lefthook.yml)
        DOCGATE_LINT_CONFIG: lint configuration path (default: discovered)
        DOCGATE_SKIP_HOOKS / LEFTHOOK=0: skip every hook
        LEFTHOOK_EXCLUDE: comma-separated command names to skip
        DOCGATE_DEBUG: print [DEBUG] trace lines to stderr
    """
    load_dotenv()

    excluded = [
        name.strip()
        for name in os.environ.get("LEFTHOOK_EXCLUDE", "").split(",")
        if name.strip()
    ]

    return Config(
        hooks_file=os.environ.get("DOCGATE_HOOKS_FILE") or DEFAULT_HOOKS_FILE,
        lint_config_file=os.environ.get("DOCGATE_LINT_CONFIG") or None,
        skip_hooks=_env_flag("DOCGATE_SKIP_HOOKS") or os.environ.get("LEFTHOOK") == "0",
        excluded_commands=excluded,
    )


def debug(message: str) -> None:
    """Debug logging (env-gated)."""
    if _env_flag("DOCGATE_DEBUG"):
        print(f"[DEBUG] {message}", file=sys.stderr)
