"""Loading `lefthook.yml` hook definitions."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

import jsonschema
import yaml

from doc_commit_gate.config import ConfigError


SCHEMA_PATH = Path(__file__).parent / "schemas" / "lefthook.schema.json"

GIT_HOOK_NAMES = [
    "applypatch-msg",
    "pre-applypatch",
    "post-applypatch",
    "pre-commit",
    "pre-merge-commit",
    "prepare-commit-msg",
    "commit-msg",
    "post-commit",
    "pre-rebase",
    "post-checkout",
    "post-merge",
    "pre-push",
    "pre-auto-gc",
    "post-rewrite",
]


@dataclass
class CommandSpec:
    """One named command of a hook."""
    name: str
    run: str
    glob: Union[str, List[str], None] = None
    exclude: Union[str, List[str], None] = None
    stage_fixed: bool = False
    env: Dict[str, str] = field(default_factory=dict)
    skip: Union[bool, List[str]] = False
    priority: Optional[int] = None


@dataclass
class HookSpec:
    """A git hook and the commands it runs."""
    name: str
    commands: List[CommandSpec] = field(default_factory=list)
    parallel: bool = False
    piped: bool = False


@dataclass
class HooksConfig:
    path: Path
    hooks: Dict[str, HookSpec] = field(default_factory=dict)


def _ordered_commands(commands: List[CommandSpec]) -> List[CommandSpec]:
    """Commands with a priority run first (ascending); the rest keep file order."""
    with_priority = sorted((c for c in commands if c.priority is not None), key=lambda c: c.priority)
    return with_priority + [c for c in commands if c.priority is None]


def parse_hooks_config(data: dict, path: Path) -> HooksConfig:
    """
    Build a HooksConfig from already-loaded YAML data.

    Raises:
        ConfigError: If the data fails schema validation
    """
    schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        error_msg = f"{path}: {e.message}"
        if e.absolute_path:
            error_msg += f" at path: {list(e.absolute_path)}"
        raise ConfigError(error_msg)

    hooks = {}
    for hook_name in GIT_HOOK_NAMES:
        hook_data = data.get(hook_name)
        if hook_data is None:
            continue
        commands = [
            CommandSpec(
                name=name,
                run=command["run"],
                glob=command.get("glob"),
                exclude=command.get("exclude"),
                stage_fixed=command.get("stage_fixed", False),
                env={k: str(v) for k, v in (command.get("env") or {}).items()},
                skip=command.get("skip", False),
                priority=command.get("priority"),
            )
            for name, command in (hook_data.get("commands") or {}).items()
        ]
        hooks[hook_name] = HookSpec(
            name=hook_name,
            commands=_ordered_commands(commands),
            parallel=hook_data.get("parallel", False),
            piped=hook_data.get("piped", False),
        )

    return HooksConfig(path=path, hooks=hooks)


def load_hooks_config(path: Union[str, Path]) -> HooksConfig:
    """
    Load and validate a lefthook.yml file.

    Raises:
        ConfigError: If the file is missing, not YAML or fails validation
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Hook configuration not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parse error in {path}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping of hook names")

    return parse_hooks_config(data, path)
