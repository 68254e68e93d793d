"""Install git hook shims that dispatch to `docgate hooks run`."""

import shlex
import sys
from pathlib import Path
from typing import List, Optional

from doc_commit_gate.config import debug
from doc_commit_gate.constants import HOOK_SHIM_MARKER
from doc_commit_gate.git import hooks_dir, repo_root
from doc_commit_gate.hooks_config import HooksConfig


SHIM_TEMPLATE = """#!/bin/sh
{marker}
if [ "$LEFTHOOK" = "0" ]; then
  exit 0
fi
exec {python} -m doc_commit_gate.cli hooks run {hook} --config {config} "$@"
"""


def render_shim(hook_name: str, config_path: Path) -> str:
    return SHIM_TEMPLATE.format(
        marker=HOOK_SHIM_MARKER,
        python=shlex.quote(sys.executable),
        hook=shlex.quote(hook_name),
        config=shlex.quote(str(config_path)),
    )


def is_docgate_shim(path: Path) -> bool:
    try:
        return HOOK_SHIM_MARKER in path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False


def install_hooks(hooks_config: HooksConfig, cwd: Optional[Path] = None, force: bool = False) -> List[Path]:
    """
    Write one shim per configured hook into the repository's hooks directory.

    Existing docgate shims are overwritten; any other existing hook is only
    replaced with force=True.

    Returns:
        Paths of the installed shims

    Raises:
        FileExistsError: If a foreign hook is in the way and force is False
        GitError: If cwd is not inside a git repository
    """
    root = Path(cwd) if cwd else repo_root()
    target_dir = hooks_dir(root)
    target_dir.mkdir(parents=True, exist_ok=True)
    config_path = Path(hooks_config.path).resolve()

    installed = []
    for hook_name in hooks_config.hooks:
        shim = target_dir / hook_name
        if shim.exists() and not force and not is_docgate_shim(shim):
            raise FileExistsError(f"{shim} exists and was not installed by docgate (use --force)")
        shim.write_text(render_shim(hook_name, config_path), encoding="utf-8")
        shim.chmod(0o755)
        debug(f"installed {shim}")
        installed.append(shim)

    return installed
