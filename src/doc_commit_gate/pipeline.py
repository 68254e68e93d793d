"""Hook runner for the commands declared in lefthook.yml.

A pre-commit attempt runs, in order:
1. markdown-format on the staged *.md files, which are re-staged afterwards
2. markdown-lint on the same (now formatted) files
and git only invokes the commit-msg hook when every pre-commit command
exited zero. While stage_fixed commands run, unstaged edits to the staged
files are set aside so commands only see what is being committed.

File templates ({staged_files}, {all_files}) and argument templates
({0}, {1}, ...) are substituted shell-quoted; commands run through `sh`.
"""

import os
import re
import shlex
import subprocess
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from doc_commit_gate.config import Config, debug, load_config
from doc_commit_gate.constants import UNSTAGED_PATCH_NAME
from doc_commit_gate.git import (
    GitError,
    apply_patch,
    checkout_index,
    git_dir,
    merge_in_progress,
    rebase_in_progress,
    repo_root,
    save_unstaged_diff,
    stage_files,
    staged_files,
    tracked_files,
    unstaged_files,
)
from doc_commit_gate.hook_state import CommandState
from doc_commit_gate.hooks_config import CommandSpec, HooksConfig


ARG_TEMPLATE_RE = re.compile(r"\{(\d+)\}")
BRACE_RE = re.compile(r"\{([^{}]*,[^{}]*)\}")


@dataclass
class HookResult:
    """Outcome of running every command of one hook."""
    hook: str
    commands: List[CommandState] = field(default_factory=list)
    skip_reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not any(c.status == "FAILED" for c in self.commands)

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


def expand_braces(pattern: str) -> List[str]:
    """Expand `{a,b}` alternatives: "*.{md,mdx}" -> ["*.md", "*.mdx"]."""
    m = BRACE_RE.search(pattern)
    if not m:
        return [pattern]
    expanded = []
    for option in m.group(1).split(","):
        expanded.extend(expand_braces(pattern[:m.start()] + option + pattern[m.end():]))
    return expanded


def _as_list(value: Union[str, List[str]]) -> List[str]:
    return [value] if isinstance(value, str) else list(value)


def matches_glob(path: str, glob: Union[str, List[str]]) -> bool:
    """`*` also matches `/`, so "*.md" selects Markdown files in every directory."""
    return any(
        fnmatch(path, pattern)
        for g in _as_list(glob)
        for pattern in expand_braces(g)
    )


def is_excluded(path: str, exclude: Union[str, List[str]]) -> bool:
    """A string is a regular expression, a list is a set of globs."""
    if isinstance(exclude, str):
        return re.search(exclude, path) is not None
    return matches_glob(path, exclude)


def filter_files(
    files: Sequence[str],
    glob: Union[str, List[str], None] = None,
    exclude: Union[str, List[str], None] = None,
) -> List[str]:
    selected = []
    for path in files:
        if glob and not matches_glob(path, glob):
            continue
        if exclude and is_excluded(path, exclude):
            continue
        selected.append(path)
    return selected


def render_command(run: str, files: Sequence[str], args: Sequence[str] = ()) -> str:
    """Substitute file and argument templates into a command string."""
    quoted_files = " ".join(shlex.quote(f) for f in files)
    command = run.replace("{staged_files}", quoted_files).replace("{all_files}", quoted_files)

    def _arg(m):
        index = int(m.group(1))
        if index == 0:
            return " ".join(shlex.quote(a) for a in args)
        if index <= len(args):
            return shlex.quote(args[index - 1])
        return ""

    return ARG_TEMPLATE_RE.sub(_arg, command)


def _file_source(spec: CommandSpec, hook_name: str) -> Optional[str]:
    if "{all_files}" in spec.run:
        return "all"
    if "{staged_files}" in spec.run or hook_name == "pre-commit":
        return "staged"
    return None


def _uses_files(spec: CommandSpec) -> bool:
    return "{staged_files}" in spec.run or "{all_files}" in spec.run


def _should_skip(skip: Union[bool, List[str]], root: Path) -> bool:
    if isinstance(skip, bool):
        return skip
    if "merge" in skip and merge_in_progress(root):
        return True
    if "rebase" in skip and rebase_in_progress(root):
        return True
    return False


def _skipped(state: CommandState, reason: str) -> CommandState:
    state.status = "SKIPPED"
    state.skip_reason = reason
    return state


def run_command(
    spec: CommandSpec,
    hook_name: str,
    root: Path,
    args: Sequence[str] = (),
    files_by_source: Optional[Dict[str, List[str]]] = None,
    excluded: Sequence[str] = (),
) -> CommandState:
    """
    Run one command and capture its output.

    A command whose glob/exclude leaves no files to inspect is skipped.
    Never re-stages; see run_hook.
    """
    state = CommandState(name=spec.name, run=spec.run)

    if spec.name in excluded:
        return _skipped(state, "excluded by LEFTHOOK_EXCLUDE")
    if _should_skip(spec.skip, root):
        return _skipped(state, "skip option")

    source = _file_source(spec, hook_name)
    if source is not None:
        state.files = filter_files((files_by_source or {}).get(source, []), spec.glob, spec.exclude)
        if not state.files and (_uses_files(spec) or spec.glob or spec.exclude):
            return _skipped(state, "no matching files")

    state.command = render_command(spec.run, state.files, args)
    env = dict(os.environ)
    env.update(spec.env)

    state.status = "RUNNING"
    debug(f"{hook_name} > {spec.name}: {state.command}")
    result = subprocess.run(
        state.command,
        shell=True,
        cwd=root,
        capture_output=True,
        text=True,
        env=env,
    )
    state.stdout = result.stdout
    state.stderr = result.stderr
    state.exit_code = result.returncode
    state.status = "SUCCESS" if result.returncode == 0 else "FAILED"
    return state


def _restage(spec: CommandSpec, state: CommandState, hook_name: str, root: Path) -> None:
    # Re-stage even after a failure so files fixed before the error stay staged
    if not spec.stage_fixed or hook_name != "pre-commit" or state.status not in ("SUCCESS", "FAILED"):
        return
    fixed = [f for f in state.files if (root / f).exists()]
    debug(f"re-staging {len(fixed)} file(s) after {spec.name}")
    stage_files(fixed, root)


@contextmanager
def hidden_unstaged_changes(paths: Sequence[str], root: Path):
    """
    Reset partially staged files to their staged content for the duration.

    The unstaged diff is saved in the git directory and re-applied on exit,
    so commands only see (and re-stage) what is about to be committed. If
    it no longer applies, the patch is kept and GitError names it.
    """
    partial = unstaged_files(list(paths), root)
    if not partial:
        yield
        return

    patch = git_dir(root) / UNSTAGED_PATCH_NAME
    if patch.exists():
        raise GitError(f"Unstaged changes from an earlier run are still saved in {patch}; apply or remove it first")
    save_unstaged_diff(partial, patch, root)
    checkout_index(partial, root)
    debug(f"hid unstaged changes in {len(partial)} file(s)")
    try:
        yield
    finally:
        try:
            apply_patch(patch, root)
        except GitError as e:
            raise GitError(f"Could not restore unstaged changes, they are saved in {patch}: {e}")
        patch.unlink()
        debug("restored unstaged changes")


def run_hook(
    hook_name: str,
    hooks_config: HooksConfig,
    args: Sequence[str] = (),
    cwd: Optional[Path] = None,
    settings: Optional[Config] = None,
) -> HookResult:
    """
    Run every command of a hook.

    Sequential hooks run commands in order, each seeing the re-staged output
    of the previous one; `piped` stops at the first failure. Parallel hooks
    run commands in a thread pool and re-stage once all have finished.
    A pre-commit hook with stage_fixed commands runs inside
    hidden_unstaged_changes.

    Args:
        hook_name: Git hook name (pre-commit, commit-msg, ...)
        hooks_config: Loaded lefthook.yml
        args: Arguments git passed to the hook (commit-msg: message file)
        cwd: Repository root (default: discovered from the current directory)
        settings: Environment configuration (default: load_config())

    Returns:
        HookResult; `ok` is False when any command failed

    Raises:
        GitError: If git fails, or unstaged changes cannot be restored
    """
    settings = settings or load_config()
    result = HookResult(hook=hook_name)

    if settings.skip_hooks:
        result.skip_reason = "hooks disabled by environment"
        return result

    hook = hooks_config.hooks.get(hook_name)
    if hook is None or not hook.commands:
        result.skip_reason = f"no commands configured for {hook_name}"
        return result

    root = Path(cwd) if cwd else repo_root()

    needed = {_file_source(spec, hook_name) for spec in hook.commands}
    files_by_source: Dict[str, List[str]] = {}
    if "staged" in needed:
        files_by_source["staged"] = staged_files(root)
    if "all" in needed:
        files_by_source["all"] = tracked_files(root)

    def _run(spec: CommandSpec) -> CommandState:
        return run_command(spec, hook_name, root, args, files_by_source, settings.excluded_commands)

    if hook_name == "pre-commit" and any(spec.stage_fixed for spec in hook.commands):
        guard = hidden_unstaged_changes(files_by_source.get("staged", []), root)
    else:
        guard = nullcontext()

    with guard:
        if hook.parallel:
            with ThreadPoolExecutor(max_workers=len(hook.commands)) as pool:
                result.commands = list(pool.map(_run, hook.commands))
            for spec, state in zip(hook.commands, result.commands):
                _restage(spec, state, hook_name, root)
            return result

        for spec in hook.commands:
            if hook.piped and not result.ok:
                result.commands.append(_skipped(CommandState(name=spec.name, run=spec.run), "previous command failed"))
                continue
            state = _run(spec)
            _restage(spec, state, hook_name, root)
            result.commands.append(state)

    return result
