"""Thin wrappers over the git CLI."""

import subprocess
from pathlib import Path
from typing import List, Optional


class GitError(Exception):
    """Raised when a git command fails."""
    pass


def run_git(args: List[str], cwd: Optional[Path] = None) -> str:
    """Run git and return stdout; raises GitError on a non-zero exit."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        raise GitError("git executable not found on PATH")
    if result.returncode != 0:
        raise GitError(f"git {' '.join(args)} failed: {result.stderr.strip()}")
    return result.stdout


def _split_z(output: str) -> List[str]:
    return [p for p in output.split("\0") if p]


def repo_root(cwd: Optional[Path] = None) -> Path:
    return Path(run_git(["rev-parse", "--show-toplevel"], cwd).strip())


def git_dir(cwd: Optional[Path] = None) -> Path:
    return Path(run_git(["rev-parse", "--absolute-git-dir"], cwd).strip())


def hooks_dir(cwd: Optional[Path] = None) -> Path:
    """Hooks directory, honouring core.hooksPath."""
    path = Path(run_git(["rev-parse", "--git-path", "hooks"], cwd).strip())
    if not path.is_absolute():
        path = Path(cwd or Path.cwd()) / path
    return path


def staged_files(cwd: Optional[Path] = None) -> List[str]:
    """Paths staged for commit (added, copied, modified, renamed)."""
    return _split_z(run_git(["diff", "--cached", "--name-only", "--diff-filter=ACMR", "-z"], cwd))


def tracked_files(cwd: Optional[Path] = None) -> List[str]:
    return _split_z(run_git(["ls-files", "-z"], cwd))


def stage_files(paths: List[str], cwd: Optional[Path] = None) -> None:
    if paths:
        run_git(["add", "--", *paths], cwd)


def merge_in_progress(cwd: Optional[Path] = None) -> bool:
    return (git_dir(cwd) / "MERGE_HEAD").exists()


def rebase_in_progress(cwd: Optional[Path] = None) -> bool:
    directory = git_dir(cwd)
    return (directory / "rebase-merge").exists() or (directory / "rebase-apply").exists()


def unstaged_files(paths: List[str], cwd: Optional[Path] = None) -> List[str]:
    """Which of paths differ between the index and the working tree."""
    if not paths:
        return []
    return _split_z(run_git(["diff", "--name-only", "-z", "--", *paths], cwd))


def save_unstaged_diff(paths: List[str], patch_path: Path, cwd: Optional[Path] = None) -> None:
    run_git(["diff", "--binary", "--no-color", "--no-ext-diff", f"--output={patch_path}", "--", *paths], cwd)


def checkout_index(paths: List[str], cwd: Optional[Path] = None) -> None:
    """Reset working-tree files to their staged content."""
    if paths:
        run_git(["checkout", "--", *paths], cwd)


def apply_patch(patch_path: Path, cwd: Optional[Path] = None) -> None:
    run_git(["apply", "--whitespace=nowarn", str(patch_path)], cwd)
