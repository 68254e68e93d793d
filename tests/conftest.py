"""Shared fixtures: throwaway git repositories for hook tests."""

import os
import shutil
import subprocess
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

HOOK_ENV_VARS = [
    "LEFTHOOK",
    "LEFTHOOK_EXCLUDE",
    "DOCGATE_SKIP_HOOKS",
    "DOCGATE_HOOKS_FILE",
    "DOCGATE_LINT_CONFIG",
]


def _git(root: Path, *args: str, check: bool = True) -> subprocess.CompletedProcess:
    result = subprocess.run(["git", *args], cwd=root, capture_output=True, text=True)
    if check and result.returncode != 0:
        raise AssertionError(f"git {' '.join(args)} failed:\n{result.stdout}\n{result.stderr}")
    return result


@pytest.fixture
def git():
    """Run git in a directory: git(root, "add", "a.md", check=False)."""
    return _git


@pytest.fixture
def repo(tmp_path, monkeypatch):
    """An empty git repository with a local identity and clean hook environment."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    root = tmp_path / "repo"
    root.mkdir()
    _git(root, "init", "-q")
    _git(root, "config", "user.email", "docs@example.com")
    _git(root, "config", "user.name", "Docs Bot")
    _git(root, "config", "commit.gpgsign", "false")
    _git(root, "config", "core.hooksPath", str(root / ".git" / "hooks"))

    # Hook shims run `python -m doc_commit_gate.cli`; make the source importable
    python_path = [str(SRC_DIR)]
    if os.environ.get("PYTHONPATH"):
        python_path.append(os.environ["PYTHONPATH"])
    monkeypatch.setenv("PYTHONPATH", os.pathsep.join(python_path))
    for name in HOOK_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    return root
