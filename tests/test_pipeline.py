"""Tests for the hook runner, the shim installer and the full commit gate."""

import json
import os
import shlex
import sys
from pathlib import Path

import pytest

from doc_commit_gate.config import Config
from doc_commit_gate.hooks_config import load_hooks_config, parse_hooks_config
from doc_commit_gate.installer import install_hooks, is_docgate_shim
from doc_commit_gate.pipeline import (
    expand_braces,
    filter_files,
    matches_glob,
    render_command,
    run_hook,
)


PROJECT_ROOT = Path(__file__).resolve().parents[1]
DOCGATE = f"{shlex.quote(sys.executable)} -m doc_commit_gate.cli"


def hooks(data):
    return parse_hooks_config(data, Path("lefthook.yml"))


def gate_yaml(marker: Path) -> str:
    """The shipped hook layout, invoking docgate through this interpreter."""
    return "\n".join([
        "pre-commit:",
        "  parallel: false",
        "  commands:",
        "    markdown-format:",
        '      glob: "*.md"',
        f"      run: {json.dumps(DOCGATE + ' format {staged_files}')}",
        "      stage_fixed: true",
        "    markdown-lint:",
        '      glob: "*.md"',
        f"      run: {json.dumps(DOCGATE + ' lint {staged_files}')}",
        "      stage_fixed: true",
        "commit-msg:",
        "  commands:",
        "    message-check:",
        f"      run: {json.dumps(DOCGATE + ' check-commit-msg {1}')}",
        "    marker:",
        f"      run: {json.dumps('echo ran >> ' + shlex.quote(str(marker)))}",
        "",
    ])


# =============================================================================
# FIXTURES
# =============================================================================

UNFORMATTED_README = """#  Guide
Some __bold__ text.
* first
* second
"""

FORMATTED_README = """# Guide

Some **bold** text.

- first
- second
"""

UNFIXABLE_README = """# Guide

```
no language
```
"""

EMOJI_README = "# Guide\n\nShipped \u2705\n"

UNSTAGED_NOTE = "\nWIP unstaged secret\n"


@pytest.fixture
def gate(repo, tmp_path, git):
    """Repository with the commit gate installed; returns (root, marker path)."""
    marker = tmp_path / "commit-msg-ran"
    (repo / "lefthook.yml").write_text(gate_yaml(marker), encoding="utf-8")
    (repo / ".markdownlint-cli2.jsonc").write_text(
        (PROJECT_ROOT / ".markdownlint-cli2.jsonc").read_text(encoding="utf-8"),
        encoding="utf-8",
    )
    install_hooks(load_hooks_config(repo / "lefthook.yml"), cwd=repo)
    git(repo, "add", "lefthook.yml", ".markdownlint-cli2.jsonc")
    return repo, marker


def commit(git, root, message):
    return git(root, "commit", "-q", "-m", message, check=False)


def has_commits(git, root):
    return git(root, "rev-parse", "--verify", "-q", "HEAD", check=False).returncode == 0


# =============================================================================
# TESTS
# =============================================================================

class TestFileSelection:

    def test_expand_braces(self):
        assert expand_braces("*.{md,mdx}") == ["*.md", "*.mdx"]
        assert expand_braces("*.md") == ["*.md"]

    def test_star_matches_across_directories(self):
        assert matches_glob("docs/guide/a.md", "*.md")
        assert not matches_glob("a.txt", "*.md")
        assert matches_glob("a.mdx", ["*.txt", "*.{md,mdx}"])

    def test_exclude_globs_and_regex(self):
        files = ["a.md", "vendor/b.md", "c.txt"]
        assert filter_files(files, "*.md", ["vendor/**"]) == ["a.md"]
        assert filter_files(files, "*.md", r"^vendor/") == ["a.md"]
        assert filter_files(files) == files


class TestRenderCommand:

    def test_file_templates_are_quoted(self):
        assert render_command("lint {staged_files}", ["a.md", "my doc.md"]) == "lint a.md 'my doc.md'"
        assert render_command("lint {all_files}", ["a.md"]) == "lint a.md"

    def test_argument_templates(self):
        args = [".git/COMMIT_EDITMSG", "message"]
        assert render_command("check {1}", [], args) == "check .git/COMMIT_EDITMSG"
        assert render_command("check {0}", [], args) == "check .git/COMMIT_EDITMSG message"
        assert render_command("check {3}", [], args) == "check "


class TestRunHook:
    """Commands that need no git: a pre-push hook without file templates."""

    def test_sequential_runs_every_command(self, tmp_path):
        config = hooks({"pre-push": {"commands": {
            "first": {"run": "exit 3"},
            "second": {"run": "echo two"},
        }}})

        result = run_hook("pre-push", config, cwd=tmp_path, settings=Config())

        assert [c.status for c in result.commands] == ["FAILED", "SUCCESS"]
        assert result.commands[0].exit_code == 3
        assert result.commands[1].stdout == "two\n"
        assert result.ok is False
        assert result.exit_code == 1

    def test_piped_stops_at_first_failure(self, tmp_path):
        config = hooks({"pre-push": {"piped": True, "commands": {
            "first": {"run": "false"},
            "second": {"run": "echo two"},
        }}})

        result = run_hook("pre-push", config, cwd=tmp_path, settings=Config())

        assert [c.status for c in result.commands] == ["FAILED", "SKIPPED"]
        assert result.commands[1].skip_reason == "previous command failed"

    def test_parallel(self, tmp_path):
        config = hooks({"pre-push": {"parallel": True, "commands": {
            "one": {"run": "echo one"},
            "two": {"run": "echo two"},
        }}})

        result = run_hook("pre-push", config, cwd=tmp_path, settings=Config())

        assert [c.name for c in result.commands] == ["one", "two"]
        assert [c.stdout for c in result.commands] == ["one\n", "two\n"]
        assert result.ok is True

    def test_env_and_args(self, tmp_path):
        config = hooks({"pre-push": {"commands": {
            "check": {"run": 'test "$GREETING" = hello && test {1} = origin', "env": {"GREETING": "hello"}},
        }}})

        result = run_hook("pre-push", config, args=["origin"], cwd=tmp_path, settings=Config())

        assert result.commands[0].status == "SUCCESS"

    def test_commands_run_in_root(self, tmp_path):
        config = hooks({"pre-push": {"commands": {"where": {"run": "pwd"}}}})
        result = run_hook("pre-push", config, cwd=tmp_path, settings=Config())
        assert Path(result.commands[0].stdout.strip()).resolve() == tmp_path.resolve()

    def test_skip_and_exclude(self, tmp_path):
        config = hooks({"pre-push": {"commands": {
            "skipped": {"run": "false", "skip": True},
            "excluded": {"run": "false"},
            "kept": {"run": "true"},
        }}})

        result = run_hook("pre-push", config, cwd=tmp_path, settings=Config(excluded_commands=["excluded"]))

        assert [c.status for c in result.commands] == ["SKIPPED", "SKIPPED", "SUCCESS"]
        assert result.ok is True

    def test_hooks_disabled_by_environment(self, tmp_path):
        config = hooks({"pre-push": {"commands": {"fail": {"run": "false"}}}})
        result = run_hook("pre-push", config, cwd=tmp_path, settings=Config(skip_hooks=True))
        assert result.commands == []
        assert result.skip_reason == "hooks disabled by environment"
        assert result.ok is True

    def test_unconfigured_hook(self, tmp_path):
        result = run_hook("pre-push", hooks({}), cwd=tmp_path, settings=Config())
        assert result.skip_reason == "no commands configured for pre-push"


class TestPreCommitInRepo:

    def test_glob_selects_staged_markdown_only(self, repo, git):
        (repo / "a.md").write_text("# A\n", encoding="utf-8")
        (repo / "b.txt").write_text("b\n", encoding="utf-8")
        (repo / "unstaged.md").write_text("# U\n", encoding="utf-8")
        git(repo, "add", "a.md", "b.txt")
        config = hooks({"pre-commit": {"commands": {
            "list": {"glob": "*.md", "run": "printf '%s\\n' {staged_files}"},
        }}})

        result = run_hook("pre-commit", config, cwd=repo, settings=Config())

        assert result.commands[0].files == ["a.md"]
        assert result.commands[0].stdout == "a.md\n"

    def test_no_matching_files_skips(self, repo, git):
        (repo / "b.txt").write_text("b\n", encoding="utf-8")
        git(repo, "add", "b.txt")
        config = hooks({"pre-commit": {"commands": {
            "lint": {"glob": "*.md", "run": "false {staged_files}"},
        }}})

        result = run_hook("pre-commit", config, cwd=repo, settings=Config())

        assert result.commands[0].status == "SKIPPED"
        assert result.commands[0].skip_reason == "no matching files"
        assert result.ok is True

    def test_stage_fixed_restages_rewritten_files(self, repo, git):
        (repo / "a.md").write_text("before\n", encoding="utf-8")
        git(repo, "add", "a.md")
        config = hooks({"pre-commit": {"commands": {
            "fix": {
                "glob": "*.md",
                "run": 'for f in {staged_files}; do echo fixed > "$f"; done',
                "stage_fixed": True,
            },
        }}})

        run_hook("pre-commit", config, cwd=repo, settings=Config())

        assert git(repo, "show", ":a.md").stdout == "fixed\n"
        assert git(repo, "diff", "--name-only").stdout == ""

    def test_unstaged_changes_hidden_while_commands_run(self, repo, git):
        (repo / "a.md").write_text("staged\n", encoding="utf-8")
        git(repo, "add", "a.md")
        (repo / "a.md").write_text("staged\nunstaged\n", encoding="utf-8")
        config = hooks({"pre-commit": {"commands": {
            "show": {"glob": "*.md", "run": "cat {staged_files}", "stage_fixed": True},
        }}})

        result = run_hook("pre-commit", config, cwd=repo, settings=Config())

        assert result.commands[0].stdout == "staged\n"
        assert git(repo, "show", ":a.md").stdout == "staged\n"
        assert (repo / "a.md").read_text(encoding="utf-8") == "staged\nunstaged\n"


class TestInstaller:

    def test_installs_executable_shims(self, repo):
        config = hooks({"pre-commit": {"commands": {"x": {"run": "true"}}},
                        "commit-msg": {"commands": {"y": {"run": "true"}}}})

        installed = install_hooks(config, cwd=repo)

        assert sorted(p.name for p in installed) == ["commit-msg", "pre-commit"]
        for shim in installed:
            assert is_docgate_shim(shim)
            assert os.access(shim, os.X_OK)
            assert "hooks run" in shim.read_text(encoding="utf-8")

    def test_reinstall_overwrites_own_shims(self, repo):
        config = hooks({"pre-commit": {"commands": {"x": {"run": "true"}}}})
        install_hooks(config, cwd=repo)
        assert len(install_hooks(config, cwd=repo)) == 1

    def test_foreign_hook_needs_force(self, repo):
        hooks_dir = repo / ".git" / "hooks"
        hooks_dir.mkdir(parents=True, exist_ok=True)
        foreign = hooks_dir / "pre-commit"
        foreign.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
        config = hooks({"pre-commit": {"commands": {"x": {"run": "true"}}}})

        with pytest.raises(FileExistsError):
            install_hooks(config, cwd=repo)
        assert not is_docgate_shim(foreign)

        install_hooks(config, cwd=repo, force=True)
        assert is_docgate_shim(foreign)


class TestCommitGate:
    """Black-box: real `git commit` through the installed hooks."""

    def test_staged_markdown_is_formatted_before_commit(self, gate, git):
        root, marker = gate
        (root / "README.md").write_text(UNFORMATTED_README, encoding="utf-8")
        git(root, "add", "README.md")

        result = commit(git, root, "docs: add guide")

        assert result.returncode == 0, result.stderr
        assert git(root, "show", "HEAD:README.md").stdout == FORMATTED_README
        assert (root / "README.md").read_text(encoding="utf-8") == FORMATTED_README
        assert git(root, "status", "--porcelain").stdout == ""
        assert marker.exists()

    def test_lint_failure_aborts_before_commit_msg(self, gate, git):
        root, marker = gate
        (root / "README.md").write_text(UNFIXABLE_README, encoding="utf-8")
        git(root, "add", "README.md")

        result = commit(git, root, "docs: add guide")

        assert result.returncode != 0
        assert "MD040" in result.stderr
        assert not has_commits(git, root)
        assert not marker.exists()

    def test_banned_emoji_aborts_before_commit_msg(self, gate, git):
        root, marker = gate
        (root / "README.md").write_text(EMOJI_README, encoding="utf-8")
        git(root, "add", "README.md")

        result = commit(git, root, "docs: add guide")

        assert result.returncode != 0
        assert "TPL001" in result.stderr
        assert not has_commits(git, root)
        assert not marker.exists()

    def test_unstaged_edits_stay_out_of_commit(self, gate, git):
        root, _ = gate
        readme = root / "README.md"
        readme.write_text(FORMATTED_README, encoding="utf-8")
        git(root, "add", "README.md")
        readme.write_text(FORMATTED_README + UNSTAGED_NOTE, encoding="utf-8")

        result = commit(git, root, "docs: add guide")

        assert result.returncode == 0, result.stderr
        assert git(root, "show", "HEAD:README.md").stdout == FORMATTED_README
        assert readme.read_text(encoding="utf-8") == FORMATTED_README + UNSTAGED_NOTE
        assert git(root, "status", "--porcelain").stdout == " M README.md\n"
        assert not (root / ".git" / "docgate-unstaged.patch").exists()

    def test_staged_content_is_linted_not_working_tree(self, gate, git):
        root, marker = gate
        readme = root / "README.md"
        readme.write_text(UNFIXABLE_README, encoding="utf-8")
        git(root, "add", "README.md")
        readme.write_text(FORMATTED_README, encoding="utf-8")

        result = commit(git, root, "docs: add guide")

        assert result.returncode != 0
        assert "MD040" in result.stderr
        assert not has_commits(git, root)
        assert not marker.exists()
        assert git(root, "show", ":README.md").stdout == UNFIXABLE_README
        assert readme.read_text(encoding="utf-8") == FORMATTED_README

    def test_conflicting_unstaged_edits_are_kept_in_patch(self, gate, git):
        root, _ = gate
        readme = root / "README.md"
        readme.write_text(UNFORMATTED_README, encoding="utf-8")
        git(root, "add", "README.md")
        readme.write_text(UNFORMATTED_README + UNSTAGED_NOTE, encoding="utf-8")

        result = commit(git, root, "docs: add guide")

        assert result.returncode != 0
        assert "Could not restore unstaged changes" in result.stderr
        assert not has_commits(git, root)
        assert (root / ".git" / "docgate-unstaged.patch").exists()

    def test_bad_commit_message_is_rejected(self, gate, git):
        root, marker = gate
        (root / "README.md").write_text(FORMATTED_README, encoding="utf-8")
        git(root, "add", "README.md")

        result = commit(git, root, "update guide")

        assert result.returncode != 0
        assert "Conventional Commits" in result.stderr
        assert marker.exists()
        assert not has_commits(git, root)

    def test_non_markdown_files_are_untouched(self, gate, git):
        root, _ = gate
        (root / "notes.txt").write_text("keep   \n", encoding="utf-8")
        (root / "README.md").write_text(FORMATTED_README, encoding="utf-8")
        git(root, "add", "notes.txt", "README.md")

        result = commit(git, root, "chore: add notes")

        assert result.returncode == 0, result.stderr
        assert git(root, "show", "HEAD:notes.txt").stdout == "keep   \n"

    def test_ignored_paths_are_not_formatted_or_linted(self, gate, git):
        root, _ = gate
        vendored = root / "node_modules" / "pkg" / "README.md"
        vendored.parent.mkdir(parents=True)
        vendored.write_text(UNFIXABLE_README + "\n\n\n", encoding="utf-8")
        git(root, "add", "-f", "node_modules/pkg/README.md")

        result = commit(git, root, "chore: vendor package")

        assert result.returncode == 0, result.stderr
        assert git(root, "show", "HEAD:node_modules/pkg/README.md").stdout == UNFIXABLE_README + "\n\n\n"

    def test_lefthook_zero_bypasses_every_hook(self, gate, git, monkeypatch):
        root, marker = gate
        monkeypatch.setenv("LEFTHOOK", "0")
        (root / "README.md").write_text(UNFIXABLE_README, encoding="utf-8")
        git(root, "add", "README.md")

        result = commit(git, root, "not conventional")

        assert result.returncode == 0, result.stderr
        assert not marker.exists()
