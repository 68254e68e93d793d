"""CLI entrypoint for the docgate commit gate."""

from pathlib import Path
from typing import List, Optional, Tuple

import click

from doc_commit_gate.config import ConfigError, load_config
from doc_commit_gate.constants import DEFAULT_MARKDOWN_GLOB, FORMAT_IGNORES
from doc_commit_gate.git import GitError


@click.group()
@click.version_option(package_name="docgate")
def cli():
    """docgate - Markdown formatting, linting and commit-message gate."""
    pass


def _collect_markdown(files: Tuple[str, ...], ignores: Optional[List[str]] = None) -> List[str]:
    """Explicit files, or every *.md below the current directory, minus ignored paths."""
    from doc_commit_gate.lint_config import is_ignored

    base_dir = Path.cwd()
    patterns = FORMAT_IGNORES + list(ignores or [])
    if files:
        return [path for path in files if not is_ignored(path, patterns, base_dir)]

    return [
        path.relative_to(base_dir).as_posix()
        for path in sorted(base_dir.rglob(DEFAULT_MARKDOWN_GLOB))
        if path.is_file() and not is_ignored(str(path), patterns, base_dir)
    ]


def _load_lint_config(config_path: Optional[str]):
    from doc_commit_gate.lint_config import load_lint_config

    settings = load_config()
    try:
        return load_lint_config(config_path or settings.lint_config_file)
    except ConfigError as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1)


def _run_format(paths: List[str], check: bool) -> bool:
    from doc_commit_gate.formatter import format_files

    result = format_files(paths, write=not check)

    for path in result.changed:
        click.echo(f"[warn] {path}" if check else path)
    for path, message in result.errors.items():
        click.echo(f"Error: {path}: {message}", err=True)

    if check and result.changed:
        click.echo(f"Formatting issues found in {len(result.changed)} file(s). Run 'docgate format' to fix.", err=True)
        return False
    return result.ok


def _run_lint(paths: List[str], lint_config, output_format: Optional[str]) -> bool:
    from doc_commit_gate.linter import lint_files
    from doc_commit_gate.report import render

    click.echo(f"Linting: {len(paths)} file(s)", err=True)
    try:
        result = lint_files(paths, lint_config)
    except (OSError, UnicodeDecodeError) as e:
        click.echo(f"Error: Could not read file: {e}", err=True)
        return False

    formatters = [output_format] if output_format else lint_config.output_formatters
    output = render(result, formatters)
    if output:
        click.echo(output)
    click.echo(f"Summary: {len(result.violations)} error(s)", err=True)
    return result.ok


@cli.command("format")
@click.argument("files", nargs=-1, type=click.Path())
@click.option("--check", is_flag=True, help="Report files that would change without writing them.")
def format_cmd(files: Tuple[str, ...], check: bool):
    """Format Markdown files in place (all *.md when no FILES are given)."""
    lint_config = _load_lint_config(None)
    paths = _collect_markdown(files, lint_config.ignores)
    if not _run_format(paths, check):
        raise SystemExit(1)


@cli.command()
@click.argument("files", nargs=-1, type=click.Path())
@click.option("--config", "config_path", type=click.Path(), help="Lint configuration file.")
@click.option(
    "--output-format",
    type=click.Choice(["default", "json", "summarize"]),
    help="Override the configured output formatter.",
)
def lint(files: Tuple[str, ...], config_path: Optional[str], output_format: Optional[str]):
    """Lint Markdown files (all *.md when no FILES are given)."""
    lint_config = _load_lint_config(config_path)
    paths = _collect_markdown(files, lint_config.ignores)
    if not _run_lint(paths, lint_config, output_format):
        raise SystemExit(1)


@cli.command()
@click.argument("files", nargs=-1, type=click.Path())
@click.option("--config", "config_path", type=click.Path(), help="Lint configuration file.")
def fix(files: Tuple[str, ...], config_path: Optional[str]):
    """Format, then lint, the same Markdown files."""
    lint_config = _load_lint_config(config_path)
    paths = _collect_markdown(files, lint_config.ignores)
    formatted = _run_format(paths, check=False)
    linted = _run_lint(paths, lint_config, None)
    if not (formatted and linted):
        raise SystemExit(1)


@cli.command("check-commit-msg")
@click.argument("message_file", type=click.Path())
def check_commit_msg(message_file: str):
    """Validate the first line of a commit message file."""
    from doc_commit_gate.commit_msg import check_message_file

    try:
        result = check_message_file(message_file)
    except (OSError, UnicodeDecodeError) as e:
        click.echo(f"Error: Could not read commit message: {e}", err=True)
        raise SystemExit(1)

    if not result.ok:
        click.echo(f"Invalid commit message: {result.subject!r}", err=True)
        click.echo(result.hint, err=True)
        raise SystemExit(1)


@cli.command("check-config")
def check_config():
    """Check that the hook and lint configuration load and validate."""
    from doc_commit_gate.hooks_config import load_hooks_config
    from doc_commit_gate.lint_config import load_lint_config

    settings = load_config()
    try:
        hooks_config = load_hooks_config(settings.hooks_file)
        lint_config = load_lint_config(settings.lint_config_file)
    except ConfigError as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1)

    click.echo("Configuration loaded successfully!")
    click.echo(f"  Hooks: {hooks_config.path}")
    for hook in hooks_config.hooks.values():
        names = ", ".join(c.name for c in hook.commands)
        click.echo(f"    {hook.name}: {names}")
    click.echo(f"  Lint config: {lint_config.path or '[defaults]'}")
    click.echo(f"    Rules enabled: {len(lint_config.resolved_rules())}")
    click.echo(f"    Ignores: {', '.join(lint_config.ignores) or '[none]'}")
    if settings.skip_hooks:
        click.echo("  Hooks are disabled by environment (LEFTHOOK=0 / DOCGATE_SKIP_HOOKS)")


# Git hook commands
@cli.group()
def hooks():
    """Git hook commands."""
    pass


def _load_hooks(config_path: Optional[str]):
    from doc_commit_gate.hooks_config import load_hooks_config

    settings = load_config()
    try:
        return settings, load_hooks_config(config_path or settings.hooks_file)
    except ConfigError as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1)


@hooks.command("run")
@click.argument("hook_name")
@click.argument("args", nargs=-1)
@click.option("--config", "config_path", type=click.Path(), help="Hook configuration file.")
def hooks_run(hook_name: str, args: Tuple[str, ...], config_path: Optional[str]):
    """Run the commands configured for HOOK_NAME."""
    from doc_commit_gate.pipeline import run_hook

    settings, hooks_config = _load_hooks(config_path)
    try:
        result = run_hook(hook_name, hooks_config, args=args, settings=settings)
    except GitError as e:
        click.echo(f"Git error: {e}", err=True)
        raise SystemExit(1)

    if result.skip_reason:
        click.echo(f"{hook_name}: skipped ({result.skip_reason})", err=True)
        return

    click.echo(f"{hook_name}:", err=True)
    for state in result.commands:
        if state.status == "SKIPPED":
            click.echo(f"  [SKIPPED] {state.name} ({state.skip_reason})", err=True)
            continue
        click.echo(f"  [{state.status}] {state.name}", err=True)
        if state.stdout:
            click.echo(state.stdout.rstrip("\n"), err=True)
        if state.stderr:
            click.echo(state.stderr.rstrip("\n"), err=True)

    if not result.ok:
        failed = [state.name for state in result.commands if state.status == "FAILED"]
        click.echo(f"{hook_name} failed: {', '.join(failed)}", err=True)
        raise SystemExit(result.exit_code)


@hooks.command("install")
@click.option("--config", "config_path", type=click.Path(), help="Hook configuration file.")
@click.option("--force", is_flag=True, help="Overwrite hooks not installed by docgate.")
def hooks_install(config_path: Optional[str], force: bool):
    """Install git hook shims for every configured hook."""
    from doc_commit_gate.installer import install_hooks

    _, hooks_config = _load_hooks(config_path)
    try:
        installed = install_hooks(hooks_config, force=force)
    except (GitError, FileExistsError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    for shim in installed:
        click.echo(f"  Installed: {shim}")
    click.echo(f"\n{len(installed)} hook(s) installed.")


if __name__ == "__main__":
    cli()
