"""Loading `.markdownlint-cli2.jsonc` (and friends) for the Lint Stage."""

import json
import re
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema
import yaml

from doc_commit_gate.config import ConfigError
from doc_commit_gate.constants import DEFAULT_OUTPUT_FORMATTER, LINT_CONFIG_FILENAMES
from doc_commit_gate.rules import resolve_rules


SCHEMA_PATH = Path(__file__).parent / "schemas" / "markdownlint-cli2.schema.json"

TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


@dataclass
class LintConfig:
    """Lint configuration: rule settings plus file selection and output."""
    rules: Dict[str, Any] = field(default_factory=dict)
    ignores: List[str] = field(default_factory=list)
    output_formatters: List[str] = field(default_factory=lambda: [DEFAULT_OUTPUT_FORMATTER])
    no_inline_config: bool = False
    base_dir: Path = field(default_factory=Path.cwd)
    path: Optional[Path] = None

    def resolved_rules(self) -> Dict[str, Dict[str, Any]]:
        return resolve_rules(self.rules)


def strip_jsonc(text: str) -> str:
    """Remove // and /* */ comments and trailing commas, leaving strings intact."""
    out = []
    i = 0
    in_string = False
    while i < len(text):
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < len(text):
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = len(text) if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                raise ConfigError("Unterminated /* comment in JSONC configuration")
            i = end + 2
        else:
            out.append(ch)
            i += 1
    return _strip_trailing_commas("".join(out))


def _strip_trailing_commas(text: str) -> str:
    # Split on strings so commas inside them survive
    parts = re.split(r'("(?:\\.|[^"\\])*")', text)
    for i in range(0, len(parts), 2):
        parts[i] = TRAILING_COMMA_RE.sub(r"\1", parts[i])
    return "".join(parts)


def _read_config_file(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(text) or {}
        return json.loads(strip_jsonc(text))
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not parse {path}: {e}")


def find_lint_config(start: Optional[Path] = None) -> Optional[Path]:
    """Nearest lint configuration file in start or its parents."""
    directory = (start or Path.cwd()).resolve()
    for candidate_dir in [directory, *directory.parents]:
        for name in LINT_CONFIG_FILENAMES:
            candidate = candidate_dir / name
            if candidate.is_file():
                return candidate
    return None


def load_lint_config(path: Optional[str] = None, start: Optional[Path] = None) -> LintConfig:
    """
    Load lint configuration.

    `.markdownlint-cli2.*` files carry `config`, `ignores`, `outputFormatters`
    and `noInlineConfig`; `.markdownlint.*` files are a bare rule config.
    Without a file, every rule runs with its defaults.

    Raises:
        ConfigError: If the file is missing, unparsable or fails schema validation
    """
    if path is None:
        found = find_lint_config(start)
        if found is None:
            return LintConfig(base_dir=(start or Path.cwd()).resolve())
        config_path = found
    else:
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigError(f"Lint configuration not found: {config_path}")

    data = _read_config_file(config_path)
    base_dir = config_path.resolve().parent

    if not config_path.name.startswith(".markdownlint-cli2"):
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path}: rule configuration must be an object")
        return LintConfig(rules=data, base_dir=base_dir, path=config_path)

    schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        error_msg = f"{config_path}: {e.message}"
        if e.absolute_path:
            error_msg += f" at path: {list(e.absolute_path)}"
        raise ConfigError(error_msg)

    formatters = [entry[0] for entry in data.get("outputFormatters", [])] or [DEFAULT_OUTPUT_FORMATTER]

    from doc_commit_gate.report import FORMATTERS
    unknown = [name for name in formatters if name not in FORMATTERS]
    if unknown:
        raise ConfigError(f"{config_path}: unknown output formatter(s): {', '.join(unknown)}")

    return LintConfig(
        rules=data.get("config", {}),
        ignores=list(data.get("ignores", [])),
        output_formatters=formatters,
        no_inline_config=data.get("noInlineConfig", False),
        base_dir=base_dir,
        path=config_path,
    )


def relative_posix(path: str, base_dir: Path) -> str:
    """Path relative to base_dir in posix form; unchanged when outside it."""
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = Path.cwd() / candidate
    try:
        return candidate.resolve().relative_to(base_dir.resolve()).as_posix()
    except ValueError:
        return Path(path).as_posix()


def is_ignored(path: str, patterns: List[str], base_dir: Path) -> bool:
    """Whether path matches any ignore glob (relative to base_dir)."""
    if not patterns:
        return False
    rel = relative_posix(path, base_dir)
    if rel.startswith("./"):
        rel = rel[2:]
    return any(fnmatch(rel, pattern) for pattern in patterns)
