"""Lint Stage: check Markdown files against the configured rule set."""

import re
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from doc_commit_gate.config import debug
from doc_commit_gate.lint_config import LintConfig, is_ignored
from doc_commit_gate.md_parse import Document, parse_document
from doc_commit_gate.rules import RULES_BY_ID, resolve_rules, rules_for_key


INLINE_CONFIG_RE = re.compile(
    r"<!--\s*markdownlint-"
    r"(disable-next-line|disable-line|disable-file|enable-file|disable|enable|capture|restore)"
    r"((?:\s+[A-Za-z0-9_-]+)*)\s*-->"
)


@dataclass
class Violation:
    """A single rule violation."""
    file: str
    line: int
    rule_id: str
    rule_names: Tuple[str, ...]
    message: str
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "line": self.line,
            "rule_id": self.rule_id,
            "rule_names": list(self.rule_names),
            "message": self.message,
            "detail": self.detail,
        }


@dataclass
class LintResult:
    """Result of linting a set of files."""
    violations: List[Violation] = field(default_factory=list)
    checked: List[str] = field(default_factory=list)
    ignored: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations


def _names_to_ids(names: str, enabled: Iterable[str]) -> Set[str]:
    if not names.strip():
        return set(enabled)
    ids = set()
    for name in names.split():
        ids.update(rule.id for rule in rules_for_key(name))
    return ids


def _disabled_by_line(doc: Document, enabled: Iterable[str]) -> Dict[int, Set[str]]:
    """
    Evaluate `<!-- markdownlint-... -->` comments.

    Returns line number -> rule ids disabled on that line.
    """
    enabled = list(enabled)
    current: Set[str] = set()
    file_disabled: Set[str] = set()
    captured: List[Set[str]] = []
    extra: Dict[int, Set[str]] = defaultdict(set)
    per_line: Dict[int, Set[str]] = {}

    for line in doc.lines:
        if not line.is_code and line.kind != "front_matter":
            for m in INLINE_CONFIG_RE.finditer(line.text):
                action = m.group(1)
                ids = _names_to_ids(m.group(2), enabled)
                if action == "disable":
                    current |= ids
                elif action == "enable":
                    current -= ids
                elif action == "disable-line":
                    extra[line.number] |= ids
                elif action == "disable-next-line":
                    extra[line.number + 1] |= ids
                elif action == "disable-file":
                    file_disabled |= ids
                elif action == "enable-file":
                    file_disabled -= ids
                elif action == "capture":
                    captured.append(set(current))
                elif action == "restore" and captured:
                    current = captured.pop()
        per_line[line.number] = set(current)

    for number in per_line:
        per_line[number] |= extra.get(number, set()) | file_disabled
    return per_line


def lint_text(
    text: str,
    rules: Optional[Dict[str, Dict[str, Any]]] = None,
    file: str = "-",
    inline_config: bool = True,
) -> List[Violation]:
    """
    Lint Markdown text.

    Args:
        text: Document content
        rules: Enabled rule id -> params (default: every rule with defaults)
        file: Name reported in violations
        inline_config: Honour `<!-- markdownlint-disable ... -->` comments

    Returns:
        Violations sorted by line, then rule id
    """
    if rules is None:
        rules = resolve_rules()

    doc = parse_document(text)
    disabled = _disabled_by_line(doc, rules) if inline_config else {}

    violations = []
    for rule_id, params in rules.items():
        rule = RULES_BY_ID[rule_id]
        for line_number, detail in rule.check(doc, params):
            if rule_id in disabled.get(line_number, ()):
                continue
            violations.append(Violation(
                file=file,
                line=line_number,
                rule_id=rule.id,
                rule_names=rule.names,
                message=rule.description,
                detail=detail,
            ))

    violations.sort(key=lambda v: (v.line, v.rule_id))
    return violations


def lint_files(paths: Iterable[str], config: Optional[LintConfig] = None) -> LintResult:
    """
    Lint files, skipping those matched by the configuration's ignores.

    Raises:
        OSError, UnicodeDecodeError: If a file cannot be read
    """
    if config is None:
        config = LintConfig()
    rules = config.resolved_rules()

    result = LintResult()
    for path in paths:
        if is_ignored(path, config.ignores, config.base_dir):
            debug(f"lint ignores {path}")
            result.ignored.append(str(path))
            continue
        content = Path(path).read_bytes().decode("utf-8")
        result.checked.append(str(path))
        result.violations.extend(
            lint_text(content, rules, file=str(path), inline_config=not config.no_inline_config)
        )

    result.violations.sort(key=lambda v: (v.file, v.line, v.rule_id))
    return result
