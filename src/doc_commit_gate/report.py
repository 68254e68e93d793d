"""Output formatters for lint results.

Names follow markdownlint-cli2's formatter packages so the `outputFormatters`
setting in `.markdownlint-cli2.jsonc` selects them directly.
"""

import json
from collections import Counter
from typing import Callable, Dict, List


def format_default(result) -> str:
    """One line per violation: `file:line RULE/alias message [detail]`."""
    lines = []
    for v in result.violations:
        line = f"{v.file}:{v.line} {'/'.join(v.rule_names)} {v.message}"
        if v.detail:
            line += f" [{v.detail}]"
        lines.append(line)
    return "\n".join(lines)


def format_json(result) -> str:
    return json.dumps([v.to_dict() for v in result.violations], indent=2)


def format_summarize(result) -> str:
    """Violation counts per rule, most frequent first."""
    counts = Counter("/".join(v.rule_names) for v in result.violations)
    width = max((len(name) for name in counts), default=0)
    return "\n".join(f"{name.ljust(width)}  {count}" for name, count in counts.most_common())


FORMATTERS: Dict[str, Callable] = {
    "markdownlint-cli2-formatter-default": format_default,
    "markdownlint-cli2-formatter-json": format_json,
    "markdownlint-cli2-formatter-summarize": format_summarize,
}

SHORT_NAMES = {
    "default": "markdownlint-cli2-formatter-default",
    "json": "markdownlint-cli2-formatter-json",
    "summarize": "markdownlint-cli2-formatter-summarize",
}


def render(result, formatter_names: List[str]) -> str:
    """Render a LintResult with every selected formatter, in order."""
    outputs = []
    for name in formatter_names:
        text = FORMATTERS[SHORT_NAMES.get(name, name)](result)
        if text:
            outputs.append(text)
    return "\n".join(outputs)
