"""Commit-Message Gate: Conventional Commits check on the first line."""

import re
from dataclasses import dataclass
from pathlib import Path

from doc_commit_gate.constants import COMMIT_MESSAGE_EXAMPLES, COMMIT_MESSAGE_PATTERN, COMMIT_TYPES


COMMIT_MESSAGE_RE = re.compile(COMMIT_MESSAGE_PATTERN)

USAGE_HINT = "\n".join([
    "Commit messages must follow the Conventional Commits format:",
    "  <type>(<optional scope>): <description>",
    f"  types: {', '.join(COMMIT_TYPES)}",
    "Examples:",
    *(f"  {example}" for example in COMMIT_MESSAGE_EXAMPLES),
])


@dataclass
class CommitMessageResult:
    """Outcome of the gate for one message."""
    subject: str
    status: str  # VALIDATED | REJECTED
    hint: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "VALIDATED"


def first_line(message: str) -> str:
    return message.replace("\r\n", "\n").replace("\r", "\n").split("\n", 1)[0]


def strip_editor_preamble(message: str) -> str:
    """Drop the leading blank and `#` comment lines git removes after the hook runs."""
    lines = message.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    while lines and (not lines[0].strip() or lines[0].startswith("#")):
        lines.pop(0)
    return "\n".join(lines)


def validate_message(message: str) -> CommitMessageResult:
    """
    Validate a proposed commit message.

    Only the first line is inspected. Nothing about the message is changed;
    a rejected message is fixed by the committer and retried.
    """
    subject = first_line(message)
    if COMMIT_MESSAGE_RE.match(subject):
        return CommitMessageResult(subject=subject, status="VALIDATED")
    return CommitMessageResult(subject=subject, status="REJECTED", hint=USAGE_HINT)


def check_message_file(path: str) -> CommitMessageResult:
    """
    Validate the message file git passes to the commit-msg hook.

    Leading blank and comment lines left by the editor are skipped before
    the first line is checked.

    Raises:
        FileNotFoundError: If the message file does not exist
    """
    message = Path(path).read_text(encoding="utf-8")
    return validate_message(strip_editor_preamble(message))
