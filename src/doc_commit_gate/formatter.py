"""Format Stage: rewrite Markdown into the canonical style.

Canonical style:
- one space after ATX heading hashes, no closing hashes, no indentation
- `-` for unordered list markers, nested unordered items indented 2 per level
- `*` for emphasis, `**` for strong emphasis
- one blank line around headings, top-level fences and lists
- no trailing whitespace, no hard tabs outside code, single trailing newline

Code blocks, HTML blocks and front matter are copied verbatim.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List

from doc_commit_gate.config import debug
from doc_commit_gate.md_parse import (
    LIST_ITEM_RE,
    UNDERSCORE_EM_RE,
    UNDERSCORE_STRONG_RE,
    Document,
    Line,
    map_unprotected,
    parse_document,
)


# Passes are repeated until the output stops changing
MAX_PASSES = 10


class FormatError(Exception):
    """Raised when a document cannot be formatted."""
    pass


@dataclass
class FormatResult:
    """Result of formatting a set of files."""
    changed: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


def normalize_emphasis(text: str) -> str:
    """Rewrite underscore emphasis to asterisks outside code spans and links."""
    def _fix(segment: str) -> str:
        segment = UNDERSCORE_STRONG_RE.sub(r"**\1**", segment)
        return UNDERSCORE_EM_RE.sub(r"*\1*", segment)

    return map_unprotected(text, _fix)


def _format_heading(line: Line) -> str:
    prefix = ""
    if line.in_list:
        prefix = line.text[:len(line.text) - len(line.text.lstrip())]
    hashes = "#" * line.heading_level
    if not line.heading_text:
        return prefix + hashes
    return f"{prefix}{hashes} {normalize_emphasis(line.heading_text.expandtabs(4))}"


def _format_list_item(line: Line) -> str:
    expanded = line.text.expandtabs(4).rstrip()
    m = LIST_ITEM_RE.match(expanded)
    if not m:
        return expanded
    lead, marker, gap, content = m.groups()
    if not line.list_ordered:
        marker = "-"
        if line.list_parents_unordered:
            lead = " " * (line.list_level * 2)
    if not content:
        return lead + marker
    return f"{lead}{marker}{gap}{normalize_emphasis(content)}"


def _format_line(line: Line) -> str:
    """Line-level rewrite; code and front matter are copied verbatim."""
    if line.kind == "blank":
        return ""
    if line.kind == "heading":
        return _format_heading(line)
    if line.kind == "list_item":
        return _format_list_item(line)
    if line.kind == "text":
        return normalize_emphasis(line.text.expandtabs(4).rstrip())
    if line.kind in ("front_matter", "code", "indented_code"):
        return line.text
    return line.text.rstrip()


def _needs_blank_between(prev: Line, cur: Line) -> bool:
    """Whether two adjacent non-blank lines must be separated by a blank line."""
    if cur.kind == "heading" or prev.kind == "heading":
        return True
    if cur.kind == "fence_open" and not cur.in_list:
        return True
    if prev.kind == "fence_close" and not prev.in_list:
        return True
    if cur.in_list != prev.in_list:
        return True
    return False


def _format_once(doc: Document) -> str:
    out: List[str] = []
    if doc.front_matter is not None:
        out.append("---")
        out.extend(doc.front_matter)
        out.append("---")

    body: List[str] = []
    prev = None
    for line in doc.content_lines():
        if line.kind == "blank":
            if body and body[-1] != "":
                body.append("")
            continue
        if prev is not None and body and body[-1] != "" and _needs_blank_between(prev, line):
            body.append("")
        body.append(_format_line(line))
        prev = line

    while body and body[-1] == "":
        body.pop()

    if body:
        if out:
            out.append("")
        out.extend(body)
    if not out:
        return ""
    return "\n".join(out) + "\n"


def format_text(text: str) -> str:
    """
    Format Markdown text into the canonical style.

    Idempotent: formatting already formatted text returns it unchanged.

    Raises:
        FormatError: If the front matter is not valid YAML
    """
    doc = parse_document(text)
    if doc.front_matter_error:
        raise FormatError(doc.front_matter_error)

    current = _format_once(doc)
    for _ in range(MAX_PASSES):
        following = _format_once(parse_document(current))
        if following == current:
            break
        current = following
    return current


def format_files(paths: Iterable[str], write: bool = True) -> FormatResult:
    """
    Format files in place.

    Every file is attempted; a file that fails does not stop the others, and
    files that format successfully are written even when another fails.

    Args:
        paths: Files to format
        write: If False, only report which files would change

    Returns:
        FormatResult with changed, unchanged and errors (path -> message)
    """
    result = FormatResult()

    for path in paths:
        file_path = Path(path)
        try:
            # Bytes, so CRLF endings are seen as a change
            original = file_path.read_bytes().decode("utf-8")
            formatted = format_text(original)
        except FormatError as e:
            result.errors[str(path)] = str(e)
            continue
        except (OSError, UnicodeDecodeError) as e:
            result.errors[str(path)] = f"Could not read file: {e}"
            continue

        if formatted == original:
            result.unchanged.append(str(path))
            continue

        if write:
            with open(file_path, "w", encoding="utf-8", newline="\n") as f:
                f.write(formatted)
        debug(f"formatted {path}")
        result.changed.append(str(path))

    return result
