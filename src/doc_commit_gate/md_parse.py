"""Block-level Markdown classification shared by the formatter and the linter.

This is not a CommonMark parser. Each line is classified once, with just
enough context (open fences, list nesting, open paragraphs) to drive the
style rules:

    blank, front_matter, heading, fence_open, fence_close, code,
    indented_code, list_item, thematic_break, html, text
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import yaml


FENCE_RE = re.compile(r"^(\s*)(`{3,}|~{3,})(.*)$")
HEADING_RE = re.compile(r"^(#{1,6})([ \t]*)(.*)$")
CLOSING_HASHES_RE = re.compile(r"(^|[ \t]+)#+[ \t]*$")
THEMATIC_BREAK_RE = re.compile(r"^([-*_])([ \t]*\1){2,}[ \t]*$")
LIST_ITEM_RE = re.compile(r"^( *)([-*+]|\d{1,9}[.)])( +|$)(.*)$")
HTML_BLOCK_RE = re.compile(r"^<(/?[A-Za-z][A-Za-z0-9-]*[\s/>]|/?[A-Za-z][A-Za-z0-9-]*$|!--)")
FRONT_MATTER_TITLE_RE = re.compile(r"^\s*\"?title\"?\s*[:=]", re.MULTILINE)
CODE_SPAN_RE = re.compile(r"(`+)[^`].*?(?<!`)\1(?!`)")

# Spans whose content must never be rewritten or inspected for emphasis:
# code spans, link destinations, autolinks/inline tags, bare URLs
INLINE_PROTECTED_RE = re.compile(
    r"(`+)[^`].*?(?<!`)\1(?!`)"
    r"|\]\([^)]*\)"
    r"|<[^>\n]+>"
    r"|https?://[^\s)>\]]+"
)

UNDERSCORE_STRONG_RE = re.compile(r"(?<![\w\\_])__(?![\s_])(.+?)(?<![\s\\_])__(?![\w_])")
UNDERSCORE_EM_RE = re.compile(r"(?<![\w\\_])_(?![\s_])(.+?)(?<![\s\\_])_(?![\w_])")
ASTERISK_STRONG_RE = re.compile(r"(?<![\\*])\*\*(?![\s*])(.+?)(?<![\s\\*])\*\*(?!\*)")
ASTERISK_EM_RE = re.compile(r"(?<![\\*\w])\*(?![\s*])(.+?)(?<![\s\\*])\*(?![*\w])")

CODE_KINDS = ("code", "indented_code")
FENCE_KINDS = ("fence_open", "fence_close")


@dataclass
class Line:
    """One physical line of a Markdown document."""
    number: int
    text: str
    kind: str = "text"
    indent: int = 0
    in_list: bool = False
    heading_level: int = 0
    heading_text: str = ""
    heading_gap: str = ""
    fence_marker: str = ""
    fence_info: str = ""
    list_marker: str = ""
    list_level: int = 0
    list_ordered: bool = False
    list_parents_unordered: bool = True

    @property
    def is_blank(self) -> bool:
        return self.kind == "blank"

    @property
    def is_code(self) -> bool:
        return self.kind in CODE_KINDS


@dataclass
class Document:
    """A classified Markdown document."""
    lines: List[Line]
    ends_with_newline: bool = True
    front_matter: Optional[List[str]] = None
    front_matter_error: Optional[str] = None

    def content_lines(self) -> List[Line]:
        return [line for line in self.lines if line.kind != "front_matter"]


@dataclass
class _ListEntry:
    indent: int
    content_offset: int
    ordered: bool


def split_lines(text: str) -> Tuple[List[str], bool]:
    """Normalize line endings and split; returns (lines, ends_with_newline)."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    if text.startswith("\ufeff"):
        text = text[1:]
    if not text:
        return [], False
    ends_with_newline = text.endswith("\n")
    raw = text.split("\n")
    if ends_with_newline:
        raw.pop()
    return raw, ends_with_newline


def _scan_front_matter(raw: List[str]):
    """
    Returns (body_lines, error) for a leading `---` block.

    A `---` with no closing marker is a thematic break, not front matter.
    """
    if not raw or raw[0].rstrip() != "---":
        return None, None
    for j in range(1, len(raw)):
        if raw[j].rstrip() in ("---", "..."):
            body = raw[1:j]
            try:
                yaml.safe_load("\n".join(body))
            except yaml.YAMLError as e:
                return body, f"Front matter is not valid YAML: {str(e)[:200]}"
            return body, None
    return None, None


def parse_heading(body: str) -> Optional[Tuple[int, str, str]]:
    """
    Parse an ATX heading from a line with leading indentation removed.

    Returns (level, gap, text) or None. A heading without a space after the
    hashes ("#Title") is still returned, with an empty gap.
    """
    m = HEADING_RE.match(body)
    if not m:
        return None
    hashes, gap, rest = m.groups()
    if not rest:
        return len(hashes), gap, ""
    if not gap and (rest.startswith("#") or rest.startswith("\ufe0f")):
        return None
    text = CLOSING_HASHES_RE.sub("", rest).strip()
    return len(hashes), gap, text


def _starts_block(body: str) -> bool:
    """Whether a non-indented line interrupts a list's lazy continuation."""
    return bool(
        parse_heading(body)
        or FENCE_RE.match(body)
        or THEMATIC_BREAK_RE.match(body)
        or HTML_BLOCK_RE.match(body)
    )


def _can_interrupt_paragraph(marker: str, content: str) -> bool:
    if not content.strip():
        return False
    if marker[0].isdigit():
        return marker[:-1] == "1"
    return True


def parse_document(text: str) -> Document:
    """Classify every line of a Markdown document."""
    raw, ends_with_newline = split_lines(text)
    body_lines, fm_error = _scan_front_matter(raw)

    lines: List[Line] = []
    start = 0
    if body_lines is not None:
        start = len(body_lines) + 2
        for i in range(start):
            lines.append(Line(number=i + 1, text=raw[i], kind="front_matter"))

    fence = None  # (char, length, in_list)
    stack: List[_ListEntry] = []
    in_list = False
    html_block = False

    for idx in range(start, len(raw)):
        text_line = raw[idx]
        expanded = text_line.expandtabs(4)
        body = expanded.lstrip()
        indent = len(expanded) - len(body)
        line = Line(number=idx + 1, text=text_line, indent=indent)
        prev = lines[-1] if len(lines) > start else None

        if fence is not None:
            m = FENCE_RE.match(expanded)
            if m and m.group(2)[0] == fence[0] and len(m.group(2)) >= fence[1] and not m.group(3).strip():
                line.kind = "fence_close"
                line.fence_marker = m.group(2)
                fence_in_list = fence[2]
                fence = None
            else:
                line.kind = "code"
                fence_in_list = fence[2]
            line.in_list = fence_in_list
            lines.append(line)
            continue

        if not body:
            line.kind = "blank"
            html_block = False
            lines.append(line)
            continue

        if html_block:
            line.kind = "html"
            line.in_list = in_list
            lines.append(line)
            continue

        after_blank = prev is None or prev.kind == "blank"
        item = LIST_ITEM_RE.match(expanded)
        if item and THEMATIC_BREAK_RE.match(body):
            item = None

        # Decide whether this line still belongs to the open list
        if in_list and not item:
            if indent < stack[0].content_offset and (after_blank or _starts_block(body)):
                in_list = False
                stack = []
            else:
                while len(stack) > 1 and indent < stack[-1].content_offset:
                    stack.pop()

        block_position = indent <= 3 or in_list
        paragraph_open = prev is not None and prev.kind == "text"

        fence_match = FENCE_RE.match(expanded) if block_position else None
        heading = parse_heading(body) if block_position else None

        if fence_match and not (fence_match.group(2)[0] == "`" and "`" in fence_match.group(3)):
            line.kind = "fence_open"
            line.fence_marker = fence_match.group(2)
            line.fence_info = fence_match.group(3).strip()
            line.in_list = in_list
            fence = (fence_match.group(2)[0], len(fence_match.group(2)), in_list)
        elif not in_list and indent >= 4 and not paragraph_open and (after_blank or prev.kind == "indented_code"):
            line.kind = "indented_code"
        elif heading:
            line.kind = "heading"
            line.heading_level, line.heading_gap, line.heading_text = heading
            line.in_list = in_list
        elif block_position and THEMATIC_BREAK_RE.match(body):
            # "---" under a paragraph is a setext underline, not a break
            line.kind = "text" if paragraph_open and not in_list else "thematic_break"
            line.in_list = in_list
        elif item and (in_list or not paragraph_open or _can_interrupt_paragraph(item.group(2), item.group(4))):
            lead, marker, gap, content = item.groups()
            n = len(lead)
            gap_width = len(gap) if 1 <= len(gap) <= 4 else 1
            entry = _ListEntry(
                indent=n,
                content_offset=n + len(marker) + gap_width,
                ordered=marker[0].isdigit(),
            )
            if not in_list:
                stack = []
                in_list = True
            while stack:
                top = stack[-1]
                if n >= top.content_offset:
                    break
                stack.pop()
                if n >= top.indent:
                    break
            stack.append(entry)
            line.kind = "list_item"
            line.in_list = True
            line.list_marker = marker
            line.list_level = len(stack) - 1
            line.list_ordered = entry.ordered
            line.list_parents_unordered = all(not e.ordered for e in stack[:-1])
        elif block_position and HTML_BLOCK_RE.match(body):
            line.kind = "html"
            line.in_list = in_list
            html_block = True
        else:
            line.kind = "text"
            line.in_list = in_list

        lines.append(line)

    _mark_blank_lines_in_lists(lines)

    return Document(
        lines=lines,
        ends_with_newline=ends_with_newline,
        front_matter=body_lines,
        front_matter_error=fm_error,
    )


def _mark_blank_lines_in_lists(lines: List[Line]) -> None:
    """A blank line is inside a list when list lines surround it."""
    last_in_list = False
    pending: List[Line] = []
    for line in lines:
        if line.kind == "blank":
            pending.append(line)
            continue
        if line.kind == "front_matter":
            continue
        if pending and last_in_list and line.in_list:
            for blank in pending:
                blank.in_list = True
        pending = []
        last_in_list = line.in_list


def list_blocks(doc: Document) -> List[Tuple[int, int]]:
    """Index ranges (first, last) of contiguous list regions in doc.lines."""
    blocks = []
    start = None
    for i, line in enumerate(doc.lines):
        if line.in_list:
            if start is None:
                start = i
        elif start is not None:
            blocks.append((start, _last_non_blank(doc.lines, start, i - 1)))
            start = None
    if start is not None:
        blocks.append((start, _last_non_blank(doc.lines, start, len(doc.lines) - 1)))
    return blocks


def _last_non_blank(lines: List[Line], start: int, end: int) -> int:
    while end > start and lines[end].kind == "blank":
        end -= 1
    return end


# --- Inline helpers ---

def split_protected(text: str) -> List[Tuple[bool, str]]:
    """Split text into (protected, segment) pairs; code spans, links and URLs are protected."""
    segments = []
    pos = 0
    for m in INLINE_PROTECTED_RE.finditer(text):
        if m.start() > pos:
            segments.append((False, text[pos:m.start()]))
        segments.append((True, m.group(0)))
        pos = m.end()
    if pos < len(text):
        segments.append((False, text[pos:]))
    return segments


def map_unprotected(text: str, fn: Callable[[str], str]) -> str:
    """Apply fn to every segment of text outside code spans, links and URLs."""
    return "".join(seg if protected else fn(seg) for protected, seg in split_protected(text))


def heading_slug(text: str) -> str:
    return re.sub(r"\s+", " ", text.strip()).lower()


def mask_code_spans(text: str) -> str:
    """Replace code spans with spaces, keeping columns."""
    return CODE_SPAN_RE.sub(lambda m: " " * len(m.group(0)), text)


def find_unprotected(text: str, pattern: "re.Pattern") -> List[str]:
    """All matches of pattern outside code spans, links and URLs."""
    found = []
    for protected, segment in split_protected(text):
        if not protected:
            found.extend(m.group(0) for m in pattern.finditer(segment))
    return found


def inline_content(line: Line) -> str:
    """The inline (paragraph-like) text carried by a line, if any."""
    if line.kind == "heading":
        return line.heading_text
    if line.kind == "list_item":
        m = LIST_ITEM_RE.match(line.text.expandtabs(4))
        return m.group(4) if m else ""
    if line.kind == "text":
        return line.text
    return ""
