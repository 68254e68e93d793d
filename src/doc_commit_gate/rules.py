"""Lint rules for the pre-commit Lint Stage.

Rule ids and aliases follow markdownlint so existing `.markdownlint*`
configuration keeps working. TPL001 (no-emoji) is specific to template
repositories: icon and emoji characters are banned outright.

Each check takes a parsed Document and the rule's effective params and
yields (line_number, detail) pairs.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from doc_commit_gate.config import ConfigError, debug
from doc_commit_gate.md_parse import (
    ASTERISK_EM_RE,
    ASTERISK_STRONG_RE,
    FENCE_KINDS,
    FRONT_MATTER_TITLE_RE,
    UNDERSCORE_EM_RE,
    UNDERSCORE_STRONG_RE,
    Document,
    Line,
    find_unprotected,
    heading_slug,
    inline_content,
    list_blocks,
    mask_code_spans,
)


Finding = Tuple[int, Optional[str]]


@dataclass
class Rule:
    """A named lint rule."""
    id: str
    alias: str
    description: str
    tags: Tuple[str, ...]
    check: Callable[[Document, Dict[str, Any]], Iterable[Finding]]
    defaults: Dict[str, Any] = field(default_factory=dict)

    @property
    def names(self) -> Tuple[str, str]:
        return self.id, self.alias


EMOJI_RE = re.compile(
    "["
    "\U0001F000-\U0001FAFF"  # pictographs, emoticons, transport, symbols
    "\u2300-\u23FF"          # technical symbols (watch, hourglass, ...)
    "\u2600-\u27BF"          # miscellaneous symbols, dingbats
    "\u2B00-\u2BFF"          # arrows and stars used as icons
    "\uFE0F"                 # emoji presentation selector
    "]"
)

TAG_RE = re.compile(r"<([A-Za-z][A-Za-z0-9-]*)(?=[\s/>])")
LINKS_RE = re.compile(r"\[[^\]]*\]\([^)]*\)|<[^>\n]+>|^\s*\[[^\]]+\]:\s*\S+")
BARE_URL_RE = re.compile(r"https?://[^\s<>()\[\]`]+")
INLINE_KINDS = ("text", "heading", "list_item")
MARKER_STYLES = {"-": "dash", "*": "asterisk", "+": "plus"}


def _headings(doc: Document) -> List[Line]:
    return [line for line in doc.lines if line.kind == "heading"]


def _is_break(line: Line) -> bool:
    """Blank lines and front matter both count as separation."""
    return line.kind in ("blank", "front_matter")


def _per_level(value: Any, level: int) -> int:
    if isinstance(value, list):
        return value[level - 1] if level - 1 < len(value) else -1
    return value


# --- Headings ---

def check_heading_increment(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    prev_level = 0
    for line in _headings(doc):
        if prev_level and line.heading_level > prev_level + 1:
            yield line.number, f"Expected: h{prev_level + 1}; Actual: h{line.heading_level}"
        prev_level = line.heading_level


def check_no_missing_space_atx(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    for line in _headings(doc):
        if line.heading_text and not line.heading_gap:
            yield line.number, None


def check_no_multiple_space_atx(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    for line in _headings(doc):
        if line.heading_text and line.heading_gap != " " and line.heading_gap:
            yield line.number, None


def check_blanks_around_headings(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    lines = doc.lines
    for i, line in enumerate(lines):
        if line.kind != "heading":
            continue
        above = _per_level(params.get("lines_above", 1), line.heading_level)
        below = _per_level(params.get("lines_below", 1), line.heading_level)

        if above >= 0:
            j, count = i - 1, 0
            while j >= 0 and lines[j].kind == "blank":
                count += 1
                j -= 1
            if j >= 0 and lines[j].kind != "front_matter" and count < above:
                yield line.number, f"Expected: {above}; Actual: {count}; Above"

        if below >= 0:
            j, count = i + 1, 0
            while j < len(lines) and lines[j].kind == "blank":
                count += 1
                j += 1
            if j < len(lines) and count < below:
                yield line.number, f"Expected: {below}; Actual: {count}; Below"


def check_heading_start_left(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    for line in _headings(doc):
        if not line.in_list and line.indent > 0:
            yield line.number, None


def check_no_duplicate_heading(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    siblings_only = params.get("siblings_only", False)
    seen = set()
    parents: List[Tuple[int, str]] = []
    for line in _headings(doc):
        slug = heading_slug(line.heading_text)
        while parents and parents[-1][0] >= line.heading_level:
            parents.pop()
        key = (tuple(p[1] for p in parents), slug) if siblings_only else slug
        if key in seen:
            yield line.number, line.heading_text
        seen.add(key)
        parents.append((line.heading_level, slug))


def _front_matter_has_title(doc: Document, params: Dict[str, Any]) -> bool:
    pattern = params.get("front_matter_title", FRONT_MATTER_TITLE_RE.pattern)
    if not pattern or doc.front_matter is None:
        return False
    return bool(re.search(pattern, "\n".join(doc.front_matter), re.MULTILINE | re.IGNORECASE))


def check_single_h1(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    level = params.get("level", 1)
    found = _front_matter_has_title(doc, params)
    for line in _headings(doc):
        if line.heading_level != level:
            continue
        if found:
            yield line.number, line.heading_text
        found = True


def check_first_line_heading(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    level = params.get("level", 1)
    if _front_matter_has_title(doc, params):
        return
    for line in doc.content_lines():
        if line.kind == "blank":
            continue
        if line.kind == "html" and line.text.lstrip().startswith("<!--"):
            continue
        if line.kind != "heading" or line.heading_level != level:
            yield line.number, None
        return


# --- Lists ---

def check_ul_style(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    style = params.get("style", "consistent")
    expected = None if style in ("consistent", "sublist") else style
    for line in doc.lines:
        if line.kind != "list_item" or line.list_ordered:
            continue
        actual = MARKER_STYLES[line.list_marker]
        if expected is None:
            expected = actual
        elif actual != expected:
            yield line.number, f"Expected: {expected}; Actual: {actual}"


def check_ul_indent(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    indent = params.get("indent", 2)
    base = params.get("start_indent", indent) if params.get("start_indented", False) else 0
    for line in doc.lines:
        if line.kind != "list_item" or line.list_ordered or not line.list_parents_unordered:
            continue
        expected = base + line.list_level * indent
        if line.indent != expected:
            yield line.number, f"Expected: {expected}; Actual: {line.indent}"


def check_blanks_around_lists(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    lines = doc.lines
    for first, last in list_blocks(doc):
        if first > 0 and not _is_break(lines[first - 1]):
            yield lines[first].number, None
        if last + 1 < len(lines) and lines[last + 1].kind != "blank":
            yield lines[last].number, None


# --- Whitespace ---

def check_no_trailing_spaces(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    br_spaces = params.get("br_spaces", 2)
    strict = params.get("strict", False)
    for line in doc.lines:
        if line.kind == "front_matter" or line.is_code:
            continue
        trailing = len(line.text) - len(line.text.rstrip(" "))
        if not trailing:
            continue
        if not strict and br_spaces >= 2 and trailing == br_spaces and line.kind != "blank":
            continue
        expected = f"0 or {br_spaces}" if br_spaces >= 2 else "0"
        yield line.number, f"Expected: {expected}; Actual: {trailing}"


def check_no_hard_tabs(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    code_blocks = params.get("code_blocks", True)
    ignored_languages = [lang.lower() for lang in params.get("ignore_code_languages", [])]
    language = ""
    for line in doc.lines:
        if line.kind == "front_matter":
            continue
        if line.kind == "fence_open":
            language = line.fence_info.split()[0].lower() if line.fence_info else ""
        if line.is_code:
            if not code_blocks:
                continue
            if line.kind == "code" and language in ignored_languages:
                continue
        column = line.text.find("\t")
        if column >= 0:
            yield line.number, f"Column: {column + 1}"


def check_no_multiple_blanks(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    maximum = params.get("maximum", 1)
    count = 0
    for line in doc.lines:
        if line.kind != "blank":
            count = 0
            continue
        count += 1
        if count > maximum:
            yield line.number, f"Expected: {maximum}; Actual: {count}"


def check_line_length(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    limit = params.get("line_length", 80)
    heading_limit = params.get("heading_line_length", limit)
    code_limit = params.get("code_block_line_length", limit)
    strict = params.get("strict", False)
    for line in doc.lines:
        if line.kind in ("front_matter", "blank"):
            continue
        if line.kind == "heading":
            if not params.get("headings", True):
                continue
            max_length = heading_limit
        elif line.is_code or line.kind in FENCE_KINDS:
            if not params.get("code_blocks", True):
                continue
            max_length = code_limit
        elif line.text.lstrip().startswith("|"):
            if not params.get("tables", True):
                continue
            max_length = limit
        else:
            max_length = limit

        length = len(line.text)
        if length <= max_length:
            continue
        # Long unbreakable tokens (URLs, paths) are allowed unless strict
        if not strict and not re.search(r"\s", line.text[max_length:]):
            continue
        yield line.number, f"Expected: {max_length}; Actual: {length}"


def check_single_trailing_newline(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    if doc.lines and not doc.ends_with_newline:
        yield doc.lines[-1].number, None


# --- Code blocks ---

def check_blanks_around_fences(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    list_items = params.get("list_items", True)
    lines = doc.lines
    for i, line in enumerate(lines):
        if line.kind not in FENCE_KINDS:
            continue
        if line.in_list and not list_items:
            continue
        if line.kind == "fence_open" and i > 0 and not _is_break(lines[i - 1]):
            yield line.number, None
        if line.kind == "fence_close" and i + 1 < len(lines) and lines[i + 1].kind != "blank":
            yield line.number, None


def check_fenced_code_language(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    allowed = params.get("allowed_languages", [])
    language_only = params.get("language_only", False)
    for line in doc.lines:
        if line.kind != "fence_open":
            continue
        if not line.fence_info:
            yield line.number, None
            continue
        language = line.fence_info.split()[0]
        if allowed and language not in allowed:
            yield line.number, f"Language: {language}"
        elif language_only and line.fence_info != language:
            yield line.number, f"Extra language info: {line.fence_info}"


def check_code_block_style(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    style = params.get("style", "consistent")
    expected = None if style == "consistent" else style
    prev_kind = None
    for line in doc.lines:
        actual = None
        if line.kind == "fence_open":
            actual = "fenced"
        elif line.kind == "indented_code" and prev_kind != "indented_code":
            actual = "indented"
        if line.kind != "blank":
            prev_kind = line.kind
        if actual is None:
            continue
        if expected is None:
            expected = actual
        elif actual != expected:
            yield line.number, f"Expected: {expected}; Actual: {actual}"


# --- Inline ---

def _emphasis_style(doc: Document, params: Dict[str, Any], underscore_re, asterisk_re) -> Iterable[Finding]:
    style = params.get("style", "consistent")
    expected = None if style == "consistent" else style
    for line in doc.lines:
        if line.kind not in INLINE_KINDS:
            continue
        content = inline_content(line)
        found = [(content.find(m), "underscore") for m in find_unprotected(content, underscore_re)]
        found += [(content.find(m), "asterisk") for m in find_unprotected(content, asterisk_re)]
        for _, actual in sorted(found):
            if expected is None:
                expected = actual
            elif actual != expected:
                yield line.number, f"Expected: {expected}; Actual: {actual}"


def check_emphasis_style(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    return _emphasis_style(doc, params, UNDERSCORE_EM_RE, ASTERISK_EM_RE)


def check_strong_style(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    return _emphasis_style(doc, params, UNDERSCORE_STRONG_RE, ASTERISK_STRONG_RE)


def check_no_inline_html(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    allowed = {name.lower() for name in params.get("allowed_elements", [])}
    for line in doc.lines:
        if line.kind == "html":
            searchable = line.text
        elif line.kind in INLINE_KINDS:
            searchable = mask_code_spans(line.text)
        else:
            continue
        for m in TAG_RE.finditer(searchable):
            element = m.group(1).lower()
            if element not in allowed:
                yield line.number, f"Element: {element}"


def check_no_bare_urls(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    for line in doc.lines:
        if line.kind not in INLINE_KINDS:
            continue
        searchable = LINKS_RE.sub(lambda m: " " * len(m.group(0)), mask_code_spans(line.text))
        for m in BARE_URL_RE.finditer(searchable):
            yield line.number, f"Context: {m.group(0)}"


def check_no_emoji(doc: Document, params: Dict[str, Any]) -> Iterable[Finding]:
    for line in doc.lines:
        for m in EMOJI_RE.finditer(line.text):
            yield line.number, f"Character: U+{ord(m.group(0)):04X}; Column: {m.start() + 1}"


RULES: List[Rule] = [
    Rule("MD001", "heading-increment", "Heading levels should only increment by one level at a time",
         ("headings",), check_heading_increment),
    Rule("MD004", "ul-style", "Unordered list style",
         ("bullet", "ul"), check_ul_style, {"style": "consistent"}),
    Rule("MD007", "ul-indent", "Unordered list indentation",
         ("bullet", "ul", "indentation"), check_ul_indent,
         {"indent": 2, "start_indented": False, "start_indent": 2}),
    Rule("MD009", "no-trailing-spaces", "Trailing spaces",
         ("whitespace",), check_no_trailing_spaces, {"br_spaces": 2, "strict": False}),
    Rule("MD010", "no-hard-tabs", "Hard tabs",
         ("whitespace", "hard_tab"), check_no_hard_tabs,
         {"code_blocks": True, "ignore_code_languages": []}),
    Rule("MD012", "no-multiple-blanks", "Multiple consecutive blank lines",
         ("whitespace", "blank_lines"), check_no_multiple_blanks, {"maximum": 1}),
    Rule("MD013", "line-length", "Line length",
         ("line_length",), check_line_length,
         {"line_length": 80, "code_blocks": True, "tables": True, "headings": True, "strict": False}),
    Rule("MD018", "no-missing-space-atx", "No space after hash on atx style heading",
         ("headings", "atx", "spaces"), check_no_missing_space_atx),
    Rule("MD019", "no-multiple-space-atx", "Multiple spaces after hash on atx style heading",
         ("headings", "atx", "spaces"), check_no_multiple_space_atx),
    Rule("MD022", "blanks-around-headings", "Headings should be surrounded by blank lines",
         ("headings", "blank_lines"), check_blanks_around_headings,
         {"lines_above": 1, "lines_below": 1}),
    Rule("MD023", "heading-start-left", "Headings must start at the beginning of the line",
         ("headings", "spaces"), check_heading_start_left),
    Rule("MD024", "no-duplicate-heading", "Multiple headings with the same content",
         ("headings",), check_no_duplicate_heading, {"siblings_only": False}),
    Rule("MD025", "single-h1", "Multiple top-level headings in the same document",
         ("headings",), check_single_h1, {"level": 1}),
    Rule("MD031", "blanks-around-fences", "Fenced code blocks should be surrounded by blank lines",
         ("code", "blank_lines"), check_blanks_around_fences, {"list_items": True}),
    Rule("MD032", "blanks-around-lists", "Lists should be surrounded by blank lines",
         ("bullet", "ul", "ol", "blank_lines"), check_blanks_around_lists),
    Rule("MD033", "no-inline-html", "Inline HTML",
         ("html",), check_no_inline_html, {"allowed_elements": []}),
    Rule("MD034", "no-bare-urls", "Bare URL used",
         ("links", "url"), check_no_bare_urls),
    Rule("MD040", "fenced-code-language", "Fenced code blocks should have a language specified",
         ("code", "language"), check_fenced_code_language,
         {"allowed_languages": [], "language_only": False}),
    Rule("MD041", "first-line-heading", "First line in a file should be a top-level heading",
         ("headings",), check_first_line_heading, {"level": 1}),
    Rule("MD046", "code-block-style", "Code block style",
         ("code",), check_code_block_style, {"style": "consistent"}),
    Rule("MD047", "single-trailing-newline", "Files should end with a single newline character",
         ("blank_lines",), check_single_trailing_newline),
    Rule("MD049", "emphasis-style", "Emphasis style",
         ("emphasis",), check_emphasis_style, {"style": "consistent"}),
    Rule("MD050", "strong-style", "Strong style",
         ("emphasis",), check_strong_style, {"style": "consistent"}),
    Rule("TPL001", "no-emoji", "Emoji and icon characters are not allowed",
         ("templates",), check_no_emoji),
]

RULES_BY_ID: Dict[str, Rule] = {rule.id: rule for rule in RULES}


def rules_for_key(key: str) -> List[Rule]:
    """Rules matched by a configuration key: rule id, alias or tag (case-insensitive)."""
    wanted = key.lower()
    exact = [r for r in RULES if wanted in (r.id.lower(), r.alias.lower())]
    if exact:
        return exact
    return [r for r in RULES if wanted in r.tags]


def resolve_rules(config: Optional[Dict[str, Any]] = None) -> Dict[str, Dict[str, Any]]:
    """
    Resolve a markdownlint-style rule configuration.

    `default` applies first, then every other key in order. A value of
    false disables, true enables with default params, an object enables and
    overrides params.

    Returns:
        Enabled rule id -> effective params

    Raises:
        ConfigError: If a rule value is not a boolean or an object
    """
    config = dict(config or {})
    default_enabled = config.pop("default", True)
    state: Dict[str, Tuple[bool, Dict[str, Any]]] = {
        rule.id: (bool(default_enabled), {}) for rule in RULES
    }

    for key, value in config.items():
        if key.startswith("$") or key == "extends":
            continue
        targets = rules_for_key(key)
        if not targets:
            debug(f"ignoring unknown rule or tag: {key}")
            continue
        for rule in targets:
            if value is False:
                state[rule.id] = (False, {})
            elif value is True:
                state[rule.id] = (True, state[rule.id][1])
            elif isinstance(value, dict):
                state[rule.id] = (True, dict(value))
            else:
                raise ConfigError(f"Invalid value for rule '{key}': expected true, false or an object")

    return {
        rule_id: {**RULES_BY_ID[rule_id].defaults, **params}
        for rule_id, (enabled, params) in state.items()
        if enabled
    }
