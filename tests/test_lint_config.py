"""Tests for lint configuration loading (JSONC, YAML, schema validation)."""

from pathlib import Path

import pytest

from doc_commit_gate.config import ConfigError
from doc_commit_gate.constants import DEFAULT_OUTPUT_FORMATTER
from doc_commit_gate.lint_config import (
    find_lint_config,
    is_ignored,
    load_lint_config,
    strip_jsonc,
)


PROJECT_ROOT = Path(__file__).resolve().parents[1]


# =============================================================================
# FIXTURES
# =============================================================================

JSONC_CONFIG = """{
  // line comment
  "config": {
    "default": true, /* block comment */
    "MD013": false,
    "MD046": { "style": "fenced" },
  },
  "ignores": ["vendor/**", "http://not-a-comment/**",],
}
"""

YAML_CONFIG = """
config:
  MD013: false
ignores:
  - build/**
outputFormatters:
  - [markdownlint-cli2-formatter-summarize]
"""

BAD_TYPE_CONFIG = """{
  "ignores": "node_modules/**"
}
"""

UNKNOWN_FORMATTER_CONFIG = """{
  "outputFormatters": [["markdownlint-cli2-formatter-junit"]]
}
"""


# =============================================================================
# TESTS
# =============================================================================

class TestStripJsonc:

    def test_comments_and_trailing_commas(self):
        stripped = strip_jsonc('{"a": 1, // note\n "b": [1, 2,], /* x */}')
        assert stripped.replace(" ", "").replace("\n", "") == '{"a":1,"b":[1,2]}'

    def test_comment_markers_inside_strings_survive(self):
        assert strip_jsonc('{"url": "https://example.com/*x*/"}') == '{"url": "https://example.com/*x*/"}'

    def test_unterminated_block_comment(self):
        with pytest.raises(ConfigError):
            strip_jsonc('{"a": 1 /* never closed')


class TestLoadLintConfig:

    def test_jsonc_file(self, tmp_path):
        path = tmp_path / ".markdownlint-cli2.jsonc"
        path.write_text(JSONC_CONFIG, encoding="utf-8")

        config = load_lint_config(str(path))

        assert config.path == path
        assert config.base_dir == tmp_path.resolve()
        assert config.ignores == ["vendor/**", "http://not-a-comment/**"]
        assert config.output_formatters == [DEFAULT_OUTPUT_FORMATTER]
        rules = config.resolved_rules()
        assert "MD013" not in rules
        assert rules["MD046"]["style"] == "fenced"

    def test_yaml_file(self, tmp_path):
        path = tmp_path / ".markdownlint-cli2.yaml"
        path.write_text(YAML_CONFIG, encoding="utf-8")

        config = load_lint_config(str(path))

        assert config.ignores == ["build/**"]
        assert config.output_formatters == ["markdownlint-cli2-formatter-summarize"]

    def test_bare_markdownlint_file_is_rule_config(self, tmp_path):
        path = tmp_path / ".markdownlint.json"
        path.write_text('{"MD013": false}', encoding="utf-8")

        config = load_lint_config(str(path))

        assert config.rules == {"MD013": False}
        assert config.ignores == []

    def test_schema_violation(self, tmp_path):
        path = tmp_path / ".markdownlint-cli2.jsonc"
        path.write_text(BAD_TYPE_CONFIG, encoding="utf-8")

        with pytest.raises(ConfigError) as exc_info:
            load_lint_config(str(path))
        assert "ignores" in str(exc_info.value)

    def test_unknown_formatter(self, tmp_path):
        path = tmp_path / ".markdownlint-cli2.jsonc"
        path.write_text(UNKNOWN_FORMATTER_CONFIG, encoding="utf-8")

        with pytest.raises(ConfigError) as exc_info:
            load_lint_config(str(path))
        assert "junit" in str(exc_info.value)

    def test_unparsable_file(self, tmp_path):
        path = tmp_path / ".markdownlint-cli2.jsonc"
        path.write_text("{ not json", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_lint_config(str(path))

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_lint_config(str(tmp_path / "missing.jsonc"))

    def test_defaults_without_a_file(self, tmp_path):
        config = load_lint_config(start=tmp_path)
        assert config.path is None
        assert config.rules == {}
        assert config.output_formatters == [DEFAULT_OUTPUT_FORMATTER]

    def test_discovery_walks_up(self, tmp_path):
        path = tmp_path / ".markdownlint-cli2.jsonc"
        path.write_text(JSONC_CONFIG, encoding="utf-8")
        nested = tmp_path / "docs" / "guides"
        nested.mkdir(parents=True)

        assert find_lint_config(nested) == path.resolve()
        assert load_lint_config(start=nested).ignores == ["vendor/**", "http://not-a-comment/**"]


class TestShippedConfig:
    """The repository's own .markdownlint-cli2.jsonc."""

    def test_loads_and_validates(self):
        config = load_lint_config(str(PROJECT_ROOT / ".markdownlint-cli2.jsonc"))
        rules = config.resolved_rules()

        for disabled in ("MD013", "MD033", "MD034", "MD024", "MD041"):
            assert disabled not in rules
        assert rules["MD007"]["indent"] == 2
        assert rules["MD031"]["list_items"] is False
        assert rules["MD046"]["style"] == "fenced"
        assert rules["MD049"]["style"] == "asterisk"
        assert rules["MD050"]["style"] == "asterisk"
        assert "TPL001" in rules
        assert config.ignores == ["node_modules/**", ".git/**", "package-lock.json"]
        assert config.output_formatters == [DEFAULT_OUTPUT_FORMATTER]


class TestIsIgnored:

    def test_relative_and_absolute_paths(self, tmp_path):
        patterns = ["node_modules/**"]
        assert is_ignored(str(tmp_path / "node_modules" / "x" / "README.md"), patterns, tmp_path)
        assert not is_ignored(str(tmp_path / "docs" / "README.md"), patterns, tmp_path)

    def test_no_patterns(self, tmp_path):
        assert is_ignored(str(tmp_path / "a.md"), [], tmp_path) is False
