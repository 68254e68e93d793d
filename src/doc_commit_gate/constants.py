"""Constants for the docgate pipeline."""

# Commit message gate
COMMIT_TYPES = ["feat", "fix", "docs", "style", "refactor", "test", "chore"]

COMMIT_MESSAGE_PATTERN = r"^(feat|fix|docs|style|refactor|test|chore)(\([^)]+\))?: .+"

COMMIT_MESSAGE_EXAMPLES = [
    "feat(templates): add new template",
    "fix: correct commit message",
]

# Configuration files, relative to the repository root
DEFAULT_HOOKS_FILE = "lefthook.yml"

LINT_CONFIG_FILENAMES = [
    ".markdownlint-cli2.jsonc",
    ".markdownlint-cli2.yaml",
    ".markdownlint.jsonc",
    ".markdownlint.json",
    ".markdownlint.yaml",
    ".markdownlint.yml",
]

DEFAULT_MARKDOWN_GLOB = "*.md"

# prettier never touches these
FORMAT_IGNORES = ["node_modules/**", ".git/**"]

DEFAULT_OUTPUT_FORMATTER = "markdownlint-cli2-formatter-default"

# Marker written into installed git hook shims
HOOK_SHIM_MARKER = "# installed by docgate"

# Unstaged changes hidden during pre-commit, inside the git directory
UNSTAGED_PATCH_NAME = "docgate-unstaged.patch"
