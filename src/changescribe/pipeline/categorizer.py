"""Resolve the conventional-commit category and breaking flag.

Stability: stable
Tags: pipeline, categorizer, commit, conventional-commits

Precedence, first hit wins:

1. Explicit type keyword supplied by the caller.
2. Type keyword in the draft commit header (``feat(dto): ...``).
3. Path/diff heuristics over the staged snapshot.
4. ``chore``, recorded with a ``CategoryAmbiguousWarning``.

Breaking detection is purely textual: the literal ``BREAKING CHANGE`` in
the message, or ``!`` right before the colon of the header prefix.

Usage::

    from changescribe.pipeline.categorizer import categorize, parse_commit_message

    draft = parse_commit_message("feat(dto)!: drop legacy fields\\n\\n- remove v1 keys")
    decision = categorize(draft=draft, message_text=text, changes=snapshot.changes)
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from fnmatch import fnmatch

from changescribe.core.errors import CategoryError

from .model import CategoryDecision, ChangeCategory, CommitDraft, StagedChange

# Conventional commit header: type(scope)!: subject
_HEADER_RE = re.compile(
    r"^(?P<type>[A-Za-z]+)"         # type (feat, fix, etc.)
    r"(?:\((?P<scope>[^)]*)\))?"    # optional scope
    r"(?P<bang>!)?"                 # optional breaking marker
    r":\s*"                         # colon + space
    r"(?P<desc>.*)"                 # description
    r"$"
)

_BREAKING_MARKER = "BREAKING CHANGE"

_BULLET_RE = re.compile(r"^\s*[-*]\s+(?P<text>.+?)\s*$")
_FOOTER_RE = re.compile(r"^(?:BREAKING CHANGE|BREAKING-CHANGE|[A-Z][\w-]*)(?::\s| #)")

# Exported-symbol proxy: an added line that starts an export
_ADDED_EXPORT_RE = re.compile(r"^\+\s*export\s", re.MULTILINE)

TYPE_ALIASES: dict[str, ChangeCategory] = {
    "feat": ChangeCategory.FEATURE,
    "feature": ChangeCategory.FEATURE,
    "fix": ChangeCategory.FIX,
    "bugfix": ChangeCategory.FIX,
    "hotfix": ChangeCategory.FIX,
    "refactor": ChangeCategory.REFACTOR,
    "perf": ChangeCategory.PERFORMANCE,
    "performance": ChangeCategory.PERFORMANCE,
    "style": ChangeCategory.STYLE,
    "docs": ChangeCategory.DOCS,
    "doc": ChangeCategory.DOCS,
    "test": ChangeCategory.TEST,
    "tests": ChangeCategory.TEST,
    "chore": ChangeCategory.CHORE,
    "ci": ChangeCategory.CI,
    "build": ChangeCategory.BUILD,
    "revert": ChangeCategory.REVERT,
}

# Path globs for the "only X files" heuristics
TEST_PATTERNS = (
    "*.test.*", "*.spec.*", "*_test.*", "test_*.py",
    "*/__tests__/*", "*/tests/*", "*/test/*", "tests/*", "test/*", "*/e2e/*",
)
DOC_PATTERNS = (
    "*.md", "*.mdx", "*.rst", "documentation/*", "docs/*", "*/docs/*",
)
CI_PATTERNS = (
    ".github/workflows/*", ".gitlab-ci.yml", ".circleci/*", "azure-pipelines.yml",
    "Jenkinsfile", ".buildkite/*",
)
BUILD_PATTERNS = (
    "Dockerfile", "*/Dockerfile", "*.dockerfile", "docker-compose*.yml", "Makefile",
    "*/Makefile", "tsconfig*.json", "*/tsconfig*.json", "webpack.config.*", "*/webpack.config.*",
    "vite.config.*", "*/vite.config.*", "rollup.config.*", "*/rollup.config.*",
    "turbo.json", "nx.json", "pnpm-workspace.yaml", "pnpm-lock.yaml",
    "package-lock.json", "*/package-lock.json", "yarn.lock",
)


# ---------------------------------------------------------------------------
# Message parsing
# ---------------------------------------------------------------------------


def _split_footers(body: list[str]) -> tuple[list[str], list[str]]:
    """Separate the trailing footer paragraph from the rest of the body.

    Footers live only in the final paragraph, and only when its first line
    is a ``Token: value`` trailer. Lines that do not start a new trailer
    continue the previous one.
    """
    start = len(body)
    while start > 0 and body[start - 1].strip():
        start -= 1
    last = body[start:]
    if not last or not _FOOTER_RE.match(last[0].strip()):
        return body, []

    footers: list[str] = []
    for line in last:
        text = line.strip()
        if footers and not _FOOTER_RE.match(text):
            footers[-1] += "\n" + text
        else:
            footers.append(text)
    return body[:start], footers


def parse_commit_message(text: str) -> CommitDraft:
    """Split a draft commit message into header parts, body, and bullets.

    A first line that is not a conventional header with a known type
    becomes the subject verbatim with no type keyword.
    """
    lines = text.strip("\n").splitlines()
    if not lines or not lines[0].strip():
        return CommitDraft()

    header = lines[0].strip()
    body = list(lines[1:])
    while body and not body[0].strip():
        body.pop(0)
    while body and not body[-1].strip():
        body.pop()

    prose, footers = _split_footers(body)
    bullets: list[str] = []
    for line in prose:
        bullet = _BULLET_RE.match(line)
        if bullet:
            bullets.append(bullet.group("text"))

    match = _HEADER_RE.match(header)
    if match and match.group("type").lower() in TYPE_ALIASES:
        return CommitDraft(
            type_keyword=match.group("type").lower(),
            scope=(match.group("scope") or "").strip() or None,
            bang=match.group("bang") is not None,
            subject=match.group("desc").strip(),
            body_lines=tuple(body),
            bullets=tuple(bullets),
            footers=tuple(footers),
        )
    return CommitDraft(
        subject=header,
        body_lines=tuple(body),
        bullets=tuple(bullets),
        footers=tuple(footers),
    )


def normalize_type(keyword: str) -> ChangeCategory:
    """Map a type keyword or alias to a ``ChangeCategory``.

    Raises:
        CategoryError: If the keyword is unknown.
    """
    key = keyword.strip().lower()
    if key in TYPE_ALIASES:
        return TYPE_ALIASES[key]
    raise CategoryError(
        f"Unknown commit type {keyword!r}; expected one of {', '.join(sorted(TYPE_ALIASES))}",
    ).with_context(type=keyword)


def detect_breaking(text: str) -> bool:
    """True iff *text* carries a breaking-change marker.

    Markers: the literal ``BREAKING CHANGE`` anywhere, or ``!`` right
    before the colon of a ``type(scope)`` header prefix.
    """
    if _BREAKING_MARKER in text:
        return True
    first_line = text.strip("\n").splitlines()[0].strip() if text.strip() else ""
    match = _HEADER_RE.match(first_line)
    return bool(match and match.group("bang"))


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------


def path_matches(path: str, patterns: Sequence[str]) -> bool:
    name = path.rsplit("/", 1)[-1]
    return any(fnmatch(path, p) or fnmatch(name, p) for p in patterns)


def is_test_path(path: str) -> bool:
    return path_matches(path, TEST_PATTERNS)


def is_doc_path(path: str) -> bool:
    return path_matches(path, DOC_PATTERNS)


def is_ci_path(path: str) -> bool:
    return path_matches(path, CI_PATTERNS)


def is_build_path(path: str) -> bool:
    return path_matches(path, BUILD_PATTERNS)


# Ordered: a test-only change under docs/ still counts as test
_PATH_HEURISTICS: tuple[tuple[ChangeCategory, Callable[[str], bool], str], ...] = (
    (ChangeCategory.TEST, is_test_path, "only test files staged"),
    (ChangeCategory.DOCS, is_doc_path, "only documentation files staged"),
    (ChangeCategory.CI, is_ci_path, "only CI configuration staged"),
    (ChangeCategory.BUILD, is_build_path, "only build configuration staged"),
)


def has_added_exports(diff_text: str) -> bool:
    """True if any added diff line starts an ``export`` declaration."""
    return bool(_ADDED_EXPORT_RE.search(diff_text))


def infer_category(
    changes: Iterable[StagedChange],
    diff_text: str = "",
) -> tuple[ChangeCategory, str] | None:
    """Best-effort category from staged paths and diff.

    Returns:
        ``(category, reason)`` or None when there is no signal.
    """
    paths = [c.path for c in changes]
    if paths:
        for category, predicate, reason in _PATH_HEURISTICS:
            if all(predicate(p) for p in paths):
                return category, reason
    if has_added_exports(diff_text):
        return ChangeCategory.FEATURE, "new exported symbols in diff"
    return None


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def categorize(
    *,
    explicit_type: str | None = None,
    draft: CommitDraft | None = None,
    message_text: str = "",
    changes: Iterable[StagedChange] = (),
    diff_text: str = "",
) -> CategoryDecision:
    """Resolve one category and the breaking flag for this invocation.

    Args:
        explicit_type: Caller-supplied type keyword; trusted as-is.
        draft: Parsed draft message (parsed from ``message_text`` if None).
        message_text: Raw draft commit message used for breaking detection.
        changes: Staged changes for heuristics.
        diff_text: Unified staged diff for heuristics.

    Raises:
        CategoryError: If ``explicit_type`` is not a known keyword.
    """
    draft = draft if draft is not None else parse_commit_message(message_text)
    breaking = detect_breaking(message_text) or draft.bang

    if explicit_type:
        return CategoryDecision(
            category=normalize_type(explicit_type),
            breaking=breaking,
            source="explicit",
            reason=f"caller supplied {explicit_type!r}",
        )

    if draft.type_keyword:
        return CategoryDecision(
            category=TYPE_ALIASES[draft.type_keyword],
            breaking=breaking,
            source="message",
            reason=f"commit header type {draft.type_keyword!r}",
        )

    inferred = infer_category(changes, diff_text)
    if inferred is not None:
        category, reason = inferred
        return CategoryDecision(category=category, breaking=breaking, source="heuristic", reason=reason)

    return CategoryDecision(
        category=ChangeCategory.CHORE,
        breaking=breaking,
        source="default",
        reason="no category signal; defaulted to chore",
    )
