"""Version bumps, changelog fragments, and README recommendations.

Stability: stable
Tags: pipeline, emitter, changeset, readme

Everything here is a structural transform over caller-supplied content:
bullets come from the commit body, never from generated prose, and README
advice is report data, never a file edit.

Fragment format::

    ---
    '<workspaceName>': <major|minor|patch>
    ---

    - <bullet>
    - <bullet>

Usage::

    from changescribe.pipeline.emitter import compute_bump, render_fragment

    bump = compute_bump(ChangeCategory.FEATURE, breaking=False)   # MINOR
    text = render_fragment(build_fragment("@scope/dto", bump, ["add parser"]))
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from pathlib import Path

from changescribe.core.errors import (
    CommitMessageError,
    EmptyFragmentError,
    FragmentParseError,
    FragmentWriteError,
)
from changescribe.logging import get_logger

from .categorizer import path_matches
from .model import (
    ChangeCategory,
    ChangeStatus,
    CommitDraft,
    ReadmeRecommendation,
    ReleaseFragment,
    StagedChange,
    VersionBump,
    Workspace,
)

log = get_logger(__name__)

# ---------------------------------------------------------------------------
# Version bumps
# ---------------------------------------------------------------------------

BUMP_TABLE: dict[tuple[ChangeCategory, bool], VersionBump] = {
    (category, breaking): (
        VersionBump.MAJOR if breaking
        else VersionBump.MINOR if category is ChangeCategory.FEATURE
        else VersionBump.PATCH
    )
    for category in ChangeCategory
    for breaking in (False, True)
}


def compute_bump(category: ChangeCategory, breaking: bool) -> VersionBump:
    """Look up the bump for ``(category, breaking)``."""
    return BUMP_TABLE[(category, bool(breaking))]


# ---------------------------------------------------------------------------
# Fragments
# ---------------------------------------------------------------------------

_FRAGMENT_RE = re.compile(
    r"\A---\n"
    r"'(?P<name>(?:[^']|'')+)': (?P<bump>major|minor|patch)\n"
    r"---\n"
    r"\n"
    r"(?P<body>.*?)\n?\Z",
    re.DOTALL,
)
_FRAGMENT_BULLET_RE = re.compile(r"^- (?P<text>.+)$")


def _clean_bullet(text: str) -> str:
    return " ".join(text.split())


def build_fragment(
    workspace_name: str,
    bump: VersionBump,
    bullets: Iterable[str],
) -> ReleaseFragment:
    """Create a fragment, rejecting an empty body.

    Raises:
        EmptyFragmentError: If no non-blank bullet remains.
    """
    body = tuple(b for b in (_clean_bullet(x) for x in bullets) if b)
    if not body:
        raise EmptyFragmentError(
            f"No bullet lines for {workspace_name}; supply bullets or a '- ' body",
        ).with_context(workspace_name=workspace_name)
    return ReleaseFragment(workspace_name=workspace_name, bump=bump, body=body)


def render_fragment(fragment: ReleaseFragment) -> str:
    """Serialize a fragment; ``parse_fragment`` inverts this exactly."""
    name = fragment.workspace_name.replace("'", "''")
    lines = ["---", f"'{name}': {fragment.bump.value}", "---", ""]
    lines.extend(f"- {bullet}" for bullet in fragment.body)
    return "\n".join(lines) + "\n"


def parse_fragment(text: str) -> ReleaseFragment:
    """Parse fragment text back into a ``ReleaseFragment``.

    Raises:
        FragmentParseError: If the header or any body line is malformed,
            or the body is empty.
    """
    normalized = text.replace("\r\n", "\n")
    match = _FRAGMENT_RE.match(normalized)
    if not match:
        raise FragmentParseError("Text is not a changelog fragment (bad front matter)")

    body: list[str] = []
    for line in match.group("body").split("\n"):
        if not line.strip():
            continue
        bullet = _FRAGMENT_BULLET_RE.match(line)
        if not bullet:
            raise FragmentParseError(f"Fragment body line is not a bullet: {line!r}")
        body.append(bullet.group("text"))
    if not body:
        raise FragmentParseError("Fragment body is empty")

    return ReleaseFragment(
        workspace_name=match.group("name").replace("''", "'"),
        bump=VersionBump(match.group("bump")),
        body=tuple(body),
    )


def _slug(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "workspace"


def fragment_filename(
    category: ChangeCategory,
    workspace: Workspace,
    *,
    taken: set[str],
    directory: Path | None = None,
) -> str:
    """Choose a fragment filename unique within this invocation.

    ``<category>-<slug>.md``, suffixed ``-2``, ``-3``... when the name is
    already in *taken* or exists in *directory*. The chosen name is added
    to *taken*.
    """
    base = f"{category.value}-{_slug(workspace.declared_name)}"
    candidate = f"{base}.md"
    counter = 2
    while candidate in taken or (directory is not None and (directory / candidate).exists()):
        candidate = f"{base}-{counter}.md"
        counter += 1
    taken.add(candidate)
    return candidate


class FragmentWriter:
    """Writes rendered fragments into the changeset directory.

    Each write is independent: a failure raises ``FragmentWriteError`` for
    that workspace and leaves already-written siblings in place.
    """

    def __init__(self, directory: Path):
        self.directory = directory
        self._taken: set[str] = set()

    def allocate(self, category: ChangeCategory, workspace: Workspace) -> Path:
        name = fragment_filename(category, workspace, taken=self._taken, directory=self.directory)
        return self.directory / name

    def write(self, fragment: ReleaseFragment, path: Path) -> Path:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # "x": never overwrite a fragment that appeared since allocation
            with path.open("x", encoding="utf-8", newline="\n") as fh:
                fh.write(render_fragment(fragment))
        except OSError as exc:
            raise FragmentWriteError(
                f"Cannot write fragment for {fragment.workspace_name}: {exc}",
                cause=exc,
            ).with_context(path=str(path)) from exc
        log.info("emitter.fragment_written", path=str(path), bump=fragment.bump.value)
        return path


# ---------------------------------------------------------------------------
# README recommendations
# ---------------------------------------------------------------------------

SECTION_INSTRUCTIONS: dict[str, str] = {
    "Features": "List the new or changed capability in the feature overview.",
    "Usage": "Update usage examples so they match the current public interface.",
    "Troubleshooting": "Describe the fixed symptom and how to tell the fix is in place.",
    "BreakingChanges": "Document the incompatible change and the migration steps.",
    "Configuration": "Review documented configuration options and their defaults.",
    "EnvironmentVariables": "Add, rename, or remove environment variables in the reference table.",
    "Scripts": "Check that documented scripts match the manifest's scripts.",
    "Dependencies": "Check that documented requirements match the manifest's dependencies.",
    "TableOfContents": "Refresh the table of contents and internal links after the README edit.",
    "API": "Update the API reference for added, removed, or changed exports.",
}

README_SECTION_TABLE: dict[ChangeCategory, tuple[str, ...]] = {
    ChangeCategory.FEATURE: ("Features", "Usage"),
    ChangeCategory.FIX: ("Troubleshooting", "Features"),
    ChangeCategory.REFACTOR: (),
    ChangeCategory.PERFORMANCE: (),
    ChangeCategory.STYLE: (),
    ChangeCategory.DOCS: (),
    ChangeCategory.TEST: (),
    ChangeCategory.CHORE: (),
    ChangeCategory.CI: (),
    ChangeCategory.BUILD: (),
    ChangeCategory.REVERT: (),
}

BREAKING_SECTIONS: tuple[str, ...] = ("BreakingChanges", "Configuration", "Usage")

# Change signals that add sections on top of the category's own
SIGNAL_SECTIONS: dict[str, tuple[str, ...]] = {
    "config": ("Configuration", "EnvironmentVariables"),
    "manifest": ("Scripts", "Dependencies"),
    "readme": ("TableOfContents",),
    "api": ("Usage", "API"),
}

# Categories that only react to README or manifest edits
QUIET_CATEGORY_SIGNALS: dict[ChangeCategory, frozenset[str]] = {
    category: frozenset({"manifest", "readme"})
    for category in (
        ChangeCategory.DOCS,
        ChangeCategory.TEST,
        ChangeCategory.CHORE,
        ChangeCategory.CI,
        ChangeCategory.BUILD,
    )
}

CONFIG_PATTERNS = (
    "*/config/*", "config/*", ".env", ".env.*", "*/.env", "*/.env.*",
    "settings.*", "config.*", "*.config.json",
)

_EXPORT_LINE_RE = re.compile(r"^[+-]\s*export\s", re.MULTILINE)


def _relative(path: str, root: str) -> str:
    prefix = root.rstrip("/") + "/"
    return path[len(prefix):] if path.startswith(prefix) else path


def detect_signals(
    workspace: Workspace,
    changes: Sequence[StagedChange],
    *,
    manifest_names: Sequence[str],
    readme_names: Sequence[str],
    api_changed: bool | None = None,
) -> set[str]:
    """Which ``SIGNAL_SECTIONS`` keys apply to this workspace's changes.

    ``api_changed`` overrides the diff proxy (an added or removed line that
    starts with ``export``) when given.
    """
    signals: set[str] = set()
    for change in changes:
        rel = _relative(change.path, workspace.root_path)
        if rel in manifest_names:
            signals.add("manifest")
        if rel in readme_names:
            signals.add("readme")
        if path_matches(rel, CONFIG_PATTERNS):
            signals.add("config")

    if api_changed is None:
        api_changed = any(
            c.diff_hunk and _EXPORT_LINE_RE.search(c.diff_hunk)
            for c in changes
            if c.status is not ChangeStatus.DELETED
        )
    if api_changed:
        signals.add("api")
    return signals


def recommend_readme_sections(
    category: ChangeCategory,
    breaking: bool,
    signals: Iterable[str] = (),
) -> dict[str, str]:
    """Section -> instruction mapping for one workspace.

    Order: category sections, breaking sections, then signal sections,
    with duplicates dropped. Categories in ``QUIET_CATEGORY_SIGNALS`` keep
    only the signals listed there.
    """
    ordered: list[str] = list(README_SECTION_TABLE[category])
    if breaking:
        ordered.extend(BREAKING_SECTIONS)
    allowed = QUIET_CATEGORY_SIGNALS.get(category)
    for signal in sorted(signals):
        if allowed is not None and signal not in allowed:
            continue
        ordered.extend(SIGNAL_SECTIONS.get(signal, ()))

    sections: dict[str, str] = {}
    for name in ordered:
        sections.setdefault(name, SECTION_INSTRUCTIONS[name])
    return sections


def build_readme_recommendation(
    workspace: Workspace,
    category: ChangeCategory,
    breaking: bool,
    signals: Iterable[str] = (),
) -> ReadmeRecommendation | None:
    """Recommendation for a workspace, or None when it has no README."""
    if not workspace.has_readme:
        return None
    return ReadmeRecommendation(
        workspace_name=workspace.declared_name,
        sections=recommend_readme_sections(category, breaking, signals),
    )


# ---------------------------------------------------------------------------
# Commit message
# ---------------------------------------------------------------------------


def default_scope(roots: Sequence[str]) -> str | None:
    """Directory name of the single affected workspace root, else None."""
    if len(roots) == 1:
        return roots[0].rstrip("/").rsplit("/", 1)[-1]
    return None


def render_commit_message(
    category: ChangeCategory,
    *,
    subject: str,
    scope: str | None = None,
    breaking: bool = False,
    bullets: Sequence[str] = (),
    footers: Sequence[str] = (),
    max_header_length: int = 72,
) -> str:
    """Render ``type(scope)!: subject``, a blank line, then the bullet body.

    Raises:
        CommitMessageError: If the subject is empty or the header exceeds
            *max_header_length* characters.
    """
    subject = " ".join(subject.split())
    if not subject:
        raise CommitMessageError("Commit subject is empty")

    prefix = category.commit_type
    if scope:
        prefix += f"({scope})"
    if breaking:
        prefix += "!"
    header = f"{prefix}: {subject}"
    if len(header) > max_header_length:
        raise CommitMessageError(
            f"Commit header is {len(header)} characters; limit is {max_header_length}",
        ).with_context(header=header)

    parts = [header]
    body = [f"- {_clean_bullet(b)}" for b in bullets if _clean_bullet(b)]
    if body:
        parts.extend(["", *body])
    if footers:
        parts.extend(["", *footers])
    return "\n".join(parts)


def bullets_for(draft: CommitDraft, explicit: Sequence[str] | None) -> tuple[str, ...]:
    """Caller bullets win over bullets parsed from the draft body."""
    if explicit:
        return tuple(explicit)
    return draft.bullets
