"""Data models for the change classification pipeline.

Stability: stable
Tags: pipeline, model, dataclass

Frozen dataclasses for everything the four stages exchange: staged changes,
workspaces, categories, bumps, release fragments, README recommendations,
and the final report. The category -> bump and category -> README section
tables live in ``emitter`` as constant mappings over these enums.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Controlled vocabularies
# ---------------------------------------------------------------------------


class ChangeStatus(Enum):
    """Status of a staged file."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


# git --name-status letters; C (copy) and T (type change) count as edits
GIT_STATUS_CODES: dict[str, ChangeStatus] = {
    "A": ChangeStatus.ADDED,
    "M": ChangeStatus.MODIFIED,
    "D": ChangeStatus.DELETED,
    "R": ChangeStatus.RENAMED,
    "C": ChangeStatus.ADDED,
    "T": ChangeStatus.MODIFIED,
}


class ChangeCategory(Enum):
    """Conventional-commit category of a change."""

    FEATURE = "feature"
    FIX = "fix"
    REFACTOR = "refactor"
    PERFORMANCE = "performance"
    STYLE = "style"
    DOCS = "docs"
    TEST = "test"
    CHORE = "chore"
    CI = "ci"
    BUILD = "build"
    REVERT = "revert"

    @property
    def commit_type(self) -> str:
        """Keyword used in a commit header (``feat``, ``perf``, ...)."""
        return _COMMIT_TYPES.get(self, self.value)


_COMMIT_TYPES = {
    ChangeCategory.FEATURE: "feat",
    ChangeCategory.PERFORMANCE: "perf",
}


class VersionBump(Enum):
    """Semantic-version bump level."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


class WorkspaceKind(Enum):
    """Which prefix rule claimed a workspace."""

    PACKAGE = "package"
    APP = "app"
    PORTAL = "portal"
    BOT = "bot"
    DOCUMENTATION = "documentation"


# ---------------------------------------------------------------------------
# Collector output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StagedChange:
    """A single staged file.

    Attributes:
        path: Repository-relative path (new path for renames).
        status: Added, modified, deleted, or renamed.
        diff_hunk: Unified diff text for this file, if collected.
        old_path: Previous path for renames.
    """

    path: str
    status: ChangeStatus = ChangeStatus.MODIFIED
    diff_hunk: str | None = None
    old_path: str | None = None


@dataclass(frozen=True)
class StagedSnapshot:
    """Everything the collector read from the index."""

    changes: tuple[StagedChange, ...] = ()
    diff_text: str = ""

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(c.path for c in self.changes)


# ---------------------------------------------------------------------------
# Classifier output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PrefixRule:
    """One row of the workspace prefix table.

    ``pattern`` segments are literal except ``*``, which matches exactly
    one path segment.
    """

    pattern: str
    kind: WorkspaceKind

    @property
    def segments(self) -> tuple[str, ...]:
        return tuple(s for s in self.pattern.strip("/").split("/") if s)

    @property
    def specificity(self) -> tuple[int, int]:
        """Sort key: more segments first, then more literal segments."""
        segs = self.segments
        return (len(segs), sum(1 for s in segs if s != "*"))


@dataclass(frozen=True)
class Workspace:
    """A directory governed by its own manifest.

    Attributes:
        root_path: Repository-relative workspace root.
        declared_name: ``name`` read from the manifest this invocation.
        kind: Prefix rule kind that matched.
        changed_files: Staged paths under ``root_path``.
        has_readme: Whether the workspace root holds a README.
    """

    root_path: str
    declared_name: str
    kind: WorkspaceKind
    changed_files: frozenset[str] = frozenset()
    has_readme: bool = False


# ---------------------------------------------------------------------------
# Categorizer output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommitDraft:
    """A caller-supplied commit message split into its parts.

    Attributes:
        type_keyword: Raw type from a ``type(scope)!: subject`` header.
        scope: Scope from the header, if any.
        bang: Whether ``!`` preceded the header colon.
        subject: Header text after the prefix (or the whole first line).
        body_lines: Lines after the header, blank leading lines removed.
        bullets: ``- `` / ``* `` lines from the body, marker stripped.
        footers: Trailers from the final paragraph (``BREAKING CHANGE: ...``),
            continuation lines joined with newlines.
    """

    type_keyword: str | None = None
    scope: str | None = None
    bang: bool = False
    subject: str = ""
    body_lines: tuple[str, ...] = ()
    bullets: tuple[str, ...] = ()
    footers: tuple[str, ...] = ()


@dataclass(frozen=True)
class CategoryDecision:
    """Resolved category plus where it came from.

    ``source`` is one of ``explicit``, ``message``, ``heuristic``,
    ``default``.
    """

    category: ChangeCategory
    breaking: bool = False
    source: str = "default"
    reason: str = ""


# ---------------------------------------------------------------------------
# Emitter output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReleaseFragment:
    """Pending version bump and description for one workspace."""

    workspace_name: str
    bump: VersionBump
    body: tuple[str, ...]


@dataclass(frozen=True)
class ReadmeRecommendation:
    """README sections of one workspace that likely need a manual edit.

    An empty ``sections`` mapping means the README exists and nothing needs
    attention. A workspace without a README gets no recommendation at all.
    """

    workspace_name: str
    sections: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ReportWarning:
    """A non-fatal condition surfaced in the final report.

    Attributes:
        code: Warning class name (e.g. ``CategoryAmbiguousWarning``).
        source: Where it originated (workspace root, stage name).
        message: Human-readable text.
    """

    code: str
    source: str
    message: str


@dataclass
class WorkspaceOutcome:
    """Per-workspace result: a fragment (and optional README advice) or an error."""

    root_path: str
    kind: WorkspaceKind
    workspace: Workspace | None = None
    bump: VersionBump | None = None
    fragment: ReleaseFragment | None = None
    fragment_path: str | None = None
    readme: ReadmeRecommendation | None = None
    error: Any = None  # ChangescribeError

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "root": self.root_path,
            "kind": self.kind.value,
        }
        if self.workspace is not None:
            result["name"] = self.workspace.declared_name
            result["changed_files"] = sorted(self.workspace.changed_files)
            result["has_readme"] = self.workspace.has_readme
        if self.bump is not None:
            result["bump"] = self.bump.value
        if self.fragment is not None:
            result["fragment"] = {
                "workspace_name": self.fragment.workspace_name,
                "bump": self.fragment.bump.value,
                "body": list(self.fragment.body),
            }
        if self.fragment_path is not None:
            result["fragment_path"] = self.fragment_path
        if self.readme is not None:
            result["readme"] = dict(self.readme.sections)
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result


@dataclass
class PipelineReport:
    """Final output of one invocation.

    ``commit_message`` is None when the message could not be rendered;
    ``commit_error`` then holds the ``CommitMessageError``.
    """

    commit_message: str | None
    decision: CategoryDecision
    outcomes: list[WorkspaceOutcome] = field(default_factory=list)
    unmanaged_paths: list[str] = field(default_factory=list)
    warnings: list[ReportWarning] = field(default_factory=list)
    commit_error: Any = None  # CommitMessageError

    @property
    def fragments(self) -> list[ReleaseFragment]:
        return [o.fragment for o in self.outcomes if o.fragment is not None]

    @property
    def readme_recommendations(self) -> dict[str, dict[str, str]]:
        """workspace name -> section -> instruction."""
        return {
            o.readme.workspace_name: dict(o.readme.sections)
            for o in self.outcomes
            if o.readme is not None
        }

    @property
    def errors(self) -> list[Any]:
        return [o.error for o in self.outcomes if o.error is not None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "commit_message": self.commit_message,
            "commit_error": self.commit_error.to_dict() if self.commit_error is not None else None,
            "category": self.decision.category.value,
            "breaking": self.decision.breaking,
            "category_source": self.decision.source,
            "workspaces": [o.to_dict() for o in self.outcomes],
            "unmanaged_paths": list(self.unmanaged_paths),
            "warnings": [
                {"code": w.code, "source": w.source, "message": w.message}
                for w in self.warnings
            ],
        }
