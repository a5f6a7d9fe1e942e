"""Repository change classification and documentation update pipeline.

Stability: stable
Tags: pipeline, changeset, conventional-commits, monorepo

Turns the staged changes of a monorepo into a conventional commit message,
one changelog fragment per affected workspace, and a report of README
sections that likely need a manual edit.

Usage::

    from changescribe.pipeline import ChangeRequest, run_pipeline

    report = run_pipeline(
        ChangeRequest(message="feat(status): add retry config\\n\\n- add RETRY_LIMIT"),
        repo_dir=Path("."),
        write=True,
    )
    print(report.commit_message)
"""

from __future__ import annotations

from .categorizer import categorize, detect_breaking, normalize_type, parse_commit_message
from .classifier import DEFAULT_RULES, ManifestResolver, classify_changes, match_workspace_root
from .collector import collect_staged_changes, load_fixture_snapshot
from .emitter import (
    BUMP_TABLE,
    QUIET_CATEGORY_SIGNALS,
    README_SECTION_TABLE,
    compute_bump,
    parse_fragment,
    render_commit_message,
    render_fragment,
)
from .model import (
    CategoryDecision,
    ChangeCategory,
    ChangeStatus,
    PipelineReport,
    PrefixRule,
    ReadmeRecommendation,
    ReleaseFragment,
    StagedChange,
    StagedSnapshot,
    VersionBump,
    Workspace,
    WorkspaceKind,
)
from .runner import ChangeRequest, run_pipeline

__all__ = [
    "run_pipeline",
    "ChangeRequest",
    # stages
    "collect_staged_changes",
    "load_fixture_snapshot",
    "classify_changes",
    "match_workspace_root",
    "ManifestResolver",
    "DEFAULT_RULES",
    "categorize",
    "detect_breaking",
    "normalize_type",
    "parse_commit_message",
    "compute_bump",
    "render_fragment",
    "parse_fragment",
    "render_commit_message",
    "BUMP_TABLE",
    "README_SECTION_TABLE",
    "QUIET_CATEGORY_SIGNALS",
    # models
    "CategoryDecision",
    "ChangeCategory",
    "ChangeStatus",
    "PipelineReport",
    "PrefixRule",
    "ReadmeRecommendation",
    "ReleaseFragment",
    "StagedChange",
    "StagedSnapshot",
    "VersionBump",
    "Workspace",
    "WorkspaceKind",
]
