"""Run the four pipeline stages and assemble the report.

Stability: stable
Tags: pipeline, orchestration, report

Architecture::

    ┌───────────┐   ┌────────────┐   ┌─────────────┐   ┌──────────┐
    │ Collector │ → │ Classifier │ → │ Categorizer │ → │ Emitter  │
    └───────────┘   └────────────┘   └─────────────┘   └──────────┘
          │               │               │                  │
     CollectionError  ManifestReadError  CommitMessageError  EmptyFragmentError
     (fatal)          (per workspace)    (report-level)      FragmentWriteError
                                                             (per workspace)

Each invocation owns its ``ManifestResolver`` and ``FragmentWriter``; no
state survives the call. Workspaces are reported in root-path order.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from changescribe.core.config import ChangescribeSettings, find_repo_root, get_settings
from changescribe.core.errors import (
    CategoryAmbiguousWarning,
    ChangescribeError,
    CommitMessageError,
    is_workspace_scoped,
)
from changescribe.logging import bind_context, get_logger, log_step, new_run_id, push_context

from .categorizer import categorize, parse_commit_message
from .classifier import DEFAULT_RULES, ManifestResolver, classify_changes, resolve_workspaces
from .collector import collect_staged_changes, git_toplevel
from .emitter import (
    FragmentWriter,
    build_fragment,
    build_readme_recommendation,
    bullets_for,
    compute_bump,
    default_scope,
    detect_signals,
    render_commit_message,
)
from .model import (
    PipelineReport,
    PrefixRule,
    ReportWarning,
    StagedSnapshot,
    WorkspaceOutcome,
)

log = get_logger(__name__)


@dataclass(frozen=True)
class ChangeRequest:
    """Caller input for one invocation.

    Attributes:
        message: Draft commit message (header, blank line, ``- `` bullets).
        explicit_type: Type keyword that overrides every heuristic.
        scope: Commit scope; defaults to the single workspace's directory.
        subject: Commit subject; defaults to the draft header's subject.
        bullets: Fragment/commit bullets; default to the draft's bullets.
        api_changed: Explicit public-interface flag; None uses the diff proxy.
    """

    message: str = ""
    explicit_type: str | None = None
    scope: str | None = None
    subject: str | None = None
    bullets: tuple[str, ...] = field(default_factory=tuple)
    api_changed: bool | None = None


def run_pipeline(
    request: ChangeRequest,
    *,
    repo_dir: Path | None = None,
    snapshot: StagedSnapshot | None = None,
    settings: ChangescribeSettings | None = None,
    rules: Sequence[PrefixRule] = DEFAULT_RULES,
    write: bool = False,
) -> PipelineReport:
    """Collect, classify, categorize, and emit for the staged changes.

    Args:
        request: Caller-supplied commit intent.
        repo_dir: Directory inside the repository (default: cwd).
        snapshot: Pre-collected snapshot; skips git (fixtures, tests).
        settings: Settings to use (default: ``get_settings``).
        rules: Workspace prefix rules.
        write: Write fragment files to the changeset directory.

    Returns:
        The assembled ``PipelineReport``.

    Raises:
        CollectionError: If staged changes cannot be read.
        CategoryError: If ``request.explicit_type`` is unknown.
    """
    start = (repo_dir or Path.cwd()).resolve()
    token = push_context(run_id=new_run_id(), repo=str(start))
    try:
        return _run(request, start, snapshot, settings, tuple(rules), write)
    finally:
        token.restore()


def _run(
    request: ChangeRequest,
    start: Path,
    snapshot: StagedSnapshot | None,
    settings: ChangescribeSettings | None,
    rules: tuple[PrefixRule, ...],
    write: bool,
) -> PipelineReport:
    repo_root = find_repo_root(start)
    settings = settings or get_settings(repo_root=repo_root)
    if snapshot is None:
        with log_step("collect") as timer:
            repo_root = git_toplevel(start, timeout=settings.git_timeout_seconds)
            snapshot = collect_staged_changes(repo_root, timeout=settings.git_timeout_seconds)
            timer.add_metric("files", len(snapshot.changes))
    bind_context(repo=str(repo_root))

    warnings: list[ReportWarning] = []

    with log_step("classify", files=len(snapshot.changes)) as timer:
        groups, unmanaged = classify_changes(snapshot.changes, rules)
        workspaces, manifest_errors = resolve_workspaces(
            groups,
            repo_root=repo_root,
            resolver=ManifestResolver(repo_root, manifest_names=settings.manifest_names),
            readme_names=settings.readme_names,
            max_workers=settings.manifest_workers,
        )
        timer.add_metric("workspaces", len(groups))
        timer.add_metric("manifest_errors", len(manifest_errors))

    for root, error in manifest_errors.items():
        warnings.append(ReportWarning(code=type(error).__name__, source=root, message=error.message))

    with log_step("categorize"):
        draft = parse_commit_message(request.message)
        decision = categorize(
            explicit_type=request.explicit_type,
            draft=draft,
            message_text=request.message,
            changes=snapshot.changes,
            diff_text=snapshot.diff_text,
        )
    if decision.source == "default":
        warnings.append(ReportWarning(
            code=CategoryAmbiguousWarning.__name__,
            source="categorize",
            message=decision.reason,
        ))
        log.warning("categorizer.ambiguous", category=decision.category.value)

    bullets = bullets_for(draft, request.bullets)
    scope = request.scope or draft.scope or default_scope([g.root_path for g in groups])
    commit_message: str | None = None
    commit_error: CommitMessageError | None = None
    try:
        commit_message = render_commit_message(
            decision.category,
            subject=request.subject or draft.subject,
            scope=scope,
            breaking=decision.breaking,
            bullets=bullets,
            footers=draft.footers,
            max_header_length=settings.max_header_length,
        )
    except CommitMessageError as exc:
        commit_error = exc
        warnings.append(ReportWarning(code=type(exc).__name__, source="commit", message=exc.message))
        log.warning("emitter.commit_message_failed", error=exc.message)

    bump = compute_bump(decision.category, decision.breaking)
    writer = FragmentWriter(settings.changeset_path(repo_root)) if write else None
    by_root = {w.root_path: w for w in workspaces}
    outcomes: list[WorkspaceOutcome] = []

    with log_step("emit", workspaces=len(groups)) as timer:
        for group in groups:
            outcome = WorkspaceOutcome(root_path=group.root_path, kind=group.kind)
            outcomes.append(outcome)
            if group.root_path in manifest_errors:
                outcome.error = manifest_errors[group.root_path]
                continue

            workspace = by_root[group.root_path]
            outcome.workspace = workspace
            outcome.bump = bump
            ws_token = push_context(workspace=workspace.root_path)
            try:
                outcome.fragment = build_fragment(workspace.declared_name, bump, bullets)
                signals = detect_signals(
                    workspace,
                    group.changes,
                    manifest_names=settings.manifest_names,
                    readme_names=settings.readme_names,
                    api_changed=request.api_changed,
                )
                outcome.readme = build_readme_recommendation(
                    workspace, decision.category, decision.breaking, signals,
                )
                if writer is not None:
                    path = writer.allocate(decision.category, workspace)
                    writer.write(outcome.fragment, path)
                    outcome.fragment_path = (
                        path.relative_to(repo_root).as_posix()
                        if path.is_relative_to(repo_root) else str(path)
                    )
            except ChangescribeError as exc:
                if not is_workspace_scoped(exc):
                    raise
                exc.with_context(workspace=workspace.root_path)
                outcome.error = exc
                warnings.append(ReportWarning(
                    code=type(exc).__name__, source=workspace.root_path, message=exc.message,
                ))
                log.warning("emitter.workspace_failed", error=exc.message, error_type=type(exc).__name__)
            finally:
                ws_token.restore()
        timer.add_metric("fragments", sum(1 for o in outcomes if o.fragment is not None))

    return PipelineReport(
        commit_message=commit_message,
        commit_error=commit_error,
        decision=decision,
        outcomes=outcomes,
        unmanaged_paths=unmanaged,
        warnings=warnings,
    )
