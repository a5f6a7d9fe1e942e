"""Map staged paths to workspaces and resolve their declared names.

Stability: stable
Tags: pipeline, classifier, workspace, manifest

Classification is a longest-match lookup over a fixed table of prefix
rules. Each rule is data (``PrefixRule``), so the tie-break can be tested
in isolation from the rest of the pipeline.

Manifest names are read fresh on every invocation through a
``ManifestResolver`` owned by that invocation. A missing or unparsable
manifest raises ``ManifestReadError`` for that workspace only.

Usage::

    from changescribe.pipeline.classifier import classify_changes, resolve_workspaces

    groups, unmanaged = classify_changes(snapshot.changes)
    workspaces, errors = resolve_workspaces(groups, repo_root=Path("."))
"""

from __future__ import annotations

import contextvars
import json
import tomllib
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from changescribe.core.errors import ManifestReadError
from changescribe.logging import get_logger

from .model import PrefixRule, StagedChange, Workspace, WorkspaceKind

log = get_logger(__name__)

DEFAULT_RULES: tuple[PrefixRule, ...] = (
    PrefixRule("packages/*", WorkspaceKind.PACKAGE),
    PrefixRule("apps/*", WorkspaceKind.APP),
    PrefixRule("apps/portal/*", WorkspaceKind.PORTAL),
    PrefixRule("apps/bots/*", WorkspaceKind.BOT),
    PrefixRule("documentation", WorkspaceKind.DOCUMENTATION),
)

DEFAULT_MANIFEST_NAMES: tuple[str, ...] = ("package.json", "pyproject.toml")
DEFAULT_README_NAMES: tuple[str, ...] = ("README.md", "readme.md", "README")


@dataclass(frozen=True)
class ChangeGroup:
    """Staged changes that share a workspace root (before the manifest read)."""

    root_path: str
    kind: WorkspaceKind
    changes: tuple[StagedChange, ...]

    @property
    def paths(self) -> frozenset[str]:
        return frozenset(c.path for c in self.changes)


# ---------------------------------------------------------------------------
# Prefix matching
# ---------------------------------------------------------------------------


def _split(path: str) -> list[str]:
    return [s for s in path.replace("\\", "/").strip("/").split("/") if s and s != "."]


def _rule_root(rule: PrefixRule, parts: Sequence[str]) -> str | None:
    """Workspace root claimed by *rule* for *parts*, or None."""
    segs = rule.segments
    # the root must be a directory strictly above the file
    if len(parts) <= len(segs):
        return None
    for pattern_seg, path_seg in zip(segs, parts):
        if pattern_seg != "*" and pattern_seg != path_seg:
            return None
    return "/".join(parts[: len(segs)])


def match_workspace_root(
    path: str,
    rules: Iterable[PrefixRule] = DEFAULT_RULES,
) -> tuple[str, WorkspaceKind] | None:
    """Return ``(root, kind)`` of the most specific matching rule.

    Specificity is the number of pattern segments, then the number of
    literal segments. A path matching no rule returns None (unmanaged).

    Examples:
        >>> match_workspace_root("apps/portal/client/src/x.ts")
        ('apps/portal/client', <WorkspaceKind.PORTAL: 'portal'>)
        >>> match_workspace_root("scripts/release.sh") is None
        True
    """
    parts = _split(path)
    best: tuple[tuple[int, int], str, WorkspaceKind] | None = None
    for rule in rules:
        root = _rule_root(rule, parts)
        if root is None:
            continue
        if best is None or rule.specificity > best[0]:
            best = (rule.specificity, root, rule.kind)
    if best is None:
        return None
    return best[1], best[2]


def classify_changes(
    changes: Iterable[StagedChange],
    rules: Iterable[PrefixRule] = DEFAULT_RULES,
) -> tuple[list[ChangeGroup], list[str]]:
    """Group staged changes by owning workspace root.

    Returns:
        ``(groups sorted by root, unmanaged paths sorted)``.
    """
    rules = tuple(rules)
    grouped: dict[str, tuple[WorkspaceKind, list[StagedChange]]] = {}
    unmanaged: list[str] = []

    for change in changes:
        match = match_workspace_root(change.path, rules)
        if match is None:
            unmanaged.append(change.path)
            continue
        root, kind = match
        grouped.setdefault(root, (kind, []))[1].append(change)

    groups = [
        ChangeGroup(root_path=root, kind=kind, changes=tuple(sorted(items, key=lambda c: c.path)))
        for root, (kind, items) in sorted(grouped.items())
    ]
    return groups, sorted(unmanaged)


# ---------------------------------------------------------------------------
# Manifest names
# ---------------------------------------------------------------------------


class ManifestResolver:
    """Reads declared workspace names, memoized for one invocation.

    Create one resolver per pipeline run and discard it afterwards; names
    are never cached across runs because manifests change between commits.
    Failures are memoized too, so a workspace is read at most once.
    """

    def __init__(
        self,
        repo_root: Path,
        *,
        manifest_names: Sequence[str] = DEFAULT_MANIFEST_NAMES,
    ):
        self.repo_root = repo_root
        self.manifest_names = tuple(manifest_names)
        self._cache: dict[str, str | ManifestReadError] = {}

    def read_name(self, root_path: str) -> str:
        """Return the declared name of the workspace at *root_path*.

        Raises:
            ManifestReadError: If no manifest exists, it cannot be parsed,
                or it declares no name.
        """
        cached = self._cache.get(root_path)
        if cached is None:
            try:
                cached = self._load(root_path)
            except ManifestReadError as exc:
                cached = exc
            self._cache[root_path] = cached
        if isinstance(cached, ManifestReadError):
            raise cached
        return cached

    def _load(self, root_path: str) -> str:
        directory = self.repo_root / root_path
        for manifest_name in self.manifest_names:
            manifest = directory / manifest_name
            if manifest.is_file():
                return _read_manifest_name(manifest, root_path)
        raise ManifestReadError(
            f"No manifest ({', '.join(self.manifest_names)}) in {root_path}",
            workspace=root_path,
        )


def _read_manifest_name(manifest: Path, root_path: str) -> str:
    """Extract the ``name`` field from a package.json or pyproject.toml."""
    try:
        text = manifest.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestReadError(
            f"Cannot read {manifest.name} in {root_path}: {exc}",
            workspace=root_path, cause=exc,
        ).with_context(path=str(manifest)) from exc

    try:
        if manifest.suffix == ".toml":
            data = tomllib.loads(text)
            name = data.get("project", {}).get("name")
        else:
            data = json.loads(text)
            name = data.get("name") if isinstance(data, dict) else None
    except (json.JSONDecodeError, tomllib.TOMLDecodeError, AttributeError) as exc:
        raise ManifestReadError(
            f"Cannot parse {manifest.name} in {root_path}: {exc}",
            workspace=root_path, cause=exc,
        ).with_context(path=str(manifest)) from exc

    if not isinstance(name, str) or not name.strip():
        raise ManifestReadError(
            f"{manifest.name} in {root_path} declares no name",
            workspace=root_path,
        ).with_context(path=str(manifest))
    return name.strip()


def _has_readme(directory: Path, readme_names: Sequence[str]) -> bool:
    return any((directory / name).is_file() for name in readme_names)


def resolve_workspaces(
    groups: Sequence[ChangeGroup],
    *,
    repo_root: Path,
    resolver: ManifestResolver | None = None,
    readme_names: Sequence[str] = DEFAULT_README_NAMES,
    max_workers: int = 4,
) -> tuple[list[Workspace], dict[str, ManifestReadError]]:
    """Build ``Workspace`` objects for every touched root.

    Manifest reads are independent and run on a thread pool when more than
    one root is touched. Output order is by root path regardless of which
    read finishes first.

    Returns:
        ``(workspaces sorted by root, {root: ManifestReadError})``.
    """
    resolver = resolver or ManifestResolver(repo_root)

    def _read(group: ChangeGroup) -> str | ManifestReadError:
        try:
            return resolver.read_name(group.root_path)
        except ManifestReadError as exc:
            return exc

    if len(groups) > 1 and max_workers > 1:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(groups))) as executor:
            futures = [
                executor.submit(contextvars.copy_context().run, _read, group)
                for group in groups
            ]
            results = [f.result() for f in futures]
    else:
        results = [_read(group) for group in groups]

    workspaces: list[Workspace] = []
    errors: dict[str, ManifestReadError] = {}
    for group, result in zip(groups, results):
        if isinstance(result, ManifestReadError):
            log.warning("classifier.manifest_unreadable", workspace=group.root_path, error=result.message)
            errors[group.root_path] = result
            continue
        workspaces.append(Workspace(
            root_path=group.root_path,
            declared_name=result,
            kind=group.kind,
            changed_files=group.paths,
            has_readme=_has_readme(repo_root / group.root_path, readme_names),
        ))

    workspaces.sort(key=lambda w: w.root_path)
    return workspaces, dict(sorted(errors.items()))
