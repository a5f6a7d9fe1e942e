"""Staged-change collection from git or from fixture files.

Stability: stable
Tags: pipeline, git, collector

Reads only the index: ``git diff --cached``. Working-tree-only edits and
committed history are never looked at. Any failure raises
``CollectionError``; there is no partial snapshot.

Architecture::

    ┌──────────────────────────────────────────────────┐
    │                  collector.py                     │
    ├────────────────────────┬─────────────────────────┤
    │ collect_staged_changes │ load_fixture_snapshot   │
    │ (subprocess git)       │ (reads JSON fixtures)   │
    └────────────────────────┴─────────────────────────┘
                 │                       │
                 ▼                       ▼
           StagedSnapshot          StagedSnapshot

Usage::

    from changescribe.pipeline.collector import collect_staged_changes

    snapshot = collect_staged_changes(Path("."))
    snapshot = load_fixture_snapshot(Path("tests/fixtures/staged/dto.json"))
"""

from __future__ import annotations

import json
import re
import subprocess
from pathlib import Path

from changescribe.core.errors import CollectionError
from changescribe.logging import get_logger

from .model import GIT_STATUS_CODES, ChangeStatus, StagedChange, StagedSnapshot

log = get_logger(__name__)

# Keep paths unquoted so non-ASCII names come back verbatim
_GIT = ("git", "-c", "core.quotepath=off")

_DIFF_HEADER_RE = re.compile(r"^diff --git ", re.MULTILINE)
_NEW_PATH_RE = re.compile(r"^\+\+\+ b/(?P<path>.+?)\t?$", re.MULTILINE)
_OLD_PATH_RE = re.compile(r"^--- a/(?P<path>.+?)\t?$", re.MULTILINE)
_RENAME_TO_RE = re.compile(r"^rename to (?P<path>.+)$", re.MULTILINE)
_HEADER_PATHS_RE = re.compile(r"^diff --git a/(?P<old>.+) b/(?P<new>.+)$", re.MULTILINE)


def _run_git(args: list[str], repo_dir: Path, *, timeout: int = 30) -> str:
    """Run a git command and return decoded stdout."""
    cmd = [*_GIT, *args]
    try:
        result = subprocess.run(
            cmd, capture_output=True, cwd=str(repo_dir),
            check=True, timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise CollectionError("git executable not found", cause=exc).with_context(
            command=" ".join(cmd), path=str(repo_dir),
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise CollectionError(f"git timed out after {timeout}s", cause=exc).with_context(
            command=" ".join(cmd), path=str(repo_dir),
        ) from exc
    except subprocess.CalledProcessError as exc:
        stderr = exc.stderr.decode("utf-8", errors="replace").strip() if exc.stderr else ""
        raise CollectionError(
            f"git exited with status {exc.returncode}: {stderr or 'no output'}",
            cause=exc,
        ).with_context(command=" ".join(cmd), path=str(repo_dir)) from exc
    except OSError as exc:
        # e.g. repo_dir does not exist
        raise CollectionError(f"Cannot run git in {repo_dir}: {exc}", cause=exc).with_context(
            command=" ".join(cmd), path=str(repo_dir),
        ) from exc
    return result.stdout.decode("utf-8", errors="replace")


def git_toplevel(repo_dir: Path, *, timeout: int = 30) -> Path:
    """Return the working-tree root that staged paths are relative to."""
    out = _run_git(["rev-parse", "--show-toplevel"], repo_dir, timeout=timeout).strip()
    if not out:
        raise CollectionError("git did not report a working tree").with_context(path=str(repo_dir))
    return Path(out)


def collect_staged_changes(repo_dir: Path, *, timeout: int = 30) -> StagedSnapshot:
    """Read the staged file list and unified diff.

    Args:
        repo_dir: Any directory inside the working tree.
        timeout: Per-command timeout in seconds.

    Returns:
        StagedSnapshot with changes sorted by path.

    Raises:
        CollectionError: If the repository cannot be queried.
    """
    name_status = _run_git(
        ["diff", "--cached", "--name-status", "-M", "-z"], repo_dir, timeout=timeout,
    )
    diff_text = _run_git(
        ["diff", "--cached", "-M", "--no-color", "--no-ext-diff"], repo_dir, timeout=timeout,
    )

    entries = parse_name_status(name_status)
    hunks = split_diff_by_file(diff_text)
    changes = [
        StagedChange(
            path=path,
            status=status,
            diff_hunk=hunks.get(path),
            old_path=old_path,
        )
        for path, status, old_path in entries
    ]
    changes.sort(key=lambda c: c.path)
    log.debug("collector.staged", files=len(changes), diff_bytes=len(diff_text))
    return StagedSnapshot(changes=tuple(changes), diff_text=diff_text)


def parse_name_status(output: str) -> list[tuple[str, ChangeStatus, str | None]]:
    """Parse ``git diff --name-status -z`` output.

    Records are NUL-separated: ``STATUS\\0path`` or, for renames and
    copies, ``R100\\0old\\0new``.

    Returns:
        List of ``(path, status, old_path)``.
    """
    tokens = output.split("\0")
    entries: list[tuple[str, ChangeStatus, str | None]] = []
    i = 0
    while i < len(tokens):
        code = tokens[i].strip()
        if not code:
            i += 1
            continue
        letter = code[0]
        if letter in ("R", "C"):
            if i + 2 >= len(tokens):
                raise CollectionError(f"Truncated rename record in git output: {code!r}")
            old_path, new_path = tokens[i + 1], tokens[i + 2]
            status = GIT_STATUS_CODES[letter]
            entries.append((new_path, status, old_path if letter == "R" else None))
            i += 3
            continue
        if i + 1 >= len(tokens):
            raise CollectionError(f"Truncated record in git output: {code!r}")
        status = GIT_STATUS_CODES.get(letter, ChangeStatus.MODIFIED)
        entries.append((tokens[i + 1], status, None))
        i += 2
    return entries


def split_diff_by_file(diff_text: str) -> dict[str, str]:
    """Split a unified diff into per-file sections keyed by new path."""
    sections: dict[str, str] = {}
    starts = [m.start() for m in _DIFF_HEADER_RE.finditer(diff_text)]
    for idx, start in enumerate(starts):
        end = starts[idx + 1] if idx + 1 < len(starts) else len(diff_text)
        section = diff_text[start:end]
        path = _section_path(section)
        if path:
            sections[path] = section
    return sections


def _section_path(section: str) -> str | None:
    """Best path for one ``diff --git`` section."""
    for pattern in (_NEW_PATH_RE, _RENAME_TO_RE, _OLD_PATH_RE):
        match = pattern.search(section)
        if match:
            return match.group("path")
    header = _HEADER_PATHS_RE.search(section)
    if header:
        return header.group("new")
    return None


def load_fixture_snapshot(path: Path) -> StagedSnapshot:
    """Load a staged snapshot from a JSON fixture.

    Expected structure::

        {
            "changes": [
                {"path": "packages/dto/src/utils.ts", "status": "modified",
                 "diff_hunk": "diff --git ..."}
            ],
            "diff": "diff --git ..."
        }

    ``status`` accepts enum values (``added``) or git letters (``A``).

    Raises:
        CollectionError: If the file is missing or malformed.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CollectionError(f"Cannot read fixture {path}: {exc}", cause=exc).with_context(
            path=str(path),
        ) from exc

    if not isinstance(raw, dict) or not isinstance(raw.get("changes"), list):
        raise CollectionError(f"Fixture {path} has no 'changes' list").with_context(path=str(path))

    diff_text = raw.get("diff", "") or ""
    hunks = split_diff_by_file(diff_text)
    changes: list[StagedChange] = []
    for entry in raw["changes"]:
        if not isinstance(entry, dict) or not entry.get("path"):
            raise CollectionError(f"Fixture {path} has an entry without 'path'").with_context(
                path=str(path),
            )
        changes.append(StagedChange(
            path=entry["path"],
            status=_fixture_status(entry.get("status", "modified"), path),
            diff_hunk=entry.get("diff_hunk") or hunks.get(entry["path"]),
            old_path=entry.get("old_path"),
        ))

    changes.sort(key=lambda c: c.path)
    if not diff_text:
        diff_text = "".join(c.diff_hunk for c in changes if c.diff_hunk)
    return StagedSnapshot(changes=tuple(changes), diff_text=diff_text)


def _fixture_status(value: str, source: Path) -> ChangeStatus:
    if value in GIT_STATUS_CODES:
        return GIT_STATUS_CODES[value]
    try:
        return ChangeStatus(value.lower())
    except ValueError as exc:
        raise CollectionError(f"Unknown status {value!r} in fixture {source}", cause=exc).with_context(
            path=str(source),
        ) from exc
