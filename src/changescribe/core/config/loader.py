"""
Repository root discovery.

Walks upward from a starting directory to the enclosing git working tree
so that settings, manifests, and fragment paths resolve against the same
root no matter which subdirectory the tool is launched from.
"""

from __future__ import annotations

from pathlib import Path

_ROOT_MARKERS = (".git",)
_FALLBACK_MARKERS = ("package.json", "pyproject.toml")


def find_repo_root(start: Path | None = None) -> Path:
    """Walk upward from *start* to find the repository root.

    Recognised root markers, checked in order:

    * ``.git`` (directory, or file for worktrees/submodules)
    * ``package.json`` / ``pyproject.toml`` at the outermost level that has one

    Falls back to *start* (or cwd) when no marker is found.
    """
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        if any((directory / marker).exists() for marker in _ROOT_MARKERS):
            return directory

    outermost: Path | None = None
    for directory in (current, *current.parents):
        if any((directory / marker).is_file() for marker in _FALLBACK_MARKERS):
            outermost = directory
    return outermost or current


def discover_env_files(repo_root: Path) -> list[Path]:
    """Return the ``.env`` files that exist at *repo_root*.

    Load order: ``.env`` then ``.env.local``. Real environment variables
    always win over both.
    """
    candidates = [repo_root / ".env", repo_root / ".env.local"]
    return [p for p in candidates if p.is_file()]
