"""
Shared pytest fixtures and configuration for changescribe tests.

This module provides:
- Settings cache / log context cleanup for test isolation
- A monorepo builder for classifier and pipeline tests
- Snapshot helpers that skip git entirely

Usage:
    def test_something(monorepo):
        root = monorepo({"packages/dto": {"package.json": '{"name": "@acme/dto"}'}})
"""

import json
import os
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# Ensure changescribe package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from changescribe.core.config import clear_settings_cache
from changescribe.logging import clear_context
from changescribe.pipeline.model import ChangeStatus, StagedChange, StagedSnapshot

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate(monkeypatch: pytest.MonkeyPatch):
    """Drop CHANGESCRIBE_* env vars, cached settings, and log context."""
    for key in list(os.environ):
        if key.startswith("CHANGESCRIBE_"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    clear_context()
    yield
    clear_settings_cache()
    clear_context()


# =============================================================================
# Repository builders
# =============================================================================


def package_json(name: str) -> str:
    return json.dumps({"name": name, "version": "1.0.0"})


@pytest.fixture
def monorepo(tmp_path: Path) -> Callable[[dict[str, dict[str, str]]], Path]:
    """Factory that lays out workspaces under a fake repository root.

    Keys are workspace roots, values map file names to contents. A ``.git``
    directory marks the root so ``find_repo_root`` stops there.
    """

    def _build(workspaces: dict[str, dict[str, str]]) -> Path:
        (tmp_path / ".git").mkdir(exist_ok=True)
        for root, files in workspaces.items():
            directory = tmp_path / root
            directory.mkdir(parents=True, exist_ok=True)
            for name, content in files.items():
                target = directory / name
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
        return tmp_path

    return _build


@pytest.fixture
def standard_repo(monorepo) -> Path:
    """Monorepo with one workspace of every kind, all with READMEs."""
    return monorepo({
        "packages/dto": {"package.json": package_json("@acme/dto"), "README.md": "# dto\n"},
        "packages/utils": {"package.json": package_json("@acme/utils"), "README.md": "# utils\n"},
        "apps/rx": {"package.json": package_json("@acme/rx"), "README.md": "# rx\n"},
        "apps/portal/client": {"package.json": package_json("@acme/portal-client"), "README.md": "# client\n"},
        "apps/bots/status": {"package.json": package_json("@acme/status-bot"), "README.md": "# status\n"},
        "documentation": {"package.json": package_json("@acme/docs")},
    })


def make_snapshot(*paths: str, diff: dict[str, str] | None = None) -> StagedSnapshot:
    """Snapshot of modified files; *diff* maps path -> diff hunk."""
    diff = diff or {}
    changes = tuple(
        StagedChange(path=p, status=ChangeStatus.MODIFIED, diff_hunk=diff.get(p))
        for p in sorted(paths)
    )
    return StagedSnapshot(changes=changes, diff_text="".join(diff.get(p, "") for p in sorted(paths)))


@pytest.fixture
def snapshot_of() -> Callable[..., StagedSnapshot]:
    return make_snapshot
