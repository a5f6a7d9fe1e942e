"""Tests for changescribe.pipeline.runner: end-to-end runs over in-memory snapshots."""

from __future__ import annotations

import json

import pytest

from changescribe.core.config import get_settings
from changescribe.core.errors import (
    CategoryError,
    CommitMessageError,
    EmptyFragmentError,
    FragmentWriteError,
    ManifestReadError,
)
from changescribe.pipeline import ChangeRequest, run_pipeline
from changescribe.pipeline.model import ChangeCategory, VersionBump


def _pkg(name: str) -> str:
    return json.dumps({"name": name})


class TestScenarios:
    def test_refactor_inside_package(self, monorepo, snapshot_of):
        root = monorepo({"packages/dto": {"package.json": _pkg("@scope/dto"), "README.md": "#"}})
        snapshot = snapshot_of(
            "packages/dto/src/utils.ts",
            diff={"packages/dto/src/utils.ts": "+const trimmed = value.trim()\n"},
        )

        report = run_pipeline(
            ChangeRequest(message="refactor: simplify utils\n\n- inline trim helper"),
            repo_dir=root, snapshot=snapshot,
        )

        assert [f.workspace_name for f in report.fragments] == ["@scope/dto"]
        assert report.fragments[0].bump is VersionBump.PATCH
        assert report.readme_recommendations == {"@scope/dto": {}}
        assert report.commit_message == "refactor(dto): simplify utils\n\n- inline trim helper"

    def test_feature_touching_bot_config(self, monorepo, snapshot_of):
        root = monorepo({"apps/bots/status": {"package.json": _pkg("bot-status"), "README.md": "#"}})
        snapshot = snapshot_of("apps/bots/status/src/config/index.ts")

        report = run_pipeline(
            ChangeRequest(message="feat: add retry config\n\n- add RETRY_LIMIT variable"),
            repo_dir=root, snapshot=snapshot,
        )

        outcome = report.outcomes[0]
        assert outcome.bump is VersionBump.MINOR
        sections = report.readme_recommendations["bot-status"]
        assert {"Configuration", "EnvironmentVariables", "Features", "Usage"} <= set(sections)

    def test_chore_touching_config_and_exports_recommends_nothing(self, monorepo, snapshot_of):
        root = monorepo({"packages/dto": {"package.json": _pkg("dto"), "README.md": "#"}})
        snapshot = snapshot_of(
            "packages/dto/src/config/index.ts",
            diff={"packages/dto/src/config/index.ts": "-export const a = 1\n"},
        )

        report = run_pipeline(ChangeRequest(message="chore: tidy\n\n- drop unused"), repo_dir=root, snapshot=snapshot)

        assert report.readme_recommendations == {"dto": {}}

    def test_breaking_feature_in_portal(self, monorepo, snapshot_of):
        root = monorepo({"apps/portal/api": {"package.json": _pkg("portal-api"), "README.md": "#"}})
        snapshot = snapshot_of("apps/portal/api/src/routes.ts")

        report = run_pipeline(
            ChangeRequest(message="feat: new routes\n\n- replace /v1 routes\n\nBREAKING CHANGE: /v1 removed"),
            repo_dir=root, snapshot=snapshot,
        )

        assert report.decision.breaking is True
        assert report.fragments[0].bump is VersionBump.MAJOR
        assert "BreakingChanges" in report.readme_recommendations["portal-api"]
        assert report.commit_message.startswith("feat(api)!: new routes")
        assert report.commit_message.endswith("BREAKING CHANGE: /v1 removed")

    def test_two_workspaces_one_unreadable(self, monorepo, snapshot_of):
        root = monorepo({
            "packages/dto": {"package.json": _pkg("@scope/dto")},
            "apps/rx": {"package.json": "{broken"},
        })
        snapshot = snapshot_of("packages/dto/src/a.ts", "apps/rx/src/b.ts")

        report = run_pipeline(
            ChangeRequest(message="fix: handle nulls\n\n- guard against null ids"),
            repo_dir=root, snapshot=snapshot,
        )

        assert [o.root_path for o in report.outcomes] == ["apps/rx", "packages/dto"]
        rx, dto = report.outcomes
        assert isinstance(rx.error, ManifestReadError)
        assert rx.fragment is None
        assert dto.ok
        assert dto.fragment.workspace_name == "@scope/dto"
        assert dto.fragment.body == ("guard against null ids",)
        assert [w.code for w in report.warnings] == ["ManifestReadError"]
        # no single workspace, so no default scope
        assert report.commit_message.startswith("fix: handle nulls")

    def test_two_workspaces_get_independent_fragments(self, monorepo, snapshot_of):
        root = monorepo({
            "packages/dto": {"package.json": _pkg("@scope/dto")},
            "apps/rx": {"package.json": _pkg("@scope/rx")},
        })
        report = run_pipeline(
            ChangeRequest(message="fix: shared bug\n\n- fix it"),
            repo_dir=root, snapshot=snapshot_of("packages/dto/a.ts", "apps/rx/b.ts"),
        )
        assert sorted(f.workspace_name for f in report.fragments) == ["@scope/dto", "@scope/rx"]
        assert all(f.bump is VersionBump.PATCH for f in report.fragments)


class TestCategoryAndMessage:
    def test_unmanaged_only_produces_no_fragments(self, monorepo, snapshot_of):
        root = monorepo({})
        report = run_pipeline(
            ChangeRequest(message="chore: bump tooling\n\n- update scripts"),
            repo_dir=root, snapshot=snapshot_of("scripts/release.sh", "package.json"),
        )
        assert report.outcomes == []
        assert report.unmanaged_paths == ["package.json", "scripts/release.sh"]

    def test_ambiguous_category_warns(self, monorepo, snapshot_of):
        root = monorepo({"packages/dto": {"package.json": _pkg("dto")}})
        report = run_pipeline(
            ChangeRequest(message="misc cleanup\n\n- tidy"),
            repo_dir=root, snapshot=snapshot_of("packages/dto/src/a.ts"),
        )
        assert report.decision.category is ChangeCategory.CHORE
        assert report.warnings[0].code == "CategoryAmbiguousWarning"
        assert report.commit_message.startswith("chore(dto): misc cleanup")

    def test_explicit_overrides(self, monorepo, snapshot_of):
        root = monorepo({"packages/dto": {"package.json": _pkg("dto")}})
        report = run_pipeline(
            ChangeRequest(
                message="feat: something",
                explicit_type="perf",
                scope="core",
                subject="cache parsed schemas",
                bullets=("memoize schema parse",),
            ),
            repo_dir=root, snapshot=snapshot_of("packages/dto/src/a.ts"),
        )
        assert report.commit_message == "perf(core): cache parsed schemas\n\n- memoize schema parse"
        assert report.fragments[0].body == ("memoize schema parse",)

    def test_unknown_explicit_type(self, monorepo, snapshot_of):
        root = monorepo({})
        with pytest.raises(CategoryError):
            run_pipeline(ChangeRequest(message="x", explicit_type="wip"), repo_dir=root, snapshot=snapshot_of())

    def test_header_too_long_keeps_fragments(self, monorepo, snapshot_of):
        root = monorepo({"packages/dto": {"package.json": _pkg("dto"), "README.md": "#"}})
        report = run_pipeline(
            ChangeRequest(message="fix: " + "y" * 80 + "\n\n- one"),
            repo_dir=root, snapshot=snapshot_of("packages/dto/a.ts"),
        )

        assert report.commit_message is None
        assert isinstance(report.commit_error, CommitMessageError)
        assert [f.body for f in report.fragments] == [("one",)]
        assert "dto" in report.readme_recommendations
        assert [(w.code, w.source) for w in report.warnings] == [("CommitMessageError", "commit")]
        assert report.to_dict()["commit_error"]["error_type"] == "CommitMessageError"

    def test_empty_subject_keeps_fragments(self, monorepo, snapshot_of):
        root = monorepo({"packages/dto": {"package.json": _pkg("dto")}})
        report = run_pipeline(
            ChangeRequest(explicit_type="fix", bullets=("one",)),
            repo_dir=root, snapshot=snapshot_of("packages/dto/a.ts"),
        )

        assert report.commit_message is None
        assert isinstance(report.commit_error, CommitMessageError)
        assert report.outcomes[0].ok
        assert report.fragments[0].bump is VersionBump.PATCH

    def test_multiline_breaking_footer_is_kept(self, monorepo, snapshot_of):
        root = monorepo({"packages/dto": {"package.json": _pkg("dto")}})
        report = run_pipeline(
            ChangeRequest(message="feat: v2\n\n- add v2\n\nNote: see docs\n\nBREAKING CHANGE: v1 routes\nare gone"),
            repo_dir=root, snapshot=snapshot_of("packages/dto/a.ts"),
        )

        assert report.commit_message == "feat(dto)!: v2\n\n- add v2\n\nBREAKING CHANGE: v1 routes\nare gone"

    def test_missing_bullets_fail_per_workspace(self, monorepo, snapshot_of):
        root = monorepo({"packages/dto": {"package.json": _pkg("dto")}})
        report = run_pipeline(
            ChangeRequest(message="fix: no body"),
            repo_dir=root, snapshot=snapshot_of("packages/dto/a.ts"),
        )
        error = report.outcomes[0].error
        assert isinstance(error, EmptyFragmentError)
        assert error.context.workspace == "packages/dto"
        assert report.commit_message == "fix(dto): no body"

    def test_idempotent_without_write(self, monorepo, snapshot_of):
        root = monorepo({
            "packages/dto": {"package.json": _pkg("dto"), "README.md": "#"},
            "apps/rx": {"package.json": _pkg("rx")},
        })
        snapshot = snapshot_of("packages/dto/a.ts", "apps/rx/README.md", "tools/x.sh")
        request = ChangeRequest(message="feat: add things\n\n- add a\n- add b")

        first = run_pipeline(request, repo_dir=root, snapshot=snapshot)
        second = run_pipeline(request, repo_dir=root, snapshot=snapshot)

        assert first.to_dict() == second.to_dict()
        assert not (root / ".changeset").exists()


class TestWrite:
    def test_writes_one_file_per_workspace(self, monorepo, snapshot_of):
        root = monorepo({
            "packages/dto": {"package.json": _pkg("@scope/dto")},
            "apps/rx": {"package.json": _pkg("@scope/rx")},
        })
        report = run_pipeline(
            ChangeRequest(message="feat: add\n\n- new thing"),
            repo_dir=root, snapshot=snapshot_of("packages/dto/a.ts", "apps/rx/b.ts"), write=True,
        )

        paths = sorted(o.fragment_path for o in report.outcomes)
        assert paths == [".changeset/feature-scope-dto.md", ".changeset/feature-scope-rx.md"]
        text = (root / ".changeset/feature-scope-dto.md").read_text()
        assert text == "---\n'@scope/dto': minor\n---\n\n- new thing\n"

    def test_second_run_does_not_overwrite(self, monorepo, snapshot_of):
        root = monorepo({"packages/dto": {"package.json": _pkg("dto")}})
        kwargs = dict(repo_dir=root, snapshot=snapshot_of("packages/dto/a.ts"), write=True)

        run_pipeline(ChangeRequest(message="fix: a\n\n- one"), **kwargs)
        report = run_pipeline(ChangeRequest(message="fix: b\n\n- two"), **kwargs)

        assert report.outcomes[0].fragment_path == ".changeset/fix-dto-2.md"
        assert "- one" in (root / ".changeset/fix-dto.md").read_text()

    def test_custom_changeset_dir(self, monorepo, snapshot_of):
        root = monorepo({"packages/dto": {"package.json": _pkg("dto")}})
        settings = get_settings(repo_root=root, changeset_dir="release/notes")
        report = run_pipeline(
            ChangeRequest(message="fix: a\n\n- one"),
            repo_dir=root, snapshot=snapshot_of("packages/dto/a.ts"), settings=settings, write=True,
        )
        assert report.outcomes[0].fragment_path == "release/notes/fix-dto.md"

    def test_write_failure_is_scoped(self, monorepo, snapshot_of):
        root = monorepo({
            "packages/dto": {"package.json": _pkg("dto")},
            "apps/rx": {"package.json": _pkg("rx")},
        })
        # a file where the changeset directory should be
        (root / ".changeset").write_text("")

        report = run_pipeline(
            ChangeRequest(message="fix: a\n\n- one"),
            repo_dir=root, snapshot=snapshot_of("packages/dto/a.ts", "apps/rx/b.ts"), write=True,
        )

        assert all(isinstance(o.error, FragmentWriteError) for o in report.outcomes)
        assert all(o.fragment is not None for o in report.outcomes)
        assert {w.source for w in report.warnings} == {"apps/rx", "packages/dto"}
