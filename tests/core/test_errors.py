"""Tests for changescribe.core.errors module."""

import pytest

from changescribe.core.errors import (
    CategoryError,
    ChangescribeError,
    CollectionError,
    EmptyFragmentError,
    ErrorCategory,
    ErrorContext,
    FragmentParseError,
    FragmentWriteError,
    ManifestReadError,
    ValidationError,
    is_workspace_scoped,
)


class TestErrorContext:
    def test_empty(self):
        ctx = ErrorContext()
        assert ctx.to_dict() == {}

    def test_fields_and_metadata(self):
        ctx = ErrorContext(workspace="apps/rx", metadata={"attempt": 2})
        assert ctx.to_dict() == {"workspace": "apps/rx", "attempt": 2}


class TestChangescribeError:
    def test_default_category(self):
        assert ChangescribeError("x").category is ErrorCategory.INTERNAL

    @pytest.mark.parametrize(
        "cls, category",
        [
            (CollectionError, ErrorCategory.VCS),
            (FragmentWriteError, ErrorCategory.STORAGE),
            (FragmentParseError, ErrorCategory.VALIDATION),
            (CategoryError, ErrorCategory.VALIDATION),
        ],
    )
    def test_subclass_categories(self, cls, category):
        assert cls("x").category is category

    def test_with_context_routes_unknown_keys_to_metadata(self):
        error = CollectionError("git failed").with_context(command="git diff", exit_code=128)
        assert error.context.command == "git diff"
        assert error.context.metadata == {"exit_code": 128}

    def test_cause_is_chained(self):
        cause = OSError("disk full")
        error = FragmentWriteError("cannot write", cause=cause)
        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "disk full"

    def test_to_dict(self):
        error = ManifestReadError("no manifest", workspace="packages/dto")
        assert error.to_dict() == {
            "error_type": "ManifestReadError",
            "message": "no manifest",
            "category": "MANIFEST",
            "context": {"workspace": "packages/dto"},
        }

    def test_hierarchy(self):
        assert issubclass(EmptyFragmentError, ValidationError)
        assert issubclass(ValidationError, ChangescribeError)


class TestWorkspaceScope:
    @pytest.mark.parametrize(
        "error",
        [
            ManifestReadError("m", workspace="a"),
            EmptyFragmentError("e"),
            FragmentWriteError("w"),
        ],
    )
    def test_scoped(self, error):
        assert is_workspace_scoped(error)

    @pytest.mark.parametrize("error", [CollectionError("c"), CategoryError("t"), ValueError("v")])
    def test_not_scoped(self, error):
        assert not is_workspace_scoped(error)
