"""
Structured error types for changescribe.

Every failure the pipeline can surface is a typed ``ChangescribeError``
carrying a category and structured context, so the final report can list a
named error per workspace instead of a bare traceback.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                     ChangescribeError                         │
        │            (category, context, cause, to_dict)               │
        ├──────────────────────────────────────────────────────────────┤
        │  CollectionError     ManifestReadError    FragmentWriteError  │
        │  (VCS, fatal)        (MANIFEST, scoped)   (STORAGE, scoped)   │
        │                                                              │
        │  ValidationError ─┬─ EmptyFragmentError   (scoped)            │
        │                   ├─ FragmentParseError                       │
        │                   ├─ CommitMessageError                       │
        │                   └─ CategoryError                            │
        │                                                              │
        │  ConfigError (CONFIG)                                        │
        └──────────────────────────────────────────────────────────────┘

Scope:
    - **Pipeline-fatal:** ``CollectionError`` only.
    - **Workspace-scoped:** ``ManifestReadError``, ``EmptyFragmentError``,
      ``FragmentWriteError``. The workspace is reported with the error and
      sibling workspaces continue.
    - **Caller-facing:** ``FragmentParseError``, ``CommitMessageError``,
      ``CategoryError``, ``ConfigError`` are raised by the individual
      operations that detect them.

``CategoryAmbiguousWarning`` is a ``UserWarning`` subclass. The pipeline
never raises it; it is recorded in the report when the category falls back
to ``chore``.

Usage:
    from changescribe.core.errors import ManifestReadError

    try:
        name = resolver.read_name("packages/dto")
    except ManifestReadError as exc:
        log.warning("manifest.unreadable", **exc.to_dict())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and reporting."""

    VCS = "VCS"                   # git query failures
    MANIFEST = "MANIFEST"         # workspace manifest missing/unparsable
    STORAGE = "STORAGE"           # fragment file writes
    VALIDATION = "VALIDATION"     # malformed input or output text
    CONFIG = "CONFIG"             # invalid settings
    INTERNAL = "INTERNAL"         # bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        workspace: Workspace root path the error is scoped to.
        path: File path involved (manifest, fragment, fixture).
        command: Command line that failed (git invocations).
        metadata: Additional key-value pairs.
    """

    workspace: str | None = None
    path: str | None = None
    command: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["workspace", "path", "command"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ChangescribeError(Exception):
    """
    Base exception for all changescribe errors.

    Subclasses set ``default_category``. Instances carry an
    ``ErrorContext`` and an optional chained ``cause``.

    Examples:
        >>> error = ChangescribeError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(workspace="packages/dto").context.workspace
        'packages/dto'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ChangescribeError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ManifestReadError("No manifest").with_context(
                workspace="apps/rx",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# PIPELINE-FATAL
# =============================================================================


class CollectionError(ChangescribeError):
    """
    Staged changes could not be determined.

    Raised when the repository cannot be queried: not a git repository,
    ``git`` missing, non-zero exit, timeout, or a malformed fixture. There
    is no partial result.
    """

    default_category = ErrorCategory.VCS


# =============================================================================
# WORKSPACE-SCOPED
# =============================================================================


class ManifestReadError(ChangescribeError):
    """A workspace manifest is missing, unparsable, or declares no name."""

    default_category = ErrorCategory.MANIFEST

    def __init__(self, message: str, *, workspace: str, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.workspace = workspace
        self.context.workspace = workspace


class FragmentWriteError(ChangescribeError):
    """A changelog fragment could not be written to disk."""

    default_category = ErrorCategory.STORAGE


class ValidationError(ChangescribeError):
    """Input or output text failed validation."""

    default_category = ErrorCategory.VALIDATION


class EmptyFragmentError(ValidationError):
    """A workspace fragment would have no bullet lines."""


class FragmentParseError(ValidationError):
    """Text is not a well-formed changelog fragment."""


class CommitMessageError(ValidationError):
    """A commit message header violates the format or length limit."""


class CategoryError(ValidationError):
    """An explicit commit type keyword is not a known category."""


class ConfigError(ChangescribeError):
    """Settings failed validation."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# WARNINGS
# =============================================================================


class CategoryAmbiguousWarning(UserWarning):
    """No category signal was found; the change was classified as ``chore``."""


# =============================================================================
# WORKSPACE-SCOPED HELPERS
# =============================================================================

WORKSPACE_SCOPED_ERRORS: tuple[type[ChangescribeError], ...] = (
    ManifestReadError,
    EmptyFragmentError,
    FragmentWriteError,
)


def is_workspace_scoped(error: BaseException) -> bool:
    """Return True if *error* only aborts the workspace it belongs to."""
    return isinstance(error, WORKSPACE_SCOPED_ERRORS)
