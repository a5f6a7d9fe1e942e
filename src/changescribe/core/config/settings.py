"""
Centralized settings for changescribe.

:class:`ChangescribeSettings` is the single validated source of truth for
tunables. Values resolve in this order (last wins): field defaults,
``.env`` / ``.env.local`` at the repository root, ``CHANGESCRIBE_*``
environment variables, explicit keyword overrides.

Tags:
    changescribe, configuration, settings, pydantic, caching
"""

from __future__ import annotations

from pathlib import Path

import pydantic
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from changescribe.core.errors import ConfigError


class ChangescribeSettings(BaseSettings):
    """changescribe configuration.

    All fields can be set via ``CHANGESCRIBE_*`` environment variables
    (e.g. ``CHANGESCRIBE_CHANGESET_DIR=.changes``). List fields take JSON
    (``CHANGESCRIBE_MANIFEST_NAMES='["package.json"]'``).
    """

    model_config = SettingsConfigDict(
        env_prefix="CHANGESCRIBE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Fragments ────────────────────────────────────────────────
    changeset_dir: str = Field(
        default=".changeset",
        description="Directory (relative to the repo root) for changelog fragments",
    )

    # ── Commit message ───────────────────────────────────────────
    max_header_length: int = Field(default=72, ge=20)

    # ── Workspaces ───────────────────────────────────────────────
    manifest_names: list[str] = Field(default=["package.json", "pyproject.toml"])
    readme_names: list[str] = Field(default=["README.md", "readme.md", "README"])
    manifest_workers: int = Field(default=4, ge=1)

    # ── Git ──────────────────────────────────────────────────────
    git_timeout_seconds: int = Field(default=30, ge=1)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="WARNING")
    log_format: str = Field(default="console")

    @field_validator("manifest_names", "readme_names")
    @classmethod
    def _non_empty(cls, value: list[str]) -> list[str]:
        cleaned = [v.strip() for v in value if v.strip()]
        if not cleaned:
            raise ValueError("at least one file name is required")
        return cleaned

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError(f"unknown log level {value!r}")
        return upper

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        lower = value.lower()
        if lower not in {"console", "json"}:
            raise ValueError(f"unknown log format {value!r}")
        return lower

    def changeset_path(self, repo_root: Path) -> Path:
        """Absolute fragment directory for *repo_root*."""
        path = Path(self.changeset_dir)
        return path if path.is_absolute() else repo_root / path


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, ChangescribeSettings] = {}


def get_settings(
    *,
    repo_root: Path | None = None,
    _force_reload: bool = False,
    **overrides,
) -> ChangescribeSettings:
    """Load, validate, and cache a :class:`ChangescribeSettings` instance.

    Parameters
    ----------
    repo_root:
        Repository root whose ``.env`` files are read. Auto-detected when
        omitted.
    _force_reload:
        Bypass cache and reload from disk.
    overrides:
        Field values that win over every other source. Calls with
        overrides are never cached.

    Raises
    ------
    ConfigError
        If any value fails validation.
    """
    from .loader import discover_env_files, find_repo_root

    root = (repo_root or find_repo_root()).resolve()
    cache_key = str(root)

    if not overrides and not _force_reload and cache_key in _settings_cache:
        return _settings_cache[cache_key]

    env_files = discover_env_files(root)
    try:
        settings = ChangescribeSettings(
            _env_file=env_files or None,  # type: ignore[call-arg]
            **overrides,
        )
    except pydantic.ValidationError as exc:
        raise ConfigError(
            f"Invalid changescribe settings: {exc.error_count()} error(s)",
            cause=exc,
        ).with_context(path=str(root)) from exc

    if not overrides:
        _settings_cache[cache_key] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
