"""
Configuration for changescribe.

Usage::

    from changescribe.core.config import get_settings

    settings = get_settings()
    settings.changeset_dir      # ".changeset"
    settings.max_header_length  # 72
"""

from .loader import discover_env_files, find_repo_root
from .settings import ChangescribeSettings, clear_settings_cache, get_settings

__all__ = [
    "ChangescribeSettings",
    "clear_settings_cache",
    "discover_env_files",
    "find_repo_root",
    "get_settings",
]
