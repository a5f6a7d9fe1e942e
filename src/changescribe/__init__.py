"""
changescribe - staged-change classifier and changeset generator for monorepos.

Reads the git index, maps staged files to workspaces, resolves a
conventional-commit category, and emits a commit message, one changelog
fragment per workspace, and README update recommendations.
"""

__version__ = "0.1.0"
