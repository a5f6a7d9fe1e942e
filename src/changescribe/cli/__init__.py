"""
CLI layer for changescribe.

A Typer application whose commands delegate to ``changescribe.pipeline``.
This package handles only terminal transport: argument parsing, coloured
output, and table formatting.

Entry point::

    changescribe --help
"""

from changescribe.cli.app import app

__all__ = ["app"]
