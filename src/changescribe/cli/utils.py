"""
CLI utility helpers - output formatting and error rendering.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from changescribe.core.errors import ChangescribeError, CollectionError
from changescribe.pipeline.model import PipelineReport

console = Console()
err_console = Console(stderr=True)


# ── Errors ───────────────────────────────────────────────────────────────


def fail(error: ChangescribeError) -> typer.Exit:
    """Print *error* and return the ``typer.Exit`` to raise.

    Collection failures exit 1; every other error exits 2.
    """
    err_console.print(f"[bold red]Error[/bold red] ({type(error).__name__}): {escape(error.message)}")
    context = error.context.to_dict()
    for key, value in context.items():
        err_console.print(f"  [dim]{key}[/dim]: {escape(str(value))}")
    return typer.Exit(code=1 if isinstance(error, CollectionError) else 2)


# ── Output helpers ───────────────────────────────────────────────────────


def echo_json(payload: Any) -> None:
    """Write *payload* as plain JSON on stdout (no markup, no wrapping)."""
    typer.echo(json.dumps(payload, indent=2, sort_keys=False, default=str))


def print_report(report: PipelineReport) -> None:
    """Render a ``PipelineReport`` as commit message, tables, and warnings."""
    decision = report.decision
    breaking = " [bold red](breaking)[/bold red]" if decision.breaking else ""
    console.print(
        f"[bold]Category:[/bold] {decision.category.value}{breaking} "
        f"[dim]({decision.source}: {decision.reason})[/dim]"
    )

    console.print("\n[bold]Commit message:[/bold]")
    if report.commit_message is None:
        console.print(f"[red]{type(report.commit_error).__name__}[/red]: {escape(report.commit_error.message)}")
    else:
        console.print(report.commit_message, markup=False, highlight=False, soft_wrap=True)

    if report.outcomes:
        table = Table(title="Workspaces", show_lines=False, pad_edge=False)
        table.add_column("root", overflow="fold")
        table.add_column("name", overflow="fold")
        table.add_column("bump")
        table.add_column("fragment", overflow="fold")
        table.add_column("status", overflow="fold")
        for outcome in report.outcomes:
            name = outcome.workspace.declared_name if outcome.workspace else "-"
            bump = outcome.bump.value if outcome.bump else "-"
            fragment = outcome.fragment_path or ("pending" if outcome.fragment else "-")
            status = (
                "[green]ok[/green]" if outcome.ok
                else f"[red]{type(outcome.error).__name__}[/red]: {escape(outcome.error.message)}"
            )
            table.add_row(escape(outcome.root_path), escape(name), bump, escape(fragment), status)
        console.print(table)
    else:
        console.print("\n[dim]No staged files belong to a workspace.[/dim]")

    recommendations = [o.readme for o in report.outcomes if o.readme is not None]
    if recommendations:
        console.print("\n[bold]README recommendations:[/bold]")
        for rec in recommendations:
            if not rec.sections:
                console.print(f"  [cyan]{escape(rec.workspace_name)}[/cyan]: [dim]no sections[/dim]")
                continue
            console.print(f"  [cyan]{escape(rec.workspace_name)}[/cyan]")
            for section, instruction in rec.sections.items():
                console.print(f"    • {section}: {escape(instruction)}")

    if report.unmanaged_paths:
        console.print("\n[bold]Unmanaged paths:[/bold]")
        for path in report.unmanaged_paths:
            console.print(f"  {path}", markup=False)

    if report.warnings:
        console.print(f"\n{len(report.warnings)} warning(s):")
        for w in report.warnings:
            console.print(f"  [yellow]{w.code}[/yellow] {escape(f'[{w.source}]')} {escape(w.message)}", highlight=False)
