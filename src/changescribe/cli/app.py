"""
Root Typer application for the changescribe CLI.

All logic lives in :mod:`changescribe.pipeline`; commands here only parse
arguments, call the pipeline, and format output.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import typer
from typer import Typer

from changescribe.cli.utils import console, echo_json, fail, print_report
from changescribe.core.errors import ChangescribeError

if TYPE_CHECKING:
    from changescribe.core.config import ChangescribeSettings

app = Typer(
    name="changescribe",
    help="changescribe: classify staged changes, emit changesets and README advice.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("changescribe")
        except PackageNotFoundError:
            from changescribe import __version__ as v
        typer.echo(f"changescribe {v}")
        raise typer.Exit()


def _configure_logging(settings: ChangescribeSettings, verbose: bool) -> None:
    from changescribe.logging import configure_logging

    configure_logging(
        level="DEBUG" if verbose else settings.log_level,  # type: ignore[arg-type]
        format=settings.log_format,  # type: ignore[arg-type]
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """changescribe CLI: commit messages, changelog fragments, README advice."""
    from changescribe.core.config import get_settings

    ctx.obj = {"verbose": verbose}
    try:
        settings = get_settings()
    except ChangescribeError as exc:
        raise fail(exc) from exc
    _configure_logging(settings, verbose)


# ── report ───────────────────────────────────────────────────────────────


@app.command("report")
def report(
    ctx: typer.Context,
    message: str = typer.Option("", "--message", "-m", help="Draft commit message."),
    message_file: Path | None = typer.Option(  # noqa: UP007
        None, "--message-file", "-F", exists=True, dir_okay=False, help="Read the draft message from a file.",
    ),
    type_: str | None = typer.Option(None, "--type", "-t", help="Explicit commit type (feat, fix, ...)."),  # noqa: UP007
    scope: str | None = typer.Option(None, "--scope", "-s", help="Commit scope."),  # noqa: UP007
    subject: str | None = typer.Option(None, "--subject", help="Commit subject (overrides the draft header)."),  # noqa: UP007
    bullet: list[str] | None = typer.Option(None, "--bullet", "-b", help="Body bullet (repeatable)."),  # noqa: UP007
    api_changed: bool | None = typer.Option(  # noqa: UP007
        None, "--api-changed/--no-api-changed", help="Override the public-interface diff heuristic.",
    ),
    write: bool = typer.Option(False, "--write", "-w", help="Write changelog fragments."),
    fixture: Path | None = typer.Option(  # noqa: UP007
        None, "--fixture", exists=True, dir_okay=False, help="Read staged changes from a JSON fixture.",
    ),
    repo: Path = typer.Option(Path("."), "--repo", "-r", help="Directory inside the repository."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
) -> None:
    """Classify staged changes and report commit message, fragments, and README advice.

    Settings (including log level and format) come from the repository
    that contains ``--repo``, not from the current directory.
    """
    from changescribe.core.config import find_repo_root, get_settings
    from changescribe.pipeline import ChangeRequest, load_fixture_snapshot, run_pipeline

    repo_dir = repo.resolve()
    try:
        settings = get_settings(repo_root=find_repo_root(repo_dir))
    except ChangescribeError as exc:
        raise fail(exc) from exc
    _configure_logging(settings, bool(ctx.obj and ctx.obj.get("verbose")))

    text = message_file.read_text(encoding="utf-8") if message_file else message
    request = ChangeRequest(
        message=text,
        explicit_type=type_,
        scope=scope,
        subject=subject,
        bullets=tuple(bullet or ()),
        api_changed=api_changed,
    )

    try:
        snapshot = load_fixture_snapshot(fixture) if fixture else None
        result = run_pipeline(request, repo_dir=repo_dir, snapshot=snapshot, settings=settings, write=write)
    except ChangescribeError as exc:
        raise fail(exc) from exc

    if as_json:
        echo_json(result.to_dict())
    else:
        print_report(result)


# ── classify ─────────────────────────────────────────────────────────────


@app.command("classify")
def classify(
    paths: list[str] = typer.Argument(..., help="Repository-relative paths."),
    as_json: bool = typer.Option(False, "--json", help="Print as JSON."),
) -> None:
    """Show which workspace root owns each path."""
    from rich.markup import escape
    from rich.table import Table

    from changescribe.pipeline import match_workspace_root

    rows = []
    for path in paths:
        match = match_workspace_root(path)
        rows.append({
            "path": path,
            "root": match[0] if match else None,
            "kind": match[1].value if match else None,
        })

    if as_json:
        echo_json(rows)
        return

    table = Table()
    table.add_column("path", overflow="fold")
    table.add_column("workspace", overflow="fold")
    table.add_column("kind")
    for row in rows:
        root = escape(row["root"]) if row["root"] else "[dim]unmanaged[/dim]"
        table.add_row(escape(row["path"]), root, row["kind"] or "-")
    console.print(table)


# ── bumps ────────────────────────────────────────────────────────────────


@app.command("bumps")
def bumps(as_json: bool = typer.Option(False, "--json", help="Print as JSON.")) -> None:
    """Print the category → version bump table."""
    from rich.table import Table

    from changescribe.pipeline import BUMP_TABLE, ChangeCategory

    if as_json:
        echo_json({
            c.value: {"breaking": BUMP_TABLE[(c, True)].value, "default": BUMP_TABLE[(c, False)].value}
            for c in ChangeCategory
        })
        return

    table = Table(title="Version bumps")
    table.add_column("category")
    table.add_column("breaking=false")
    table.add_column("breaking=true")
    for category in ChangeCategory:
        table.add_row(
            category.value,
            BUMP_TABLE[(category, False)].value,
            BUMP_TABLE[(category, True)].value,
        )
    console.print(table)


# ── parse-fragment ───────────────────────────────────────────────────────


@app.command("parse-fragment")
def parse_fragment_cmd(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Fragment file."),
    as_json: bool = typer.Option(False, "--json", help="Print as JSON."),
) -> None:
    """Parse a changelog fragment and print its workspace, bump, and body."""
    from changescribe.pipeline import parse_fragment

    try:
        fragment = parse_fragment(file.read_text(encoding="utf-8"))
    except ChangescribeError as exc:
        raise fail(exc.with_context(path=str(file))) from exc

    if as_json:
        echo_json({
            "workspace_name": fragment.workspace_name,
            "bump": fragment.bump.value,
            "body": list(fragment.body),
        })
        return

    from rich.markup import escape

    console.print(f"[bold]{escape(fragment.workspace_name)}[/bold]: {fragment.bump.value}", highlight=False)
    for line in fragment.body:
        console.print(f"  - {line}", markup=False, highlight=False)


# ── config ───────────────────────────────────────────────────────────────


@app.command("config")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show the resolved configuration."""
    from rich.markup import escape

    from changescribe.core.config import discover_env_files, find_repo_root, get_settings

    settings = get_settings()

    if format == "json":
        typer.echo(settings.model_dump_json(indent=2))
        return

    if format == "env":
        for key, value in sorted(settings.model_dump().items()):
            typer.echo(f"CHANGESCRIBE_{key.upper()}={value}")
        return

    root = find_repo_root()
    console.print(f"[bold]Repository Root:[/bold] {escape(str(root))}")
    env_files = discover_env_files(root)
    if env_files:
        console.print("[bold]Env Files Loaded:[/bold]")
        for f in env_files:
            console.print(f"  • {escape(str(f))}")
    for key, value in sorted(settings.model_dump().items()):
        console.print(f"  [cyan]{key}[/cyan]: {escape(str(value))}", highlight=False)
