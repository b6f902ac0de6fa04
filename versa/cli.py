"""Versa CLI - checkpoints and branches for files on disk."""

import asyncio
import json
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import get_args

import click
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from versa import __version__
from versa.atomic import atomic_write_json, atomic_write_text, read_json
from versa.config import (
    CONFIG_FILENAME,
    PROJECT_DIR_NAME,
    VersaConfig,
    detect_project_root,
    get_versa_config,
    get_versa_home,
    parse_config_value,
)
from versa.engine import CheckpointEngine
from versa.errors import format_error
from versa.logging import configure_logging
from versa.types import ChangeType

console = Console()

CHANGE_TYPES = list(get_args(ChangeType))


def _project_root() -> Path:
    return detect_project_root() or Path.cwd()


def _normalize_path(file_path: str) -> str:
    """Key files by project-relative POSIX path when inside the project."""
    resolved = Path(file_path).resolve()
    try:
        return resolved.relative_to(_project_root().resolve()).as_posix()
    except ValueError:
        return resolved.as_posix()


def _resolve_path(stored: str) -> Path:
    path = Path(stored)
    return path if path.is_absolute() else _project_root() / path


def _format_ts(millis: int | None) -> str:
    if millis is None:
        return "-"
    return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    sys.exit(1)


def _read_source(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        _fail(f"Not UTF-8 text: {path}")
    except OSError as e:
        _fail(f"Cannot read file: {e.strerror or e} ({path})")


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def main(ctx, verbose):
    """Versa: checkpoint and branch versioning for your files."""
    config = get_versa_config()
    configure_logging(
        "DEBUG" if verbose else config.log_level,
        log_file=get_versa_home() / "logs" / "versa.log",
    )

    engine = CheckpointEngine.for_project(config=config)
    asyncio.run(engine.load())
    ctx.obj = engine
    # Persist whatever the command changed before the process exits
    ctx.call_on_close(engine.close)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--type", "-t", "change_type", type=click.Choice(CHANGE_TYPES), default="manual")
@click.option("--message", "-m", "description", default="", help="Checkpoint description")
@click.option("--lang", "language", help="Language hint (default from config)")
@click.option("--auto", "auto", is_flag=True, help="Treat as automatic (skipped if disabled)")
@click.pass_obj
def snap(engine, file, change_type, description, language, auto):
    """Create a checkpoint of FILE."""
    content = _read_source(Path(file))
    checkpoint = engine.create(
        _normalize_path(file),
        content,
        language=language,
        change_type=change_type,
        description=description,
        manual=not auto,
    )
    if checkpoint is None:
        _fail("Checkpoint not created (automatic checkpoints are disabled)")

    console.print(f"[green]✓[/green] {checkpoint.id}  {checkpoint.description}")
    console.print(
        f"  [dim]{checkpoint.file_path} on {checkpoint.branch} | "
        f"{checkpoint.metadata.lines} lines, {checkpoint.metadata.size} chars, "
        f"#{checkpoint.metadata.hash}[/dim]"
    )


@main.command("log")
@click.argument("file", required=False)
@click.option("--branch", "-b", help="Show one branch instead of all checkpoints")
@click.option("--limit", "-n", default=20, help="Number of checkpoints to show")
@click.pass_obj
def log_cmd(engine, file, branch, limit):
    """List checkpoints, newest first."""
    if branch:
        if branch not in engine.list_branches():
            _fail(f"Branch '{branch}' not found")
        checkpoints = list(reversed(engine.list_checkpoints(branch)))
        if file:
            key = _normalize_path(file)
            checkpoints = [cp for cp in checkpoints if cp.file_path == key]
    elif file:
        checkpoints = engine.get_for_file(_normalize_path(file))
    else:
        checkpoints = engine.checkpoints

    if not checkpoints:
        console.print("[yellow]No checkpoints.[/yellow]")
        return

    table = Table()
    table.add_column("ID", style="cyan")
    table.add_column("Time")
    table.add_column("File")
    table.add_column("Branch")
    table.add_column("Description")
    table.add_column("Lines", justify="right")
    table.add_column("Hash", style="dim")

    for cp in checkpoints[:limit]:
        marker = "" if cp.manual else " [dim](auto)[/dim]"
        table.add_row(
            cp.id,
            _format_ts(cp.timestamp),
            cp.file_path,
            cp.branch,
            f"{cp.description}{marker}",
            str(cp.metadata.lines),
            cp.metadata.hash,
        )

    console.print(table)
    if len(checkpoints) > limit:
        console.print(f"[dim]... and {len(checkpoints) - limit} more[/dim]")


@main.command()
@click.argument("checkpoint_id")
@click.pass_obj
def show(engine, checkpoint_id):
    """Show a checkpoint's metadata and content."""
    cp = engine.get(checkpoint_id)
    if cp is None:
        _fail(f"Checkpoint '{checkpoint_id}' not found")

    console.print(f"[bold]{cp.id}[/bold]  {cp.description}")
    console.print(
        f"[dim]{_format_ts(cp.timestamp)} | {cp.file_path} | branch {cp.branch} | "
        f"{cp.change_type}{'' if cp.manual else ' (auto)'}[/dim]"
    )
    console.print(
        f"[dim]{cp.metadata.lines} lines, {cp.metadata.size} chars, #{cp.metadata.hash}[/dim]"
    )
    console.print()
    console.print(Syntax(cp.content, cp.language, line_numbers=True))


@main.command()
@click.argument("checkpoint_id")
@click.option("--output", "-o", "output", type=click.Path(dir_okay=False), help="Write here")
@click.option("--stdout", "to_stdout", is_flag=True, help="Print content instead of writing")
@click.pass_obj
def restore(engine, checkpoint_id, output, to_stdout):
    """Restore a checkpoint's content (to its file by default)."""
    result = engine.restore(checkpoint_id)
    if result is None:
        _fail(f"Checkpoint '{checkpoint_id}' not found")

    if to_stdout:
        click.echo(result.content, nl=False)
        return

    target = Path(output) if output else _resolve_path(result.checkpoint.file_path)
    # Keep the file's existing permissions where it already exists
    mode = target.stat().st_mode & 0o777 if target.exists() else 0o644
    write = atomic_write_text(target, result.content, mode=mode)
    if write.is_err():
        _fail(format_error(write.unwrap_err()))

    console.print(f"[green]✓[/green] Restored {result.checkpoint.id} → {target}")


@main.command()
@click.argument("checkpoint_id")
@click.argument("other_id", required=False)
@click.option(
    "--against",
    type=click.Path(exists=True, dir_okay=False),
    help="Compare with this file's current content (default: the checkpoint's file)",
)
@click.pass_obj
def diff(engine, checkpoint_id, other_id, against):
    """Compare a checkpoint with another, or with the file on disk."""
    cp = engine.get(checkpoint_id)
    if cp is None:
        _fail(f"Checkpoint '{checkpoint_id}' not found")

    current = None
    if not other_id:
        live = Path(against) if against else _resolve_path(cp.file_path)
        if not live.exists():
            _fail(f"No current content to compare: {live} does not exist")
        current = _read_source(live)

    result = engine.compare(checkpoint_id, other_id, current_content=current)
    if result is None:
        _fail(f"Checkpoint '{other_id}' not found")

    target = other_id or "current"
    console.print(f"[bold]{checkpoint_id}[/bold] → [bold]{target}[/bold]")
    console.print(
        f"  [green]+{result.additions}[/green]  [red]-{result.deletions}[/red]  "
        f"[yellow]~{result.changes}[/yellow]  ({result.total} lines differ)"
    )


@main.command()
@click.argument("checkpoint_id")
@click.pass_obj
def rm(engine, checkpoint_id):
    """Delete a checkpoint."""
    if not engine.delete(checkpoint_id):
        _fail(f"Checkpoint '{checkpoint_id}' not found")
    console.print(f"[green]✓[/green] Deleted {checkpoint_id}")


@main.command()
@click.argument("file", required=False)
@click.option("--force", "-f", is_flag=True, help="Skip confirmation")
@click.pass_obj
def clear(engine, file, force):
    """Delete FILE's checkpoints, or everything (resets to main)."""
    scope = f"all checkpoints of {file}" if file else "ALL checkpoints and branches"
    if not force and not click.confirm(f"Delete {scope}?"):
        console.print("Cancelled.")
        return

    engine.clear(_normalize_path(file) if file else None)
    console.print(f"[green]✓[/green] Cleared {scope}")


@main.group()
def branch():
    """Manage branches."""
    pass


@branch.command("list")
@click.pass_obj
def branch_list(engine):
    """List branches."""
    table = Table()
    table.add_column("")
    table.add_column("Branch")
    table.add_column("Checkpoints", justify="right")
    for name in engine.list_branches():
        active = "[green]*[/green]" if name == engine.current_branch else ""
        table.add_row(active, name, str(len(engine.list_checkpoints(name))))
    console.print(table)


@branch.command("create")
@click.argument("name")
@click.option("--from", "from_branch", help="Source branch (default: current)")
@click.pass_obj
def branch_create(engine, name, from_branch):
    """Create a branch as a copy of another."""
    if not engine.create_branch(name, from_branch):
        _fail(f"Could not create branch '{name}' (exists, or unknown source)")
    console.print(f"[green]✓[/green] Created branch {name}")


@branch.command("switch")
@click.argument("name")
@click.pass_obj
def branch_switch(engine, name):
    """Make NAME the branch new checkpoints attach to."""
    if not engine.switch_branch(name):
        _fail(f"Branch '{name}' not found")
    console.print(f"[green]✓[/green] Switched to {name}")


@main.command("export")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--file", "file", help="Only this file's checkpoints")
@click.pass_obj
def export_cmd(engine, path, file):
    """Export checkpoints to a JSON file."""
    data = engine.export_state(_normalize_path(file) if file else None)
    result = atomic_write_json(Path(path), data, indent=2)
    if result.is_err():
        _fail(format_error(result.unwrap_err()))
    console.print(f"[green]✓[/green] Exported {len(data['checkpoints'])} checkpoints to {path}")


@main.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def import_cmd(engine, path):
    """Merge checkpoints from an export file."""
    result = read_json(Path(path))
    if result.is_err():
        _fail(format_error(result.unwrap_err()))

    before = len(engine.checkpoints)
    if not engine.import_state(result.unwrap()):
        _fail(f"{path} is not a checkpoint export")
    console.print(
        f"[green]✓[/green] Imported from {path} "
        f"({len(engine.checkpoints) - before:+d} checkpoints)"
    )


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output raw JSON")
@click.pass_obj
def stats(engine, as_json):
    """Show checkpoint statistics."""
    s = engine.get_stats()
    if as_json:
        click.echo(json.dumps(s.to_dict(), indent=2))
        return

    console.print(f"[bold]Checkpoints:[/bold] {s.total_checkpoints} / {engine.store.max_checkpoints}")
    console.print(f"  manual: {s.manual_checkpoints}  auto: {s.auto_checkpoints}")
    console.print(f"  files: {s.file_count}")
    console.print(f"[bold]Branches:[/bold] {s.branches} (current: {s.current_branch})")
    console.print(f"  oldest: {_format_ts(s.oldest_checkpoint)}")
    console.print(f"  newest: {_format_ts(s.newest_checkpoint)}")


@main.group()
def config():
    """View or change settings."""
    pass


@config.command("list")
@click.pass_obj
def config_list(engine):
    """Show effective settings."""
    console.print("[bold]Configuration[/bold]")
    for key, value in engine.config.to_dict().items():
        console.print(f"  {key}: {value}")


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.option("--user", "user_level", is_flag=True, help="Write ~/.versa/config.yaml")
@click.pass_obj
def config_set(engine, key, value, user_level):
    """Set KEY to VALUE in the project (or user) config."""
    parsed = parse_config_value(key, value)
    if parsed.is_err():
        _fail(format_error(parsed.unwrap_err()))

    root = detect_project_root()
    versa_dir = get_versa_home() if user_level or root is None else root / PROJECT_DIR_NAME

    updated = replace(VersaConfig.load(versa_dir), **{key: parsed.unwrap()})
    problems = updated.validate()
    if problems:
        _fail("; ".join(problems))

    result = updated.save(versa_dir)
    if result.is_err():
        _fail(format_error(result.unwrap_err()))

    console.print(f"[green]✓[/green] {key} = {parsed.unwrap()}  [dim]({result.unwrap()})[/dim]")
    if user_level and root is not None and (root / PROJECT_DIR_NAME / CONFIG_FILENAME).exists():
        console.print("[dim]Project config takes precedence over this value.[/dim]")


if __name__ == "__main__":
    main()
