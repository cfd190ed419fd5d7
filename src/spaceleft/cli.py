"""CLI interface for spaceleft."""

import logging
from pathlib import Path
from typing import Callable, Optional

import typer
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, TaskID

from spaceleft import __version__
from spaceleft.analyzer import load_or_scan, load_snapshot, save_snapshot, scan, snapshot_path_for
from spaceleft.config import load_config
from spaceleft.display import (
    console,
    minimize_path,
    show_directories,
    show_files,
    show_scanning_progress,
    show_summary,
)
from spaceleft.errors import SpaceLeftError
from spaceleft.models import SortMode
from spaceleft.walker import WalkStrategy

# Create Typer app
app = typer.Typer(
    name="spaceleft",
    help="Disk usage snapshots - scan once, browse any time",
    add_completion=False,
)


def configure_logging(verbose: bool) -> None:
    """Route the package's log records through rich."""
    logger = logging.getLogger("spaceleft")
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(console=console, show_path=False))
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"spaceleft version {__version__}")
        raise typer.Exit()


def _progress_updater(progress: Progress, task: TaskID) -> Callable[[str, int], None]:
    def update(path: str, percent: int) -> None:
        progress.update(task, completed=percent, description=escape(minimize_path(path, 40)))

    return update


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Show debug logging."),
) -> None:
    """spaceleft - disk usage snapshots."""
    configure_logging(verbose)


@app.command(name="scan")
def scan_command(
    root: str = typer.Argument(..., help="Directory to scan"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Snapshot file (default: derived from ROOT)"
    ),
    single_pass: bool = typer.Option(
        False, "--single-pass", help="Skip the counting pass; progress is estimated"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="No progress bar"),
) -> None:
    """Scan a directory tree and save a snapshot."""
    config = load_config()
    target = output or snapshot_path_for(root, config)
    strategy = WalkStrategy.SINGLE_PASS if single_pass else config.strategy

    console.print(f"[bold blue]Scanning {escape(root)}...[/bold blue]")
    try:
        if quiet:
            snapshot = scan(root, strategy=strategy)
        else:
            with show_scanning_progress() as progress:
                task = progress.add_task("Counting...", total=100)
                snapshot = scan(root, _progress_updater(progress, task), strategy=strategy)
        save_snapshot(snapshot, target)
    except SpaceLeftError as e:
        console.print(f"[red]Scan failed: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]Scan cancelled[/yellow]")
        raise typer.Exit(130)

    console.print()
    show_summary(snapshot)
    console.print(f"[dim]Saved to {escape(str(target))}[/dim]")


@app.command()
def show(
    root: Optional[str] = typer.Argument(None, help="Scanned directory"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Snapshot file to open"),
    dirs: bool = typer.Option(False, "--dirs", "-d", help="Show directories instead of files"),
    sort: Optional[SortMode] = typer.Option(None, "--sort", "-s", help="Sort order"),
    top: Optional[int] = typer.Option(None, "--top", "-n", min=1, help="Rows to show"),
    rescan: bool = typer.Option(False, "--rescan", help="Scan again even if a snapshot exists"),
) -> None:
    """Browse a snapshot, scanning ROOT first if it has none."""
    if not root and not file:
        console.print("[red]Error: Specify a ROOT or --file[/red]")
        console.print("  spaceleft show /home/me")
        console.print("  spaceleft show --file home_me_scan.gz")
        raise typer.Exit(1)

    config = load_config()
    mode = sort or config.default_sort
    limit = top or config.top_n

    try:
        if file:
            snapshot = load_snapshot(file)
        else:
            with show_scanning_progress() as progress:
                task = progress.add_task("Loading...", total=100)
                snapshot = load_or_scan(
                    root, config, _progress_updater(progress, task), rescan=rescan
                )
    except SpaceLeftError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    console.print(
        f"Results for [bold]{escape(snapshot.root_path)}[/bold] | "
        f"Scanned: {snapshot.scan_timestamp:%Y-%m-%d %H:%M:%S}"
    )
    if dirs:
        show_directories(snapshot, mode, limit)
    else:
        show_files(snapshot, mode, limit)


@app.command()
def info(
    path: Path = typer.Argument(..., help="Snapshot file"),
) -> None:
    """Show the header of a snapshot file."""
    try:
        snapshot = load_snapshot(path)
    except SpaceLeftError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    show_summary(snapshot)


if __name__ == "__main__":
    app()
