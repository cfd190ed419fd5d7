"""Rich terminal display for spaceleft."""

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from spaceleft.models import Snapshot, SortMode

console = Console()

SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_size(size_bytes: int) -> str:
    """Format bytes with binary units and at most two decimals (1536 -> '1.5 KB')."""
    value = float(size_bytes)
    order = 0
    while value >= 1024 and order < len(SIZE_UNITS) - 1:
        order += 1
        value /= 1024
    number = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{number} {SIZE_UNITS[order]}"


def minimize_path(path: str, width: int = 60) -> str:
    """Keep the tail of long paths so they fit in ``width`` columns."""
    if len(path) > width:
        return "..." + path[len(path) - (width - 3) :]
    return path.ljust(width)


def show_summary(snapshot: Snapshot) -> None:
    """Display snapshot header information."""
    table = Table(title="Snapshot", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("Root", snapshot.root_path)
    table.add_row("Scanned", snapshot.scan_timestamp.strftime("%Y-%m-%d %H:%M:%S"))
    table.add_row("Files", f"{snapshot.file_count:,}")
    table.add_row("Directories", f"{snapshot.directory_count:,}")
    table.add_row("Total size", f"[bold]{format_size(snapshot.total_size)}[/bold]")

    console.print(table)


def show_files(snapshot: Snapshot, mode: SortMode = SortMode.SIZE, top: int = 20) -> None:
    """Display the files tab."""
    records = snapshot.sorted_files(mode)
    if not records:
        console.print("[yellow]No files in this snapshot.[/yellow]")
        return

    table = Table(title=f"Files by {mode.value}", show_header=True, header_style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Path")

    for record in records[:top]:
        table.add_row(format_size(record.size), minimize_path(record.path))

    console.print(table)
    console.print(f"[dim]Showing {min(top, len(records))} of {len(records):,} files[/dim]")


def show_directories(
    snapshot: Snapshot, mode: SortMode = SortMode.SIZE, top: int = 20
) -> None:
    """Display the directories tab."""
    entries = snapshot.sorted_directories(mode)
    if not entries:
        console.print("[yellow]No directories in this snapshot.[/yellow]")
        return

    table = Table(title=f"Directories by {mode.value}", show_header=True, header_style="bold")
    table.add_column("Total", justify="right")
    table.add_column("Path")

    for entry in entries[:top]:
        table.add_row(format_size(entry.total_size), minimize_path(entry.path))

    console.print(table)
    console.print(f"[dim]Showing {min(top, len(entries))} of {len(entries):,} directories[/dim]")


def show_scanning_progress() -> Progress:
    """Create progress bar for scanning."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
