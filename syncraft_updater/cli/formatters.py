"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from syncraft_updater.exceptions import FileSystemError
from syncraft_updater.models.config import UpdaterConfig
from syncraft_updater.models.manifest import Manifest
from syncraft_updater.utils.formatting import format_duration, format_size, format_speed

SUGGESTIONS_MAP = {
    "ProtocolError": [
        "• The launcher sent an invalid or truncated manifest.",
        "• Make sure the manifest is piped to standard input in binary form.",
        "• Run `syncraft-updater inspect <file>` to check a saved manifest.",
    ],
    "NetworkError": [
        "• Check that the update server is running and reachable.",
        "• Check your internet connection or firewall.",
        "• The server may not know one of the requested hashes.",
    ],
    "ArtifactIntegrityError": [
        "• A downloaded file did not match its expected hash.",
        "• Check the `verify_algorithm` setting matches the server's hashes.",
    ],
    "FileSystemError": [
        "• Close every program that may be using the game files.",
        "• Make sure you can write to the install directory.",
        "• Files listed as not applied still have their old version.",
    ],
    "ConfigurationError": [
        "• Fix the value reported above in your config file.",
        "• Run `syncraft-updater init --force` to write a fresh config.",
    ],
}


def _suggestions_for(error: Exception) -> list[str]:
    """Suggestions of the closest exception class that has any."""
    for cls in type(error).__mro__:
        if cls.__name__ in SUGGESTIONS_MAP:
            return SUGGESTIONS_MAP[cls.__name__]
    return ["• Run the command with -vv for detailed logs."]


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """
    Renders an error as a Rich Panel: the message, what the user can do about
    it and, for apply failures, which files were and were not changed.
    """
    lines = Table.grid(padding=(0, 0))
    lines.add_row(
        Text.assemble((f"{type(error).__name__}: ", "bold red"), str(error))
    )
    lines.add_row("")
    lines.add_row(Text("What you can do", style="bold yellow"))
    for suggestion in _suggestions_for(error):
        lines.add_row(Text(suggestion))

    if isinstance(error, FileSystemError):
        for label, paths, style in (
            ("Applied", error.applied, "green"),
            ("Not applied", error.pending, "yellow"),
        ):
            if paths:
                lines.add_row("")
                lines.add_row(Text(f"{label}: {', '.join(paths)}", style=style))

    if context:
        lines.add_row("")
        lines.add_row(
            Text(", ".join(f"{k}={v}" for k, v in context.items()), style="dim")
        )

    return Panel(
        lines,
        title="[bold red]Update Error[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config: UpdaterConfig, console: Console | None = None):
    """Displays the current configuration."""
    console = console or Console()
    content = ""
    for key in sorted(UpdaterConfig.get_ini_keys()):
        value = getattr(config, key)
        content += f"{key} = {value if value != '' else '[dim](empty)[/dim]'}\n"

    source = str(config_path) if config_path.is_file() else "defaults"
    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{escape(source)}[/dim])",
            border_style="cyan",
        )
    )


def print_manifest(manifest: Manifest, console: Console | None = None):
    """Displays a decoded manifest as tables."""
    console = console or Console()

    header = Table(show_header=False, box=None, padding=(0, 2))
    header.add_column(style="bold cyan")
    header.add_column()
    header.add_row("Server:", f"{manifest.endpoint.host}:{manifest.endpoint.port}")
    header.add_row("Install Root:", escape(str(manifest.install_root)))
    header.add_row("Removals:", f"[red]{len(manifest.removals)}[/red]")
    header.add_row("Updates:", f"[green]{len(manifest.updates)}[/green]")
    console.print(Panel(header, title="[bold]Update Manifest[/bold]", border_style="cyan"))

    for title, entries, style in (
        ("Files to remove", manifest.removals, "red"),
        ("Files to update", manifest.updates, "green"),
    ):
        if not entries:
            continue
        table = Table(title=title, box=box.SIMPLE)
        table.add_column("Path", style=style)
        table.add_column("Hash", style="dim")
        for path, content_hash in entries.items():
            table.add_row(escape(path), escape(content_hash))
        console.print(table)


def print_summary_panel(outcome, console: Console | None = None):
    """Displays the final summary of an update run."""
    console = console or Console()
    stats = outcome.stats

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.artifacts_downloaded}[/bold green]"
    )
    stats_table.add_row("✓ Installed:", f"[green]{stats.files_installed}[/green]")
    stats_table.add_row("✗ Removed:", f"[yellow]{stats.files_removed}[/yellow]")
    stats_table.add_row("", "")  # Spacer
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.bytes_downloaded)}[/cyan]"
    )
    duration_s = stats.duration_s
    stats_table.add_row(
        "Avg. Speed:",
        f"[magenta]{format_speed(stats.bytes_downloaded, duration_s)}[/magenta]",
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if outcome.succeeded:
        title, border_color = "[bold]Update Complete![/bold]", "green"
    elif outcome.cancelled:
        title, border_color = "[bold]Update Cancelled[/bold]", "yellow"
    else:
        title, border_color = "[bold]Update Failed[/bold]", "red"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
