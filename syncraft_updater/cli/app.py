"""
Defines the command-line interface for the updater using Typer.
Without a subcommand the updater reads its manifest from standard input.
"""

import asyncio
import io
import json
import logging
import os
import sys
from pathlib import Path
from typing import BinaryIO

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from syncraft_updater import __version__
from syncraft_updater.core.update_session import UpdateSession, run_update
from syncraft_updater.exceptions import ProtocolError, UpdaterError
from syncraft_updater.models.manifest import ManifestDocument
from syncraft_updater.protocol import read_manifest, write_manifest
from syncraft_updater.storage.config_manager import ConfigManager
from syncraft_updater.utils.structured_logger import create_structured_logger

from .formatters import print_config, print_manifest, print_summary_panel
from .progress_manager import RichUpdateUI

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("syncraft_updater")

app = typer.Typer(
    name="syncraft-updater",
    help=(
        "Downloads and applies game file updates. The launcher pipes a binary"
        " manifest to standard input."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "syncraft-updater"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """syncraft Updater"""
    if version:
        console.print(
            f"[bold]syncraft-updater[/bold] version [cyan]{__version__}[/cyan]"
        )
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("syncraft_updater").setLevel(log_level)

    if show_config:
        try:
            config = ConfigManager(CONFIG_FILE).load_config()
        except UpdaterError as e:
            console.print(f"[red]✗ Configuration is invalid: {escape(str(e))}[/red]")
            raise typer.Exit(code=1) from e
        print_config(CONFIG_FILE, config, console)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        _run_update(manifest_path=None, cli_options={}, show_progress=True)


def _open_manifest_source(manifest_path: Path | None) -> BinaryIO:
    """Returns the binary stream holding the manifest."""
    if manifest_path is not None:
        try:
            return io.BytesIO(manifest_path.read_bytes())
        except OSError as e:
            console.print(
                f"[red]✗ Could not read manifest '{manifest_path}': {escape(str(e))}[/red]"
            )
            raise typer.Exit(code=1) from e

    if sys.stdin.isatty():
        console.print(
            "[yellow]⚠️  No manifest on stdin. The launcher must pipe it in,"
            " or use --manifest.[/yellow]"
        )
        console.print(
            "[dim]Examples:[/dim]\n"
            "  [cyan]syncraft-updater < update.bin[/cyan]\n"
            "  [cyan]syncraft-updater run --manifest update.bin[/cyan]"
        )
        raise typer.Exit(code=1)
    return sys.stdin.buffer


def _run_update(
    manifest_path: Path | None, cli_options: dict, show_progress: bool
) -> None:
    """Loads the configuration and runs one update, exiting with its outcome."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    except UpdaterError as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1) from e

    source = _open_manifest_source(manifest_path)
    base_logger, events = create_structured_logger(
        log_dir=CONFIG_DIR / "logs",
        enable_json=config.json_log,
        enable_console=log.isEnabledFor(logging.DEBUG),
    )

    async def _update_async():
        session = UpdateSession(config, events=events)
        async with RichUpdateUI(console, enabled=show_progress) as ui:
            return await run_update(session, source, ui)

    try:
        outcome = asyncio.run(_update_async())
    finally:
        base_logger.close()

    print_summary_panel(outcome, console)
    if not outcome.succeeded and not outcome.cancelled:
        raise typer.Exit(code=1)


@app.command(name="run")
def run_command(
    manifest: Path | None = typer.Option(
        None,
        "-m",
        "--manifest",
        help="Read the manifest from a file instead of standard input.",
        exists=True,
        dir_okay=False,
    ),
    grace: float | None = typer.Option(
        None,
        "--grace",
        help="Seconds to wait for the game to exit before downloading (default 3).",
    ),
    chunk_size: int | None = typer.Option(
        None, "--chunk-size", help="Download chunk size in bytes (default 65536)."
    ),
    verify: str | None = typer.Option(
        None,
        "--verify",
        help="Verify downloads with this hash algorithm (e.g. sha1, sha256).",
    ),
    cancel_during_apply: bool | None = typer.Option(
        None,
        "--cancel-during-apply/--no-cancel-during-apply",
        help="Allow Ctrl+C to stop the update between files of the apply phase.",
    ),
    temp_dir: str | None = typer.Option(
        None, "--temp-dir", help="Directory for downloaded temporary files."
    ),
    no_progress: bool = typer.Option(
        False, "--no-progress", help="Do not draw the progress bar."
    ),
):
    """Download and apply an update."""
    cli_options = {
        key: value
        for key, value in {
            "grace_period": grace,
            "chunk_size": chunk_size,
            "verify_algorithm": verify,
            "cancel_during_apply": cancel_during_apply,
            "temp_dir": temp_dir,
        }.items()
        if value is not None
    }
    _run_update(manifest, cli_options, show_progress=not no_progress)


@app.command()
def inspect(
    manifest: Path = typer.Argument(  # noqa: B008
        ..., help="Binary manifest file.", exists=True, dir_okay=False
    ),
):
    """Decode a manifest file and display its contents."""
    try:
        with open(manifest, "rb") as f:
            decoded = read_manifest(f)
    except ProtocolError as e:
        console.print(f"[red]✗ Invalid manifest: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    print_manifest(decoded, console)


@app.command()
def encode(
    source: Path = typer.Argument(  # noqa: B008
        ..., help="JSON description of the manifest.", exists=True, dir_okay=False
    ),
    output: Path = typer.Argument(..., help="Where to write the binary manifest."),  # noqa: B008
):
    """Build a binary manifest from a JSON description."""
    try:
        with open(source, encoding="utf-8") as f:
            document = ManifestDocument.model_validate(json.load(f))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]✗ Invalid manifest description: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    buffer = io.BytesIO()
    try:
        write_manifest(document.to_manifest(), buffer)
    except ProtocolError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    output.write_bytes(buffer.getvalue())
    console.print(
        f"[green]✓ Wrote manifest with {len(document.remove)} removal(s) and "
        f"{len(document.update)} update(s) to '{output}'.[/green]"
    )


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Write a configuration file holding the default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    try:
        ConfigManager(CONFIG_FILE).save_new_config()
    except UpdaterError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
