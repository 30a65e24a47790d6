"""
Main entry point for syncraft-updater.
The launcher starts this module with the manifest on standard input.
"""

import logging
import os
import sys

import typer
from rich.console import Console

from syncraft_updater.cli.app import app
from syncraft_updater.cli.formatters import format_error_with_suggestions
from syncraft_updater.exceptions import UpdaterError

log = logging.getLogger("syncraft_updater")


def _force_utf8_output() -> None:
    # Windows consoles default to a legacy code page.
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass


def main() -> None:
    """Runs the CLI and turns anything that escapes it into an exit code."""
    if os.name == "nt":
        _force_utf8_output()

    console = Console(stderr=True)
    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Update interrupted by user.[/yellow]")
        sys.exit(0)
    except UpdaterError as e:
        console.print()
        console.print(format_error_with_suggestions(e))
        sys.exit(1)
    except Exception as e:
        console.print()
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
