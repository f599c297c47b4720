"""Typer application and CLI entry point for fetchcache.

This module wires together the top-level Typer application, registers the
cache commands (``list``, ``keys``, ``match``, ``add``, ``delete``) and the
``config`` group.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
:class:`~fetchcache.exceptions.FetchCacheError` exits with the error's
``exit_code``; any other exception is written to a crash log under the
data directory.

See Also:
    :mod:`fetchcache.config`: Cache root and global configuration resolution.
    :mod:`fetchcache.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from fetchcache import __version__
from fetchcache.commands.caches import (
    add_command,
    delete_command,
    keys_command,
    list_command,
    match_command,
)
from fetchcache.commands.config import config_app
from fetchcache.config import get_data_dir, load_global_config
from fetchcache.exceptions import ConfigError, FetchCacheError
from fetchcache.exit_codes import EXIT_GENERIC_FAILURE
from fetchcache.output import OutputFormat, OutputManager, error, set_output


app = typer.Typer(
    name="fetchcache",
    help="Inspect and manage file-backed HTTP response caches.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)

app.command("list")(list_command)
app.command("keys")(keys_command)
app.command("match")(match_command)
app.command("add")(add_command)
app.command("delete")(delete_command)
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"fetchcache {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    root: Optional[str] = typer.Option(
        None, "--root", "-r", help="Cache root directory."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmations."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~fetchcache.output.OutputManager` from
    CLI flags, falling back to ``output.format`` from the global config,
    and stores shared options (``root``, ``force``) in the Typer context so
    that sub-commands can read them via ``ctx.obj``. An unreadable global
    config only produces a warning here, so ``config reset`` can still run.
    """
    fmt = OutputFormat.AUTO
    config_error: Optional[ConfigError] = None
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        try:
            fmt = OutputFormat(load_global_config().output.format)
        except ConfigError as exc:
            config_error = exc

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    if config_error is not None:
        output.warning(f"Using default output settings: {config_error}")

    ctx.ensure_object(dict)
    ctx.obj["root"] = root
    ctx.obj["force"] = force


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback to a timestamped crash log and return its path."""
    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(f"{type(exc).__name__}: {exc}\n\n{traceback.format_exc()}")
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``fetchcache`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except FetchCacheError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
