"""``emporix-provisioner`` command line: global options and logging setup."""

from __future__ import annotations

import logging
import os
import sys

import typer

from emporix_provisioner import __version__

app = typer.Typer(
    name="emporix-provisioner",
    no_args_is_help=True,
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"emporix-provisioner {__version__}")
        raise typer.Exit


_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_VERBOSITY = (logging.WARNING, logging.INFO, logging.DEBUG)


def _log_level(verbose: int) -> int | None:
    """Level for the package loggers; ``EMPORIX_LOG`` wins over ``-v`` flags."""
    name = os.environ.get("EMPORIX_LOG", "").upper()
    if name:
        levels = logging.getLevelNamesMapping()
        if name not in levels:
            print(
                f"emporix-provisioner: ignoring unknown EMPORIX_LOG level {name!r}, using INFO",
                file=sys.stderr,
            )
        return levels.get(name, logging.INFO)
    if verbose:
        return _VERBOSITY[min(verbose, len(_VERBOSITY) - 1)]
    return None


def _configure_logging(verbose: int) -> None:
    """Route package logs to stderr; without flags logging stays unconfigured."""
    level = _log_level(verbose)
    if level is None:
        return
    logging.basicConfig(level=logging.WARNING, format=_LOG_FORMAT, stream=sys.stderr, force=True)
    logging.getLogger("emporix_provisioner").setLevel(level)
    if level <= logging.DEBUG:
        # Show every HTTP request made to the tenant.
        logging.getLogger("urllib3.connectionpool").setLevel(logging.DEBUG)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Log progress (-v) or every request (-vv) to stderr.",
    ),
) -> None:
    """Terraform-style reconciliation of Emporix tenant settings."""
    del version
    _configure_logging(verbose)


# Register commands after app is created to avoid circular imports.
from emporix_provisioner.cli import commands as _commands  # noqa: E402, F401
