"""
dotpkg — CLI entrypoint.

Usage:
    python -m dotpkg.main --help
    python -m dotpkg.main platform
    python -m dotpkg.main outdated --dotfiles
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click

from dotpkg.core.observability.logging_config import setup_logging

from dotpkg import __version__


@click.group()
@click.version_option(version=__version__, prog_name="dotpkg")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to config.yml (default: ~/.config/dotpkg/config.yml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """dotpkg — detect, query and update native package managers."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("DOTPKG_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("DOTPKG_LOG_FILE"),
        log_file_level=os.environ.get("DOTPKG_LOG_FILE_LEVEL"),
    )

    # ── Settings + host context ─────────────────────────────────
    from dotpkg.core.config.loader import ConfigError, load_settings
    from dotpkg.core.context import HostContext, set_context

    try:
        settings = load_settings(ctx.obj["config_path"])
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    ctx.obj["settings"] = settings
    set_context(HostContext(settings))


# ── Register commands from dotpkg/ui/cli/ ─────────────────────────

from dotpkg.ui.cli.host import managers, platform
from dotpkg.ui.cli.packages import install, installed, outdated, search, uninstall, update

cli.add_command(platform)
cli.add_command(managers)
cli.add_command(outdated)
cli.add_command(installed)
cli.add_command(search)
cli.add_command(install)
cli.add_command(uninstall)
cli.add_command(update)


if __name__ == "__main__":
    cli()
