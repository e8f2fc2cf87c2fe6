"""
CLI commands for package operations.

Thin wrappers over ``dotpkg.core.services.update_ops`` and the
detected package manager. Install and update stream the manager's
output; Ctrl-C cancels the running command.
"""

from __future__ import annotations

import json
import sys
import threading

import click

from dotpkg.adapters.managers.base import PackageManager
from dotpkg.adapters.shell.streaming import StreamingCmd
from dotpkg.core.errors import CommandCancelled, PackageManagerError


def _resolve_manager(name: str | None) -> PackageManager:
    """The manager named on the command line, or the detected one."""
    from dotpkg.core.context import detect_manager, get_context
    from dotpkg.core.detection.managers import manager_by_name

    if name:
        manager = manager_by_name(name, get_context().settings)
        if manager is None or not manager.is_available():
            click.secho(f"❌ Package manager not available: {name}", fg="red")
            sys.exit(1)
        return manager

    manager = detect_manager()
    if manager is None:
        click.secho("❌ No package manager detected for this platform", fg="red")
        sys.exit(1)
    return manager


def _print_packages(pkgs: list, as_json: bool, empty: str) -> None:
    if as_json:
        click.echo(json.dumps([p.to_dict() for p in pkgs], indent=2))
        return
    if not pkgs:
        click.secho(empty, fg="green")
        return
    for p in pkgs:
        click.echo(f"   {p.name:<30} {p.current_version or '-':<16} {p.installed_by}")


def _follow(start, label: str) -> None:
    """Start a streaming command, echo its output, exit non-zero on failure."""
    cancel = threading.Event()
    try:
        cmd: StreamingCmd = start(cancel)
    except PackageManagerError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    try:
        for line in cmd:
            click.echo(f"   {line}")
    except KeyboardInterrupt:
        click.secho("\n⏹️  Cancelling…", fg="yellow")
        cmd.cancel()

    try:
        cmd.wait()
    except CommandCancelled:
        click.secho(f"⏹️  {label} cancelled", fg="yellow")
        sys.exit(130)
    except PackageManagerError as e:
        click.secho(f"❌ {label} failed: {e}", fg="red")
        sys.exit(1)

    click.secho(f"✅ {label} complete", fg="green")


# ── Observe ─────────────────────────────────────────────────────


@click.command()
@click.option("--dotfiles", is_flag=True, help="Only packages managed by the dotfiles.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def outdated(dotfiles: bool, as_json: bool) -> None:
    """Check every package manager for outdated packages."""
    from dotpkg.core.services.update_ops import check_all_updates, check_dotfiles_updates

    try:
        pkgs = check_dotfiles_updates() if dotfiles else check_all_updates()
    except PackageManagerError as e:
        if as_json:
            click.echo(json.dumps({"error": str(e)}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([p.to_dict() for p in pkgs], indent=2))
        return

    if not pkgs:
        click.secho("✅ All packages up to date", fg="green")
        return

    click.secho(f"📦 Outdated ({len(pkgs)}):", fg="yellow", bold=True)
    for p in pkgs:
        click.echo(
            f"   {p.name:<30} {p.current_version or '?':<16} → "
            f"{p.latest_version:<16} [{p.installed_by}]"
        )
    click.echo()


@click.command()
@click.option("--manager", "-m", default=None, help="Package manager (default: auto-detect).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def installed(manager: str | None, as_json: bool) -> None:
    """List installed packages."""
    pm = _resolve_manager(manager)
    try:
        pkgs = pm.list_installed()
    except PackageManagerError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if not as_json:
        click.secho(f"📦 Installed ({len(pkgs)}, {pm.name}):", fg="cyan", bold=True)
    _print_packages(pkgs, as_json, "   (none)")


@click.command()
@click.argument("query")
@click.option("--manager", "-m", default=None, help="Package manager (default: auto-detect).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def search(query: str, manager: str | None, as_json: bool) -> None:
    """Search for packages."""
    pm = _resolve_manager(manager)
    try:
        pkgs = pm.search(query)
    except PackageManagerError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([p.to_dict() for p in pkgs], indent=2))
        return

    if not pkgs:
        click.secho(f"No packages match '{query}'", fg="yellow")
        return

    for p in pkgs:
        marker = " [installed]" if p.current_version else ""
        click.secho(f"   {p.name}", bold=True, nl=False)
        click.echo(f" {p.latest_version}{marker}")
        if p.description:
            click.echo(f"      {p.description}")


# ── Act ─────────────────────────────────────────────────────────


@click.command()
@click.argument("names", nargs=-1, required=True)
@click.option("--manager", "-m", default=None, help="Package manager (default: auto-detect).")
def install(names: tuple[str, ...], manager: str | None) -> None:
    """Install packages (output is streamed)."""
    pm = _resolve_manager(manager)
    click.secho(f"📥 Installing {', '.join(names)} via {pm.name}", fg="cyan", bold=True)
    _follow(lambda cancel: pm.install_streaming(*names, cancel=cancel), "Install")


@click.command()
@click.argument("names", nargs=-1, required=True)
@click.option("--manager", "-m", default=None, help="Package manager (default: auto-detect).")
def uninstall(names: tuple[str, ...], manager: str | None) -> None:
    """Remove packages."""
    pm = _resolve_manager(manager)
    try:
        pm.uninstall(*names)
    except PackageManagerError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    click.secho(f"✅ Removed {', '.join(names)}", fg="green")


@click.command()
@click.argument("names", nargs=-1)
@click.option("--all", "update_all", is_flag=True, help="Upgrade everything.")
@click.option("--manager", "-m", default=None, help="Package manager (default: auto-detect).")
def update(names: tuple[str, ...], update_all: bool, manager: str | None) -> None:
    """Update packages, or everything with --all (output is streamed)."""
    if not names and not update_all:
        click.secho("❌ Name packages to update, or pass --all", fg="red")
        sys.exit(2)

    pm = _resolve_manager(manager)
    if update_all:
        click.secho(f"⬆️  Upgrading everything via {pm.name}", fg="cyan", bold=True)
        _follow(lambda cancel: pm.update_all_streaming(cancel=cancel), "Update")
        return

    click.secho(f"⬆️  Updating {', '.join(names)} via {pm.name}", fg="cyan", bold=True)
    _follow(lambda cancel: pm.update_streaming(*names, cancel=cancel), "Update")
