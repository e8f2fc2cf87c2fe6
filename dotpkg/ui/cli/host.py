"""
CLI commands describing the host — platform and package managers.

Thin wrappers over ``dotpkg.core.context``.
"""

from __future__ import annotations

import json

import click


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def platform(as_json: bool) -> None:
    """Show the detected platform."""
    from dotpkg.core.context import detect_platform, is_low_memory_system, total_memory_mb

    detected = detect_platform()
    memory = total_memory_mb()

    if as_json:
        click.echo(json.dumps({
            "platform": detected.value,
            "memory_mb": memory,
            "low_memory": is_low_memory_system(),
        }, indent=2))
        return

    click.secho(f"🖥️  Platform: {detected.value}", fg="cyan", bold=True)
    if memory:
        marker = " (low memory)" if is_low_memory_system() else ""
        click.echo(f"   Memory: {memory} MB{marker}")


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def managers(as_json: bool) -> None:
    """List package managers available on this host."""
    from dotpkg.core.context import all_managers, detect_manager

    active = detect_manager()
    found = all_managers()

    if as_json:
        click.echo(json.dumps({
            "active": active.name if active else None,
            "managers": [
                {"name": m.name, "path": m.binary_path, "needs_sudo": m.needs_sudo()}
                for m in found
            ],
        }, indent=2))
        return

    if not found:
        click.secho("⚠️  No package managers found", fg="yellow")
        return

    click.secho("📦 Package Managers:", fg="cyan", bold=True)
    for m in found:
        marker = " ← active" if active and m.name == active.name else ""
        sudo = " (sudo)" if m.needs_sudo() else ""
        click.echo(f"   ✅ {m.name:<8} {m.binary_path}{sudo}{marker}")
