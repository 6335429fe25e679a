"""CLI entry point for sketchflow."""

import asyncio
import json as jsonmod
from pathlib import Path

import click

from sketchflow.config import (
    load_settings, load_device_context, get_config_value, set_config_value, list_config,
)
from sketchflow.errors import SketchflowError
from sketchflow.installer import InstallResult
from sketchflow.log import setup_logging
from sketchflow.orchestrator import Bootstrap, Orchestrator
from sketchflow.output import ConsoleChannel
from sketchflow.platform import default_package_lib_paths, resolve_platform_path
from sketchflow.serial.port import list_serial_ports


@click.group()
@click.option("--verbose", is_flag=True, help="Show debug logging.")
def main(verbose):
    """Verify, upload and manage packages for Arduino sketches."""
    setup_logging(verbose)


def _orchestrator(project_dir: Path) -> Orchestrator:
    return Orchestrator(load_settings(project_dir), channel=ConsoleChannel())


def _run(coro):
    """Run a pipeline, turning sketchflow errors into an exit code."""
    try:
        return asyncio.run(coro)
    except SketchflowError as e:
        click.echo(f"Error: {e.message}", err=True)
        raise SystemExit(e.exit_code)


def _exit_on_failure(ok: bool) -> None:
    if not ok:
        raise SystemExit(1)


@main.command()
@click.option("--output", type=str, default="", help="Build output folder, relative to the project.")
def verify(output):
    """Compile the sketch for the selected board."""
    project_dir = Path.cwd()
    ctx = load_device_context(project_dir)
    orchestrator = _orchestrator(project_dir)
    _exit_on_failure(_run(orchestrator.verify(ctx, ctx.board_descriptor(), output)))


@main.command()
def upload():
    """Compile and upload the sketch to the configured serial port."""
    project_dir = Path.cwd()
    ctx = load_device_context(project_dir)
    orchestrator = _orchestrator(project_dir)
    _exit_on_failure(_run(orchestrator.upload(ctx, ctx.board_descriptor())))


@main.command()
@click.option("--force", is_flag=True, help="Refresh indexes even if they exist.")
@click.option("--library", "with_library", is_flag=True, help="Also refresh the library index.")
def init(force, with_library):
    """Create IDE preferences and download package indexes if missing."""
    orchestrator = _orchestrator(Path.cwd())
    results = _run(orchestrator.initialize(force))
    if with_library:
        results.append(_run(orchestrator.initialize_library(force)))
    for r in results:
        if r.outcome is Bootstrap.SKIPPED:
            click.echo(f"[--] {r.step}: already present")
        elif r.error:
            click.echo(f"[!!] {r.step}: {r.error} (ignored)")
        else:
            click.echo(f"[OK] {r.step}")


# ---------------------------------------------------------------------------
# Board package and library management
# ---------------------------------------------------------------------------

def _report_install(result: InstallResult) -> None:
    if not result.ok:
        raise SystemExit(result.exit_code)


@main.group()
def board():
    """Install or remove board packages."""
    pass


@board.command("install")
@click.argument("name", required=False, default="")
@click.option("--arch", type=str, default="", help="Platform architecture (e.g. avr).")
@click.option("--version", "version", type=str, default="", help="Package version.")
def board_install_cmd(name, arch, version):
    """Install a board package. Without NAME, refresh the package index."""
    orchestrator = _orchestrator(Path.cwd())
    _report_install(_run(orchestrator.installer.install_board_package(name, arch, version)))


@board.command("uninstall")
@click.argument("name")
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
def board_uninstall_cmd(name, path):
    """Remove an installed board package directory."""
    orchestrator = _orchestrator(Path.cwd())
    try:
        orchestrator.installer.uninstall_board_package(name, path)
    except SketchflowError as e:
        click.echo(f"Error: {e.message}", err=True)
        raise SystemExit(e.exit_code)


@main.group()
def lib():
    """Install or remove libraries."""
    pass


@lib.command("install")
@click.argument("name", required=False, default="")
@click.option("--version", "version", type=str, default="", help="Library version.")
def lib_install_cmd(name, version):
    """Install a library. Without NAME, refresh the library index."""
    orchestrator = _orchestrator(Path.cwd())
    _report_install(_run(orchestrator.installer.install_library(name, version)))


@lib.command("uninstall")
@click.argument("name")
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
def lib_uninstall_cmd(name, path):
    """Remove an installed library directory."""
    orchestrator = _orchestrator(Path.cwd())
    try:
        orchestrator.installer.uninstall_library(name, path)
    except SketchflowError as e:
        click.echo(f"Error: {e.message}", err=True)
        raise SystemExit(e.exit_code)


# ---------------------------------------------------------------------------
# Inspection
# ---------------------------------------------------------------------------

@main.command("ports")
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def ports_cmd(use_json):
    """List available serial ports."""
    ports = list_serial_ports()
    if use_json:
        data = [{"device": p.device, "description": p.description, "hwid": p.hwid} for p in ports]
        click.echo(jsonmod.dumps(data, indent=2))
        return
    if not ports:
        click.echo("No serial ports found.")
        return
    for p in ports:
        click.echo(f"  {p.device:<25} {p.description}")


@main.command("platform")
def platform_cmd():
    """Show the platform directory used for the selected board."""
    project_dir = Path.cwd()
    settings = load_settings(project_dir)
    descriptor = load_device_context(project_dir).board_descriptor()
    if descriptor is None:
        click.echo("Error: No board selected. Set \"board\" in .vscode/arduino.json.")
        raise SystemExit(2)

    path = resolve_platform_path(descriptor, settings.default_package_path, settings.package_path)
    if path is None:
        click.echo(f"Error: No platform installed for {descriptor.build_config}.")
        raise SystemExit(3)
    click.echo(f"{descriptor.build_config}: {path}")
    for core in default_package_lib_paths(path):
        click.echo(f"  core: {core}")


@main.command("config")
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--list", "show_list", is_flag=True, help="Show all config values.")
def config_cmd(key, value, show_list):
    """Get or set sketchflow.toml configuration values."""
    project_dir = Path.cwd()

    if show_list:
        values = list_config(project_dir)
        if not values:
            click.echo("No configuration found.")
            return
        for k, v in sorted(values.items()):
            click.echo(f"  {k} = {v}")
        return

    if key and value:
        try:
            set_config_value(project_dir, key, value)
        except ValueError as e:
            raise click.UsageError(str(e))
        click.echo(f"Set {key} = {value}")
        return

    if key:
        val = get_config_value(project_dir, key)
        if val is None:
            click.echo(f"{key} is not set.")
        else:
            click.echo(f"{key} = {val}")
        return

    click.echo("Usage: sketchflow config <KEY> [VALUE] or sketchflow config --list")
