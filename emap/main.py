"""
Emap Server — CLI entrypoint.

Usage:
    python -m emap.main --help
    python -m emap.main serve
    python -m emap.main projects list
    python -m emap.main reconcile
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from emap import __version__
from emap.core.observability.logging_config import setup_logging
from emap.ui.cli.projects import open_service, projects


@click.group()
@click.version_option(version=__version__, prog_name="emap")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to emap.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Emap — project and asset server for the projection UI."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    if debug:
        setup_logging("DEBUG")
    elif verbose:
        setup_logging("INFO")
    elif quiet:
        setup_logging("ERROR")
    else:
        setup_logging()


@cli.command()
@click.option("--host", default=None, help="Bind address (default: from config).")
@click.option("--port", "-p", type=int, default=None, help="Port (default: from config).")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the API server."""
    from emap.core.config.loader import ConfigError, load_settings
    from emap.core.persistence.errors import StoreError
    from emap.ui.web.server import create_app, run_server

    try:
        settings = load_settings(ctx.obj.get("config_path"))
        app = create_app(settings)
    except (ConfigError, StoreError) as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    host = host or settings.host
    port = port or settings.port

    click.echo()
    click.secho("🎬 Emap Server", bold=True)
    click.echo(f"   API:    http://{host}:{port}/api")
    click.echo(f"   Data:   {settings.data_dir}")
    click.echo(f"   Assets: {settings.assets_dir}")
    if settings.auto_load_last_project:
        click.secho("   Auto-load of the last project: on", fg="yellow")
    click.echo()

    run_server(app, host=host, port=port, debug=ctx.obj.get("debug", False))


@cli.command()
@click.pass_context
def reconcile(ctx: click.Context) -> None:
    """Remove on-disk project storage that has no registry entry."""
    from emap.core.services.reconciler import reconcile_orphans

    with open_service(ctx) as svc:
        removed = reconcile_orphans(svc.registry, svc.layout)

    if not removed:
        click.echo("No orphans found.")
        return
    for path in removed:
        click.echo(f"  🗑️  {path.name}")
    click.secho(f"Removed {len(removed)} orphan(s).", fg="green")


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show data location, project count and last project."""
    with open_service(ctx) as svc:
        result = svc.status()

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.secho(f"\n📁 {result['data_dir']}", fg="cyan", bold=True)
    click.echo(f"   Projects:     {result['projects']}")
    click.echo(f"   Last project: {result['last_project'] or '(none)'}")
    click.echo()


@cli.group()
def config() -> None:
    """Server configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate emap.yml and show the effective settings."""
    from emap.core.config.loader import ConfigError, load_settings

    try:
        settings = load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        if as_json:
            click.echo(json.dumps({"valid": False, "error": str(e)}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    data = settings.model_dump(mode="json")
    if as_json:
        click.echo(json.dumps({"valid": True, "settings": data}, indent=2))
        return

    click.secho("✅ Configuration valid", fg="green")
    for key, value in data.items():
        click.echo(f"   {key}: {value}")


cli.add_command(projects)


if __name__ == "__main__":
    cli()
