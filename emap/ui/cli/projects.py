"""
CLI commands for projects.

Thin wrappers over ``emap.core.services.project_lifecycle``.  They open
the same stores the server uses, so run them while the server is
stopped (a running server holds the active project's store open).
"""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import click

from emap.core.services.project_lifecycle import ProjectService


@contextmanager
def open_service(ctx: click.Context) -> Iterator[ProjectService]:
    """Open a ProjectService from the CLI's settings and close it afterwards."""
    from emap.core.config.loader import ConfigError, load_settings
    from emap.core.persistence.errors import StoreError

    try:
        settings = load_settings(ctx.obj.get("config_path"))
        svc = ProjectService.open(settings.data_dir, lock_timeout=settings.lock_timeout)
    except (ConfigError, StoreError) as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)
    try:
        yield svc
    finally:
        svc.close()


@click.group()
def projects() -> None:
    """Projects — list, create, delete and select the last project."""


@projects.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool) -> None:
    """List all projects, newest first."""
    with open_service(ctx) as svc:
        records = svc.list_projects()
        last = svc.config.get_last_project()

    if as_json:
        click.echo(json.dumps([r.model_dump() for r in records], indent=2))
        return

    if not records:
        click.echo("No projects.")
        return

    for r in records:
        marker = " ← last" if r.id == last else ""
        click.echo(f"  {r.id}  {r.created_at[:19]}  {r.name}{marker}")


@projects.command()
@click.argument("name")
@click.pass_context
def create(ctx: click.Context, name: str) -> None:
    """Create a project named NAME."""
    with open_service(ctx) as svc:
        try:
            record = svc.create(name)
        except ValueError as e:
            click.secho(f"❌ {e}", fg="red", err=True)
            sys.exit(1)
    click.secho(f"✅ Created '{record.name}' ({record.id})", fg="green")


@projects.command()
@click.argument("project_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation.")
@click.pass_context
def delete(ctx: click.Context, project_id: str, yes: bool) -> None:
    """Delete project PROJECT_ID and its stored data."""
    if not yes:
        click.confirm(f"Delete project {project_id} and its data?", abort=True)
    with open_service(ctx) as svc:
        try:
            svc.delete(project_id)
        except ValueError as e:
            click.secho(f"❌ {e}", fg="red", err=True)
            sys.exit(1)
    click.secho(f"🗑️  Deleted {project_id}", fg="green")


@projects.command()
@click.argument("project_id")
@click.pass_context
def load(ctx: click.Context, project_id: str) -> None:
    """Mark PROJECT_ID as the last project (auto-loaded on start if enabled)."""
    from emap.core.persistence.errors import NotFound

    with open_service(ctx) as svc:
        try:
            record = svc.load(project_id)
        except (ValueError, NotFound) as e:
            click.secho(f"❌ {e}", fg="red", err=True)
            sys.exit(1)
    click.secho(f"✅ Last project set to '{record.name}' ({record.id})", fg="green")
