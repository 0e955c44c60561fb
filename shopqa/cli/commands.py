"""CLI commands for shopqa."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shopqa.config import HarnessConfig, load_config
from shopqa.context import HarnessContext
from shopqa.errors import ShopQAError
from shopqa.fixtures.models import ResolvedEntity
from shopqa.observability.logging import configure_logging
from shopqa.reset import EnvironmentResetController
from shopqa.server import CleanupServer

console = Console()


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except ShopQAError as e:
        ctx = click.get_current_context(silent=True)
        if ctx is not None and ctx.find_root().params.get("verbose"):
            console.print(f"[red]{escape(e.format_verbose())}[/red]")
        else:
            console.print(f"[red]✗ {escape(e.message)}[/red]")
            for suggestion in e.suggestions:
                console.print(f"  [dim]- {escape(suggestion)}[/dim]")
        sys.exit(1)


def _render_entity(result: Any) -> str:
    if isinstance(result, ResolvedEntity):
        return json.dumps({"id": result.id, **result.attributes}, indent=2, default=str)
    if isinstance(result, list):
        return json.dumps(
            [{"id": e.id, **e.attributes} for e in result if isinstance(e, ResolvedEntity)],
            indent=2,
            default=str,
        )
    return json.dumps(result, indent=2, default=str)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to config file")
@click.option("--base-url", help="Shop base URL (overrides config)")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: str | None, base_url: str | None) -> None:
    """shopqa - fixtures and environment control for shop end-to-end tests."""
    ctx.ensure_object(dict)

    config_obj = load_config(config, base_url=base_url)
    if verbose:
        config_obj.verbose = True

    ctx.obj["config"] = config_obj
    configure_logging(
        level=logging.DEBUG if config_obj.verbose else logging.INFO,
        json_format=config_obj.json_logs,
    )


@cli.command()
@click.pass_context
def reset(ctx: click.Context) -> None:
    """Restore the baseline, clear the cache and reset the locale."""
    config: HarnessConfig = ctx.obj["config"]

    async def _reset() -> Any:
        async with HarnessContext(config) as harness:
            return await EnvironmentResetController(harness).reset_environment()

    report = _run(_reset())

    table = Table(title="Environment reset")
    table.add_column("Step")
    table.add_column("Result")
    table.add_column("Duration", justify="right")
    for step in report.steps:
        result = "[green]ok[/green]" if step.success else f"[red]{escape(step.error or '')}[/red]"
        table.add_row(step.name, result, f"{step.duration_ms:.0f}ms")
    console.print(table)

    sys.exit(0 if report.success else 1)


@cli.command()
@click.option("--user", "-u", help="Admin username (overrides config)")
@click.option("--password", "-p", help="Admin password (overrides config)")
@click.pass_context
def auth(ctx: click.Context, user: str | None, password: str | None) -> None:
    """Request an admin token and check it against the API."""
    config: HarnessConfig = ctx.obj["config"]

    async def _auth() -> Any:
        async with HarnessContext(config) as harness:
            if user:
                await harness.session.login_as(user, password or config.password)
            return await harness.session.ensure_valid()

    credential = _run(_auth())
    expires = datetime.fromtimestamp(credential.expires_at).isoformat(timespec="seconds")
    console.print(
        f"[green]✓ Authenticated[/green] at {config.base_url} (token expires {expires})"
    )


@cli.command()
@click.argument("endpoint")
@click.option("--data", "-d", default="{}", help="JSON object merged over the default dataset")
@click.option("--json-path", help="Dataset name when it differs from the endpoint")
@click.pass_context
def create(ctx: click.Context, endpoint: str, data: str, json_path: str | None) -> None:
    """Create an entity from its default dataset."""
    config: HarnessConfig = ctx.obj["config"]
    try:
        overrides = json.loads(data)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"--data is not valid JSON: {e}") from e

    async def _create() -> Any:
        async with HarnessContext(config) as harness:
            return await harness.fixtures.create(endpoint, overrides, json_path)

    console.print_json(_render_entity(_run(_create())))


@cli.command()
@click.argument("entity")
@click.argument("value")
@click.option("--field", "-f", default="name", help="Field to match (default: name)")
@click.pass_context
def search(ctx: click.Context, entity: str, value: str, field: str) -> None:
    """Search one entity type by a field value."""
    config: HarnessConfig = ctx.obj["config"]

    async def _search() -> Any:
        async with HarnessContext(config) as harness:
            return await harness.fixtures.search(entity, {"field": field, "value": value})

    result = _run(_search())
    if result is None:
        console.print(f"[yellow]No {entity} where {field} equals {value!r}[/yellow]")
        sys.exit(1)
    console.print_json(_render_entity(result))


@cli.command("cleanup-server")
@click.option("--host", default="0.0.0.0", help="Interface to bind")
@click.option("--port", type=int, help="Port (default: cleanup_port setting)")
@click.option("--project-root", type=click.Path(file_okay=False), help="Directory holding psh.phar")
@click.pass_context
def cleanup_server(
    ctx: click.Context, host: str, port: int | None, project_root: str | None
) -> None:
    """Serve GET /cleanup, which restores the shop's database."""
    config: HarnessConfig = ctx.obj["config"]
    server = CleanupServer(
        host=host,
        port=port or config.cleanup_port,
        project_root=project_root,
    )
    console.print(f"Cleanup server on http://{host}:{server.server_address[1]}/cleanup")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        console.print("Stopping cleanup server")
    finally:
        server.server_close()
