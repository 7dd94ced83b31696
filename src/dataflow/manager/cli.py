#!/usr/bin/env python
"""
CLI management commands for the Dataflow Manager audit engine.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import click

from dataflow.manager.audit import (
    AuditError,
    AuditQueryService,
    AuditRequest,
    TimeGranularity,
    create_audit_query_service,
)
from dataflow.manager.auth import UserInfo, UserRole
from dataflow.manager.streams import GroupNotFound

T = TypeVar("T")


@dataclass
class CLIDependencies:
    """Bundle of injectable dependencies used by CLI commands."""

    service_factory: Callable[[], AuditQueryService]
    init_db: Callable[[], Awaitable[None]]
    setup_logging: Callable[[], None]


def _get_cli_dependencies() -> CLIDependencies:
    """Return the default dependency bundle for CLI commands."""
    from dataflow.manager.db import create_all_tables_async, get_session_maker
    from dataflow.manager.logging import setup_logging
    from dataflow.manager.settings import settings

    return CLIDependencies(
        service_factory=lambda: create_audit_query_service(settings, get_session_maker()),
        init_db=create_all_tables_async,
        setup_logging=setup_logging,
    )


def _run_with_service(
    deps: CLIDependencies, action: Callable[[AuditQueryService], Awaitable[T]]
) -> T:
    async def _run() -> T:
        service = deps.service_factory()
        try:
            return await action(service)
        finally:
            await service.close()

    try:
        return asyncio.run(_run())
    except (AuditError, GroupNotFound) as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.version_option(package_name="dataflow-manager")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Dataflow Manager audit CLI."""
    deps = _get_cli_dependencies()
    deps.setup_logging()
    ctx.obj = deps


@cli.command()
@click.pass_obj
def init_database(deps: CLIDependencies) -> None:
    """Create the manager tables."""
    click.echo("Initializing database...")
    asyncio.run(deps.init_db())
    click.echo("Database initialized successfully!")


@cli.command()
@click.pass_obj
def refresh_audit_cache(deps: CLIDependencies) -> None:
    """Reload the audit base item cache."""
    ok = _run_with_service(deps, lambda service: service.refresh_base_item_cache())
    if not ok:
        raise click.ClickException("Failed to reload audit base items")
    click.echo("Audit base items reloaded")


@cli.command()
@click.argument("item_type")
@click.option("--sent/--received", default=True, help="Direction of the audit item")
@click.pass_obj
def audit_id(deps: CLIDependencies, item_type: str, sent: bool) -> None:
    """Print the audit id of ITEM_TYPE."""
    resolved = _run_with_service(deps, lambda service: service.get_audit_id(item_type, sent))
    if resolved is None:
        raise click.ClickException(f"No audit id for type {item_type!r}")
    click.echo(resolved)


@cli.command()
@click.option("--group", "group_id", required=True, help="Data group id")
@click.option("--stream", "stream_id", required=True, help="Data stream id")
@click.option("--start", "start_date", required=True, help="First day, YYYY-MM-DD")
@click.option("--end", "end_date", required=True, help="Last day (inclusive), YYYY-MM-DD")
@click.option(
    "--granularity",
    type=click.Choice([g.value for g in TimeGranularity], case_sensitive=False),
    default=TimeGranularity.MINUTE.value,
    show_default=True,
)
@click.option("--sink-id", type=int, default=None, help="Sink to report")
@click.option("--user", "user_id", default="cli", show_default=True, help="Caller user id")
@click.option("--admin", is_flag=True, help="Query as a tenant admin")
@click.pass_obj
def query_audit(
    deps: CLIDependencies,
    group_id: str,
    stream_id: str,
    start_date: str,
    end_date: str,
    granularity: str,
    sink_id: int | None,
    user_id: str,
    admin: bool,
) -> None:
    """Query aggregated audit data of a stream and print it as JSON."""
    try:
        request = AuditRequest(
            group_id=group_id,
            stream_id=stream_id,
            sink_id=sink_id,
            start_date=start_date,
            end_date=end_date,
            time_granularity=TimeGranularity(granularity.upper()),
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc

    caller = UserInfo(user_id=user_id, roles=[UserRole.TENANT_ADMIN.value] if admin else [])
    results = _run_with_service(deps, lambda service: service.list_by_condition(request, caller))
    payload: list[dict[str, Any]] = [result.model_dump() for result in results]
    click.echo(json.dumps(payload, indent=2))


if __name__ == "__main__":
    cli()
