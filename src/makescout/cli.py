"""CLI interface for makescout."""

import asyncio
import logging
from collections.abc import Coroutine
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Annotated, Any, TypeVar

import httpx
import typer
from beartype import beartype
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from makescout.api.client import MakeClient
from makescout.api.errors import MakeApiError, describe_error
from makescout.config import Settings
from makescout.models.make import Scenario, ScenarioConsumptions
from makescout.models.state import Selection
from makescout.services.listing import (
    LogFilter,
    ScenarioRow,
    SortMode,
    StatusFilter,
    build_listing,
)
from makescout.services.scenario_service import ScenarioService
from makescout.services.usage import (
    clamp_operations_days,
    summarize_usage,
    trend_text,
)
from makescout.services.workspace_service import WorkspaceService
from makescout.utils.formatting import (
    format_datetime,
    format_duration_ms,
    json_block,
    status_label,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="makescout",
    help="Browse and control Make.com scenarios from the terminal.",
    no_args_is_help=True,
)

scenarios_app = typer.Typer(
    name="scenarios",
    help="List, inspect, start and stop scenarios.",
    no_args_is_help=True,
)
app.add_typer(scenarios_app, name="scenarios")

favorites_app = typer.Typer(
    name="favorites",
    help="Manage favorite scenarios.",
    no_args_is_help=True,
)
app.add_typer(favorites_app, name="favorites")

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    state_file: Annotated[
        Path | None, typer.Option("--state-file", help="State file path")
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show debug logging")
    ] = False,
) -> None:
    """Browse and control Make.com scenarios from the terminal."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    settings = Settings()
    if state_file:
        settings = settings.model_copy(update={"state_file": state_file})
    ctx.obj = settings


def _settings(ctx: typer.Context) -> Settings:
    if isinstance(ctx.obj, Settings):
        return ctx.obj
    return Settings()


def _run(coro: Coroutine[Any, Any, T], fallback_title: str) -> T:
    """Run a coroutine, turning API failures into a message and exit code 1."""
    try:
        return asyncio.run(coro)
    except MakeApiError as e:
        title, message = describe_error(e, fallback_title)
        console.print(f"[red]{title}[/red]: {message}")
        raise typer.Exit(1) from e
    except httpx.RequestError as e:
        console.print(f"[red]{fallback_title}[/red]: {e}")
        raise typer.Exit(1) from e
    except ValidationError as e:
        logger.debug("Unexpected response payload", exc_info=True)
        console.print(f"[red]{fallback_title}[/red]: unexpected response from the Make API")
        raise typer.Exit(1) from e


def _client(settings: Settings) -> MakeClient:
    if not settings.api_token:
        console.print("[red]No API token configured.[/red]")
        console.print("[dim]Set MAKESCOUT_API_TOKEN in the environment or .env[/dim]")
        raise typer.Exit(1)
    return MakeClient.from_settings(settings)


def _workspace(settings: Settings, client: MakeClient | None = None) -> WorkspaceService:
    """Workspace service; favorites and the selection need no entered client."""
    return WorkspaceService(client or MakeClient.from_settings(settings), settings=settings)


def _require_selection(settings: Settings) -> Selection:
    selection = _workspace(settings).get_selection()
    if selection is None:
        console.print("[yellow]No team selected.[/yellow]")
        console.print("[dim]Pick one with: makescout orgs, makescout select <org> <team>[/dim]")
        raise typer.Exit(1)
    return selection


@beartype
def _scenario_table(title: str, rows: list[ScenarioRow], favorites: set[int]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan", max_width=40)
    table.add_column("Status", style="green")
    table.add_column("Ops", justify="right", style="magenta")
    table.add_column("Last edit", style="yellow")

    for row in rows:
        s = row.scenario
        star = "★ " if s.id in favorites else ""
        status = "[green]Live[/green]" if s.is_active else "[red]Disabled[/red]"
        ops = f"{row.operations:,}" if row.operations is not None else "-"
        table.add_row(str(s.id), f"{star}{s.name}", status, ops, format_datetime(s.last_edit))
    return table


@app.command("orgs")
def list_organizations(ctx: typer.Context) -> None:
    """List organizations available to the API token."""
    settings = _settings(ctx)
    client = _client(settings)

    async def fetch() -> list:
        async with client:
            return await _workspace(settings, client).list_organizations()

    organizations = _run(fetch(), "Failed to load organizations")
    if not organizations:
        console.print("[yellow]No organizations found.[/yellow]")
        return

    table = Table(title="Organizations")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    for org in organizations:
        table.add_row(str(org.id), org.name)
    console.print(table)


@app.command("teams")
def list_teams(
    ctx: typer.Context,
    organization_id: Annotated[int, typer.Argument(help="Organization ID")],
) -> None:
    """List teams of an organization."""
    settings = _settings(ctx)
    client = _client(settings)

    async def fetch() -> list:
        async with client:
            return await _workspace(settings, client).list_teams(organization_id)

    teams = _run(fetch(), "Failed to load teams")
    if not teams:
        console.print("[yellow]No teams found.[/yellow]")
        return

    table = Table(title=f"Teams in organization {organization_id}")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    for team in teams:
        table.add_row(str(team.id), team.name)
    console.print(table)


@app.command("select")
def select_team(
    ctx: typer.Context,
    organization_id: Annotated[int, typer.Argument(help="Organization ID")],
    team_id: Annotated[int, typer.Argument(help="Team ID")],
) -> None:
    """Select the organization and team other commands work on."""
    settings = _settings(ctx)
    client = _client(settings)

    async def choose() -> Selection:
        async with client:
            return await _workspace(settings, client).select_by_id(organization_id, team_id)

    try:
        selection = _run(choose(), "Failed to select team")
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    console.print(
        f"[green]Selected team '{selection.team_name}' "
        f"in '{selection.organization_name}'[/green]"
    )


@scenarios_app.command("list")
def list_scenarios(
    ctx: typer.Context,
    status: Annotated[
        StatusFilter, typer.Option("--status", "-s", help="Filter by status")
    ] = StatusFilter.ALL,
    sort: Annotated[SortMode, typer.Option("--sort", help="Sort order")] = SortMode.OPS,
) -> None:
    """List scenarios of the selected team, favorites first."""
    settings = _settings(ctx)
    selection = _require_selection(settings)
    favorites = _workspace(settings).list_favorites()
    client = _client(settings)

    async def fetch() -> tuple[list[Scenario], list]:
        async with client:
            await _workspace(settings, client).ensure_rate_limit(selection)
            service = ScenarioService(client)
            scenarios = await service.list_scenarios(selection.team_id)
            consumptions = await service.list_consumptions(selection.team_id)
            return scenarios, consumptions.scenario_consumptions

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("Loading scenarios...", total=None)
        scenarios, consumptions = _run(fetch(), "Failed to load scenarios")

    listing = build_listing(scenarios, consumptions, favorites, status, sort)
    if not listing.favorites and not listing.others:
        console.print("[yellow]No scenarios found.[/yellow]")
        return

    favorite_ids = set(favorites)
    if listing.favorites:
        console.print(_scenario_table("Favorites", listing.favorites, favorite_ids))
    if listing.others:
        console.print(
            _scenario_table(
                f"Scenarios — {selection.team_name or selection.team_id}",
                listing.others,
                favorite_ids,
            )
        )


async def _consumptions_or_none(
    service: ScenarioService, team_id: int
) -> ScenarioConsumptions | None:
    """Operations counts for a team, or None when they cannot be loaded."""
    try:
        return await service.list_consumptions(team_id)
    except MakeApiError as e:
        logger.warning("Could not load operations for team %d: %s", team_id, e.message)
        return None


@scenarios_app.command("show")
def show_scenario(
    ctx: typer.Context,
    scenario_id: Annotated[int, typer.Argument(help="Scenario ID")],
) -> None:
    """Show details of a scenario."""
    settings = _settings(ctx)
    client = _client(settings)

    async def fetch() -> tuple:
        async with client:
            service = ScenarioService(client)
            scenario = await service.get_scenario(scenario_id)
            hook = None
            if scenario.hook_id:
                try:
                    hook = await service.get_hook(scenario.hook_id)
                except MakeApiError as e:
                    logger.warning(
                        "Could not load hook %d: %s", scenario.hook_id, e.message
                    )
            consumptions = await _consumptions_or_none(service, scenario.team_id)
            return scenario, hook, consumptions

    scenario, hook, consumptions = _run(fetch(), "Failed to load scenario")
    favorite = _workspace(settings).is_favorite(scenario.id)

    console.print(f"[bold cyan]{scenario.name}[/bold cyan]{' ★' if favorite else ''}")
    if scenario.description:
        console.print(f"[dim]{scenario.description}[/dim]")
    console.print(f"Status: {'[green]Live[/green]' if scenario.is_active else '[red]Disabled[/red]'}")
    if scenario.is_paused:
        console.print("Paused: yes")
    if scenario.isinvalid:
        console.print("[red]Scenario is invalid[/red]")
    if scenario.scheduling and scenario.scheduling.type:
        interval = (
            f" every {scenario.scheduling.interval}s" if scenario.scheduling.interval else ""
        )
        console.print(f"Scheduling: {scenario.scheduling.type}{interval}")
    console.print(f"Next run: {format_datetime(scenario.next_exec)}")
    console.print(f"Last edit: {format_datetime(scenario.last_edit)}")
    if scenario.dlq_count:
        console.print(f"Incomplete executions: [yellow]{scenario.dlq_count}[/yellow]")
    if scenario.used_packages:
        console.print(f"Apps: {', '.join(scenario.used_packages)}")
    if hook:
        queue = f"{hook.queue_count or 0}/{hook.queue_limit or '-'}"
        console.print(f"Hook: {hook.name} (queue {queue})")
        if hook.url:
            console.print(f"[dim]{hook.url}[/dim]")
        if hook.queue_count:
            console.print(f"[dim]Queued requests: makescout scenarios queue {scenario.id}[/dim]")
    if consumptions is not None:
        ops = next(
            (
                c.operations
                for c in consumptions.scenario_consumptions
                if c.scenario_id == scenario.id
            ),
            0,
        )
        console.print(f"Ops used: {ops:,}")
        console.print(f"Last reset: {format_datetime(consumptions.last_reset)}")


@scenarios_app.command("queue")
def webhook_queue(
    ctx: typer.Context,
    scenario_id: Annotated[int, typer.Argument(help="Scenario ID")],
) -> None:
    """List requests waiting in a scenario's webhook queue."""
    settings = _settings(ctx)
    client = _client(settings)

    async def fetch() -> tuple:
        async with client:
            service = ScenarioService(client)
            scenario = await service.get_scenario(scenario_id)
            if not scenario.hook_id:
                return scenario, None, []
            hook = await service.get_hook(scenario.hook_id)
            return scenario, hook, await service.list_webhook_queue(scenario.hook_id)

    scenario, hook, items = _run(fetch(), "Failed to load webhook queue")
    if hook is None:
        console.print(f"[yellow]Scenario {scenario.id} has no webhook.[/yellow]")
        return
    if not items:
        console.print(f"[yellow]Webhook queue of {hook.name} is empty.[/yellow]")
        return

    queued = f"{hook.queue_count or len(items)}/{hook.queue_limit or '-'}"
    table = Table(title=f"{hook.name} queue ({queued})")
    table.add_column("ID", style="dim")
    table.add_column("Received", style="yellow")
    table.add_column("Request ID", style="cyan")
    for item in items:
        table.add_row(item.id, format_datetime(item.date), item.request_id or "-")
    console.print(table)


def _set_active(ctx: typer.Context, scenario_id: int, active: bool) -> None:
    settings = _settings(ctx)
    client = _client(settings)

    async def toggle() -> bool:
        async with client:
            service = ScenarioService(client)
            if active:
                return (await service.start_scenario(scenario_id)).is_active
            return (await service.stop_scenario(scenario_id)).is_active

    verb = "start" if active else "stop"
    is_active = _run(toggle(), f"Failed to {verb} scenario")
    state = "[green]live[/green]" if is_active else "[red]disabled[/red]"
    console.print(f"Scenario {scenario_id} is now {state}")


@scenarios_app.command("start")
def start_scenario(
    ctx: typer.Context,
    scenario_id: Annotated[int, typer.Argument(help="Scenario ID")],
) -> None:
    """Activate a scenario."""
    _set_active(ctx, scenario_id, active=True)


@scenarios_app.command("stop")
def stop_scenario(
    ctx: typer.Context,
    scenario_id: Annotated[int, typer.Argument(help="Scenario ID")],
) -> None:
    """Deactivate a scenario."""
    _set_active(ctx, scenario_id, active=False)


@scenarios_app.command("logs")
def scenario_logs(
    ctx: typer.Context,
    scenario_id: Annotated[int, typer.Argument(help="Scenario ID")],
    status: Annotated[
        LogFilter, typer.Option("--status", "-s", help="Filter by outcome")
    ] = LogFilter.ALL,
    days: Annotated[
        str | None, typer.Option("--days", "-d", help="Only the last N days (1-30)")
    ] = None,
    offset: Annotated[int, typer.Option("--offset", help="Pagination offset")] = 0,
) -> None:
    """Show recent executions of a scenario."""
    settings = _settings(ctx)
    client = _client(settings)
    since = None
    if days is not None:
        since = datetime.now(timezone.utc) - timedelta(days=clamp_operations_days(days))

    async def fetch() -> list:
        async with client:
            return await ScenarioService(client).list_logs(
                scenario_id, status=status.api_status, since=since, offset=offset
            )

    logs = _run(fetch(), "Failed to load executions")
    if not logs:
        console.print("[yellow]No executions found.[/yellow]")
        return

    table = Table(title=f"Executions — scenario {scenario_id}")
    table.add_column("Execution", style="dim")
    table.add_column("Status")
    table.add_column("When", style="yellow")
    table.add_column("Duration", justify="right")
    table.add_column("Ops", justify="right", style="magenta")

    for log in logs:
        table.add_row(
            log.resolved_execution_id or log.imt_id or "-",
            status_label(log.status),
            format_datetime(log.timestamp),
            format_duration_ms(log.duration),
            str(log.operations) if log.operations is not None else "-",
        )
    console.print(table)
    if len(logs) >= ScenarioService.LOGS_PAGE_SIZE:
        console.print(
            f"[dim]More available: --offset {offset + ScenarioService.LOGS_PAGE_SIZE}[/dim]"
        )


@scenarios_app.command("execution")
def execution_detail(
    ctx: typer.Context,
    scenario_id: Annotated[int, typer.Argument(help="Scenario ID")],
    execution_id: Annotated[str, typer.Argument(help="Execution ID")],
) -> None:
    """Show the outcome of a single execution."""
    settings = _settings(ctx)
    client = _client(settings)

    async def fetch() -> tuple:
        async with client:
            return await ScenarioService(client).get_execution(scenario_id, execution_id)

    log, details = _run(fetch(), "Failed to load execution details")

    console.print(f"[bold]Execution {execution_id}[/bold]")
    if log:
        console.print(f"Status: {status_label(log.status)}")
        console.print(f"Timestamp: {format_datetime(log.timestamp)}")
        console.print(f"Duration: {format_duration_ms(log.duration)}")
        if log.operations is not None:
            console.print(f"Operations: {log.operations}")
    console.print(f"Execution status: [bold]{details.status.value}[/bold]")

    if not settings.allow_execution_payloads:
        console.print(
            "[dim]Payloads are hidden. Set MAKESCOUT_ALLOW_EXECUTION_PAYLOADS=true "
            "to show outputs and error JSON.[/dim]"
        )
        return

    if details.error:
        text, truncated = json_block(details.error.model_dump(mode="json", exclude_none=True))
        console.print("[red]Error[/red]")
        console.print(text, markup=False)
        if truncated:
            console.print("[dim]Error JSON truncated[/dim]")
    if details.outputs:
        text, truncated = json_block(details.outputs)
        console.print("[green]Outputs[/green]")
        console.print(text, markup=False)
        if truncated:
            console.print("[dim]Outputs JSON truncated[/dim]")


@scenarios_app.command("incomplete")
def incomplete_executions(
    ctx: typer.Context,
    scenario_id: Annotated[int, typer.Argument(help="Scenario ID")],
) -> None:
    """List incomplete executions waiting for resolution."""
    settings = _settings(ctx)
    client = _client(settings)

    async def fetch() -> list:
        async with client:
            return await ScenarioService(client).list_incomplete_executions(scenario_id)

    items = _run(fetch(), "Failed to load incomplete executions")
    if not items:
        console.print("[green]No incomplete executions.[/green]")
        return

    table = Table(title=f"Incomplete executions — scenario {scenario_id}")
    table.add_column("ID", style="dim")
    table.add_column("Created", style="yellow")
    table.add_column("Reason", max_width=60)
    table.add_column("Resolved")
    for item in items:
        table.add_row(
            item.id,
            format_datetime(item.created),
            item.reason or "-",
            "yes" if item.resolved else "no",
        )
    console.print(table)


@app.command("usage")
def show_usage(ctx: typer.Context) -> None:
    """Show operations used by the selected team in this license period."""
    settings = _settings(ctx)
    selection = _require_selection(settings)
    client = _client(settings)

    async def fetch() -> tuple:
        async with client:
            refreshed = await _workspace(settings, client).ensure_rate_limit(
                selection
            )
            consumptions = await ScenarioService(client).list_consumptions(
                refreshed.team_id
            )
            return refreshed, consumptions

    refreshed, consumptions = _run(fetch(), "Failed to load usage")
    summary = summarize_usage(
        consumptions.scenario_consumptions,
        consumptions.last_reset,
        refreshed.restart_period,
        datetime.now(timezone.utc),
    )

    limit = refreshed.operations_limit
    used = f"{summary.total_operations:,}"
    console.print(f"Operations used: [bold]{used}[/bold]" + (f" / {limit:,}" if limit else ""))
    if summary.avg_daily_operations is not None:
        console.print(f"Average per day: {summary.avg_daily_operations:,}")
    if summary.reset_in_days is not None:
        console.print(f"Resets in: {summary.reset_in_days} days")
    trend = trend_text(
        limit,
        summary.total_operations,
        summary.reset_in_days,
        summary.avg_daily_operations,
    )
    if trend:
        color = "red" if "OVER" in trend else "green"
        console.print(f"[{color}]{trend}[/{color}]")


@favorites_app.command("list")
def list_favorites(ctx: typer.Context) -> None:
    """List favorite scenarios, by name."""
    settings = _settings(ctx)
    workspace = _workspace(settings)
    favorites = workspace.list_favorites()
    if not favorites:
        console.print("[yellow]No favorite scenarios.[/yellow]")
        console.print("[dim]Add one with: makescout favorites add <scenario-id>[/dim]")
        return

    selection = workspace.get_selection()
    client = _client(settings)

    async def fetch() -> tuple:
        async with client:
            service = ScenarioService(client)
            scenarios = await service.get_scenarios(favorites)
            consumptions = None
            if selection:
                consumptions = await _consumptions_or_none(service, selection.team_id)
            return scenarios, consumptions

    scenarios, consumptions = _run(fetch(), "Failed to load favorites")
    listing = build_listing(
        scenarios,
        consumptions.scenario_consumptions if consumptions is not None else [],
        favorites,
        sort=SortMode.NAME,
    )
    console.print(_scenario_table("Favorites", listing.favorites, set(favorites)))
    missing = len(favorites) - len(scenarios)
    if missing:
        console.print(f"[dim]{missing} favorite(s) could not be loaded[/dim]")


@favorites_app.command("add")
def add_favorite(
    ctx: typer.Context,
    scenario_id: Annotated[int, typer.Argument(help="Scenario ID")],
) -> None:
    """Add a scenario to favorites."""
    workspace = _workspace(_settings(ctx))
    if workspace.is_favorite(scenario_id):
        console.print(f"[yellow]Scenario {scenario_id} is already a favorite.[/yellow]")
        return
    workspace.toggle_favorite(scenario_id)
    console.print(f"[green]Added scenario {scenario_id} to favorites[/green]")


@favorites_app.command("remove")
def remove_favorite(
    ctx: typer.Context,
    scenario_id: Annotated[int, typer.Argument(help="Scenario ID")],
) -> None:
    """Remove a scenario from favorites."""
    workspace = _workspace(_settings(ctx))
    if not workspace.is_favorite(scenario_id):
        console.print(f"[red]Scenario {scenario_id} is not a favorite.[/red]")
        raise typer.Exit(1)
    workspace.toggle_favorite(scenario_id)
    console.print(f"[green]Removed scenario {scenario_id} from favorites[/green]")


if __name__ == "__main__":
    app()
