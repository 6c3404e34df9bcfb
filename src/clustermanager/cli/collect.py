"""Fleet telemetry CLI commands.

This module provides CLI commands for fleet telemetry:
- run: Start periodic collection (and the status API)
- once: Collect every member cluster once and print the result

Uses a Rich Table for formatted output, JSON for automation.
"""

import asyncio
import contextlib
import json
from collections.abc import Iterator

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from clustermanager.api import create_app
from clustermanager.cli import load_settings
from clustermanager.collect.sink import SnapshotStore
from clustermanager.factory import create_fleet_scheduler, create_hub_client, create_hub_http
from clustermanager.quantity import CPU, MEMORY
from clustermanager.types import ClusterStatus

collect_app = typer.Typer(help="Collect telemetry from member clusters")


class _APIServer(uvicorn.Server):
    """uvicorn server leaving SIGINT/SIGTERM to the fleet scheduler."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


@collect_app.command("run")
def run_collect(
    interval: float = typer.Option(
        None, "--interval", "-i", help="Collection interval in seconds"
    ),
    api: bool = typer.Option(True, "--api/--no-api", help="Serve the status API"),
    port: int = typer.Option(None, "--port", "-p", help="Status API port"),
) -> None:
    """
    Run the fleet scheduler.

    Collects status and workload snapshots from every accepted member
    cluster at the given interval. Runs until interrupted with Ctrl+C.
    """
    settings = load_settings(collect_interval_seconds=interval, api_port=port)

    print("Starting fleet scheduler")
    print(f"  Hub: {settings.hub_url}")
    print(f"  Interval: {settings.collect_interval_seconds}s")
    if api:
        print(f"  Status API: http://{settings.api_host}:{settings.api_port}")
    print()
    print("Press Ctrl+C to stop")
    print()

    async def _run() -> None:
        store = SnapshotStore()
        async with create_hub_http(settings) as http:
            hub = create_hub_client(settings, http)
            scheduler = create_fleet_scheduler(settings, hub, store=store)

            if not api:
                await scheduler.run()
                return

            server = _APIServer(
                uvicorn.Config(
                    create_app(store),
                    host=settings.api_host,
                    port=settings.api_port,
                    log_level=settings.log_level.lower(),
                )
            )
            async with asyncio.TaskGroup() as tg:
                tg.create_task(server.serve())
                await scheduler.run()
                server.should_exit = True

    asyncio.run(_run())


def _health_cell(status: ClusterStatus) -> str:
    marks = []
    for name, up in (("healthz", status.healthz), ("livez", status.livez), ("readyz", status.readyz)):
        marks.append(f"[green]{name}[/green]" if up else f"[red]{name}[/red]")
    return " ".join(marks)


def _resource_cell(status: ClusterStatus, resource: str) -> str:
    allocatable = status.allocatable.get(resource)
    capacity = status.capacity.get(resource)
    return f"{allocatable or '-'} / {capacity or '-'}"


@collect_app.command("once")
def collect_once(
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Collect every member cluster once and print the snapshots."""
    settings = load_settings()

    async def _collect() -> tuple[SnapshotStore, int]:
        store = SnapshotStore()
        async with create_hub_http(settings) as http:
            hub = create_hub_client(settings, http)
            scheduler = create_fleet_scheduler(settings, hub, store=store, log_snapshots=False)
            result = await scheduler.tick()
        return store, result.failed

    store, failed = asyncio.run(_collect())

    if json_output:
        data = []
        for name in store.cluster_names():
            status, summary = store.get(name)
            data.append(
                {
                    "status": status.to_dict() if status else None,
                    "workloads": summary.to_dict() if summary else None,
                }
            )
        print(json.dumps(data, indent=2, default=str))
    else:
        console = Console()
        table = Table(title="Member Clusters")
        table.add_column("Cluster", style="cyan")
        table.add_column("Version")
        table.add_column("Health")
        table.add_column("Nodes", justify="right")
        table.add_column("CPU (alloc / cap)", justify="right")
        table.add_column("Memory (alloc / cap)", justify="right")
        table.add_column("Cluster CIDR")
        table.add_column("Service CIDR")

        for name in store.cluster_names():
            status = store.statuses.get(name)
            if status is None:
                table.add_row(name, "[red]collection failed[/red]", "", "", "", "", "", "")
                continue
            stats = status.node_statistics
            table.add_row(
                name,
                status.kubernetes_version or "-",
                _health_cell(status),
                f"{stats.ready_nodes}/{stats.total}",
                _resource_cell(status, CPU),
                _resource_cell(status, MEMORY),
                status.cluster_cidr or "-",
                status.service_cidr or "-",
            )

        console.print(table)

    if failed:
        raise typer.Exit(1)
