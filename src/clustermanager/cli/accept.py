"""Admission controller CLI command.

This module provides the CLI command for running the admission controller:
- run: Watch ManagedClusters and accept new member clusters
"""

import asyncio

import typer

from clustermanager.cli import load_settings
from clustermanager.factory import create_admission_controller, create_hub_client, create_hub_http

accept_app = typer.Typer(help="Run the member cluster admission controller")


@accept_app.command("run")
def run_accept(
    workers: int = typer.Option(
        None, "--workers", "-w", min=1, help="Concurrent reconcile workers"
    ),
) -> None:
    """
    Run the admission controller.

    Approves the pending certificate signing requests of newly joined
    member clusters and accepts them on the hub. Runs until interrupted
    with Ctrl+C.

    Environment variables:
        CLUSTERMANAGER_HUB_URL: Hub API server URL
        CLUSTERMANAGER_TOKEN / CLUSTERMANAGER_TOKEN_FILE: Bearer token
    """
    settings = load_settings(admission_workers=workers)

    print("Starting admission controller")
    print(f"  Hub: {settings.hub_url}")
    print(f"  Workers: {settings.admission_workers}")
    print()
    print("Press Ctrl+C to stop")
    print()

    async def _run() -> None:
        async with create_hub_http(settings) as http:
            hub = create_hub_client(settings, http)
            controller = create_admission_controller(settings, hub)
            await controller.run()

    asyncio.run(_run())
