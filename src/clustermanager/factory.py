"""
Factory functions wiring clients and daemons from Settings.

The CLI builds one Settings instance and passes it here; there is no
process-wide client. Each function accepts an optional pre-configured
collaborator so tests can inject fakes.
"""

import logging
from pathlib import Path

import httpx

from clustermanager.accept.controller import AdmissionController
from clustermanager.accept.events import WatchEventSource
from clustermanager.accept.queue import RetryConfig, WorkQueue
from clustermanager.collect.collector import TelemetryCollector
from clustermanager.collect.sink import LogSink, MetricsSink, MultiSink, SnapshotStore
from clustermanager.config import Settings
from clustermanager.kube.client import KubeClient
from clustermanager.kube.gateway import ClusterGatewayRegistry
from clustermanager.protocols import (
    EventSourceProtocol,
    FleetRegistryProtocol,
    SnapshotSinkProtocol,
)
from clustermanager.scheduler import FleetScheduler

logger = logging.getLogger(__name__)


def _read_token(settings: Settings) -> str | None:
    if settings.token:
        return settings.token
    path = Path(settings.token_file)
    if path.is_file():
        return path.read_text().strip()
    logger.warning(f"No bearer token configured and {path} does not exist")
    return None


def create_hub_http(settings: Settings) -> httpx.AsyncClient:
    """
    Create the httpx client for the hub API server.

    Uses bearer token auth and the configured CA bundle; member clusters
    are reached through the same client via the cluster gateway.
    """
    headers = {"Accept": "application/json"}
    token = _read_token(settings)
    if token:
        headers["Authorization"] = f"Bearer {token}"

    verify: bool | str = settings.verify_tls
    if settings.verify_tls and Path(settings.ca_file).is_file():
        verify = settings.ca_file

    return httpx.AsyncClient(
        base_url=settings.hub_url,
        headers=headers,
        verify=verify,
        timeout=settings.request_timeout_seconds,
    )


def create_hub_client(settings: Settings, http: httpx.AsyncClient | None = None) -> KubeClient:
    """Create the hub KubeClient (a new httpx client if none is given)."""
    if http is None:
        http = create_hub_http(settings)
    return KubeClient(http=http, name="hub")


def create_admission_controller(
    settings: Settings,
    hub: KubeClient,
    events: EventSourceProtocol | None = None,
) -> AdmissionController:
    """
    Create an AdmissionController wired to the hub.

    Args:
        settings: Configuration
        hub: Hub cluster client
        events: Optional event source (defaults to a watch on the hub)
    """
    retry = RetryConfig(
        max_attempts=settings.retry_max_attempts,
        min_wait_seconds=settings.retry_min_wait_seconds,
        max_wait_seconds=settings.retry_max_wait_seconds,
    )
    if events is None:
        events = WatchEventSource(client=hub, retry_delay=settings.requeue_after_seconds)
    return AdmissionController(
        client=hub,
        events=events,
        queue=WorkQueue(retry=retry),
        cluster_label=settings.cluster_label,
        controller_name=settings.controller_name,
        requeue_after=settings.requeue_after_seconds,
        workers=settings.admission_workers,
        reconcile_timeout=settings.reconcile_timeout_seconds,
    )


def create_fleet_scheduler(
    settings: Settings,
    hub: KubeClient,
    store: SnapshotStore | None = None,
    registry: FleetRegistryProtocol | None = None,
    log_snapshots: bool = True,
) -> FleetScheduler:
    """
    Create a FleetScheduler emitting to logs, metrics and an optional store.

    Args:
        settings: Configuration
        hub: Hub cluster client
        store: Optional SnapshotStore served by the status API
        registry: Optional registry (defaults to the cluster gateway)
        log_snapshots: Emit one JSON log record per snapshot
    """
    sinks: list[SnapshotSinkProtocol] = [MetricsSink()]
    if log_snapshots:
        sinks.insert(0, LogSink())
    if store is not None:
        sinks.append(store)

    if registry is None:
        registry = ClusterGatewayRegistry(hub=hub)
    return FleetScheduler(
        registry=registry,
        collector=TelemetryCollector(sink=MultiSink(sinks), show_label_key=settings.show_label_key),
        interval_seconds=settings.collect_interval_seconds,
        max_concurrent=settings.max_concurrent_collections,
        cluster_timeout=settings.collect_timeout_seconds,
        drain_timeout=settings.drain_timeout_seconds,
    )
