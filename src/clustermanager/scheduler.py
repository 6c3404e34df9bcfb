"""
Fleet scheduler daemon for periodic telemetry collection.

This module implements the collection loop that:
- Waits one interval, runs a tick, and waits again
- Enumerates member clusters from the registry on every tick
- Collects each cluster concurrently, bounded by a semaphore
- Bounds every cluster's collection with a timeout
- Isolates failures per cluster
- Drops the snapshots of clusters that left the registry
- Drains an in-flight tick on SIGINT/SIGTERM, then cancels it

Uses asyncio.Event for shutdown coordination and wait_for with a timeout
for interruptible sleep.
"""

import asyncio
import functools
import logging
import signal
import time
from collections.abc import Collection, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from clustermanager.metrics import TICK_DURATION, record_collection
from clustermanager.protocols import FleetRegistryProtocol, MemberClusterProxyProtocol

logger = logging.getLogger(__name__)


class CollectorProtocol(Protocol):
    async def collect(self, client: MemberClusterProxyProtocol) -> Any: ...

    def retain(self, names: Collection[str]) -> None: ...


@dataclass
class TickResult:
    """Outcome counts of one tick."""

    clusters: int = 0
    succeeded: int = 0
    failed: int = 0


class FleetScheduler:
    """
    Long-running daemon that collects telemetry from every member cluster.

    Example:
        scheduler = FleetScheduler(
            registry=ClusterGatewayRegistry(hub=hub),
            collector=TelemetryCollector(sink=LogSink()),
            interval_seconds=20.0,
        )
        await scheduler.run()  # Runs until SIGINT/SIGTERM
    """

    def __init__(
        self,
        registry: FleetRegistryProtocol,
        collector: CollectorProtocol,
        interval_seconds: float = 20.0,
        max_concurrent: int = 8,
        cluster_timeout: float = 60.0,
        drain_timeout: float = 10.0,
    ) -> None:
        """
        Initialize the fleet scheduler.

        Args:
            registry: Source of the member clusters to collect
            collector: Per-cluster collector (emits to its own sink)
            interval_seconds: Seconds between ticks (default 20)
            max_concurrent: Clusters collected at the same time (default 8)
            cluster_timeout: Upper bound for one cluster's collection (default 60)
            drain_timeout: Grace period for an in-flight tick on shutdown (default 10)
        """
        self.registry = registry
        self.collector = collector
        self.interval = interval_seconds
        self.max_concurrent = max_concurrent
        self.cluster_timeout = cluster_timeout
        self.drain_timeout = drain_timeout
        self._shutdown = asyncio.Event()
        self.last_result: TickResult | None = None

    async def run(self, install_signal_handlers: bool = True) -> None:
        """
        Run the scheduler until shutdown.

        Args:
            install_signal_handlers: Register SIGINT/SIGTERM to stop()
        """
        if install_signal_handlers:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, functools.partial(self._handle_signal, sig))

        logger.info(f"Fleet scheduler starting (interval: {self.interval}s)")

        while not self._shutdown.is_set():
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass  # Interval elapsed
            if self._shutdown.is_set():
                break
            await self._run_tick()

        logger.info("Fleet scheduler stopped")

    def stop(self) -> None:
        """Request shutdown; an in-flight tick gets drain_timeout to finish."""
        self._shutdown.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, shutting down...")
        self.stop()

    async def _run_tick(self) -> None:
        tick = asyncio.create_task(self.tick())
        stop = asyncio.create_task(self._shutdown.wait())
        try:
            await asyncio.wait({tick, stop}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            tick.cancel()
            raise
        finally:
            stop.cancel()

        if tick.done():
            return

        logger.info(f"Draining in-flight tick for up to {self.drain_timeout}s")
        done, _ = await asyncio.wait({tick}, timeout=self.drain_timeout)
        if done:
            return

        logger.warning("Drain timeout exceeded, cancelling in-flight collections")
        tick.cancel()
        try:
            await tick
        except asyncio.CancelledError:
            pass

    async def tick(self) -> TickResult:
        """
        Collect every member cluster once.

        Returns:
            TickResult with the number of clusters and per-cluster outcomes.
        """
        start = time.monotonic()
        result = TickResult()

        try:
            clusters: Sequence[MemberClusterProxyProtocol] = await self.registry.get_all()
        except Exception as e:
            # Log but don't crash on registry failure
            logger.error(f"Failed to enumerate member clusters, skipping tick: {e}")
            return result

        result.clusters = len(clusters)
        if clusters:
            semaphore = asyncio.Semaphore(self.max_concurrent)
            async with asyncio.TaskGroup() as tg:
                tasks = [tg.create_task(self._collect_one(c, semaphore)) for c in clusters]
            result.succeeded = sum(1 for task in tasks if task.result())
            result.failed = result.clusters - result.succeeded

        self.collector.retain({c.name for c in clusters})

        duration = time.monotonic() - start
        TICK_DURATION.observe(duration)
        self.last_result = result
        logger.info(
            f"Tick complete: {result.clusters} clusters, {result.succeeded} succeeded, "
            f"{result.failed} failed ({duration:.2f}s)"
        )
        return result

    async def _collect_one(
        self, client: MemberClusterProxyProtocol, semaphore: asyncio.Semaphore
    ) -> bool:
        async with semaphore:
            try:
                await asyncio.wait_for(
                    self.collector.collect(client), timeout=self.cluster_timeout
                )
            except asyncio.TimeoutError:
                logger.error(
                    f"Collecting cluster {client.name} timed out after {self.cluster_timeout}s"
                )
                record_collection("timeout")
                return False
            except Exception as e:
                # Errors are isolated per cluster
                logger.error(f"Collecting cluster {client.name} failed: {e}")
                record_collection("failed")
                return False

        record_collection("success")
        return True
