"""
ManagedCluster event subscription.

WatchEventSource turns the hub's list+watch API into a stream of typed
ClusterEvent values:
- An initial list yields one ADDED event per existing cluster
- A watch then resumes from the list's resource version
- Bookmarks and every object advance the resource version
- A 410 Gone (expired resource version) triggers a fresh relist
- Any other error is logged and the watch is retried after a delay
- A watch that ends without events is not reopened before
  min_watch_interval has passed

Objects that do not decode as ManagedClusters are dropped here, at the
boundary, so handlers never see an untyped payload.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum

from pydantic import ValidationError

from clustermanager.exceptions import KubeAPIError
from clustermanager.kube.client import DEFAULT_WATCH_TIMEOUT_SECONDS, KubeClient
from clustermanager.kube.models import ManagedCluster, WatchEvent
from clustermanager.kube.resources import MANAGED_CLUSTERS

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ClusterEvent:
    """A decoded ManagedCluster change."""

    type: EventType
    cluster: ManagedCluster

    @property
    def key(self) -> str:
        return self.cluster.key


class _Relist(Exception):
    """The watch cannot resume from the current resource version."""


class WatchEventSource:
    """
    List+watch subscription to ManagedCluster changes on the hub.

    Example:
        source = WatchEventSource(client=hub)
        async for event in source.subscribe(shutdown):
            print(f"{event.type.value} {event.cluster.metadata.name}")
    """

    def __init__(
        self,
        client: KubeClient,
        retry_delay: float = 5.0,
        watch_timeout_seconds: int = DEFAULT_WATCH_TIMEOUT_SECONDS,
        min_watch_interval: float = 1.0,
    ) -> None:
        self.client = client
        self.retry_delay = retry_delay
        self.watch_timeout_seconds = watch_timeout_seconds
        self.min_watch_interval = min_watch_interval

    async def subscribe(self, shutdown: asyncio.Event) -> AsyncIterator[ClusterEvent]:
        """
        Yield events until shutdown is set.

        Args:
            shutdown: Event ending the subscription once set
        """
        resource_version: str | None = None
        while not shutdown.is_set():
            try:
                if resource_version is None:
                    listing = await self.client.list_objects(MANAGED_CLUSTERS)
                    for cluster in listing.items:
                        yield ClusterEvent(EventType.ADDED, cluster)
                    resource_version = listing.metadata.resource_version or ""
                    logger.info(
                        f"Listed {len(listing.items)} managed clusters "
                        f"at resource version {resource_version}"
                    )

                started = asyncio.get_running_loop().time()
                received = 0
                async for raw in self.client.watch(
                    MANAGED_CLUSTERS,
                    resource_version=resource_version or None,
                    timeout_seconds=self.watch_timeout_seconds,
                ):
                    received += 1
                    if shutdown.is_set():
                        return
                    if raw.type == EventType.ERROR.value:
                        raise _Relist(raw.object.get("message", "watch error"))

                    version = raw.object.get("metadata", {}).get("resourceVersion")
                    if version:
                        resource_version = version
                    event = self._decode(raw)
                    if event is not None:
                        yield event
                if received == 0:
                    elapsed = asyncio.get_running_loop().time() - started
                    await self._wait(shutdown, self.min_watch_interval - elapsed)
            except _Relist as e:
                logger.warning(f"Watch expired ({e}), relisting managed clusters")
                resource_version = None
            except KubeAPIError as e:
                if e.gone:
                    logger.warning(f"Watch expired ({e}), relisting managed clusters")
                    resource_version = None
                    continue
                logger.error(f"Managed cluster watch failed: {e}")
                await self._wait(shutdown)

    def _decode(self, raw: WatchEvent) -> ClusterEvent | None:
        try:
            event_type = EventType(raw.type)
        except ValueError:
            logger.debug(f"Dropping watch event of unknown type {raw.type}")
            return None
        if event_type == EventType.BOOKMARK:
            return None

        try:
            cluster = ManagedCluster.model_validate(raw.object)
        except ValidationError as e:
            logger.debug(f"Dropping {event_type.value} event with undecodable object: {e}")
            return None
        if cluster.kind and cluster.kind != MANAGED_CLUSTERS.kind:
            logger.debug(f"Dropping {event_type.value} event for kind {cluster.kind}")
            return None
        return ClusterEvent(event_type, cluster)

    async def _wait(self, shutdown: asyncio.Event, delay: float | None = None) -> None:
        delay = self.retry_delay if delay is None else delay
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(shutdown.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
