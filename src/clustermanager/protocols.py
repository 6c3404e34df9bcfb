"""
Protocol definitions for the cluster manager's collaborators.

The admission controller, the telemetry collector and the fleet scheduler
depend only on these protocols, never on a concrete client, so each can
be driven by in-memory fakes in tests.

Key protocols:
- FleetClientProtocol: get/list/update against the hub cluster
- MemberClusterProxyProtocol: read access and raw probes for one member cluster
- FleetRegistryProtocol: current membership snapshot
- EventSourceProtocol: typed ManagedCluster event subscription
- SnapshotSinkProtocol: destination for collected telemetry

KubeClient satisfies both client protocols; ClusterGatewayRegistry
satisfies FleetRegistryProtocol; WatchEventSource satisfies
EventSourceProtocol.
"""

import asyncio
from collections.abc import AsyncIterator, Collection, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from clustermanager.accept.events import ClusterEvent
    from clustermanager.kube.models import VersionInfo
    from clustermanager.kube.resources import ResourceKind
    from clustermanager.types import ClusterStatus, WorkloadSummary


@runtime_checkable
class FleetClientProtocol(Protocol):
    """
    Protocol for the hub cluster client.

    All methods raise KubeAPIError on failure; get() sets not_found for
    missing objects.
    """

    async def get(
        self, kind: "ResourceKind[Any]", name: str, namespace: str | None = None
    ) -> Any:
        """Get one object by name."""
        ...

    async def update(self, kind: "ResourceKind[Any]", obj: Any) -> Any:
        """Replace an object and return the stored version."""
        ...

    async def update_subresource(
        self, kind: "ResourceKind[Any]", obj: Any, subresource: str
    ) -> Any:
        """Replace a subresource (e.g., CSR "approval")."""
        ...

    async def list(
        self,
        kind: "ResourceKind[Any]",
        label_selector: Mapping[str, str] | None = None,
        namespace: str | None = None,
    ) -> Any:
        """List objects matching an optional label selector."""
        ...


@runtime_checkable
class MemberClusterProxyProtocol(Protocol):
    """
    Protocol for read access to one member cluster.

    Attributes:
        name: Member cluster name, used as the snapshot's cluster_name.
    """

    name: str

    async def server_version(self) -> "VersionInfo":
        """Return the API server version information."""
        ...

    async def probe(self, path: str) -> int:
        """GET a raw path and return the HTTP status code."""
        ...

    async def list(
        self,
        kind: "ResourceKind[Any]",
        label_selector: Mapping[str, str] | None = None,
        namespace: str | None = None,
    ) -> Any:
        """List objects matching an optional label selector."""
        ...


@runtime_checkable
class FleetRegistryProtocol(Protocol):
    """Protocol for enumerating member clusters once per tick."""

    async def get_all(self) -> Sequence[MemberClusterProxyProtocol]:
        """Return a proxy for every currently known member cluster."""
        ...


@runtime_checkable
class EventSourceProtocol(Protocol):
    """
    Protocol for a cancellable ManagedCluster event subscription.

    Implementations decode objects at the boundary: subscribers only ever
    receive ClusterEvent values carrying a ManagedCluster.
    """

    def subscribe(self, shutdown: asyncio.Event) -> AsyncIterator["ClusterEvent"]:
        """Yield events until shutdown is set."""
        ...


@runtime_checkable
class SnapshotSinkProtocol(Protocol):
    """Protocol for telemetry destinations (logs, metrics, status API)."""

    def emit_cluster_status(self, status: "ClusterStatus") -> None:
        """Publish one cluster's status snapshot."""
        ...

    def emit_workload_summary(self, summary: "WorkloadSummary") -> None:
        """Publish one cluster's workload summary."""
        ...

    def retain(self, names: Collection[str]) -> None:
        """Forget every cluster not in names."""
        ...
