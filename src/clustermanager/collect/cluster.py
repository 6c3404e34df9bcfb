"""
Cluster status collection for one member cluster.

Collection is strictly sequential per cluster:
1. Server version (soft failure: empty version/platform)
2. Node list (hard failure: CollectionError, no status emitted)
3. Node statistics from the Ready condition
4. Capacity and allocatable totals (cpu, memory)
5. Network ranges (soft failure: empty strings)
6. /healthz, /livez, /readyz probes (soft failure: False)
"""

import logging
from collections.abc import Sequence

from clustermanager.collect.cidr import discover_cluster_cidr, discover_service_cidr
from clustermanager.exceptions import CollectionError, InvalidQuantityError, KubeAPIError
from clustermanager.kube.models import Node
from clustermanager.kube.resources import NODES
from clustermanager.protocols import MemberClusterProxyProtocol
from clustermanager.quantity import DEFAULT_RESOURCES, ResourceList, aggregate, parse_resource_list
from clustermanager.types import ClusterStatus, NodeStatistics

logger = logging.getLogger(__name__)

HEALTH_ENDPOINTS = ("/healthz", "/livez", "/readyz")


def get_node_statistics(nodes: Sequence[Node]) -> NodeStatistics:
    """
    Classify nodes by their Ready condition.

    True → ready, False → not ready, Unknown → unknown, absent → lost.
    The four counts always sum to len(nodes).
    """
    stats = NodeStatistics()
    for node in nodes:
        condition = node.get_condition("Ready")
        if condition is None:
            stats.lost_nodes += 1
        elif condition.status == "True":
            stats.ready_nodes += 1
        elif condition.status == "False":
            stats.not_ready_nodes += 1
        else:
            stats.unknown_nodes += 1
    return stats


def _parse_node_resources(node: Node, field: str) -> ResourceList:
    raw = getattr(node.status, field)
    try:
        return parse_resource_list(raw)
    except InvalidQuantityError as e:
        logger.warning(f"Ignoring {field} of node {node.metadata.name}: {e}")
        return {}


def get_node_resources(nodes: Sequence[Node]) -> tuple[ResourceList, ResourceList]:
    """
    Sum node capacity and allocatable over cpu and memory.

    Returns:
        (capacity, allocatable); both contain cpu and memory, zero when
        there are no nodes.
    """
    capacity = aggregate(
        (_parse_node_resources(node, "capacity") for node in nodes),
        resources=DEFAULT_RESOURCES,
    )
    allocatable = aggregate(
        (_parse_node_resources(node, "allocatable") for node in nodes),
        resources=DEFAULT_RESOURCES,
    )
    return capacity, allocatable


async def get_health_status(client: MemberClusterProxyProtocol) -> dict[str, bool]:
    """
    Probe the API server health endpoints.

    Returns:
        Mapping of endpoint name (healthz, livez, readyz) to True iff the
        endpoint answered HTTP 200.
    """
    results = {}
    for path in HEALTH_ENDPOINTS:
        name = path.lstrip("/")
        try:
            results[name] = await client.probe(path) == 200
        except KubeAPIError as e:
            logger.warning(f"Probe {path} of cluster {client.name} failed: {e}")
            results[name] = False
    return results


async def collect_cluster_status(client: MemberClusterProxyProtocol) -> ClusterStatus:
    """
    Collect the status snapshot of one member cluster.

    Args:
        client: Proxy for the member cluster

    Returns:
        ClusterStatus for the cluster.

    Raises:
        CollectionError: If the node list cannot be read.
    """
    status = ClusterStatus(cluster_name=client.name)

    try:
        version = await client.server_version()
        status.kubernetes_version = version.git_version
        status.platform = version.platform
    except KubeAPIError as e:
        logger.warning(f"Failed to get server version of cluster {client.name}: {e}")

    try:
        nodes = await client.list(NODES)
    except KubeAPIError as e:
        raise CollectionError(client.name, f"listing nodes: {e}") from e

    status.node_statistics = get_node_statistics(nodes)
    status.capacity, status.allocatable = get_node_resources(nodes)

    status.cluster_cidr = await discover_cluster_cidr(client)
    if not status.cluster_cidr:
        logger.warning(f"Could not discover the cluster CIDR of cluster {client.name}")
    status.service_cidr = await discover_service_cidr(client, nodes)
    if not status.service_cidr:
        logger.warning(f"Could not discover the service CIDR of cluster {client.name}")

    health = await get_health_status(client)
    status.healthz = health["healthz"]
    status.livez = health["livez"]
    status.readyz = health["readyz"]

    return status
