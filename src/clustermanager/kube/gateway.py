"""
Fleet registry backed by the cluster gateway.

Member clusters are reached through the cluster-gateway aggregated API
on the hub: every request for cluster "edge-1" is sent to
/apis/cluster.core.oam.dev/v1alpha1/clustergateways/edge-1/proxy/<path>.
The registry enumerates accepted ManagedClusters once per tick and hands
out one KubeClient per cluster, all sharing the hub's connection pool.
"""

import logging
from dataclasses import dataclass

from clustermanager.kube.client import KubeClient
from clustermanager.kube.resources import MANAGED_CLUSTERS

logger = logging.getLogger(__name__)

GATEWAY_PROXY_PREFIX = "/apis/cluster.core.oam.dev/v1alpha1/clustergateways"


def gateway_prefix(cluster_name: str) -> str:
    """Path prefix proxying requests to a member cluster."""
    return f"{GATEWAY_PROXY_PREFIX}/{cluster_name}/proxy"


@dataclass
class ClusterGatewayRegistry:
    """
    Registry of member clusters reachable through the gateway.

    Attributes:
        hub: Client for the hub cluster
        accepted_only: Skip clusters whose hubAcceptsClient is still false

    Example:
        registry = ClusterGatewayRegistry(hub=hub)
        for proxy in await registry.get_all():
            version = await proxy.server_version()
            print(f"{proxy.name}: {version.git_version}")
    """

    hub: KubeClient
    accepted_only: bool = True

    async def get_all(self) -> list[KubeClient]:
        """
        Snapshot of the current membership.

        Raises:
            KubeAPIError: If the ManagedCluster list fails.
        """
        clusters = await self.hub.list(MANAGED_CLUSTERS)
        proxies = []
        for cluster in clusters:
            name = cluster.metadata.name
            if self.accepted_only and not cluster.accepted:
                logger.debug(f"Skipping cluster {name}: not accepted yet")
                continue
            proxies.append(self.hub.scoped(name, gateway_prefix(name)))
        return proxies
