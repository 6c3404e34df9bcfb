"""
Network range discovery for member clusters.

Kubernetes does not expose a cluster's pod and service ranges through a
single API, so they are recovered heuristically from the command lines of
the control-plane pods, falling back to node specs:

- Cluster CIDR: kube-apiserver --service-cluster-ip-range
- Service CIDR, first non-empty wins:
    1. kube-controller-manager --cluster-cidr
    2. kube-proxy --cluster-cidr
    3. spec.podCIDR of the first node that has one

The ordered chain tolerates different provisioning conventions (kubeadm,
managed control planes without visible control-plane pods, ...).
Absence is not an error: the functions return an empty string and the
collector logs a warning.
"""

import logging
from collections.abc import Sequence

from clustermanager.exceptions import KubeAPIError
from clustermanager.kube.models import Node, Pod
from clustermanager.kube.resources import NODES, PODS
from clustermanager.protocols import MemberClusterProxyProtocol

logger = logging.getLogger(__name__)

COMPONENT_LABEL = "component"

CLUSTER_CIDR_SOURCE: tuple[str, str] = ("kube-apiserver", "--service-cluster-ip-range")
SERVICE_CIDR_SOURCES: tuple[tuple[str, str], ...] = (
    ("kube-controller-manager", "--cluster-cidr"),
    ("kube-proxy", "--cluster-cidr"),
)


def _flag_value(token: str, flag: str) -> str:
    prefix = f"{flag}="
    if token.startswith(prefix):
        return token[len(prefix):]
    return ""


def get_param_value(arguments: Sequence[str], flag: str) -> str:
    """
    Find the value of a --flag=value argument.

    Tokens containing spaces are also split and re-tested, which covers
    containers started as ["/bin/sh", "-c", "exec kube-apiserver --flag=value ..."].

    Args:
        arguments: A container's command or args list
        flag: Flag name including dashes (e.g., "--cluster-cidr")

    Returns:
        The first non-empty value, or "" if the flag is absent.
    """
    for argument in arguments:
        value = _flag_value(argument, flag)
        if value:
            return value
        if " " in argument:
            for part in argument.split(" "):
                value = _flag_value(part, flag)
                if value:
                    return value
    return ""


async def find_pod(
    client: MemberClusterProxyProtocol,
    label_value: str,
    label_key: str = COMPONENT_LABEL,
) -> Pod | None:
    """
    Find a running pod by label.

    Returns:
        The first pod in phase Running, or None if there is none or the
        list call failed (logged).
    """
    try:
        pods = await client.list(PODS, label_selector={label_key: label_value})
    except KubeAPIError as e:
        logger.error(
            f"Failed to list pods by label selector {label_key}={label_value} "
            f"in cluster {client.name}: {e}"
        )
        return None

    return next((pod for pod in pods if pod.status.phase == "Running"), None)


async def find_pod_command_parameter(
    client: MemberClusterProxyProtocol, component: str, flag: str
) -> str:
    """Scan the command and args of a component's pod for a flag value."""
    pod = await find_pod(client, component)
    if pod is None:
        return ""

    for container in pod.spec.containers:
        value = get_param_value(container.command, flag) or get_param_value(
            container.args, flag
        )
        if value:
            return value
    return ""


async def find_pod_cidr_from_nodes(
    client: MemberClusterProxyProtocol, nodes: Sequence[Node] | None = None
) -> str:
    """
    Return spec.podCIDR of the first node that has one.

    Args:
        client: Member cluster proxy (used only when nodes is None)
        nodes: Already-listed nodes, to avoid a second list call
    """
    if nodes is None:
        try:
            nodes = await client.list(NODES)
        except KubeAPIError as e:
            logger.error(f"Failed to list nodes in cluster {client.name}: {e}")
            return ""

    for node in nodes:
        if node.spec.pod_cidr:
            return node.spec.pod_cidr
    return ""


async def discover_cluster_cidr(client: MemberClusterProxyProtocol) -> str:
    """Discover the cluster CIDR from the kube-apiserver flags ("" if unknown)."""
    component, flag = CLUSTER_CIDR_SOURCE
    return await find_pod_command_parameter(client, component, flag)


async def discover_service_cidr(
    client: MemberClusterProxyProtocol, nodes: Sequence[Node] | None = None
) -> str:
    """
    Discover the service CIDR through the ordered fallback chain.

    Returns:
        The first non-empty result, or "" if every source failed.
    """
    for component, flag in SERVICE_CIDR_SOURCES:
        value = await find_pod_command_parameter(client, component, flag)
        if value:
            return value

    return await find_pod_cidr_from_nodes(client, nodes)
