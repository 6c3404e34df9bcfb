"""Tests for network range discovery."""

import pytest

from clustermanager.collect.cidr import (
    discover_cluster_cidr,
    discover_service_cidr,
    find_pod,
    get_param_value,
)

from conftest import FakeMemberCluster, api_error, make_node, make_pod


class TestGetParamValue:
    """Tests for flag scanning."""

    def test_plain_flag(self):
        args = ["kube-apiserver", "--secure-port=6443", "--service-cluster-ip-range=10.96.0.0/12"]
        assert get_param_value(args, "--service-cluster-ip-range") == "10.96.0.0/12"

    def test_shell_invocation_is_split(self):
        command = ["/bin/sh", "-c", "exec kube-controller-manager --v=2 --cluster-cidr=10.244.0.0/16"]
        assert get_param_value(command, "--cluster-cidr") == "10.244.0.0/16"

    def test_absent_flag(self):
        assert get_param_value(["--v=2"], "--cluster-cidr") == ""

    def test_empty_value_is_skipped(self):
        args = ["--cluster-cidr=", "--cluster-cidr=192.168.0.0/16"]
        assert get_param_value(args, "--cluster-cidr") == "192.168.0.0/16"

    def test_longer_flag_with_same_prefix_does_not_match(self):
        args = ["--cluster-cidr-mask=24", "--cluster-cidr=10.0.0.0/8"]
        assert get_param_value(args, "--cluster-cidr") == "10.0.0.0/8"


class TestFindPod:
    """Tests for control-plane pod lookup."""

    @pytest.mark.asyncio
    async def test_prefers_running_pod(self):
        client = FakeMemberCluster(
            pods=[
                make_pod("kube-apiserver", phase="Pending", name="pending"),
                make_pod("kube-apiserver", phase="Running", name="running"),
            ]
        )
        pod = await find_pod(client, "kube-apiserver")
        assert pod is not None
        assert pod.metadata.name == "running"

    @pytest.mark.asyncio
    async def test_no_running_pod(self):
        client = FakeMemberCluster(pods=[make_pod("kube-apiserver", phase="Failed")])
        assert await find_pod(client, "kube-apiserver") is None

    @pytest.mark.asyncio
    async def test_list_failure_is_not_found(self):
        client = FakeMemberCluster()
        client.errors["pods"] = api_error()
        assert await find_pod(client, "kube-apiserver") is None


class TestDiscovery:
    """Tests for the cluster and service CIDR chains."""

    @pytest.mark.asyncio
    async def test_cluster_cidr_from_apiserver(self):
        client = FakeMemberCluster(
            pods=[make_pod("kube-apiserver", command=["kube-apiserver", "--service-cluster-ip-range=10.96.0.0/12"])]
        )
        assert await discover_cluster_cidr(client) == "10.96.0.0/12"

    @pytest.mark.asyncio
    async def test_cluster_cidr_from_args(self):
        client = FakeMemberCluster(
            pods=[make_pod("kube-apiserver", command=["kube-apiserver"], args=["--service-cluster-ip-range=10.0.0.0/16"])]
        )
        assert await discover_cluster_cidr(client) == "10.0.0.0/16"

    @pytest.mark.asyncio
    async def test_controller_manager_wins(self):
        client = FakeMemberCluster(
            pods=[
                make_pod("kube-controller-manager", command=["kube-controller-manager", "--cluster-cidr=10.244.0.0/16"]),
                make_pod("kube-proxy", command=["kube-proxy", "--cluster-cidr=10.1.0.0/16"]),
            ],
            nodes=[make_node("n1", pod_cidr="10.2.0.0/24")],
        )
        assert await discover_service_cidr(client) == "10.244.0.0/16"

    @pytest.mark.asyncio
    async def test_falls_back_to_kube_proxy(self):
        client = FakeMemberCluster(
            pods=[make_pod("kube-proxy", command=["/bin/sh", "-c", "kube-proxy --cluster-cidr=10.1.0.0/16"])],
            nodes=[make_node("n1", pod_cidr="10.2.0.0/24")],
        )
        assert await discover_service_cidr(client) == "10.1.0.0/16"

    @pytest.mark.asyncio
    async def test_falls_back_to_node_pod_cidr(self):
        nodes = [make_node("n1"), make_node("n2", pod_cidr="10.2.1.0/24")]
        client = FakeMemberCluster(nodes=nodes)
        assert await discover_service_cidr(client) == "10.2.1.0/24"

    @pytest.mark.asyncio
    async def test_uses_given_nodes_without_listing(self):
        client = FakeMemberCluster()
        nodes = [make_node("n1", pod_cidr="10.3.0.0/24")]
        assert await discover_service_cidr(client, nodes) == "10.3.0.0/24"
        assert "list nodes" not in client.calls

    @pytest.mark.asyncio
    async def test_every_source_empty(self):
        client = FakeMemberCluster(nodes=[make_node("n1")])
        assert await discover_service_cidr(client) == ""
        assert await discover_cluster_cidr(client) == ""
