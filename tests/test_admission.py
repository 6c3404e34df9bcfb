"""
Admission controller tests with an in-memory hub.

Verifies the reconcile state machine against FakeHub, which implements
FleetClientProtocol, so no API server is needed.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from clustermanager.accept.controller import (
    AdmissionController,
    AdmissionOutcome,
    ReconcileResult,
)
from clustermanager.accept.events import ClusterEvent, EventType
from clustermanager.accept.queue import RetryConfig, WorkQueue
from clustermanager.exceptions import KubeAPIError
from clustermanager.types import ApprovalState

from conftest import CLUSTER_LABEL, FakeHub, api_error, make_cluster, make_csr


class StaticEventSource:
    """Event source yielding a fixed list of events, then idling until shutdown."""

    def __init__(self, events):
        self.events = list(events)

    async def subscribe(self, shutdown):
        for event in self.events:
            yield event
        await shutdown.wait()


def make_controller(hub, events=(), **kwargs) -> AdmissionController:
    kwargs.setdefault("queue", WorkQueue(retry=RetryConfig(min_wait_seconds=0.01, jitter_fraction=0)))
    return AdmissionController(client=hub, events=StaticEventSource(events), **kwargs)


class TestReconcile:
    """Tests for the reconcile state machine."""

    @pytest.mark.asyncio
    async def test_approves_pending_and_accepts(self):
        hub = FakeHub(
            clusters=[make_cluster("edge-1")],
            csrs=[make_csr("csr-1", "edge-1"), make_csr("csr-other", "edge-2")],
        )
        controller = make_controller(hub)

        result = await controller.reconcile("edge-1")

        assert result == ReconcileResult(AdmissionOutcome.ACCEPTED)
        assert [c.metadata.name for c in hub.approvals] == ["csr-1"]
        assert hub.csrs["csr-1"].approval_state == ApprovalState.APPROVED
        assert hub.csrs["csr-other"].approval_state == ApprovalState.PENDING
        assert hub.clusters["edge-1"].accepted is True

    @pytest.mark.asyncio
    async def test_approval_condition(self):
        hub = FakeHub(clusters=[make_cluster("edge-1")], csrs=[make_csr("csr-1", "edge-1")])
        controller = make_controller(hub, controller_name="ClusterManagerAutoAccept")

        await controller.reconcile("edge-1")

        condition = hub.approvals[0].status.conditions[-1]
        assert condition.type == "Approved"
        assert condition.status == "True"
        assert condition.reason == "ClusterManagerAutoAcceptApprove"
        assert condition.message == (
            "This CSR was approved by ClusterManagerAutoAccept certificate approve."
        )
        assert condition.last_update_time is not None

    @pytest.mark.asyncio
    async def test_idempotent(self):
        """A second run against the resulting state performs no writes."""
        hub = FakeHub(clusters=[make_cluster("edge-1")], csrs=[make_csr("csr-1", "edge-1")])
        controller = make_controller(hub)

        await controller.reconcile("edge-1")
        writes = (len(hub.approvals), len(hub.updates))
        result = await controller.reconcile("edge-1")

        assert result.outcome == AdmissionOutcome.ALREADY_ACCEPTED
        assert (len(hub.approvals), len(hub.updates)) == writes

    @pytest.mark.asyncio
    async def test_already_approved_not_approved_again(self):
        hub = FakeHub(
            clusters=[make_cluster("edge-1")],
            csrs=[make_csr("csr-old", "edge-1", "approved"), make_csr("csr-new", "edge-1")],
        )
        controller = make_controller(hub)

        result = await controller.reconcile("edge-1")

        assert result.outcome == AdmissionOutcome.ACCEPTED
        assert [c.metadata.name for c in hub.approvals] == ["csr-new"]

    @pytest.mark.asyncio
    async def test_retry_after_partial_failure_approves_nothing_twice(self):
        """Approval succeeded but the cluster update failed; the retry only updates."""
        hub = FakeHub(clusters=[make_cluster("edge-1")], csrs=[make_csr("csr-1", "edge-1")])
        hub.errors["update"] = api_error("update", 409)
        controller = make_controller(hub)

        with pytest.raises(KubeAPIError):
            await controller.reconcile("edge-1")
        assert len(hub.approvals) == 1
        assert hub.clusters["edge-1"].accepted is False

        del hub.errors["update"]
        result = await controller.reconcile("edge-1")

        assert result.outcome == AdmissionOutcome.ACCEPTED
        assert len(hub.approvals) == 1
        assert hub.clusters["edge-1"].accepted is True

    @pytest.mark.asyncio
    async def test_accepted_cluster_untouched(self):
        hub = FakeHub(
            clusters=[make_cluster("edge-1", accepted=True)],
            csrs=[make_csr("csr-1", "edge-1")],
        )
        controller = make_controller(hub)

        result = await controller.reconcile("edge-1")

        assert result.outcome == AdmissionOutcome.ALREADY_ACCEPTED
        assert hub.approvals == []
        assert hub.updates == []

    @pytest.mark.asyncio
    async def test_no_requests_requeues(self):
        hub = FakeHub(clusters=[make_cluster("edge-1")])
        controller = make_controller(hub, requeue_after=5.0)

        result = await controller.reconcile("edge-1")

        assert result == ReconcileResult(AdmissionOutcome.NO_REQUESTS, 5.0)
        assert hub.updates == []

    @pytest.mark.asyncio
    async def test_all_denied_is_not_accepted(self):
        hub = FakeHub(
            clusters=[make_cluster("edge-1")],
            csrs=[make_csr("csr-1", "edge-1", "denied")],
        )
        controller = make_controller(hub, requeue_after=5.0)

        result = await controller.reconcile("edge-1")

        assert result == ReconcileResult(AdmissionOutcome.ALL_DENIED, 5.0)
        assert hub.approvals == []
        assert hub.clusters["edge-1"].accepted is False

    @pytest.mark.asyncio
    async def test_denied_and_pending(self):
        hub = FakeHub(
            clusters=[make_cluster("edge-1")],
            csrs=[make_csr("csr-1", "edge-1", "denied"), make_csr("csr-2", "edge-1")],
        )
        controller = make_controller(hub)

        result = await controller.reconcile("edge-1")

        assert result.outcome == AdmissionOutcome.ACCEPTED
        assert [c.metadata.name for c in hub.approvals] == ["csr-2"]
        assert hub.csrs["csr-1"].approval_state == ApprovalState.DENIED

    @pytest.mark.asyncio
    async def test_cluster_not_found(self):
        controller = make_controller(FakeHub())
        result = await controller.reconcile("gone")
        assert result.outcome == AdmissionOutcome.NOT_FOUND

    @pytest.mark.asyncio
    async def test_get_error_propagates(self):
        hub = FakeHub(clusters=[make_cluster("edge-1")])
        hub.errors["get"] = api_error("get", 500)
        controller = make_controller(hub)

        with pytest.raises(KubeAPIError) as exc_info:
            await controller.reconcile("edge-1")
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_uses_configured_label(self):
        hub = FakeHub(clusters=[make_cluster("edge-1")], csrs=[make_csr("csr-1", "edge-1")])
        hub.list = AsyncMock(return_value=[])
        controller = make_controller(hub, cluster_label=CLUSTER_LABEL)

        await controller.reconcile("edge-1")

        assert hub.list.call_args.kwargs["label_selector"] == {CLUSTER_LABEL: "edge-1"}


class TestProcess:
    """Tests for follow-up scheduling after a reconcile attempt."""

    def test_uses_injected_empty_queue(self):
        queue = WorkQueue(retry=RetryConfig(max_attempts=7))
        assert len(queue) == 0

        controller = make_controller(FakeHub(), queue=queue)

        assert controller.queue is queue
        assert controller.queue.retry.max_attempts == 7

    @pytest.mark.asyncio
    async def test_error_requeues_with_backoff(self):
        queue = WorkQueue()
        calls = []
        queue.add_rate_limited = lambda key: calls.append(key) or True
        hub = FakeHub(clusters=[make_cluster("edge-1")])
        hub.errors["get"] = api_error("get", 503)
        controller = make_controller(hub, queue=queue)

        await controller.process("edge-1")

        assert calls == ["edge-1"]

    @pytest.mark.asyncio
    async def test_success_forgets_backoff(self):
        queue = WorkQueue()
        queue._failures["edge-1"] = 3
        hub = FakeHub(clusters=[make_cluster("edge-1", accepted=True)])
        controller = make_controller(hub, queue=queue)

        await controller.process("edge-1")

        assert queue.num_requeues("edge-1") == 0

    @pytest.mark.asyncio
    async def test_timeout_is_an_error(self):
        hub = FakeHub(clusters=[make_cluster("edge-1")])
        calls = []
        queue = WorkQueue()
        queue.add_rate_limited = lambda key: calls.append(key) or True
        controller = make_controller(hub, queue=queue, reconcile_timeout=0.01)

        async def slow_reconcile(name):
            await asyncio.sleep(1)

        controller.reconcile = slow_reconcile
        await controller.process("edge-1")

        assert calls == ["edge-1"]


class TestRun:
    """Tests for the event pump and worker pool."""

    @pytest.mark.asyncio
    async def test_events_drive_acceptance(self):
        hub = FakeHub(
            clusters=[make_cluster("edge-1"), make_cluster("edge-2", accepted=True)],
            csrs=[make_csr("csr-1", "edge-1")],
        )
        events = [
            ClusterEvent(EventType.ADDED, make_cluster("edge-1")),
            ClusterEvent(EventType.MODIFIED, make_cluster("edge-1")),
            ClusterEvent(EventType.ADDED, make_cluster("edge-2", accepted=True)),
            ClusterEvent(EventType.DELETED, make_cluster("edge-3")),
        ]
        controller = make_controller(hub, events)

        task = asyncio.create_task(controller.run(install_signal_handlers=False))
        for _ in range(100):
            if hub.clusters["edge-1"].accepted:
                break
            await asyncio.sleep(0.01)
        controller.stop()
        await asyncio.wait_for(task, timeout=2)

        assert hub.clusters["edge-1"].accepted is True
        assert len(hub.approvals) == 1
        assert [obj.metadata.name for _, obj in hub.updates] == ["edge-1"]
