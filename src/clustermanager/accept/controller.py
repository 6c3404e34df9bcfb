"""
Admission controller for member clusters.

A newly joined member cluster registers a ManagedCluster on the hub and
submits certificate signing requests (CSRs) labelled with its name. The
hub only trusts it once the CSRs are approved and hubAcceptsClient is
set. This controller automates that:

1. Get the ManagedCluster (deleted → done; already accepted → done)
2. List the cluster's CSRs (none yet → requeue after a short delay)
3. Approve every pending CSR, skipping approved/denied ones
4. If any CSR is approved, set hubAcceptsClient=true

Every attempt re-derives state from the live objects, so running it
twice, concurrently with a restart, or after a partial failure approves
nothing twice and never reverts an accepted cluster.

Events arrive from an EventSourceProtocol, are filtered by
needs_acceptance, and flow through a WorkQueue to a pool of workers.
"""

import asyncio
import functools
import logging
import signal
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from clustermanager.accept.predicate import needs_acceptance
from clustermanager.accept.queue import QueueShutdown, WorkQueue
from clustermanager.exceptions import KubeAPIError
from clustermanager.kube.models import CertificateSigningRequest, CSRCondition
from clustermanager.kube.resources import CERTIFICATE_SIGNING_REQUESTS, MANAGED_CLUSTERS
from clustermanager.metrics import record_csr_approved, record_reconcile
from clustermanager.protocols import EventSourceProtocol, FleetClientProtocol
from clustermanager.types import ApprovalState

logger = logging.getLogger(__name__)

CLUSTER_NAME_LABEL = "open-cluster-management.io/cluster-name"
DEFAULT_CONTROLLER_NAME = "ClusterManagerAutoAccept"


class AdmissionOutcome(str, Enum):
    """How one reconcile attempt ended."""

    NOT_FOUND = "not_found"
    ALREADY_ACCEPTED = "already_accepted"
    NO_REQUESTS = "no_requests"
    ACCEPTED = "accepted"
    ALL_DENIED = "all_denied"


@dataclass(frozen=True)
class ReconcileResult:
    """
    Result of a reconcile attempt.

    Attributes:
        outcome: How the attempt ended
        requeue_after: Seconds until the key should be looked at again,
            None when the cluster needs no further work
    """

    outcome: AdmissionOutcome
    requeue_after: float | None = None


class AdmissionController:
    """
    Event-driven controller that accepts new member clusters.

    Example:
        controller = AdmissionController(
            client=hub,
            events=WatchEventSource(client=hub),
        )
        await controller.run()  # Runs until SIGINT/SIGTERM
    """

    def __init__(
        self,
        client: FleetClientProtocol,
        events: EventSourceProtocol,
        queue: WorkQueue | None = None,
        cluster_label: str = CLUSTER_NAME_LABEL,
        controller_name: str = DEFAULT_CONTROLLER_NAME,
        requeue_after: float = 5.0,
        workers: int = 2,
        reconcile_timeout: float = 30.0,
    ) -> None:
        """
        Initialize the admission controller.

        Args:
            client: Hub cluster client
            events: Source of ManagedCluster events
            queue: Work queue (a default one is created if omitted)
            cluster_label: CSR label naming the requesting cluster
            controller_name: Name recorded in approval conditions
            requeue_after: Delay before re-checking a cluster with no usable CSRs
            workers: Number of concurrent reconcile workers
            reconcile_timeout: Upper bound for one reconcile attempt in seconds
        """
        self.client = client
        self.events = events
        self.queue = queue if queue is not None else WorkQueue()
        self.cluster_label = cluster_label
        self.controller_name = controller_name
        self.requeue_after = requeue_after
        self.workers = workers
        self.reconcile_timeout = reconcile_timeout
        self._shutdown = asyncio.Event()

    # -------------------------------------------------------------------------
    # Reconcile
    # -------------------------------------------------------------------------

    async def reconcile(self, name: str) -> ReconcileResult:
        """
        Drive one member cluster towards accepted.

        Args:
            name: ManagedCluster name

        Returns:
            ReconcileResult describing the outcome and any requeue delay.

        Raises:
            KubeAPIError: On any API failure other than the cluster being
                gone; the worker requeues the key with backoff.
        """
        try:
            cluster = await self.client.get(MANAGED_CLUSTERS, name)
        except KubeAPIError as e:
            if e.not_found:
                logger.info(f"Managed cluster {name} not found, skipping")
                return ReconcileResult(AdmissionOutcome.NOT_FOUND)
            raise

        if cluster.accepted:
            logger.debug(f"Managed cluster {name} already accepted")
            return ReconcileResult(AdmissionOutcome.ALREADY_ACCEPTED)

        csrs = await self.client.list(
            CERTIFICATE_SIGNING_REQUESTS, label_selector={self.cluster_label: name}
        )
        if not csrs:
            logger.warning(
                f"No certificate signing requests for cluster {name} yet, "
                f"requeueing in {self.requeue_after}s"
            )
            return ReconcileResult(AdmissionOutcome.NO_REQUESTS, self.requeue_after)

        approved = 0
        for csr in csrs:
            state = csr.approval_state
            if state == ApprovalState.APPROVED:
                logger.warning(f"CSR {csr.metadata.name} of cluster {name} is already approved")
                approved += 1
            elif state == ApprovalState.DENIED:
                logger.warning(f"CSR {csr.metadata.name} of cluster {name} is denied, skipping")
            else:
                await self.approve(csr)
                approved += 1

        if approved == 0:
            logger.warning(
                f"Every CSR of cluster {name} is denied, not accepting; "
                f"requeueing in {self.requeue_after}s"
            )
            return ReconcileResult(AdmissionOutcome.ALL_DENIED, self.requeue_after)

        accepted = cluster.model_copy(deep=True)
        accepted.spec.hub_accepts_client = True
        await self.client.update(MANAGED_CLUSTERS, accepted)
        logger.info(f"Accepted managed cluster {name}")
        return ReconcileResult(AdmissionOutcome.ACCEPTED)

    async def approve(self, csr: CertificateSigningRequest) -> CertificateSigningRequest:
        """
        Append an Approved condition to a pending CSR.

        Returns:
            The CSR as stored by the API server.

        Raises:
            KubeAPIError: If the approval write fails.
        """
        condition = CSRCondition(
            type="Approved",
            status="True",
            reason=f"{self.controller_name}Approve",
            message=f"This CSR was approved by {self.controller_name} certificate approve.",
            last_update_time=datetime.now(timezone.utc).replace(microsecond=0),
        )
        updated = csr.model_copy(deep=True)
        updated.status.conditions.append(condition)
        result = await self.client.update_subresource(
            CERTIFICATE_SIGNING_REQUESTS, updated, "approval"
        )
        record_csr_approved()
        logger.info(f"Approved CSR {csr.metadata.name}")
        return result

    # -------------------------------------------------------------------------
    # Event pump and workers
    # -------------------------------------------------------------------------

    async def run(self, install_signal_handlers: bool = True) -> None:
        """
        Run the event pump and the worker pool until shutdown.

        Args:
            install_signal_handlers: Register SIGINT/SIGTERM to stop()
        """
        if install_signal_handlers:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, functools.partial(self._handle_signal, sig))

        logger.info(f"Admission controller starting ({self.workers} workers)")

        async with asyncio.TaskGroup() as tg:
            pump = tg.create_task(self._pump())
            for _ in range(self.workers):
                tg.create_task(self._worker())

            await self._shutdown.wait()
            pump.cancel()
            self.queue.shutdown()

        logger.info("Admission controller stopped")

    def stop(self) -> None:
        """Request shutdown; in-flight reconciles finish first."""
        self._shutdown.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, shutting down...")
        self.stop()

    async def _pump(self) -> None:
        async for event in self.events.subscribe(self._shutdown):
            if needs_acceptance(event):
                logger.debug(f"Queueing {event.key} ({event.type.value})")
                self.queue.add(event.key)

    async def _worker(self) -> None:
        while True:
            try:
                key = await self.queue.get()
            except QueueShutdown:
                return
            try:
                await self.process(key)
            finally:
                self.queue.done(key)

    async def process(self, key: str) -> None:
        """
        Run one reconcile attempt and schedule any follow-up.

        Failures are logged and requeued with backoff; they never stop
        the worker.
        """
        try:
            result = await asyncio.wait_for(self.reconcile(key), timeout=self.reconcile_timeout)
        except (KubeAPIError, asyncio.TimeoutError) as e:
            logger.error(f"Reconcile of cluster {key} failed: {e!r}")
            record_reconcile("error")
            self.queue.add_rate_limited(key)
            return
        except Exception:
            # Log but don't stop the worker
            logger.exception(f"Unexpected error reconciling cluster {key}")
            record_reconcile("error")
            self.queue.add_rate_limited(key)
            return

        record_reconcile(result.outcome.value)
        self.queue.forget(key)
        if result.requeue_after is not None:
            self.queue.add_after(key, result.requeue_after)
