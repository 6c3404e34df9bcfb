"""Status API serving the latest fleet snapshots."""

from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException, Request
from prometheus_fastapi_instrumentator import Instrumentator

from clustermanager import __version__
from clustermanager.collect.sink import SnapshotStore

clusters_router = APIRouter(prefix="/api", tags=["clusters"])


def _store(request: Request) -> SnapshotStore:
    return request.app.state.store


@clusters_router.get("/clusters")
async def list_clusters(request: Request) -> dict[str, Any]:
    """Return the latest status of every cluster seen so far."""
    store = _store(request)
    return {
        "clusters": [
            status.to_dict()
            for name in store.cluster_names()
            if (status := store.statuses.get(name)) is not None
        ]
    }


@clusters_router.get("/clusters/{name}")
async def get_cluster(name: str, request: Request) -> dict[str, Any]:
    """Return the latest status and workload summary of one cluster."""
    status, summary = _store(request).get(name)
    if status is None and summary is None:
        raise HTTPException(status_code=404, detail=f"Cluster {name} not found")
    return {
        "status": status.to_dict() if status else None,
        "workloads": summary.to_dict() if summary else None,
    }


def create_app(store: SnapshotStore) -> FastAPI:
    """
    Create the status API application.

    Args:
        store: Snapshot store filled by the fleet scheduler
    """
    app = FastAPI(
        title="Cluster Manager",
        description="Latest telemetry snapshots of the member cluster fleet",
        version=__version__,
    )
    app.state.store = store
    app.include_router(clusters_router)

    # Exposes /metrics, including the collector gauges
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "healthy", "clusters": len(store.cluster_names())}

    return app
