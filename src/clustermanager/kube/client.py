"""
Kubernetes REST API client.

This module provides KubeClient, a thin async client over the Kubernetes
HTTP API covering exactly the calls the cluster manager needs:
- get / list / update of typed objects
- update of a subresource (CSR approval)
- server version discovery and raw health probes
- watch streams for event-driven reconciliation

KubeClient receives an injected httpx.AsyncClient (base_url, auth headers,
TLS and timeouts configured by clustermanager.factory). The same client
serves the hub and, through a path prefix, every member cluster reached
via the cluster gateway proxy.

All failures are raised as KubeAPIError carrying the operation and target.
"""

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError

from clustermanager.exceptions import KubeAPIError
from clustermanager.kube.models import KubeList, KubeObject, ListMeta, VersionInfo, WatchEvent
from clustermanager.kube.resources import ResourceKind

T = TypeVar("T", bound=KubeObject)

DEFAULT_PAGE_SIZE = 500
DEFAULT_WATCH_TIMEOUT_SECONDS = 300


def format_label_selector(labels: Mapping[str, str]) -> str:
    """Format an equality label selector ("k1=v1,k2=v2")."""
    return ",".join(f"{key}={value}" for key, value in labels.items())


@dataclass
class KubeClient:
    """
    Kubernetes API client with injected httpx client.

    Attributes:
        http: Pre-configured httpx.AsyncClient with base_url set to the API server.
        name: Cluster name this client talks to (used in logs and snapshots).
        prefix: Path prefix prepended to every request (cluster gateway proxy).
        page_size: Items per page for list calls.

    Example:
        async with httpx.AsyncClient(base_url="https://hub:6443") as http:
            hub = KubeClient(http=http, name="hub")
            clusters = await hub.list(MANAGED_CLUSTERS)
            for cluster in clusters:
                print(f"{cluster.metadata.name}: accepted={cluster.accepted}")
    """

    http: httpx.AsyncClient
    name: str = ""
    prefix: str = ""
    page_size: int = DEFAULT_PAGE_SIZE

    def scoped(self, name: str, prefix: str) -> "KubeClient":
        """Return a client for another cluster sharing this connection pool."""
        return KubeClient(http=self.http, name=name, prefix=prefix, page_size=self.page_size)

    # -------------------------------------------------------------------------
    # Request plumbing
    # -------------------------------------------------------------------------

    async def _request(
        self, operation: str, target: str, method: str, path: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            response = await self.http.request(method, f"{self.prefix}{path}", **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise KubeAPIError(
                operation, target, status_code=e.response.status_code, cause=e
            ) from e
        except httpx.HTTPError as e:
            raise KubeAPIError(operation, target, cause=e) from e
        return response

    def _target(self, path: str) -> str:
        return f"{self.name}:{path}" if self.name else path

    # -------------------------------------------------------------------------
    # Typed object access
    # -------------------------------------------------------------------------

    async def get(self, kind: ResourceKind[T], name: str, namespace: str | None = None) -> T:
        """
        Get one object by name.

        Raises:
            KubeAPIError: On transport/HTTP errors (not_found is set for 404)
                or when the response does not decode as the kind's model.
        """
        path = kind.path(name, namespace)
        target = self._target(path)
        response = await self._request("get", target, "GET", path)
        try:
            return kind.model.model_validate(response.json())
        except (ValidationError, ValueError) as e:
            raise KubeAPIError("decode", target, cause=e) from e

    async def list_objects(
        self,
        kind: ResourceKind[T],
        label_selector: Mapping[str, str] | None = None,
        namespace: str | None = None,
    ) -> KubeList[T]:
        """
        List objects, following continue tokens until the last page.

        Args:
            kind: Resource kind to list
            label_selector: Optional equality selector
            namespace: Restrict to one namespace (namespaced kinds only)

        Returns:
            KubeList with all items and the resource version of the
            snapshot (usable as the starting point of a watch).

        Raises:
            KubeAPIError: On transport/HTTP errors or malformed pages.
        """
        path = kind.path(namespace=namespace)
        target = self._target(path)
        params: dict[str, str] = {"limit": str(self.page_size)}
        if label_selector:
            params["labelSelector"] = format_label_selector(label_selector)

        items: list[T] = []
        resource_version: str | None = None
        page_type = KubeList[kind.model]  # type: ignore[name-defined]
        while True:
            response = await self._request("list", target, "GET", path, params=params)
            try:
                page = page_type.model_validate(response.json())
            except (ValidationError, ValueError) as e:
                raise KubeAPIError("decode", target, cause=e) from e

            items.extend(page.items)
            if resource_version is None:
                resource_version = page.metadata.resource_version
            if not page.metadata.continue_:
                break
            params["continue"] = page.metadata.continue_

        return page_type(items=items, metadata=ListMeta(resource_version=resource_version))

    async def list(
        self,
        kind: ResourceKind[T],
        label_selector: Mapping[str, str] | None = None,
        namespace: str | None = None,
    ) -> list[T]:
        """List objects and return only the items."""
        result = await self.list_objects(kind, label_selector=label_selector, namespace=namespace)
        return result.items

    async def update(self, kind: ResourceKind[T], obj: T) -> T:
        """
        Replace an object (PUT) and return the stored version.

        Raises:
            KubeAPIError: On transport/HTTP errors (409 on resource version conflicts).
        """
        return await self._put(kind, obj, subresource=None)

    async def update_subresource(self, kind: ResourceKind[T], obj: T, subresource: str) -> T:
        """Replace a subresource of an object (e.g., CSR "approval")."""
        return await self._put(kind, obj, subresource=subresource)

    async def _put(self, kind: ResourceKind[T], obj: T, subresource: str | None) -> T:
        path = kind.path(obj.metadata.name, obj.metadata.namespace or None, subresource)
        target = self._target(path)
        body = obj.to_api()
        body.setdefault("apiVersion", kind.api_version)
        body.setdefault("kind", kind.kind)
        operation = f"update {subresource}" if subresource else "update"
        response = await self._request(operation, target, "PUT", path, json=body)
        try:
            return kind.model.model_validate(response.json())
        except (ValidationError, ValueError) as e:
            raise KubeAPIError("decode", target, cause=e) from e

    # -------------------------------------------------------------------------
    # Discovery and probes
    # -------------------------------------------------------------------------

    async def server_version(self) -> VersionInfo:
        """Get the API server version (GET /version)."""
        target = self._target("/version")
        response = await self._request("get", target, "GET", "/version")
        try:
            return VersionInfo.model_validate(response.json())
        except (ValidationError, ValueError) as e:
            raise KubeAPIError("decode", target, cause=e) from e

    async def probe(self, path: str) -> int:
        """
        Issue a raw GET and return the HTTP status code.

        Unlike the other calls, HTTP error statuses are returned rather
        than raised; only transport failures raise.

        Raises:
            KubeAPIError: On transport errors (connection, timeout).
        """
        try:
            response = await self.http.get(f"{self.prefix}{path}")
        except httpx.HTTPError as e:
            raise KubeAPIError("probe", self._target(path), cause=e) from e
        return response.status_code

    # -------------------------------------------------------------------------
    # Watch
    # -------------------------------------------------------------------------

    async def watch(
        self,
        kind: ResourceKind[T],
        resource_version: str | None = None,
        label_selector: Mapping[str, str] | None = None,
        timeout_seconds: int = DEFAULT_WATCH_TIMEOUT_SECONDS,
    ) -> AsyncIterator[WatchEvent]:
        """
        Stream watch events for a kind.

        The server closes the stream after timeout_seconds; the iterator
        then ends normally and the caller re-watches from the last seen
        resource version.

        Yields:
            WatchEvent with the raw object; decoding to the kind's model
            is left to the subscriber.

        Raises:
            KubeAPIError: On transport/HTTP errors or malformed lines
                (status_code 410 when the resource version expired).
        """
        path = kind.path()
        target = self._target(path)
        params = {
            "watch": "1",
            "allowWatchBookmarks": "true",
            "timeoutSeconds": str(timeout_seconds),
        }
        if resource_version:
            params["resourceVersion"] = resource_version
        if label_selector:
            params["labelSelector"] = format_label_selector(label_selector)

        # The read timeout must outlive the server-side watch timeout
        timeout = httpx.Timeout(10.0, read=timeout_seconds + 30)
        try:
            async with self.http.stream(
                "GET", f"{self.prefix}{path}", params=params, timeout=timeout
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise KubeAPIError("watch", target, status_code=response.status_code)
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        yield WatchEvent.model_validate_json(line)
                    except ValidationError as e:
                        raise KubeAPIError("decode", target, cause=e) from e
        except httpx.HTTPError as e:
            raise KubeAPIError("watch", target, cause=e) from e
