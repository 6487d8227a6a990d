"""
Cluster statistics for the admin dashboard.

All endpoints live under ``/admin`` on the backend and require an admin
session; 401 and 403 answers are reported with fixed messages.
"""

from typing import Any, Dict, Optional

from app.backend.client import BackendClient, BackendError

ADMIN_ERRORS = {
    401: "Unauthorized",
    403: "Forbidden - Admin access required",
}


async def _fetch_stats(
    backend: BackendClient, path: str, resource: str, namespace: Optional[str] = None
) -> Dict[str, Any]:
    params = {"namespace": namespace} if namespace else None
    try:
        data = await backend.get(path, f"Error fetching {resource}", params=params)
    except BackendError as e:
        if e.status_code in ADMIN_ERRORS:
            raise BackendError(ADMIN_ERRORS[e.status_code], e.status_code, e.set_cookies)
        raise
    return data if isinstance(data, dict) else {}


async def get_pod_stats(backend: BackendClient, namespace: Optional[str] = None):
    return await _fetch_stats(backend, "/admin/stats/pods", "pod stats", namespace)


async def get_node_stats(backend: BackendClient) -> Dict[str, Any]:
    """Node stats; a resource with no reported usage gets ``"0"``."""
    data = await _fetch_stats(backend, "/admin/stats/nodes", "node stats")
    for node in data.get("nodes") or []:
        for resource in ("cpu", "memory", "storage"):
            metrics = node.get(resource)
            if isinstance(metrics, dict) and not metrics.get("usage"):
                metrics["usage"] = "0"
    return data


async def get_deployment_stats(backend: BackendClient, namespace: Optional[str] = None):
    return await _fetch_stats(
        backend, "/admin/stats/deployments", "deployment stats", namespace
    )


async def get_service_stats(backend: BackendClient, namespace: Optional[str] = None):
    return await _fetch_stats(backend, "/admin/stats/services", "service stats", namespace)


async def get_ingress_stats(
    backend: BackendClient, namespace: Optional[str] = None
) -> Dict[str, Any]:
    data = await _fetch_stats(backend, "/admin/stats/ingress", "ingress stats", namespace)
    ingresses = data.get("ingresses")
    if isinstance(ingresses, list):
        # Fall back to the first TLS entry's hosts
        for ingress in ingresses:
            tls = ingress.get("tls")
            if not ingress.get("hosts") and isinstance(tls, list) and tls and tls[0].get("hosts"):
                ingress["hosts"] = tls[0]["hosts"]
    return data


async def get_certificate_stats(backend: BackendClient, namespace: Optional[str] = None):
    return await _fetch_stats(
        backend, "/admin/stats/certificates", "certificate stats", namespace
    )


async def get_pvc_stats(backend: BackendClient, namespace: Optional[str] = None):
    return await _fetch_stats(backend, "/admin/stats/pvc", "PVC stats", namespace)


async def get_cluster_info(backend: BackendClient) -> Dict[str, Any]:
    return await _fetch_stats(backend, "/admin/cluster/info", "cluster info")
