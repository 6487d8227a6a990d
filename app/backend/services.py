from typing import Any, Dict, List, Optional

from app.backend.client import BackendClient, BackendError, unwrap, unwrap_list

GIT_ONLY_FIELDS = ("repoUrl", "branch", "buildCommand", "startCommand", "envVars")


def validate_service_payload(service: Dict[str, Any]) -> None:
    """Reject git/managed payloads the backend would refuse anyway."""
    service_type = service.get("type")
    if service_type == "git":
        if not service.get("repoUrl"):
            raise BackendError("Repository URL is required for git services", 400)
    elif service_type == "managed":
        if not service.get("managedType"):
            raise BackendError("Managed service type is required for managed services", 400)
        if any(service.get(field) for field in GIT_ONLY_FIELDS):
            raise BackendError("Git-specific fields are not allowed for managed services", 400)
        if service.get("port"):
            raise BackendError(
                "Port is auto-determined for managed services and cannot be specified", 400
            )


def supports_deployments(service: Dict[str, Any]) -> bool:
    return service.get("type") == "git"


async def get_services(backend: BackendClient) -> List[Dict[str, Any]]:
    payload = await backend.get("/services", "Failed to fetch services")
    return unwrap_list(payload, "services")


async def get_project_services(backend: BackendClient, project_id: str) -> List[Dict[str, Any]]:
    payload = await backend.get(
        f"/projects/{project_id}/services", "Failed to fetch project services"
    )
    return unwrap_list(payload, "services")


async def get_service(backend: BackendClient, service_id: str) -> Dict[str, Any]:
    payload = await backend.get(f"/services/{service_id}", "Failed to fetch service")
    return unwrap(payload)


async def create_service(backend: BackendClient, service: Dict[str, Any]) -> Dict[str, Any]:
    validate_service_payload(service)
    payload = await backend.post("/services", "Failed to create service", json=service)
    return unwrap(payload)


async def update_service(
    backend: BackendClient, service_id: str, service: Dict[str, Any]
) -> Dict[str, Any]:
    payload = await backend.put(
        f"/services/{service_id}", "Failed to update service", json=service
    )
    return unwrap(payload)


async def delete_service(backend: BackendClient, service_id: str) -> None:
    await backend.delete(f"/services/{service_id}", "Failed to delete service")


async def get_latest_deployment(
    backend: BackendClient, service_id: str
) -> Optional[Dict[str, Any]]:
    payload = await backend.get(
        f"/services/{service_id}/latest-deployment", "Failed to fetch latest deployment"
    )
    return unwrap(payload, "deployment")
