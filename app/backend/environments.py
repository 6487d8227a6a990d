from typing import Any, Dict, List

from app.backend.client import BackendClient, unwrap
from app.backend.projects import get_project_environments


async def get_environments(backend: BackendClient, project_id: str) -> List[Dict[str, Any]]:
    return await get_project_environments(backend, project_id)


async def get_environment(backend: BackendClient, environment_id: str) -> Dict[str, Any]:
    payload = await backend.get(
        f"/environments/{environment_id}", "Failed to fetch environment"
    )
    return unwrap(payload)


async def create_environment(
    backend: BackendClient, environment: Dict[str, Any]
) -> Dict[str, Any]:
    payload = await backend.post(
        "/environments", "Failed to create environment", json=environment
    )
    return unwrap(payload)


async def update_environment(
    backend: BackendClient, environment_id: str, environment: Dict[str, Any]
) -> Dict[str, Any]:
    payload = await backend.put(
        f"/environments/{environment_id}",
        "Failed to update environment",
        json=environment,
    )
    return unwrap(payload)


async def delete_environment(backend: BackendClient, environment_id: str) -> None:
    await backend.delete(f"/environments/{environment_id}", "Failed to delete environment")
