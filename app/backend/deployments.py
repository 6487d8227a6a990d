from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from app.backend.client import BackendClient, unwrap, unwrap_list


class DeployOptions(BaseModel):
    commit_id: Optional[str] = None
    commit_message: Optional[str] = None
    api_key: Optional[str] = None


async def get_service_deployments(
    backend: BackendClient, service_id: str
) -> List[Dict[str, Any]]:
    payload = await backend.get(
        f"/services/{service_id}/deployments", "Failed to fetch deployments"
    )
    return unwrap_list(payload, "deployments")


async def create_deployment(
    backend: BackendClient, service_id: str, options: DeployOptions
) -> Dict[str, Any]:
    """Trigger a manual git deployment for a service."""
    payload = await backend.post(
        "/deployments/git",
        "Failed to create deployment",
        json={
            "serviceId": service_id,
            "apiKey": options.api_key or "",
            "commitId": options.commit_id or "",
            "commitMessage": options.commit_message or "",
        },
    )
    return unwrap(payload)
