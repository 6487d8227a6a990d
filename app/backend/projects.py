from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from app.backend.client import BackendClient, unwrap, unwrap_list


class ProjectFilter(BaseModel):
    page: int = 1
    page_size: int = 10
    search: Optional[str] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if self.search:
            params["search"] = self.search
        if self.sort_by:
            params["sortBy"] = self.sort_by
        if self.sort_order:
            params["sortOrder"] = self.sort_order
        params["page"] = str(self.page)
        params["pageSize"] = str(self.page_size)
        return params


async def get_projects(backend: BackendClient, filter: ProjectFilter) -> Dict[str, Any]:
    """Project list response with pagination; a missing list comes back empty."""
    payload = await backend.get(
        "/projects", "Failed to fetch projects", params=filter.to_params()
    )
    data = unwrap(payload) or {}
    return {**data, "projects": data.get("projects") or []}


async def get_project(backend: BackendClient, project_id: str) -> Dict[str, Any]:
    payload = await backend.get(f"/projects/{project_id}", "Failed to fetch project")
    return unwrap(payload)


async def get_project_stats(backend: BackendClient, project_id: str) -> Dict[str, Any]:
    payload = await backend.get(
        f"/projects/{project_id}/stats", "Failed to fetch project stats"
    )
    return unwrap(payload)


async def create_project(backend: BackendClient, project: Dict[str, Any]) -> Dict[str, Any]:
    payload = await backend.post("/projects", "Failed to create project", json=project)
    return unwrap(payload)


async def update_project(
    backend: BackendClient, project_id: str, project: Dict[str, Any]
) -> Dict[str, Any]:
    payload = await backend.put(
        f"/projects/{project_id}", "Failed to update project", json=project
    )
    return unwrap(payload)


async def delete_project(backend: BackendClient, project_id: str) -> None:
    await backend.delete(f"/projects/{project_id}", "Failed to delete project")


async def get_project_environments(
    backend: BackendClient, project_id: str
) -> List[Dict[str, Any]]:
    payload = await backend.get(
        f"/projects/{project_id}/environments", "Failed to fetch environments"
    )
    return unwrap_list(payload, "environments")
