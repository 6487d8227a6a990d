from typing import Any, Dict, Optional

from pydantic import BaseModel

from app.backend.client import BackendClient
from app.vars import GatewaySettings


class RegistryFilter(BaseModel):
    page: Optional[int] = None
    page_size: Optional[int] = None
    search: Optional[str] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None
    only_active: Optional[bool] = None

    def to_params(self) -> Dict[str, str]:
        params = {}
        if self.page:
            params["page"] = str(self.page)
        if self.page_size:
            params["pageSize"] = str(self.page_size)
        if self.search:
            params["search"] = self.search
        if self.sort_by:
            params["sortBy"] = self.sort_by
        if self.sort_order:
            params["sortOrder"] = self.sort_order
        if self.only_active is not None:
            params["onlyActive"] = "true" if self.only_active else "false"
        return params


async def get_registries(
    backend: BackendClient, filter: Optional[RegistryFilter] = None
) -> Dict[str, Any]:
    filter = filter or RegistryFilter()
    payload = await backend.get(
        "/registries", "Failed to fetch registries", params=filter.to_params()
    )
    payload = payload or {}
    return {**payload, "registries": payload.get("registries") or []}


async def get_registry(backend: BackendClient, registry_id: str) -> Dict[str, Any]:
    return await backend.get(f"/registries/{registry_id}", "Failed to fetch registry")


async def get_registry_details(backend: BackendClient, registry_id: str) -> Dict[str, Any]:
    return await backend.get(
        f"/registries/{registry_id}/details", "Failed to fetch registry"
    )


async def create_registry(backend: BackendClient, registry: Dict[str, Any]) -> Dict[str, Any]:
    return await backend.post("/registries", "Failed to create registry", json=registry)


async def update_registry(
    backend: BackendClient, registry_id: str, registry: Dict[str, Any]
) -> Dict[str, Any]:
    return await backend.put(
        f"/registries/{registry_id}", "Failed to update registry", json=registry
    )


async def delete_registry(backend: BackendClient, registry_id: str) -> None:
    await backend.delete(f"/registries/{registry_id}", "Failed to delete registry")


def registry_build_logs_url(settings: GatewaySettings, registry_id: str) -> str:
    """Backend URL of the build-log Server-Sent Events stream."""
    return settings.backend_path_url(f"/registries/{registry_id}/logs/stream")
