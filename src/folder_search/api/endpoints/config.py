"""Configuration API endpoints.

Read and change the options of the open configuration and manage the
catalog of named configurations.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from folder_search.api.dependencies import get_session
from folder_search.catalog.index_config import delete_config
from folder_search.catalog.session import IndexSession

router = APIRouter(prefix="/config", tags=["Config"])


class PropertyUpdate(BaseModel):
    """New value for a configuration option."""

    value: str = Field(..., min_length=1, max_length=200)

    model_config = {"json_schema_extra": {"example": {"value": "English"}}}


class ConfigResponse(BaseModel):
    """Configuration and its validity."""

    name: str
    properties: dict[str, str]
    options: dict[str, list[str]]
    status: str
    details: str
    persistent: bool
    configured: bool


class CatalogResponse(BaseModel):
    """Configurations in the catalog."""

    current: str
    configs: list[str]


def _config_response(session: IndexSession) -> dict[str, Any]:
    return {**session.config.to_dict(), "configured": session.store is not None}


@router.get("", response_model=ConfigResponse, summary="Current configuration")
async def get_config(session: IndexSession = Depends(get_session)) -> dict[str, Any]:
    """Return options, legal values and validity of the open configuration."""
    return _config_response(session)


@router.put("/{prop}", response_model=ConfigResponse, summary="Change an option")
async def set_property(
    prop: str,
    update: PropertyUpdate,
    session: IndexSession = Depends(get_session),
) -> dict[str, Any]:
    """Change one option.

    Running tasks are cancelled and a built index becomes invalidated. An
    unknown value leaves the session unconfigured (``configured`` false)
    until a valid value is set.
    """
    await session.set_property(prop, update.value)
    return _config_response(session)


@router.get("/catalog", response_model=CatalogResponse, summary="List configurations")
async def list_catalog(session: IndexSession = Depends(get_session)) -> CatalogResponse:
    """List the named configurations stored under the indexed root."""
    return CatalogResponse(current=session.name, configs=session.catalog())


@router.delete(
    "/catalog/{name}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a configuration",
)
async def delete_catalog_entry(name: str, session: IndexSession = Depends(get_session)) -> None:
    """Delete a configuration other than the open one."""
    if name == session.name:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot delete the configuration in use",
        )
    if name not in session.catalog() or not delete_config(session.catalog_dir, name):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Configuration '{name}' not found",
        )
