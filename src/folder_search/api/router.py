"""Main API router aggregating all endpoint routers.

This module provides the central router that includes all API endpoints
organized by domain.
"""

from fastapi import APIRouter

from folder_search.api.endpoints import config, health, index, messages, search

# Create main API router with version prefix
api_router = APIRouter(prefix="/api/v1")

# Include endpoint routers
api_router.include_router(health.router)
api_router.include_router(index.router)
api_router.include_router(search.router)
api_router.include_router(config.router)
api_router.include_router(messages.router)
