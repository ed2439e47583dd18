"""API endpoints module.

Contains all REST API endpoint routers.
"""

from folder_search.api.endpoints import config, health, index, messages, search

__all__ = [
    "config",
    "health",
    "index",
    "messages",
    "search",
]
