"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.mappings import router as mappings_router
from routes.actions import router as actions_router
from routes.reports import router as reports_router

__all__ = [
    "mappings_router",
    "actions_router",
    "reports_router",
]
