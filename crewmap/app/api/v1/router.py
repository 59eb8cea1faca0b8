"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from crewmap.app.api.v1.endpoints import webhooks, crews

router = APIRouter()

# Inbound location protocols
router.include_router(webhooks.router)

# Crew lifecycle and live view
router.include_router(crews.router)
