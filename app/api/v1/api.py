"""
V1 API router aggregator: wires all endpoint modules together.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import activity, reports

api_router = APIRouter()

# Live sessions, break details, single days
api_router.include_router(activity.router)

# Rollup reports, exports, health
api_router.include_router(reports.router)
