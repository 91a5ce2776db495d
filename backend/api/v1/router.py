"""API v1 router aggregation.

Combines all v1 route modules into a single router.
"""

from __future__ import annotations

from fastapi import APIRouter

from api.v1.routes.issues import router as issues_router
from api.v1.routes.languages import router as languages_router
from api.v1.routes.profile import router as profile_router
from api.v1.routes.recommendations import router as recommendations_router

api_v1_router = APIRouter()

api_v1_router.include_router(issues_router, prefix="/public", tags=["Issues"])
api_v1_router.include_router(languages_router, prefix="/public", tags=["Languages"])
api_v1_router.include_router(recommendations_router, tags=["Recommendations"])
api_v1_router.include_router(profile_router, tags=["Profile"])
