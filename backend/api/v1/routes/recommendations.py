"""Personalized recommendations.

GET /api/v1/recommendations - Ranked issues, repositories and mentors
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_current_user, get_recommendation_service, rate_limit_by_ip
from app.logging_config import get_logger
from services.profile_store import AuthUser
from services.recommender import RecommendationService

logger = get_logger(__name__)
router = APIRouter()


@router.get("/recommendations")
async def get_recommendations(
    issue_limit: Optional[int] = Query(None, ge=1, le=200),
    repository_limit: Optional[int] = Query(None, ge=1, le=50),
    mentor_limit: Optional[int] = Query(None, ge=1, le=50),
    user: AuthUser = Depends(get_current_user),
    service: RecommendationService = Depends(get_recommendation_service),
    _rate_limit: None = Depends(rate_limit_by_ip),
) -> dict:
    """Issues, repositories and mentors ranked for the signed-in user.

    Limits default to the configured maximums (50 issues, 6
    repositories, 3 mentors).
    """
    recommendations = await service.recommend(
        user,
        issue_limit=issue_limit,
        repository_limit=repository_limit,
        mentor_limit=mentor_limit,
    )
    return recommendations.to_dict()
