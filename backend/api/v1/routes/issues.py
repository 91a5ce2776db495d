"""Public issue feed and topic catalogue.

GET /api/v1/public/github-issues - Current good-first-issues
GET /api/v1/public/topics        - Selectable topic preferences
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from api.deps import get_github_service, rate_limit_by_ip
from app.logging_config import get_logger
from services.github_service import GitHubService
from services.topics import search_topics

logger = get_logger(__name__)
router = APIRouter()


class IssueFeedResponse(BaseModel):
    success: bool = True
    count: int
    issues: list[dict]


class TopicsResponse(BaseModel):
    topics: list[str]


@router.get("/github-issues", response_model=IssueFeedResponse)
async def list_github_issues(
    github: GitHubService = Depends(get_github_service),
    _rate_limit: None = Depends(rate_limit_by_ip),
) -> IssueFeedResponse:
    """Open, unassigned good-first-issues across the tracked repositories.

    Sorted by days open, newest first. A repository that cannot be read
    contributes no issues instead of failing the feed.
    """
    issues = await github.fetch_candidate_issues()
    return IssueFeedResponse(
        count=len(issues),
        issues=[issue.to_dict() for issue in issues],
    )


@router.get("/topics", response_model=TopicsResponse)
async def list_topics(
    q: Optional[str] = Query(None, max_length=50, description="Substring filter"),
    _rate_limit: None = Depends(rate_limit_by_ip),
) -> TopicsResponse:
    return TopicsResponse(topics=search_topics(q))
