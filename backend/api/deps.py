"""Shared API dependencies.

Provides rate limiting, bearer-token authentication and service
construction as injectable FastAPI dependencies.
"""

from __future__ import annotations

import hashlib
from typing import Optional

import redis.asyncio as aioredis
from fastapi import Depends, Header, Request

from app.config import get_settings
from app.dependencies import api_rate_limiter, get_profile_store, get_redis
from app.exceptions import AuthenticationError
from app.logging_config import get_logger
from services.github_service import GitHubService
from services.profile_store import AuthUser, ProfileStore
from services.recommender import RecommendationService

logger = get_logger(__name__)


def _client_hash(request: Request) -> str:
    client_ip = request.client.host if request.client else "unknown"
    # Anonymize IP for rate limiting (use hash)
    return hashlib.sha256(client_ip.encode()).hexdigest()[:16]


async def rate_limit_by_ip(
    request: Request,
    redis: aioredis.Redis = Depends(get_redis),
) -> None:
    """Apply per-IP rate limiting for API calls."""
    await api_rate_limiter.check(_client_hash(request), redis)


def get_github_service(redis: aioredis.Redis = Depends(get_redis)) -> GitHubService:
    return GitHubService(redis, get_settings())


def get_recommendation_service(
    github: GitHubService = Depends(get_github_service),
    store: ProfileStore = Depends(get_profile_store),
) -> RecommendationService:
    return RecommendationService(github, store, settings=get_settings())


async def get_current_user(
    authorization: Optional[str] = Header(None),
    store: ProfileStore = Depends(get_profile_store),
) -> AuthUser:
    """Resolve the ``Authorization: Bearer <token>`` header to a user."""
    if not authorization:
        raise AuthenticationError("No authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Invalid authorization header")
    return await store.verify_token(token.strip())
