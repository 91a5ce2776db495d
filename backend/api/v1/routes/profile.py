"""Signed-in user's profile.

GET    /api/v1/me                 - Profile, onboarding flag, skill level
PUT    /api/v1/me/preferences     - Topic preferences
PUT    /api/v1/me/mentor-status   - Mentor opt-in
PUT    /api/v1/me/notifications   - Daily digest opt-in
DELETE /api/v1/me                 - Delete the account
"""

from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.deps import get_current_user, get_github_service, rate_limit_by_ip
from app.dependencies import get_profile_store
from app.exceptions import ProfileNotFoundError
from app.logging_config import get_logger
from services.github_service import GITHUB_ERRORS, GitHubService
from services.models import coerce_preferences
from services.profile_store import AuthUser, ProfileStore
from services.skill_assessment import assess_skill_level

logger = get_logger(__name__)
router = APIRouter()


class ProfileResponse(BaseModel):
    id: str
    username: Optional[str] = None
    email: Optional[str] = None
    preferences: list[str] = []
    mentor_status: bool = False
    email_notifications: bool = False
    needs_onboarding: bool
    skill_level: Optional[str] = None


class PreferencesRequest(BaseModel):
    preferences: list[str] = Field(..., max_length=50)


class MentorStatusRequest(BaseModel):
    is_mentor: bool


class NotificationsRequest(BaseModel):
    email_notifications: bool


class StatusResponse(BaseModel):
    success: bool = True


async def _skill_level(github: GitHubService, username: Optional[str]) -> Optional[str]:
    if not username:
        return None
    try:
        user, repos = await asyncio.gather(
            github.get_user(username), github.get_owned_repos(username)
        )
    except GITHUB_ERRORS as exc:
        logger.warning("skill_level_unavailable", error=exc.code)
        return None
    return assess_skill_level(user, repos).value


@router.get("/me", response_model=ProfileResponse)
async def get_me(
    user: AuthUser = Depends(get_current_user),
    store: ProfileStore = Depends(get_profile_store),
    github: GitHubService = Depends(get_github_service),
    _rate_limit: None = Depends(rate_limit_by_ip),
) -> ProfileResponse:
    """Profile row for the signed-in user.

    ``needs_onboarding`` is set while preferences have never been saved.
    The skill level is omitted when GitHub cannot be reached.
    """
    profile = await store.get_profile(user.id)
    if profile is None:
        raise ProfileNotFoundError()

    return ProfileResponse(
        id=str(profile["id"]),
        username=profile.get("username"),
        email=profile.get("email") or user.email,
        preferences=coerce_preferences(profile.get("preferences")),
        mentor_status=profile.get("mentor_status") is True,
        email_notifications=profile.get("email_notifications") is True,
        needs_onboarding=profile.get("preferences") is None,
        skill_level=await _skill_level(github, profile.get("username")),
    )


@router.put("/me/preferences", response_model=StatusResponse)
async def update_preferences(
    request: PreferencesRequest,
    user: AuthUser = Depends(get_current_user),
    store: ProfileStore = Depends(get_profile_store),
    _rate_limit: None = Depends(rate_limit_by_ip),
) -> StatusResponse:
    preferences = [p.strip() for p in request.preferences if p.strip()]
    await store.set_preferences(user.id, preferences)
    logger.info("preferences_updated", count=len(preferences))
    return StatusResponse()


@router.put("/me/mentor-status", response_model=StatusResponse)
async def update_mentor_status(
    request: MentorStatusRequest,
    user: AuthUser = Depends(get_current_user),
    store: ProfileStore = Depends(get_profile_store),
    _rate_limit: None = Depends(rate_limit_by_ip),
) -> StatusResponse:
    await store.set_mentor_status(user.id, request.is_mentor)
    return StatusResponse()


@router.put("/me/notifications", response_model=StatusResponse)
async def update_notifications(
    request: NotificationsRequest,
    user: AuthUser = Depends(get_current_user),
    store: ProfileStore = Depends(get_profile_store),
    _rate_limit: None = Depends(rate_limit_by_ip),
) -> StatusResponse:
    await store.set_email_notifications(user.id, request.email_notifications)
    return StatusResponse()


@router.delete("/me", response_model=StatusResponse)
async def delete_me(
    user: AuthUser = Depends(get_current_user),
    store: ProfileStore = Depends(get_profile_store),
    _rate_limit: None = Depends(rate_limit_by_ip),
) -> StatusResponse:
    """Delete the signed-in user's account through the admin API."""
    await store.delete_user(user.id)
    return StatusResponse()
