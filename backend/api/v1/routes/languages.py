"""Language affinity endpoint.

POST /api/v1/public/user-languages - Language breakdown for any account
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.deps import get_github_service, rate_limit_by_ip
from app.logging_config import get_logger
from services.github_service import GitHubService

logger = get_logger(__name__)
router = APIRouter()


class UserLanguagesRequest(BaseModel):
    username: str = Field(
        ..., min_length=1, max_length=39, pattern=r"^[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?$"
    )


class LanguageEntry(BaseModel):
    lang: str
    percentage: str


class UserLanguagesResponse(BaseModel):
    languages: list[LanguageEntry]


@router.post("/user-languages", response_model=UserLanguagesResponse)
async def get_user_languages(
    request: UserLanguagesRequest,
    github: GitHubService = Depends(get_github_service),
    _rate_limit: None = Depends(rate_limit_by_ip),
) -> UserLanguagesResponse:
    """Byte-weighted language percentages over up to 10 top-starred repos.

    Unknown accounts and GitHub failures yield an empty list.
    """
    affinity = await github.get_language_affinity(request.username)
    return UserLanguagesResponse(
        languages=[LanguageEntry(**share.to_dict()) for share in affinity]
    )
