"""Recommendation orchestration.

Gathers the viewer's inputs (profile row, language affinity), the
candidate issues and the mentor pool, then hands everything to the
ScoringEngine. Fetching is concurrent; scoring happens once all inputs
have arrived.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from app.config import Settings, get_settings
from app.exceptions import ExternalServiceError, ProfileNotFoundError
from app.logging_config import get_logger
from app.metrics import UPSTREAM_DEGRADED
from services.github_service import GitHubService
from services.issue_source import filter_recent_issues
from services.models import (
    AggregatedRepository,
    CandidateIssue,
    LanguageShare,
    MentorCandidate,
    UserPreferenceProfile,
    coerce_preferences,
)
from services.profile_store import AuthUser, ProfileStore
from services.scoring_engine import ScoringEngine

logger = get_logger(__name__)


@dataclass
class Recommendations:
    """Ranked output for one viewer."""

    viewer: UserPreferenceProfile
    issues: list[CandidateIssue] = field(default_factory=list)
    repositories: list[AggregatedRepository] = field(default_factory=list)
    mentors: list[MentorCandidate] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "viewer": {
                "preferences": list(self.viewer.preferences),
                "languages": [share.to_dict() for share in self.viewer.languages],
            },
            "issues": [issue.to_dict() for issue in self.issues],
            "repositories": [repo.to_dict() for repo in self.repositories],
            "mentors": [mentor.to_dict() for mentor in self.mentors],
        }


def build_mentor_candidate(row: dict[str, Any], languages: list[LanguageShare]) -> MentorCandidate:
    return MentorCandidate(
        id=str(row.get("id", "")),
        username=row.get("username") or "",
        email=row.get("email") or "",
        languages=languages,
        preferences=coerce_preferences(row.get("preferences")),
    )


class RecommendationService:
    """Issue, repository and mentor recommendations for a signed-in user."""

    def __init__(
        self,
        github: GitHubService,
        store: ProfileStore,
        engine: ScoringEngine | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.github = github
        self.store = store
        self.settings = settings or get_settings()
        self.engine = engine or ScoringEngine.from_settings(self.settings)

    async def _affinity_for(self, username: str | None) -> list[LanguageShare]:
        if not username:
            return []
        return await self.github.get_language_affinity(username)

    async def _mentor_pool(self, user_id: str, viewer_is_mentor: bool) -> list[MentorCandidate]:
        try:
            rows = await self.store.list_mentors(user_id, viewer_is_mentor)
        except ExternalServiceError as exc:
            UPSTREAM_DEGRADED.labels(source="mentors").inc()
            logger.warning("mentor_pool_unavailable", error=exc.code)
            return []
        affinities = await asyncio.gather(
            *(self._affinity_for(row.get("username")) for row in rows)
        )
        return [
            build_mentor_candidate(row, languages)
            for row, languages in zip(rows, affinities, strict=True)
        ]

    async def recommend(
        self,
        user: AuthUser,
        issue_limit: int | None = None,
        repository_limit: int | None = None,
        mentor_limit: int | None = None,
    ) -> Recommendations:
        profile = await self.store.get_profile(user.id)
        if profile is None:
            raise ProfileNotFoundError()

        viewer_languages, raw_issues, mentors = await asyncio.gather(
            self._affinity_for(profile.get("username")),
            self.github.fetch_candidate_issues(),
            self._mentor_pool(user.id, profile.get("mentor_status") is True),
        )
        viewer = UserPreferenceProfile(
            preferences=coerce_preferences(profile.get("preferences")),
            languages=viewer_languages,
        )

        recent = filter_recent_issues(raw_issues, self.settings.max_issue_age_months)
        ranked_issues = self.engine.rank_issues(recent, viewer)
        repositories = self.engine.aggregate_repositories(ranked_issues)
        ranked_mentors = self.engine.rank_mentors(mentors, viewer)

        logger.info(
            "recommendations_built",
            issues=len(ranked_issues),
            repositories=len(repositories),
            mentors=len(ranked_mentors),
            viewer_languages=len(viewer_languages),
        )

        issue_limit = issue_limit or self.settings.max_recommended_issues
        repository_limit = repository_limit or self.settings.max_recommended_repositories
        mentor_limit = mentor_limit or self.settings.max_recommended_mentors
        return Recommendations(
            viewer=viewer,
            issues=ranked_issues[:issue_limit],
            repositories=repositories[:repository_limit],
            mentors=ranked_mentors[:mentor_limit],
        )
