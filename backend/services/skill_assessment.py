"""GitHub skill level assessment.

Buckets an account into beginner / intermediate / advanced from public
profile counters and its repository list. Each signal awards up to 2-3
points by threshold; 12+ points is advanced, 6+ intermediate.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from services.issue_source import parse_timestamp

DAYS_PER_YEAR = 365


class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


def _tiered(value: float, tiers: list[tuple[float, int]]) -> int:
    """Points for the first (threshold, points) tier ``value`` reaches."""
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return 0


def skill_points(user: dict[str, Any], repos: list[dict[str, Any]], now: datetime | None = None) -> int:
    now = now or datetime.now(UTC)

    total_stars = sum(r.get("stargazers_count") or 0 for r in repos)
    original_repos = sum(1 for r in repos if not r.get("fork", False))
    repos_with_topics = sum(1 for r in repos if r.get("topics"))
    avg_stars = total_stars / original_repos if original_repos > 0 else 0

    created = parse_timestamp(user.get("created_at"))
    account_age_years = (now - created).days / DAYS_PER_YEAR if created else 0

    points = 0
    points += _tiered(user.get("public_repos") or 0, [(20, 3), (10, 2), (5, 1)])
    points += _tiered(user.get("followers") or 0, [(50, 3), (20, 2), (10, 1)])
    points += _tiered(total_stars, [(100, 3), (25, 2), (5, 1)])
    points += _tiered(original_repos, [(15, 2), (8, 1)])
    points += _tiered(account_age_years, [(3, 2), (1, 1)])
    points += _tiered(repos_with_topics, [(10, 2), (5, 1)])
    points += _tiered(avg_stars, [(10, 2), (3, 1)])
    return points


def assess_skill_level(
    user: dict[str, Any], repos: list[dict[str, Any]], now: datetime | None = None
) -> SkillLevel:
    points = skill_points(user, repos, now)
    if points >= 12:
        return SkillLevel.ADVANCED
    if points >= 6:
        return SkillLevel.INTERMEDIATE
    return SkillLevel.BEGINNER
