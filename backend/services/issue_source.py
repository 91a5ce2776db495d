"""Good-first-issue eligibility and normalization.

Raw GitHub issue payloads are filtered (open, not a pull request,
unassigned, carrying a beginner-friendly label) and converted into
CandidateIssue records. Network access lives in GitHubService.
"""

from __future__ import annotations

import calendar
import math
from datetime import UTC, datetime
from typing import Any

from app.config import DEFAULT_GOOD_FIRST_ISSUE_LABELS
from services.models import CandidateIssue

SECONDS_PER_DAY = 60 * 60 * 24


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a GitHub ISO-8601 timestamp into an aware datetime."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def calculate_days_open(created_at: str | None, now: datetime | None = None) -> int:
    """Whole days since creation, rounded up (a 1-hour-old issue is 1 day)."""
    created = parse_timestamp(created_at)
    if created is None:
        return 0
    now = now or datetime.now(UTC)
    seconds = abs((now - created).total_seconds())
    return math.ceil(seconds / SECONDS_PER_DAY)


def _label_name(label: Any) -> str:
    if isinstance(label, dict):
        return str(label.get("name") or "")
    return str(label or "")


def has_good_first_issue_label(
    labels: list[Any], gfi_labels: list[str] | None = None
) -> bool:
    """True when any label contains a known beginner-friendly label name."""
    needles = [g.lower() for g in (gfi_labels or DEFAULT_GOOD_FIRST_ISSUE_LABELS)]
    return any(
        needle in _label_name(label).lower() for label in labels or [] for needle in needles
    )


def is_eligible(raw_issue: dict[str, Any], gfi_labels: list[str] | None = None) -> bool:
    """Open issue, not a PR, nobody assigned, beginner label present."""
    if raw_issue.get("pull_request"):
        return False
    if len(raw_issue.get("assignees") or []) != 0:
        return False
    return has_good_first_issue_label(raw_issue.get("labels") or [], gfi_labels)


def parse_issue(
    raw_issue: dict[str, Any],
    owner: str,
    name: str,
    primary_language: str,
    topics: list[str],
    all_languages: list[str],
    now: datetime | None = None,
) -> CandidateIssue:
    created_at = raw_issue.get("created_at") or ""
    return CandidateIssue(
        repository_owner=owner,
        repository_name=name,
        issue_number=int(raw_issue.get("number") or 0),
        issue_title=raw_issue.get("title") or "",
        issue_id=int(raw_issue.get("id") or 0),
        issue_url=raw_issue.get("html_url") or "",
        issue_body=raw_issue.get("body") or "",
        primary_language=primary_language or "Unknown",
        all_languages=list(all_languages),
        repository_topics=list(topics),
        issue_labels=[_label_name(label) for label in raw_issue.get("labels") or []],
        number_of_assignees=len(raw_issue.get("assignees") or []),
        has_gfi_label=True,
        date_created=created_at,
        days_open=calculate_days_open(created_at, now),
    )


def parse_issues(
    raw_issues: Any,
    owner: str,
    name: str,
    primary_language: str,
    topics: list[str],
    all_languages: list[str],
    gfi_labels: list[str] | None = None,
    now: datetime | None = None,
) -> list[CandidateIssue]:
    if not isinstance(raw_issues, list):
        return []
    return [
        parse_issue(raw, owner, name, primary_language, topics, all_languages, now)
        for raw in raw_issues
        if isinstance(raw, dict) and is_eligible(raw, gfi_labels)
    ]


def months_ago(now: datetime, months: int) -> datetime:
    """Same wall-clock instant ``months`` calendar months earlier.

    The day is clamped to the length of the target month.
    """
    total = now.year * 12 + (now.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def filter_recent_issues(
    issues: list[CandidateIssue],
    max_age_months: int,
    now: datetime | None = None,
) -> list[CandidateIssue]:
    """Drop issues created before the age horizon.

    Issues with an unparseable creation date are kept; their age is
    already 0 for scoring purposes.
    """
    now = now or datetime.now(UTC)
    horizon = months_ago(now, max_age_months)
    recent = []
    for issue in issues:
        created = parse_timestamp(issue.date_created)
        if created is None or created >= horizon:
            recent.append(issue)
    return recent
