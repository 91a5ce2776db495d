"""Match Scoring Engine.

Ranks good-first-issues, the repositories they belong to, and mentors
for a viewer. Every entity kind is scored by the same WeightedScorer,
parameterised by a table of (term, weight) pairs:

    issue:  recency 0.20, language 0.35, topic 0.45
    mentor: language 0.55, preference 0.45

Each term yields a 0-100 sub-score; the weighted sum is rounded to two
decimals with Python's round() (half-to-even on the binary value).

Two issue policies are selectable:
- recency: soft_decay (linear fade to 0 over 180 days) or hard_cutoff
  (issues past the cutoff are excluded, newer ones fade over the cutoff)
- language: linear_rank (primary language only, (L - i) / L) or
  exponential_decay (every repo language, 0.2 ** rank, summed)

All functions are pure: scored copies are returned, inputs are never
mutated.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from typing import Generic, TypeVar

from app.config import LanguagePolicy, RecencyPolicy, Settings, get_settings
from app.logging_config import get_logger
from app.metrics import ITEMS_SCORED, SCORING_DURATION
from services.models import (
    AggregatedRepository,
    CandidateIssue,
    LanguageShare,
    MentorCandidate,
    UserPreferenceProfile,
)

logger = get_logger(__name__)

T = TypeVar("T")

ISSUE_WEIGHTS = {
    "recency": 0.20,
    "language": 0.35,
    "topic": 0.45,
}

MENTOR_WEIGHTS = {
    "language": 0.55,
    "preference": 0.45,
}

DEFAULT_RECENCY_WINDOW_DAYS = 180
LEGACY_CUTOFF_DAYS = 90
LEGACY_DECAY_BASE = 0.2


def round_score(value: float) -> float:
    return round(value, 2)


def _language_index(language: str | None, affinity: list[LanguageShare]) -> int:
    """Rank of ``language`` in the affinity list, -1 when absent."""
    if not language:
        return -1
    needle = language.lower()
    for index, share in enumerate(affinity):
        if share.lang.lower() == needle:
            return index
    return -1


def _count_matches(candidates: Iterable[str], wanted: Iterable[str]) -> int:
    """How many candidates equal any wanted value, case-insensitively."""
    wanted_lower = {w.lower() for w in wanted}
    return sum(1 for c in candidates if c.lower() in wanted_lower)


# --- Term functions (0-100 sub-scores) ---


def recency_score(days_open: int, window_days: int = DEFAULT_RECENCY_WINDOW_DAYS) -> float:
    """Linear fade from 100 (today) to 0 (``window_days`` or older)."""
    days = min(max(days_open or 0, 0), window_days)
    return (1 - days / window_days) * 100


def linear_rank_language_score(language: str | None, affinity: list[LanguageShare]) -> float:
    """((L - i) / L) * 100 for the viewer's i-th language, 0 otherwise."""
    total = len(affinity)
    if total == 0:
        return 0.0
    index = _language_index(language, affinity)
    if index < 0:
        return 0.0
    return (total - index) / total * 100


def exponential_decay_language_score(
    languages: Iterable[str],
    affinity: list[LanguageShare],
    base: float = LEGACY_DECAY_BASE,
) -> float:
    """Sum of base ** rank over every matched language, times 100.

    Not capped: several matched languages can push this past 100.
    """
    seen: set[str] = set()
    total = 0.0
    for language in languages:
        key = language.lower()
        if key in seen:
            continue
        seen.add(key)
        index = _language_index(language, affinity)
        if index >= 0:
            total += base**index
    return total * 100


def topic_score(topics: list[str], preferences: list[str]) -> float:
    """Share of the viewer's preferences hit by repository topics, capped at 100."""
    if not preferences or not topics:
        return 0.0
    matches = _count_matches(topics, preferences)
    return min(matches / len(preferences) * 100, 100.0)


def mentor_language_score(
    mentor_languages: list[LanguageShare], viewer_languages: list[LanguageShare]
) -> float:
    """Viewer-rank weight times the mentor's share, averaged over the viewer's languages."""
    total = len(viewer_languages)
    if total == 0 or not mentor_languages:
        return 0.0

    running = 0.0
    matched = 0
    for user_index, viewer_lang in enumerate(viewer_languages):
        mentor_index = _language_index(viewer_lang.lang, mentor_languages)
        if mentor_index < 0:
            continue
        user_weight = (total - user_index) / total
        mentor_weight = mentor_languages[mentor_index].percentage / 100
        running += user_weight * mentor_weight * 100
        matched += 1

    if matched == 0:
        return 0.0
    return running / total


def mentor_preference_score(
    mentor_preferences: list[str], viewer_preferences: list[str]
) -> float:
    """Matched preferences over the LARGER of the two preference lists.

    topic_score divides by the viewer's count only.
    """
    if not mentor_preferences or not viewer_preferences:
        return 0.0
    matches = _count_matches(mentor_preferences, viewer_preferences)
    denominator = max(len(viewer_preferences), len(mentor_preferences))
    return min(matches / denominator * 100, 100.0)


# --- Generic weighted scorer ---


@dataclass(frozen=True)
class WeightedTerm(Generic[T]):
    """One named sub-score and the weight it carries in the total."""

    name: str
    weight: float
    score: Callable[[T, UserPreferenceProfile], float]


class WeightedScorer(Generic[T]):
    """Weighted sum of 0-100 sub-scores for one entity kind."""

    def __init__(
        self,
        terms: list[WeightedTerm[T]],
        eligible: Callable[[T, UserPreferenceProfile], bool] | None = None,
    ) -> None:
        self.terms = terms
        self._eligible = eligible

    @property
    def weights(self) -> dict[str, float]:
        return {term.name: term.weight for term in self.terms}

    def is_eligible(self, entity: T, viewer: UserPreferenceProfile) -> bool:
        return self._eligible is None or self._eligible(entity, viewer)

    def breakdown(self, entity: T, viewer: UserPreferenceProfile) -> dict[str, float]:
        """Weighted contribution of each term, unrounded."""
        return {term.name: term.score(entity, viewer) * term.weight for term in self.terms}

    def score(self, entity: T, viewer: UserPreferenceProfile) -> float:
        return round_score(sum(self.breakdown(entity, viewer).values()))


def _within_cutoff(
    cutoff_days: int,
) -> Callable[[CandidateIssue, UserPreferenceProfile], bool]:
    def eligible(issue: CandidateIssue, _viewer: UserPreferenceProfile) -> bool:
        return issue.days_open <= cutoff_days

    return eligible


def build_issue_scorer(
    recency_policy: RecencyPolicy = RecencyPolicy.SOFT_DECAY,
    language_policy: LanguagePolicy = LanguagePolicy.LINEAR_RANK,
    recency_window_days: int = DEFAULT_RECENCY_WINDOW_DAYS,
    cutoff_days: int = LEGACY_CUTOFF_DAYS,
) -> WeightedScorer[CandidateIssue]:
    """Assemble the issue scorer for the chosen recency/language policies."""
    eligible: Callable[[CandidateIssue, UserPreferenceProfile], bool] | None = None
    window = recency_window_days

    if recency_policy == RecencyPolicy.HARD_CUTOFF:
        window = cutoff_days
        eligible = _within_cutoff(cutoff_days)

    if language_policy == LanguagePolicy.EXPONENTIAL_DECAY:

        def language(issue: CandidateIssue, viewer: UserPreferenceProfile) -> float:
            languages = issue.all_languages or [issue.primary_language]
            return exponential_decay_language_score(languages, viewer.languages)

    else:

        def language(issue: CandidateIssue, viewer: UserPreferenceProfile) -> float:
            return linear_rank_language_score(issue.primary_language, viewer.languages)

    return WeightedScorer(
        terms=[
            WeightedTerm(
                "recency",
                ISSUE_WEIGHTS["recency"],
                lambda issue, _viewer: recency_score(issue.days_open, window),
            ),
            WeightedTerm("language", ISSUE_WEIGHTS["language"], language),
            WeightedTerm(
                "topic",
                ISSUE_WEIGHTS["topic"],
                lambda issue, viewer: topic_score(issue.repository_topics, viewer.preferences),
            ),
        ],
        eligible=eligible,
    )


def build_mentor_scorer() -> WeightedScorer[MentorCandidate]:
    return WeightedScorer(
        terms=[
            WeightedTerm(
                "language",
                MENTOR_WEIGHTS["language"],
                lambda mentor, viewer: mentor_language_score(mentor.languages, viewer.languages),
            ),
            WeightedTerm(
                "preference",
                MENTOR_WEIGHTS["preference"],
                lambda mentor, viewer: mentor_preference_score(
                    mentor.preferences, viewer.preferences
                ),
            ),
        ]
    )


def aggregate_repositories(scored_issues: list[CandidateIssue]) -> list[AggregatedRepository]:
    """Fold scored issues into per-repository running averages.

    The first issue seen for a repository supplies its topics and
    primary language. Output is ordered by average score, highest first.
    """
    repos: dict[tuple[str, str], AggregatedRepository] = {}
    for issue in scored_issues:
        repo = repos.get(issue.repository_key)
        if repo is None:
            repo = AggregatedRepository(
                repository_owner=issue.repository_owner,
                repository_name=issue.repository_name,
                repository_topics=list(issue.repository_topics),
                primary_language=issue.primary_language,
            )
            repos[issue.repository_key] = repo
        repo.fold(issue.match_score or 0.0)

    return sorted(repos.values(), key=lambda r: r.average_score, reverse=True)


class ScoringEngine:
    """Issue, repository and mentor ranking for one viewer."""

    def __init__(
        self,
        recency_policy: RecencyPolicy = RecencyPolicy.SOFT_DECAY,
        language_policy: LanguagePolicy = LanguagePolicy.LINEAR_RANK,
        recency_window_days: int = DEFAULT_RECENCY_WINDOW_DAYS,
        cutoff_days: int = LEGACY_CUTOFF_DAYS,
    ) -> None:
        self.recency_policy = recency_policy
        self.language_policy = language_policy
        self.issue_scorer = build_issue_scorer(
            recency_policy, language_policy, recency_window_days, cutoff_days
        )
        self.mentor_scorer = build_mentor_scorer()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ScoringEngine:
        settings = settings or get_settings()
        return cls(
            recency_policy=settings.recency_policy,
            language_policy=settings.language_policy,
            recency_window_days=settings.recency_window_days,
            cutoff_days=settings.legacy_cutoff_days,
        )

    def score_issue(self, issue: CandidateIssue, viewer: UserPreferenceProfile) -> float:
        return self.issue_scorer.score(issue, viewer)

    def score_mentor(self, mentor: MentorCandidate, viewer: UserPreferenceProfile) -> float:
        return self.mentor_scorer.score(mentor, viewer)

    def rank_issues(
        self, issues: list[CandidateIssue], viewer: UserPreferenceProfile
    ) -> list[CandidateIssue]:
        """Score eligible issues and sort them best first.

        Equal scores keep their input order.
        """
        with SCORING_DURATION.labels(entity="issue").time():
            scored = [
                replace(issue, match_score=self.score_issue(issue, viewer))
                for issue in issues
                if self.issue_scorer.is_eligible(issue, viewer)
            ]
            scored.sort(key=lambda i: i.match_score, reverse=True)

        ITEMS_SCORED.labels(entity="issue").inc(len(scored))
        dropped = len(issues) - len(scored)
        if dropped:
            logger.debug("issues_excluded_by_cutoff", dropped=dropped)
        return scored

    def aggregate_repositories(
        self, scored_issues: list[CandidateIssue]
    ) -> list[AggregatedRepository]:
        with SCORING_DURATION.labels(entity="repository").time():
            repos = aggregate_repositories(scored_issues)
        ITEMS_SCORED.labels(entity="repository").inc(len(repos))
        return repos

    def rank_mentors(
        self, mentors: list[MentorCandidate], viewer: UserPreferenceProfile
    ) -> list[MentorCandidate]:
        with SCORING_DURATION.labels(entity="mentor").time():
            scored = [
                replace(mentor, match_score=self.score_mentor(mentor, viewer))
                for mentor in mentors
            ]
            scored.sort(key=lambda m: m.match_score, reverse=True)

        ITEMS_SCORED.labels(entity="mentor").inc(len(scored))
        return scored
