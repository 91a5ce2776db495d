"""Tests for the match scoring engine."""

import math

import pytest

from app.config import LanguagePolicy, RecencyPolicy
from services.models import (
    AggregatedRepository,
    CandidateIssue,
    LanguageShare,
    MentorCandidate,
    UserPreferenceProfile,
)
from services.scoring_engine import (
    ISSUE_WEIGHTS,
    MENTOR_WEIGHTS,
    ScoringEngine,
    aggregate_repositories,
    build_issue_scorer,
    exponential_decay_language_score,
    linear_rank_language_score,
    mentor_language_score,
    mentor_preference_score,
    recency_score,
    round_score,
    topic_score,
)


def make_issue(**overrides) -> CandidateIssue:
    fields = {
        "repository_owner": "octo",
        "repository_name": "widgets",
        "issue_number": 1,
        "issue_title": "Improve docs",
        "primary_language": "Python",
        "repository_topics": [],
        "days_open": 0,
    }
    fields.update(overrides)
    return CandidateIssue(**fields)


@pytest.fixture
def engine() -> ScoringEngine:
    return ScoringEngine()


@pytest.fixture
def viewer() -> UserPreferenceProfile:
    return UserPreferenceProfile(
        preferences=["rust", "cli"],
        languages=[LanguageShare("python", 60.0), LanguageShare("go", 40.0)],
    )


class TestWeights:
    """Weight tables are the single source of truth per entity kind."""

    def test_issue_weights_sum_to_one(self):
        assert sum(ISSUE_WEIGHTS.values()) == pytest.approx(1.0)

    def test_mentor_weights_sum_to_one(self):
        assert sum(MENTOR_WEIGHTS.values()) == pytest.approx(1.0)

    def test_scorer_exposes_weights(self):
        scorer = build_issue_scorer()
        assert scorer.weights == ISSUE_WEIGHTS


class TestRounding:
    """Two decimals, half-to-even on the stored binary value."""

    def test_exact_halves_go_to_even(self):
        assert round_score(0.125) == 0.12
        assert round_score(0.375) == 0.38

    def test_binary_value_decides(self):
        # 2.675 is stored just below the half
        assert round_score(2.675) == 2.67

    def test_issue_score_is_rounded(self, viewer):
        score = build_issue_scorer().score(make_issue(days_open=1), viewer)
        assert score == round(score, 2)


class TestRecency:
    """Soft-decay recency term."""

    @pytest.mark.parametrize("days", [180, 181, 365, 10_000])
    def test_old_issues_contribute_nothing(self, days):
        """Issues at or beyond 180 days get no recency contribution."""
        scorer = build_issue_scorer()
        breakdown = scorer.breakdown(make_issue(days_open=days), UserPreferenceProfile())
        assert breakdown["recency"] == 0

    def test_brand_new_issue_gets_full_recency(self):
        scorer = build_issue_scorer()
        breakdown = scorer.breakdown(make_issue(days_open=0), UserPreferenceProfile())
        assert round(breakdown["recency"], 2) == 20.00

    def test_linear_fade(self):
        assert recency_score(90) == pytest.approx(50.0)
        assert recency_score(45, window_days=90) == pytest.approx(50.0)

    def test_negative_age_is_clamped(self):
        assert recency_score(-5) == 100.0


class TestLanguageTerm:
    """Issue language term under both policies."""

    def test_top_language_case_insensitive(self, viewer):
        """Primary language matching the viewer's first language scores 100."""
        assert linear_rank_language_score("Python", viewer.languages) == 100.0
        scorer = build_issue_scorer()
        breakdown = scorer.breakdown(make_issue(primary_language="PYTHON"), viewer)
        assert round(breakdown["language"], 2) == 35.00

    def test_second_language(self, viewer):
        assert linear_rank_language_score("Go", viewer.languages) == 50.0

    def test_unranked_language(self, viewer):
        assert linear_rank_language_score("Haskell", viewer.languages) == 0.0

    def test_empty_affinity_scores_zero(self):
        """No affinity means zero, never a division error."""
        assert linear_rank_language_score("Python", []) == 0.0
        assert exponential_decay_language_score(["Python"], []) == 0.0

    def test_exponential_decay_sums_every_language(self, viewer):
        """0.2 ** rank per matched language, uncapped."""
        score = exponential_decay_language_score(["Python", "Go"], viewer.languages)
        assert score == pytest.approx(120.0)

    def test_exponential_decay_counts_duplicates_once(self, viewer):
        score = exponential_decay_language_score(["Go", "go"], viewer.languages)
        assert score == pytest.approx(20.0)


class TestTopicTerm:
    """Issue topic term divides by the viewer's preference count."""

    def test_half_of_preferences_matched(self, viewer):
        assert topic_score(["rust", "web"], viewer.preferences) == 50.0
        scorer = build_issue_scorer()
        breakdown = scorer.breakdown(make_issue(repository_topics=["rust", "web"]), viewer)
        assert round(breakdown["topic"], 2) == 22.50

    def test_capped_at_100(self):
        assert topic_score(["rust", "Rust", "RUST"], ["rust"]) == 100.0

    def test_no_preferences(self):
        assert topic_score(["rust"], []) == 0.0


class TestIssueScore:
    """End-to-end weighted issue score."""

    def test_end_to_end(self, engine, viewer):
        issue = make_issue(days_open=0, primary_language="Python", repository_topics=["rust", "web"])
        assert engine.score_issue(issue, viewer) == 77.50

    def test_empty_viewer_scores_recency_only(self, engine):
        """A viewer with no affinity and no preferences still gets a finite score."""
        score = engine.score_issue(make_issue(days_open=0), UserPreferenceProfile())
        assert score == 20.00
        assert not math.isnan(score)

    def test_rank_issues_returns_copies(self, engine, viewer):
        issue = make_issue(days_open=0)
        ranked = engine.rank_issues([issue], viewer)
        assert ranked[0].match_score > 0
        assert issue.match_score == 0.0

    def test_rank_issues_orders_best_first(self, engine, viewer):
        issues = [
            make_issue(issue_number=1, primary_language="Haskell", days_open=100),
            make_issue(issue_number=2, primary_language="Python", days_open=1),
            make_issue(issue_number=3, primary_language="Go", days_open=10),
        ]
        ranked = engine.rank_issues(issues, viewer)
        assert [i.issue_number for i in ranked] == [2, 3, 1]

    def test_ranking_is_deterministic(self, engine, viewer):
        issues = [
            make_issue(issue_number=n, primary_language=lang, days_open=days)
            for n, (lang, days) in enumerate(
                [("Python", 5), ("Go", 5), ("Python", 5), ("Rust", 0), ("Go", 90)]
            )
        ]
        first = [i.issue_number for i in engine.rank_issues(issues, viewer)]
        second = [i.issue_number for i in engine.rank_issues(issues, viewer)]
        assert first == second

    def test_ties_keep_input_order(self, engine, viewer):
        issues = [make_issue(issue_number=n) for n in (3, 1, 2)]
        ranked = engine.rank_issues(issues, viewer)
        assert [i.issue_number for i in ranked] == [3, 1, 2]


class TestHardCutoffPolicy:
    """Issues past the cutoff are excluded; the rest fade over the cutoff window."""

    def test_old_issues_excluded(self, viewer):
        engine = ScoringEngine(recency_policy=RecencyPolicy.HARD_CUTOFF, cutoff_days=90)
        issues = [make_issue(issue_number=1, days_open=100), make_issue(issue_number=2, days_open=45)]
        ranked = engine.rank_issues(issues, viewer)
        assert [i.issue_number for i in ranked] == [2]

    def test_recency_fades_over_cutoff(self):
        scorer = build_issue_scorer(recency_policy=RecencyPolicy.HARD_CUTOFF, cutoff_days=90)
        breakdown = scorer.breakdown(make_issue(days_open=45), UserPreferenceProfile())
        assert breakdown["recency"] == pytest.approx(10.0)

    def test_exponential_language_policy(self, viewer):
        engine = ScoringEngine(language_policy=LanguagePolicy.EXPONENTIAL_DECAY)
        issue = make_issue(days_open=180, all_languages=["Python", "Go"])
        assert engine.score_issue(issue, viewer) == 42.00

    def test_exponential_falls_back_to_primary_language(self, viewer):
        engine = ScoringEngine(language_policy=LanguagePolicy.EXPONENTIAL_DECAY)
        issue = make_issue(days_open=180, primary_language="Go", all_languages=[])
        assert engine.score_issue(issue, viewer) == 7.00


class TestRepositoryAggregation:
    """Running-mean aggregation of issue scores per repository."""

    def test_average_of_three(self):
        issues = [make_issue(match_score=s) for s in (80.0, 60.0, 40.0)]
        repos = aggregate_repositories(issues)
        assert len(repos) == 1
        assert repos[0].issue_count == 3
        assert repos[0].average_score == pytest.approx(60.0)

    def test_fold_order_does_not_matter(self):
        forward = AggregatedRepository("octo", "widgets")
        backward = AggregatedRepository("octo", "widgets")
        for score in (80.0, 60.0, 40.0):
            forward.fold(score)
        for score in (40.0, 60.0, 80.0):
            backward.fold(score)
        assert forward.average_score == pytest.approx(backward.average_score)

    def test_first_issue_supplies_metadata(self):
        issues = [
            make_issue(repository_topics=["cli"], primary_language="Go", match_score=10.0),
            make_issue(repository_topics=["web"], primary_language="Rust", match_score=20.0),
        ]
        repo = aggregate_repositories(issues)[0]
        assert repo.repository_topics == ["cli"]
        assert repo.primary_language == "Go"

    def test_sorted_by_average(self):
        issues = [
            make_issue(repository_name="low", match_score=10.0),
            make_issue(repository_name="high", match_score=90.0),
        ]
        repos = aggregate_repositories(issues)
        assert [r.repository_name for r in repos] == ["high", "low"]


class TestMentorScore:
    """Mentor language and preference terms."""

    def test_preference_uses_larger_denominator(self):
        """Mentor preference divides by max(viewer, mentor) counts."""
        assert mentor_preference_score(["b"], ["a", "b", "c"]) == pytest.approx(100 / 3)
        engine = ScoringEngine()
        mentor = MentorCandidate(id="m1", username="mentor", preferences=["b"])
        viewer = UserPreferenceProfile(preferences=["a", "b", "c"])
        assert engine.score_mentor(mentor, viewer) == 15.00

    def test_preference_denominator_differs_from_topic_term(self):
        """The issue topic term and mentor preference term intentionally disagree."""
        viewer_prefs = ["b"]
        other = ["a", "b", "c"]
        assert topic_score(other, viewer_prefs) == 100.0
        assert mentor_preference_score(other, viewer_prefs) == pytest.approx(100 / 3)

    def test_language_score(self):
        viewer_langs = [LanguageShare("Python", 60.0), LanguageShare("Go", 40.0)]
        mentor_langs = [LanguageShare("go", 50.0), LanguageShare("python", 50.0)]
        # python: (2/2) * 0.5 * 100 = 50; go: (1/2) * 0.5 * 100 = 25; / 2
        assert mentor_language_score(mentor_langs, viewer_langs) == pytest.approx(37.5)

    @pytest.mark.parametrize(
        "mentor_langs,viewer_langs",
        [
            ([], [LanguageShare("Python", 100.0)]),
            ([LanguageShare("Python", 100.0)], []),
            ([], []),
        ],
    )
    def test_empty_affinity_is_zero(self, mentor_langs, viewer_langs):
        score = mentor_language_score(mentor_langs, viewer_langs)
        assert score == 0.0
        assert not math.isnan(score)

    def test_rank_mentors(self, viewer):
        engine = ScoringEngine()
        mentors = [
            MentorCandidate(id="1", username="a", preferences=["web"]),
            MentorCandidate(id="2", username="b", preferences=["rust", "cli"]),
        ]
        ranked = engine.rank_mentors(mentors, viewer)
        assert [m.id for m in ranked] == ["2", "1"]
        assert ranked[0].match_score == 45.00
