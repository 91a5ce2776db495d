"""Tests for good-first-issue eligibility and normalization."""

from datetime import UTC, datetime

import pytest

from services.issue_source import (
    calculate_days_open,
    filter_recent_issues,
    has_good_first_issue_label,
    is_eligible,
    months_ago,
    parse_issues,
)
from services.models import CandidateIssue

NOW = datetime(2026, 3, 31, 12, 0, tzinfo=UTC)


def raw_issue(**overrides) -> dict:
    issue = {
        "id": 555,
        "number": 42,
        "title": "Add a --verbose flag",
        "html_url": "https://github.com/octo/widgets/issues/42",
        "body": "Would be nice",
        "labels": [{"name": "good first issue"}],
        "assignees": [],
        "created_at": "2026-03-30T12:00:00Z",
    }
    issue.update(overrides)
    return issue


class TestDaysOpen:
    """Days open rounds up partial days."""

    def test_exact_day(self):
        assert calculate_days_open("2026-03-30T12:00:00Z", NOW) == 1

    def test_partial_day_rounds_up(self):
        assert calculate_days_open("2026-03-31T11:00:00Z", NOW) == 1
        assert calculate_days_open("2026-03-29T11:00:00Z", NOW) == 3

    def test_missing_or_bad_date(self):
        assert calculate_days_open(None, NOW) == 0
        assert calculate_days_open("yesterday", NOW) == 0


class TestEligibility:
    """Open, unassigned, labelled, not a pull request."""

    def test_eligible(self):
        assert is_eligible(raw_issue())

    def test_pull_request_excluded(self):
        assert not is_eligible(raw_issue(pull_request={"url": "x"}))

    def test_assigned_excluded(self):
        assert not is_eligible(raw_issue(assignees=[{"login": "someone"}]))

    def test_label_substring_case_insensitive(self):
        assert has_good_first_issue_label([{"name": "Status: Good First Issue 🐣"}])
        assert has_good_first_issue_label(["first-timers-only"])

    def test_unrelated_labels(self):
        assert not has_good_first_issue_label([{"name": "bug"}, {"name": "wontfix"}])
        assert not is_eligible(raw_issue(labels=[]))

    def test_custom_label_list(self):
        assert has_good_first_issue_label([{"name": "newcomer"}], ["newcomer"])
        assert not has_good_first_issue_label([{"name": "beginner"}], ["newcomer"])


class TestParseIssues:
    """Raw payloads to CandidateIssue records."""

    def test_parses_fields(self):
        issues = parse_issues(
            [raw_issue()],
            owner="octo",
            name="widgets",
            primary_language="Python",
            topics=["cli"],
            all_languages=["Python", "Shell"],
            now=NOW,
        )
        assert len(issues) == 1
        issue = issues[0]
        assert issue.issue_id == 555
        assert issue.issue_number == 42
        assert issue.full_name == "octo/widgets"
        assert issue.issue_labels == ["good first issue"]
        assert issue.all_languages == ["Python", "Shell"]
        assert issue.days_open == 1
        assert issue.has_gfi_label is True

    def test_filters_ineligible(self):
        payload = [raw_issue(), raw_issue(number=43, assignees=[{"login": "x"}]), "junk"]
        issues = parse_issues(payload, "octo", "widgets", "Python", [], [], now=NOW)
        assert [i.issue_number for i in issues] == [42]

    def test_error_payload(self):
        assert parse_issues({"message": "Not Found"}, "o", "n", "Unknown", [], []) == []

    def test_missing_language_defaults_to_unknown(self):
        issues = parse_issues([raw_issue()], "octo", "widgets", "", [], [], now=NOW)
        assert issues[0].primary_language == "Unknown"


class TestRecentFilter:
    """Twelve-month age horizon."""

    def test_months_ago_clamps_day(self):
        assert months_ago(NOW, 1) == datetime(2026, 2, 28, 12, 0, tzinfo=UTC)
        assert months_ago(NOW, 12) == datetime(2025, 3, 31, 12, 0, tzinfo=UTC)

    @pytest.mark.parametrize(
        "created,kept",
        [
            ("2026-01-01T00:00:00Z", True),
            ("2025-04-01T00:00:00Z", True),
            ("2025-03-01T00:00:00Z", False),
            ("", True),
        ],
    )
    def test_filter(self, created, kept):
        issue = CandidateIssue("octo", "widgets", 1, "t", date_created=created)
        assert (filter_recent_issues([issue], 12, NOW) == [issue]) is kept
