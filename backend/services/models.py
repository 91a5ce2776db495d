"""Domain models shared by the GitHub fetchers, scorers and routes.

Scored entities are immutable: scorers return copies carrying a
``match_score`` rather than mutating their inputs.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class LanguageShare:
    """One entry of a language affinity list."""

    lang: str
    percentage: float

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> LanguageShare | None:
        """Build from a stored/serialized entry.

        Percentages may arrive as strings formatted to 2 decimals.
        Entries without a language name or with a non-numeric
        percentage are rejected.
        """
        lang = raw.get("lang") or raw.get("name")
        if not lang:
            return None
        try:
            percentage = float(raw.get("percentage", 0))
        except (TypeError, ValueError):
            return None
        return cls(lang=str(lang), percentage=percentage)

    def to_dict(self) -> dict[str, Any]:
        return {"lang": self.lang, "percentage": f"{self.percentage:.2f}"}


def coerce_affinity(raw: Any) -> list[LanguageShare]:
    """Normalize an affinity payload into ``LanguageShare`` entries.

    Accepts ``LanguageShare`` objects or dicts; anything else
    (None, malformed entries) is dropped. Order is preserved.
    """
    if not isinstance(raw, list):
        return []
    shares: list[LanguageShare] = []
    for entry in raw:
        if isinstance(entry, LanguageShare):
            shares.append(entry)
        elif isinstance(entry, dict):
            share = LanguageShare.from_raw(entry)
            if share is not None:
                shares.append(share)
    return shares


def coerce_preferences(raw: Any) -> list[str]:
    """Preferences may be absent or malformed in the profile store."""
    if not isinstance(raw, list):
        return []
    return [str(p) for p in raw if isinstance(p, str) and p]


@dataclass(frozen=True)
class CandidateIssue:
    """An open, unassigned good-first-issue eligible for recommendation."""

    repository_owner: str
    repository_name: str
    issue_number: int
    issue_title: str
    issue_id: int = 0
    issue_url: str = ""
    issue_body: str = ""
    primary_language: str = "Unknown"
    all_languages: list[str] = field(default_factory=list)
    repository_topics: list[str] = field(default_factory=list)
    issue_labels: list[str] = field(default_factory=list)
    number_of_assignees: int = 0
    has_gfi_label: bool = True
    date_created: str = ""
    days_open: int = 0
    match_score: float = 0.0

    @property
    def repository_key(self) -> tuple[str, str]:
        return (self.repository_owner, self.repository_name)

    @property
    def full_name(self) -> str:
        return f"{self.repository_owner}/{self.repository_name}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CandidateIssue:
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class AggregatedRepository:
    """Per-repository view derived from scored issues."""

    repository_owner: str
    repository_name: str
    repository_topics: list[str] = field(default_factory=list)
    primary_language: str = "Unknown"
    issue_count: int = 0
    average_score: float = 0.0

    def fold(self, score: float) -> None:
        """Fold one more issue score into the running mean."""
        self.issue_count += 1
        self.average_score = (
            self.average_score * (self.issue_count - 1) + score
        ) / self.issue_count

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MentorCandidate:
    """A profile flagged as willing to mentor."""

    id: str
    username: str
    email: str = ""
    languages: list[LanguageShare] = field(default_factory=list)
    preferences: list[str] = field(default_factory=list)
    match_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "languages": [share.to_dict() for share in self.languages],
            "preferences": list(self.preferences),
            "match_score": self.match_score,
        }


@dataclass(frozen=True)
class UserPreferenceProfile:
    """The viewer's inputs to every scorer."""

    preferences: list[str] = field(default_factory=list)
    languages: list[LanguageShare] = field(default_factory=list)
