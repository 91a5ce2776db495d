"""Language affinity reduction.

Turns an account's repository list and per-repository language byte
counts into an ordered affinity list. The HTTP side lives in
GitHubService.get_language_affinity; everything here is pure.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from services.models import LanguageShare

DEFAULT_SAMPLE_SIZE = 10


def select_sample_repos(
    repos: Any, sample_size: int = DEFAULT_SAMPLE_SIZE
) -> list[dict[str, Any]]:
    """Pick the highest-starred non-fork repositories.

    Sorting is stable, so repositories with equal star counts keep the
    order the API returned them in.
    """
    if not isinstance(repos, list):
        return []

    owned = [r for r in repos if isinstance(r, dict) and not r.get("fork", False)]
    owned.sort(key=lambda r: r.get("stargazers_count") or 0, reverse=True)
    return owned[:sample_size]


def sum_language_bytes(byte_maps: Iterable[dict[str, Any]]) -> dict[str, int]:
    """Sum byte counts per language, keeping first-seen order."""
    totals: dict[str, int] = {}
    for languages in byte_maps:
        if not isinstance(languages, dict):
            continue
        for lang, count in languages.items():
            if isinstance(count, bool) or not isinstance(count, (int, float)):
                continue
            totals[lang] = totals.get(lang, 0) + int(count)
    return totals


def build_language_affinity(byte_maps: Iterable[dict[str, Any]]) -> list[LanguageShare]:
    """Convert per-repository byte counts into a ranked affinity list.

    Percentages are rounded to 2 decimals and ties keep summation
    order. Returns an empty list when there is nothing to measure.
    """
    totals = sum_language_bytes(byte_maps)
    grand_total = sum(totals.values())
    if grand_total <= 0:
        return []

    shares = [
        LanguageShare(lang=lang, percentage=round(count / grand_total * 100, 2))
        for lang, count in totals.items()
    ]
    shares.sort(key=lambda s: s.percentage, reverse=True)
    return shares
