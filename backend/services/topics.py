"""Selectable topic preferences."""

from __future__ import annotations

TOPIC_CATALOGUE: tuple[str, ...] = (
    "javascript",
    "python",
    "java",
    "react",
    "html",
    "css",
    "nodejs",
    "typescript",
    "csharp",
    "vue",
    "docker",
    "kubernetes",
    "machine-learning",
    "deep-learning",
    "data-science",
    "Marketing Emails",
    "graphql",
    "android",
    "ios",
    "flutter",
)


def search_topics(query: str | None = None) -> list[str]:
    """Catalogue entries containing ``query`` (case-insensitive), in catalogue order."""
    if not query or not query.strip():
        return list(TOPIC_CATALOGUE)
    needle = query.strip().lower()
    return [topic for topic in TOPIC_CATALOGUE if needle in topic.lower()]
