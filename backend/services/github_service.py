"""GitHub Data Service.

Fetches the inputs the scorers need from the GitHub REST API:
- good-first-issues across the tracked repositories (with each
  repository's primary language, topics and language list)
- language affinity for any account (viewer or mentor)
- user and repository listings for the skill assessment

Responses are cached in Redis with short TTLs. Per-repository and
per-account failures degrade to empty data instead of failing the
whole request.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import random
from datetime import UTC, datetime
from typing import Any, Optional

import httpx
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.config import Settings, get_settings
from app.exceptions import (
    GitHubAPIError,
    GitHubRateLimitError,
    GitHubUserNotFoundError,
)
from app.logging_config import get_logger
from app.metrics import (
    GITHUB_API_CALLS,
    GITHUB_API_DURATION,
    GITHUB_CACHE_HITS,
    GITHUB_CACHE_MISSES,
    UPSTREAM_DEGRADED,
)
from services.issue_source import parse_issues
from services.language_profile import build_language_affinity, select_sample_repos
from services.models import CandidateIssue, LanguageShare, coerce_affinity

logger = get_logger(__name__)

GITHUB_ERRORS = (GitHubAPIError, GitHubRateLimitError, GitHubUserNotFoundError)


def _parse_retry_after(value: str | None) -> int | None:
    """Seconds from a Retry-After header; HTTP-date values are ignored."""
    if not value:
        return None
    try:
        return max(int(value), 0)
    except ValueError:
        return None


class GitHubService:
    """Service for fetching and caching GitHub data.

    Cache keys:
    - github:languages:{username}  language affinity
    - github:issues:{digest}       candidate issue feed for a repo set
    """

    def __init__(self, redis: aioredis.Redis, settings: Settings | None = None) -> None:
        self.redis = redis
        self.settings = settings or get_settings()
        self._headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.settings.github_token:
            self._headers["Authorization"] = (
                f"Bearer {self.settings.github_token.get_secret_value()}"
            )
        else:
            logger.warning("github_token_missing", hourly_limit=60)

    # --- Cache Helpers ---

    async def _cache_get(self, key: str) -> Any | None:
        try:
            raw = await self.redis.get(key)
        except RedisError as exc:
            logger.warning("github_cache_read_failed", error=type(exc).__name__)
            raw = None
        if raw is None:
            GITHUB_CACHE_MISSES.inc()
            return None

        GITHUB_CACHE_HITS.inc()
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    async def _cache_set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self.redis.setex(key, ttl, json.dumps(value, separators=(",", ":")))
        except RedisError as exc:
            logger.warning("github_cache_write_failed", error=type(exc).__name__)

    async def invalidate_cache(self, username: str) -> int:
        """Drop the cached language affinity for an account."""
        return await self.redis.delete(f"github:languages:{username.lower()}")

    # --- Accounts ---

    async def get_user(self, username: str) -> dict[str, Any]:
        url = f"{self.settings.github_api_base}/users/{username}"
        return await self._api_request(url, endpoint="users")

    async def get_owned_repos(self, username: str) -> list[dict[str, Any]]:
        """Up to one page of repositories owned by the account."""
        url = f"{self.settings.github_api_base}/users/{username}/repos"
        params = {
            "per_page": self.settings.owned_repos_page_size,
            "type": "owner",
        }
        repos = await self._api_request(url, params=params, endpoint="user_repos")
        return repos if isinstance(repos, list) else []

    async def get_language_affinity(self, username: str) -> list[LanguageShare]:
        """Ranked language shares across the account's top-starred repos.

        Unknown accounts, API failures and empty accounts all yield [].
        """
        cache_key = f"github:languages:{username.lower()}"
        cached = await self._cache_get(cache_key)
        if cached:
            return coerce_affinity(cached)

        try:
            repos = await self.get_owned_repos(username)
        except GITHUB_ERRORS as exc:
            UPSTREAM_DEGRADED.labels(source="user_repos").inc()
            logger.warning("language_affinity_unavailable", error=exc.code)
            return []

        sample = select_sample_repos(repos, self.settings.language_sample_size)
        byte_maps = await asyncio.gather(
            *(
                self._safe_repo_languages(repo.get("full_name") or f"{username}/{repo.get('name')}")
                for repo in sample
            )
        )
        affinity = build_language_affinity(byte_maps)

        if affinity:
            await self._cache_set(
                cache_key,
                [share.to_dict() for share in affinity],
                self.settings.github_cache_ttl,
            )
        logger.info("language_affinity_built", repos_sampled=len(sample), languages=len(affinity))
        return affinity

    # --- Repositories ---

    async def get_repo_languages(self, full_name: str) -> dict[str, int]:
        url = f"{self.settings.github_api_base}/repos/{full_name}/languages"
        languages = await self._api_request(url, endpoint="languages")
        return languages if isinstance(languages, dict) else {}

    async def _safe_repo_languages(self, full_name: str) -> dict[str, int]:
        try:
            return await self.get_repo_languages(full_name)
        except GITHUB_ERRORS as exc:
            UPSTREAM_DEGRADED.labels(source="languages").inc()
            logger.warning("repo_languages_fetch_failed", repo=full_name, error=exc.code)
            return {}

    async def get_repo_details(self, full_name: str) -> dict[str, Any]:
        """Primary language ("Unknown" when absent) and topics."""
        url = f"{self.settings.github_api_base}/repos/{full_name}"
        try:
            repo = await self._api_request(url, endpoint="repos")
        except GITHUB_ERRORS as exc:
            UPSTREAM_DEGRADED.labels(source="repos").inc()
            logger.warning("repo_details_fetch_failed", repo=full_name, error=exc.code)
            repo = {}
        return {
            "primary_language": repo.get("language") or "Unknown",
            "topics": repo.get("topics") or [],
        }

    # --- Issues ---

    async def fetch_repo_issues(
        self, full_name: str, now: datetime | None = None
    ) -> list[CandidateIssue]:
        """Eligible good-first-issues for one repository.

        Any failure fetching the issue list itself yields [] for this
        repository only.
        """
        owner, _, name = full_name.partition("/")
        if not owner or not name:
            logger.warning("invalid_repository_name", repo=full_name)
            return []

        details, languages = await asyncio.gather(
            self.get_repo_details(full_name),
            self._safe_repo_languages(full_name),
        )

        url = f"{self.settings.github_api_base}/repos/{full_name}/issues"
        params = {"state": "open", "labels": "good first issue", "per_page": 100}
        try:
            raw_issues = await self._api_request(url, params=params, endpoint="issues")
        except GITHUB_ERRORS as exc:
            UPSTREAM_DEGRADED.labels(source="issues").inc()
            logger.warning("repo_issues_fetch_failed", repo=full_name, error=exc.code)
            return []

        return parse_issues(
            raw_issues,
            owner=owner,
            name=name,
            primary_language=details["primary_language"],
            topics=details["topics"],
            all_languages=list(languages.keys()),
            gfi_labels=self.settings.good_first_issue_labels,
            now=now,
        )

    async def fetch_candidate_issues(
        self, repositories: list[str] | None = None
    ) -> list[CandidateIssue]:
        """All eligible issues across the tracked repositories, newest first."""
        repositories = repositories or self.settings.source_repositories
        digest = hashlib.sha256(",".join(sorted(repositories)).encode()).hexdigest()[:16]
        cache_key = f"github:issues:{digest}"

        cached = await self._cache_get(cache_key)
        if cached is not None:
            return [CandidateIssue.from_dict(item) for item in cached]

        now = datetime.now(UTC)
        per_repo = await asyncio.gather(
            *(self.fetch_repo_issues(repo, now=now) for repo in repositories)
        )
        issues = [issue for batch in per_repo for issue in batch]
        issues.sort(key=lambda i: i.days_open)

        await self._cache_set(
            cache_key,
            [issue.to_dict() for issue in issues],
            self.settings.issue_feed_ttl,
        )
        logger.info("candidate_issues_fetched", repositories=len(repositories), issues=len(issues))
        return issues

    # --- Transport ---

    async def _api_request(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        endpoint: str = "other",
        max_retries: int | None = None,
    ) -> Any:
        """Make a request to the GitHub API with retry logic.

        Implements exponential backoff for:
        - 429 Too Many Requests
        - 403 Forbidden (rate limit)
        - 502/503/504 Server errors
        - connection errors

        Non-retryable errors (404, 401) are raised immediately.
        """
        if max_retries is None:
            max_retries = self.settings.github_max_retries
        last_exception: Exception | None = None

        for attempt in range(max_retries + 1):
            async with httpx.AsyncClient(timeout=self.settings.github_timeout) as client:
                with GITHUB_API_DURATION.labels(endpoint=endpoint).time():
                    try:
                        response = await client.get(
                            url, headers=self._headers, params=params
                        )
                    except httpx.RequestError as exc:
                        GITHUB_API_CALLS.labels(endpoint=endpoint, status="error").inc()
                        last_exception = exc
                        if attempt < max_retries:
                            wait = self._backoff_delay(attempt)
                            logger.warning(
                                "github_api_connection_retry",
                                attempt=attempt + 1,
                                wait_seconds=wait,
                                endpoint=endpoint,
                            )
                            await asyncio.sleep(wait)
                            continue
                        raise GitHubAPIError(
                            "GitHub API connection failed after retries"
                        ) from exc

                status = response.status_code
                GITHUB_API_CALLS.labels(endpoint=endpoint, status=str(status)).inc()

                # Non-retryable errors
                if status == 404:
                    raise GitHubUserNotFoundError()
                if status == 401:
                    raise GitHubAPIError(
                        "GitHub token invalid or expired", status_code=401
                    )

                # Retryable: rate limit
                if status in (403, 429):
                    retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                    rate_remaining = response.headers.get("X-RateLimit-Remaining")

                    if attempt < max_retries:
                        if retry_after:
                            wait = min(retry_after, 60)
                        elif rate_remaining == "0":
                            wait = self._backoff_delay(attempt, base=5.0)
                        else:
                            wait = self._backoff_delay(attempt)

                        logger.warning(
                            "github_rate_limit_retry",
                            attempt=attempt + 1,
                            wait_seconds=wait,
                            status=status,
                            endpoint=endpoint,
                        )
                        await asyncio.sleep(wait)
                        continue

                    raise GitHubRateLimitError(retry_after=retry_after)

                # Retryable: server errors
                if status in (502, 503, 504):
                    if attempt < max_retries:
                        wait = self._backoff_delay(attempt)
                        logger.warning(
                            "github_server_error_retry",
                            attempt=attempt + 1,
                            wait_seconds=wait,
                            status=status,
                            endpoint=endpoint,
                        )
                        await asyncio.sleep(wait)
                        continue

                    raise GitHubAPIError(
                        f"GitHub API server error {status} after retries",
                        status_code=status,
                    )

                if status >= 400:
                    raise GitHubAPIError(
                        f"GitHub API returned status {status}",
                        status_code=status,
                    )

                try:
                    return response.json()
                except ValueError as exc:
                    raise GitHubAPIError("GitHub API returned malformed JSON") from exc

        raise GitHubAPIError("GitHub API request failed") from last_exception

    @staticmethod
    def _backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 30.0) -> float:
        """Exponential backoff with jitter: min(base * 2^attempt + jitter, max_delay)."""
        delay = base * (2 ** attempt)
        jitter = random.uniform(0, delay * 0.1)
        return min(delay + jitter, max_delay)
