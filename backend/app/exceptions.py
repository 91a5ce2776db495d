"""Custom exception classes for gitTogether.

All exceptions follow the gitTogether error format:
{
    "error": {
        "code": "ERROR_CODE",
        "message": "Human-readable message",
        "details": {}  # optional
    }
}

Error messages must not contain PII (usernames, emails, tokens).
"""

from __future__ import annotations

from typing import Any


class GitTogetherError(Exception):
    """Base exception for gitTogether."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result


class ExternalServiceError(GitTogetherError):
    """External service (Supabase, SMTP) unavailable."""

    def __init__(self, service: str, message: str = "Service unavailable") -> None:
        super().__init__(
            code=f"{service.upper()}_SERVICE_ERROR",
            message=message,
            status_code=502,
        )


class GitHubAPIError(GitTogetherError):
    """GitHub API specific errors."""

    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(
            code="GITHUB_API_ERROR",
            message=message,
            status_code=status_code,
        )


class GitHubUserNotFoundError(GitTogetherError):
    """GitHub user or repository not found."""

    def __init__(self) -> None:
        super().__init__(
            code="GITHUB_NOT_FOUND",
            message="GitHub resource not found",
            status_code=404,
        )


class GitHubRateLimitError(GitTogetherError):
    """GitHub API rate limit exceeded."""

    def __init__(self, retry_after: int | None = None) -> None:
        details = {}
        if retry_after:
            details["retry_after_seconds"] = retry_after
        super().__init__(
            code="GITHUB_RATE_LIMIT",
            message="GitHub API rate limit exceeded. Try again later.",
            status_code=429,
            details=details,
        )


class AuthenticationError(GitTogetherError):
    """Missing or invalid bearer token."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class ProfileNotFoundError(GitTogetherError):
    """No profile row exists for the signed-in user."""

    def __init__(self) -> None:
        super().__init__(
            code="PROFILE_NOT_FOUND",
            message="Profile not found",
            status_code=404,
        )


class RateLimitError(GitTogetherError):
    """Application rate limit exceeded."""

    def __init__(self, limit_type: str, retry_after: int = 60) -> None:
        super().__init__(
            code="RATE_LIMIT_EXCEEDED",
            message=f"Rate limit exceeded for {limit_type}. Try again later.",
            status_code=429,
            details={"retry_after_seconds": retry_after, "limit_type": limit_type},
        )

