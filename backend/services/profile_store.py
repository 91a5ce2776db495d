"""Supabase profile store.

Thin async wrapper over the Supabase client for everything the
recommendation pipeline reads or writes outside GitHub:
- bearer token verification
- the ``profiles`` table (username, preferences, mentor flag,
  notification opt-in)
- account deletion through the admin API
- the ``issues`` snapshot used by the daily digest

The Supabase client is synchronous; calls run in a worker thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from postgrest.exceptions import APIError
from supabase import Client, ClientOptions, create_client

from app.config import Settings, get_settings
from app.exceptions import AuthenticationError, ExternalServiceError
from app.logging_config import get_logger

logger = get_logger(__name__)

R = TypeVar("R")

PROFILE_COLUMNS = "id, username, email, preferences, mentor_status, email_notifications"
MENTOR_COLUMNS = "id, username, email, preferences"


@dataclass(frozen=True)
class AuthUser:
    """The identity behind a verified bearer token."""

    id: str
    email: str | None = None


class ProfileStore:
    """Profiles, mentors and the stored issue snapshot in Supabase."""

    def __init__(self, client: Client, admin_client: Client | None = None) -> None:
        self.client = client
        self.admin_client = admin_client

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ProfileStore:
        settings = settings or get_settings()
        if not settings.supabase_configured:
            raise ExternalServiceError("supabase", "Profile store is not configured")

        client = create_client(
            settings.supabase_url, settings.supabase_anon_key.get_secret_value()
        )
        admin_client = None
        if settings.supabase_service_role_key:
            admin_client = create_client(
                settings.supabase_url,
                settings.supabase_service_role_key.get_secret_value(),
                options=ClientOptions(auto_refresh_token=False, persist_session=False),
            )
        return cls(client, admin_client)

    async def _run(self, operation: str, call: Callable[[], R]) -> R:
        try:
            return await asyncio.to_thread(call)
        except APIError as exc:
            logger.error("supabase_query_failed", operation=operation, code=exc.code)
            raise ExternalServiceError("supabase", "Profile store request failed") from exc

    # --- Auth ---

    async def verify_token(self, token: str) -> AuthUser:
        """Resolve a bearer token to its user, or raise AuthenticationError."""
        if not token:
            raise AuthenticationError("No authorization header")
        try:
            response = await asyncio.to_thread(self.client.auth.get_user, token)
        except Exception as exc:
            logger.info("token_verification_failed")
            raise AuthenticationError() from exc

        user = getattr(response, "user", None)
        if user is None:
            raise AuthenticationError()
        return AuthUser(id=str(user.id), email=getattr(user, "email", None))

    # --- Profiles ---

    async def get_profile(self, user_id: str) -> dict[str, Any] | None:
        response = await self._run(
            "get_profile",
            lambda: self.client.table("profiles")
            .select(PROFILE_COLUMNS)
            .eq("id", user_id)
            .limit(1)
            .execute(),
        )
        return response.data[0] if response.data else None

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> None:
        await self._run(
            "update_profile",
            lambda: self.client.table("profiles").update(fields).eq("id", user_id).execute(),
        )
        logger.info("profile_updated", fields=sorted(fields))

    async def set_preferences(self, user_id: str, preferences: list[str]) -> None:
        await self.update_profile(user_id, {"preferences": preferences})

    async def set_mentor_status(self, user_id: str, is_mentor: bool) -> None:
        await self.update_profile(user_id, {"mentor_status": is_mentor})

    async def set_email_notifications(self, user_id: str, enabled: bool) -> None:
        await self.update_profile(user_id, {"email_notifications": enabled})

    async def list_mentors(
        self, viewer_id: str, viewer_is_mentor: bool = False
    ) -> list[dict[str, Any]]:
        """Mentor profiles, excluding the viewer when the viewer mentors too."""

        def query() -> Any:
            builder = (
                self.client.table("profiles")
                .select(MENTOR_COLUMNS)
                .eq("mentor_status", True)
            )
            if viewer_is_mentor:
                builder = builder.neq("id", viewer_id)
            return builder.execute()

        response = await self._run("list_mentors", query)
        return response.data or []

    async def list_notification_recipients(self) -> list[dict[str, Any]]:
        response = await self._run(
            "list_notification_recipients",
            lambda: self.client.table("profiles")
            .select("id, email")
            .eq("email_notifications", True)
            .execute(),
        )
        return [row for row in response.data or [] if row.get("email")]

    async def delete_user(self, user_id: str) -> None:
        """Delete the auth user (and, by cascade, their profile)."""
        if self.admin_client is None:
            raise ExternalServiceError("supabase", "Account deletion is not configured")
        try:
            await asyncio.to_thread(self.admin_client.auth.admin.delete_user, user_id)
        except Exception as exc:
            logger.error("account_delete_failed")
            raise ExternalServiceError("supabase", "Failed to delete account") from exc
        logger.info("account_deleted")

    # --- Issue snapshot (daily digest) ---

    async def get_stored_issues(self) -> list[dict[str, Any]]:
        response = await self._run(
            "get_stored_issues",
            lambda: self.client.table("issues").select("*").execute(),
        )
        return response.data or []

    async def replace_stored_issues(self, issues: list[dict[str, Any]]) -> None:
        """Swap the stored snapshot for ``issues``."""
        client = self.admin_client or self.client
        await self._run(
            "clear_stored_issues",
            lambda: client.table("issues").delete().neq("id", 0).execute(),
        )
        if issues:
            await self._run(
                "insert_stored_issues",
                lambda: client.table("issues").insert(issues).execute(),
            )
        logger.info("issue_snapshot_replaced", count=len(issues))
