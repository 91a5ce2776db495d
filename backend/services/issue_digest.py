"""Daily good-first-issue digest.

Compares the current issue feed with the snapshot stored in Supabase,
replaces the snapshot when it changed, and emails every opted-in user
a summary of added and removed issues.
"""

from __future__ import annotations

import asyncio
import smtplib
from dataclasses import dataclass, field
from email.mime.text import MIMEText
from html import escape
from typing import Any

from app.config import Settings, get_settings
from app.logging_config import get_logger
from app.metrics import DIGEST_EMAILS_SENT, DIGEST_RUNS
from services.github_service import GitHubService
from services.models import CandidateIssue
from services.profile_store import ProfileStore

logger = get_logger(__name__)

DIGEST_SUBJECT = "Daily Update: New Good First Issues!"


def snapshot_row(issue: CandidateIssue) -> dict[str, Any]:
    """Row stored in the ``issues`` table for one issue."""
    return {
        "id": issue.issue_id,
        "title": issue.issue_title,
        "url": issue.issue_url,
        "repo": issue.full_name,
        "number": issue.issue_number,
        "created_at": issue.date_created,
    }


@dataclass
class IssueChanges:
    added: list[dict[str, Any]] = field(default_factory=list)
    removed: list[dict[str, Any]] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed)


def detect_changes(
    old_rows: list[dict[str, Any]], new_rows: list[dict[str, Any]]
) -> IssueChanges:
    """Diff two snapshots by issue id, preserving each list's order."""
    old_ids = {row.get("id") for row in old_rows}
    new_ids = {row.get("id") for row in new_rows}
    return IssueChanges(
        added=[row for row in new_rows if row.get("id") not in old_ids],
        removed=[row for row in old_rows if row.get("id") not in new_ids],
    )


def render_digest_html(changes: IssueChanges, site_url: str) -> str:
    parts = ["<h2>New Issue Changes Detected</h2>"]
    if changes.added:
        items = "".join(
            f'<li><a href="{escape(row.get("url", ""))}">{escape(row.get("title", ""))}</a>'
            f" ({escape(row.get('repo', ''))})</li>"
            for row in changes.added
        )
        parts.append(f"<p><strong>New issues added:</strong></p><ul>{items}</ul>")
    if changes.removed:
        items = "".join(
            f"<li>{escape(row.get('title', ''))} ({escape(row.get('repo', ''))})</li>"
            for row in changes.removed
        )
        parts.append(f"<p><strong>Issues removed:</strong></p><ul>{items}</ul>")
    parts.append("<p>You are receiving this because email notifications are enabled.</p>")
    parts.append(
        f'<p><a href="{escape(site_url.rstrip("/"))}/settings">'
        "Manage your notification preferences</a></p>"
    )
    return "".join(parts)


class EmailNotifier:
    """SMTP sender for digest emails."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.smtp_host)

    def _send_sync(self, to: str, subject: str, html: str) -> None:
        sender = self.settings.smtp_from or self.settings.smtp_user or "no-reply@gittogether.dev"
        message = MIMEText(html, "html", "utf-8")
        message["Subject"] = subject
        message["From"] = f'"gitTogether" <{sender}>'
        message["To"] = to

        port = self.settings.smtp_port
        smtp_cls = smtplib.SMTP_SSL if port == 465 else smtplib.SMTP
        with smtp_cls(self.settings.smtp_host, port, timeout=10) as server:
            if port != 465:
                server.starttls()
            if self.settings.smtp_user and self.settings.smtp_password:
                server.login(
                    self.settings.smtp_user, self.settings.smtp_password.get_secret_value()
                )
            server.sendmail(sender, [to], message.as_string())

    async def send(self, to: str, subject: str, html: str) -> None:
        await asyncio.to_thread(self._send_sync, to, subject, html)


@dataclass
class DigestResult:
    added: int = 0
    removed: int = 0
    notified: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "added": self.added,
            "removed": self.removed,
            "notified": self.notified,
            "failed": self.failed,
        }


class IssueDigestService:
    """Snapshot diffing plus opt-in email notification."""

    def __init__(
        self,
        github: GitHubService,
        store: ProfileStore,
        notifier: EmailNotifier,
        settings: Settings | None = None,
    ) -> None:
        self.github = github
        self.store = store
        self.notifier = notifier
        self.settings = settings or get_settings()

    async def run(self) -> DigestResult:
        stored = await self.store.get_stored_issues()
        fresh = [snapshot_row(issue) for issue in await self.github.fetch_candidate_issues()]
        changes = detect_changes(stored, fresh)
        result = DigestResult(added=len(changes.added), removed=len(changes.removed))

        logger.info(
            "issue_digest_diffed",
            stored=len(stored),
            fresh=len(fresh),
            added=result.added,
            removed=result.removed,
        )

        if not changes.has_changes:
            DIGEST_RUNS.labels(outcome="unchanged").inc()
            return result

        await self.store.replace_stored_issues(fresh)

        recipients = await self.store.list_notification_recipients()
        if not recipients:
            logger.info("issue_digest_no_recipients")
        elif not self.notifier.is_configured:
            logger.warning("issue_digest_smtp_not_configured", recipients=len(recipients))
        else:
            html = render_digest_html(changes, self.settings.site_url)
            for recipient in recipients:
                try:
                    await self.notifier.send(recipient["email"], DIGEST_SUBJECT, html)
                except (smtplib.SMTPException, OSError) as exc:
                    result.failed += 1
                    DIGEST_EMAILS_SENT.labels(status="failed").inc()
                    logger.warning("issue_digest_email_failed", error=type(exc).__name__)
                    continue
                result.notified += 1
                DIGEST_EMAILS_SENT.labels(status="sent").inc()

        DIGEST_RUNS.labels(outcome="changed").inc()
        logger.info("issue_digest_finished", **result.to_dict())
        return result
