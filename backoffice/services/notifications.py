"""Outbound notifications: transactional email over the Resend HTTP API.

Delivery is fire-and-forget: callers dispatch after their transaction has
committed and never see the outcome. Failures are logged, not retried.
"""

from __future__ import annotations

import asyncio
import html
import logging
from enum import StrEnum
from functools import lru_cache
from typing import Protocol

import httpx

from backoffice.core.config import get_settings

logger = logging.getLogger(__name__)

PRODUCT_NAME = "Back Office"


class NotificationKind(StrEnum):
    FIRST_ACCESS = "first_access"
    PASSWORD_RESET = "password_reset"


class NotificationError(Exception):
    """The provider rejected or could not accept a message."""


class NotificationSender(Protocol):
    async def send(self, kind: NotificationKind, recipient: str, data: dict) -> None: ...


# ── Templates ─────────────────────────────────────────────────

def _duration(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return "1 hour" if hours == 1 else f"{hours} hours"
    return "1 minute" if minutes == 1 else f"{minutes} minutes"


def render(kind: NotificationKind, data: dict) -> tuple[str, str, str]:
    """Return (subject, html, text) for a notification."""
    link = data["link"]
    safe_link = html.escape(link, quote=True)

    if kind == NotificationKind.FIRST_ACCESS:
        name = data.get("name", "")
        days = data.get("expires_days", 7)
        subject = f"Welcome to {PRODUCT_NAME}: access your account"
        body_html = (
            f"<p>Hello, <strong>{html.escape(name)}</strong>!</p>"
            f"<p>Your {PRODUCT_NAME} account has been created. Use the link below "
            "to set your password and sign in.</p>"
            f'<p><a href="{safe_link}">Access {PRODUCT_NAME}</a></p>'
            f"<p>The link expires in <strong>{days} days</strong>. If you did not "
            "expect this email, contact your administrator.</p>"
        )
        body_text = (
            f"Hello, {name}!\n\nYour {PRODUCT_NAME} account has been created.\n\n"
            f"Set your password here (expires in {days} days):\n{link}\n\n"
            "If you did not expect this email, contact your administrator."
        )
        return subject, body_html, body_text

    if kind == NotificationKind.PASSWORD_RESET:
        expires = _duration(data.get("expires_minutes", 60))
        subject = f"{PRODUCT_NAME} password reset"
        body_html = (
            "<p>You asked to reset your password.</p>"
            "<p>Use the link below to choose a new one. It expires in "
            f"<strong>{expires}</strong>.</p>"
            f'<p><a href="{safe_link}">{safe_link}</a></p>'
            "<p>If you did not ask for this, ignore this email.</p>"
        )
        body_text = (
            "You asked to reset your password.\n\n"
            f"Choose a new one here (expires in {expires}):\n{link}\n\n"
            "If you did not ask for this, ignore this email."
        )
        return subject, body_html, body_text

    raise ValueError(f"Unknown notification kind: {kind}")


# ── Resend sender ─────────────────────────────────────────────

class ResendSender:
    def __init__(self, api_key: str, sender: str, api_url: str) -> None:
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url

    async def send(self, kind: NotificationKind, recipient: str, data: dict) -> None:
        if not self.api_key or not self.sender:
            raise RuntimeError("RESEND_API_KEY / MAILER_FROM are not configured")

        subject, body_html, body_text = render(kind, data)
        async with httpx.AsyncClient(timeout=10) as client:
            resp = await client.post(
                self.api_url,
                json={
                    "from": self.sender,
                    "to": [recipient],
                    "subject": subject,
                    "html": body_html,
                    "text": body_text,
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        if not resp.is_success:
            raise NotificationError(
                f"Resend returned {resp.status_code} for {kind} email"
            )
        logger.info("%s email sent to %s", kind, recipient)


# ── Dispatcher ────────────────────────────────────────────────

class Notifier:
    """Spawns one delivery task per notification and forgets about it.

    Strong references to in-flight tasks are kept so they are not garbage
    collected mid-flight; :meth:`drain` awaits them (shutdown, tests).
    """

    def __init__(self, sender: NotificationSender) -> None:
        self.sender = sender
        self._pending: set[asyncio.Task] = set()

    def dispatch(self, kind: NotificationKind, recipient: str, data: dict) -> asyncio.Task:
        task = asyncio.create_task(self._deliver(kind, recipient, data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, kind: NotificationKind, recipient: str, data: dict) -> None:
        try:
            await self.sender.send(kind, recipient, data)
        except Exception:
            logger.exception("Failed to send %s email to %s", kind, recipient)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending))


@lru_cache
def get_notifier() -> Notifier:
    """FastAPI dependency: process-wide notifier backed by Resend."""
    settings = get_settings()
    return Notifier(
        ResendSender(
            api_key=settings.resend_api_key,
            sender=settings.mailer_from,
            api_url=settings.resend_api_url,
        )
    )
