from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Literal, Protocol

import httpx

from onboarding.core.config import settings
from onboarding.core.telemetry import report_exception
from onboarding.services.retry import is_retryable_status


log = logging.getLogger(__name__)

NotificationKind = Literal["invite", "magic_link"]


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    to: str
    name: str
    link: str

    def to_payload(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Notification":
        return cls(kind=payload["kind"], to=payload["to"], name=payload["name"], link=payload["link"])


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...


def render_email(notification: Notification) -> tuple[str, str]:
    """Returns (subject, html)."""
    if notification.kind == "invite":
        subject = f"{notification.name}, your Talentr profile is ready to claim"
        html = (
            f"<p>Hi {notification.name},</p>"
            "<p>We prepared a vendor profile for you on Talentr. "
            "Review it and confirm to start receiving bookings:</p>"
            f'<p><a href="{notification.link}">Confirm my profile</a></p>'
        )
        return subject, html

    subject = "Your Talentr dashboard link"
    html = (
        f"<p>Hi {notification.name},</p>"
        "<p>Use this private link to manage your vendor profile. Do not share it.</p>"
        f'<p><a href="{notification.link}">Open my dashboard</a></p>'
    )
    return subject, html


@dataclass(frozen=True)
class SendResult:
    ok: bool
    status_code: int | None
    retryable: bool = False
    error: str | None = None


def _cap_text(s: str, *, max_chars: int = 500) -> str:
    if len(s) <= max_chars:
        return s
    return s[:max_chars] + f"...(truncated, {len(s)} chars)"


class EmailSender:
    """
    Thin client for the transactional email HTTP API.

    - One AsyncClient per sender (connection pooling), bounded timeout.
    - Does NOT retry; the Celery task owns backoff.
    - Returns a structured result with retryable classification.
    """

    def __init__(self, *, timeout_seconds: float | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds or settings.notification_timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(self, notification: Notification) -> SendResult:
        subject, html = render_email(notification)
        body = {"from": settings.email_from, "to": [notification.to], "subject": subject, "html": html}
        headers = {"Authorization": f"Bearer {settings.email_api_key.get_secret_value()}"}

        try:
            resp = await self._client.post(settings.email_api_url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            return SendResult(ok=False, status_code=None, retryable=True, error=f"timeout: {e}")
        except httpx.TransportError as e:
            return SendResult(ok=False, status_code=None, retryable=True, error=f"transport: {e}")

        if 200 <= resp.status_code < 300:
            return SendResult(ok=True, status_code=resp.status_code)

        retryable = is_retryable_status(resp.status_code)
        return SendResult(
            ok=False,
            status_code=resp.status_code,
            retryable=retryable,
            error=_cap_text(resp.text),
        )


class CeleryNotifier:
    """Fire-and-forget: hands the notification to the worker, never raises."""

    def notify(self, notification: Notification) -> None:
        # imported lazily so the API process does not need the worker package at import time
        from worker.celery_app import celery

        try:
            celery.send_task(
                "worker.tasks.send_notification",
                args=[notification.to_payload()],
                queue="notifications",
                retry=False,
            )
        except Exception as e:
            log.exception("notification enqueue failed: kind=%s", notification.kind)
            report_exception(e, kind=notification.kind)


def get_notifier() -> Notifier:
    return CeleryNotifier()
