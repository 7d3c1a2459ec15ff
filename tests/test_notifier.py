import json

import httpx
import pytest

from onboarding.services.notifier import CeleryNotifier, EmailSender, Notification, render_email


def _notification(kind="invite") -> Notification:
    return Notification(kind=kind, to="dana@example.com", name="Dana", link="https://talentr.co.il/x")


def test_payload_round_trip_and_rendering():
    n = _notification()
    assert Notification.from_payload(n.to_payload()) == n

    subject, html = render_email(n)
    assert "Dana" in subject
    assert n.link in html

    subject, html = render_email(_notification("magic_link"))
    assert "dashboard" in subject
    assert "https://talentr.co.il/x" in html


@pytest.mark.asyncio
async def test_email_sender_classifies_responses():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        to = json.loads(request.content)["to"][0]
        status = {"ok@example.com": 200, "busy@example.com": 503, "bad@example.com": 422}[to]
        return httpx.Response(status, json={"id": "em_1"})

    sender = EmailSender(transport=httpx.MockTransport(handler))
    try:
        ok = await sender.send(Notification(kind="invite", to="ok@example.com", name="A", link="l"))
        busy = await sender.send(Notification(kind="invite", to="busy@example.com", name="A", link="l"))
        bad = await sender.send(Notification(kind="invite", to="bad@example.com", name="A", link="l"))
    finally:
        await sender.aclose()

    assert ok.ok is True and ok.status_code == 200
    assert busy.ok is False and busy.retryable is True
    assert bad.ok is False and bad.retryable is False
    assert seen[0].headers["Authorization"].startswith("Bearer ")


@pytest.mark.asyncio
async def test_email_sender_timeout_is_retryable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("slow", request=request)

    sender = EmailSender(transport=httpx.MockTransport(handler))
    try:
        result = await sender.send(_notification())
    finally:
        await sender.aclose()

    assert result.ok is False
    assert result.retryable is True
    assert result.status_code is None


def test_celery_notifier_never_raises(monkeypatch, caplog):
    from worker.celery_app import celery

    def boom(*args, **kwargs):
        raise ConnectionError("broker down")

    monkeypatch.setattr(celery, "send_task", boom)
    CeleryNotifier().notify(_notification())
    assert "notification enqueue failed" in caplog.text


def test_celery_notifier_enqueues_payload(monkeypatch):
    from worker.celery_app import celery

    calls = []
    monkeypatch.setattr(celery, "send_task", lambda name, **kwargs: calls.append((name, kwargs)))
    CeleryNotifier().notify(_notification())

    assert calls == [(
        "worker.tasks.send_notification",
        {"args": [_notification().to_payload()], "queue": "notifications", "retry": False},
    )]
