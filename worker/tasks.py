import asyncio
import logging

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from worker.celery_app import celery
from onboarding.core.config import settings
import onboarding.models  # noqa: F401  # ensures Models are registered
from onboarding.services.audit import ActivityLog
from onboarding.services.leads import expire_stale_leads as expire_stale_leads_service
from onboarding.services.notifier import EmailSender, Notification, SendResult
from onboarding.services.retry import compute_backoff_seconds


log = logging.getLogger(__name__)


async def _send_notification(payload: dict) -> SendResult:
    sender = EmailSender()
    try:
        return await sender.send(Notification.from_payload(payload))
    finally:
        await sender.aclose()


@celery.task(name="worker.tasks.send_notification", bind=True, max_retries=5)
def send_notification(self, payload: dict) -> dict:
    result = asyncio.run(_send_notification(payload))
    if result.ok:
        return {"ok": True, "status_code": result.status_code}

    log.warning("notification failed: kind=%s status=%s error=%s", payload.get("kind"), result.status_code, result.error)
    if result.retryable and self.request.retries < self.max_retries:
        raise self.retry(countdown=compute_backoff_seconds(self.request.retries + 1))
    # permanent failure: logged, never surfaced to the flow that triggered it
    return {"ok": False, "status_code": result.status_code, "error": result.error}


async def _expire_stale_leads() -> list[str]:
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    try:
        async with Session() as db:
            return await expire_stale_leads_service(
                db, ActivityLog(Session), batch_size=settings.sweep_batch_size
            )
    finally:
        await engine.dispose()


@celery.task(name="worker.tasks.expire_stale_leads")
def expire_stale_leads() -> int:
    return len(asyncio.run(_expire_stale_leads()))
