from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from onboarding.core.db import SessionLocal
from onboarding.core.telemetry import report_exception
from onboarding.models.audit_log import AuditLog


log = logging.getLogger(__name__)


class ActivityLog:
    """
    Append-only trail of lead/vendor/gig transitions.

    Entries are written in their own session *after* the recorded operation has
    committed, so a failing audit write can never block or roll it back. Write
    failures go to the log and the current trace span, not to the caller.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def record(
        self,
        *,
        actor_id: str | None,
        action: str,
        target_type: str | None = None,
        target_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> bool:
        try:
            async with self._session_factory() as db:
                db.add(AuditLog(
                    actor_id=actor_id,
                    action=action,
                    target_type=target_type,
                    target_id=target_id,
                    details=details or {},
                ))
                await db.commit()
        except SQLAlchemyError as e:
            log.exception("audit write failed: action=%s target=%s:%s", action, target_type, target_id)
            report_exception(e, action=action, target_id=target_id or "")
            return False
        return True


def get_activity_log() -> ActivityLog:
    return ActivityLog(SessionLocal)
