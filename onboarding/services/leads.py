from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.errors import InvalidTransition, LeadNotFound, TokenExpired
from onboarding.core.ids import as_utc, utcnow
from onboarding.models.pending_lead import (
    LEAD_CONFIRMED,
    LEAD_DECLINED,
    LEAD_EXPIRED,
    LEAD_INVITED,
    LEAD_PENDING,
    LEAD_STATUSES,
    LEAD_VIEWED,
    OPEN_LEAD_STATUSES,
    PendingLead,
)
from onboarding.schemas.lead import LeadCreate, LeadUpdate
from onboarding.services.audit import ActivityLog
from onboarding.services.notifier import Notification
from onboarding.services.tokens import build_confirmation_link, issue_confirmation_token


log = logging.getLogger(__name__)

TARGET = "pending_lead"

PROFILE_FIELDS = (
    "name",
    "category",
    "city",
    "email",
    "phone",
    "instagram_handle",
    "website",
    "description",
    "image_url",
    "portfolio_urls",
    "price_from",
    "tags",
    "instagram_followers",
)


async def conditional_update(
    db: AsyncSession,
    lead_id: str,
    *,
    from_statuses: Iterable[str],
    **values: Any,
) -> bool:
    """
    Compare-and-swap on ``status``: the UPDATE only applies while the lead is
    still in one of ``from_statuses``. Returns whether this caller won.
    """
    stmt = (
        update(PendingLead)
        .where(PendingLead.id == lead_id, PendingLead.status.in_(tuple(from_statuses)))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return (result.rowcount or 0) == 1


async def transition_status(
    db: AsyncSession,
    lead_id: str,
    *,
    from_statuses: Iterable[str],
    to_status: str,
    **values: Any,
) -> bool:
    return await conditional_update(db, lead_id, from_statuses=from_statuses, status=to_status, **values)


def is_past_expiry(lead: PendingLead, now: datetime) -> bool:
    return as_utc(lead.confirmation_expires_at) <= now


async def get_lead(db: AsyncSession, lead_id: str) -> PendingLead:
    lead = (await db.execute(select(PendingLead).where(PendingLead.id == lead_id))).scalar_one_or_none()
    if lead is None:
        raise LeadNotFound()
    return lead


async def get_lead_by_token(db: AsyncSession, token: str) -> PendingLead | None:
    if not token:
        return None
    stmt = select(PendingLead).where(PendingLead.confirmation_token == token)
    return (await db.execute(stmt)).scalar_one_or_none()


async def expire_lead(
    db: AsyncSession,
    activity: ActivityLog,
    lead: PendingLead,
    *,
    actor_id: str | None = None,
) -> bool:
    """Lazy expiry: flips an open lead to ``expired``. No-op if someone else moved it first."""
    moved = await transition_status(db, lead.id, from_statuses=OPEN_LEAD_STATUSES, to_status=LEAD_EXPIRED)
    await db.commit()
    await db.refresh(lead)
    if moved:
        await activity.record(
            actor_id=actor_id,
            action="lead_expired",
            target_type=TARGET,
            target_id=lead.id,
            details={"expires_at": as_utc(lead.confirmation_expires_at).isoformat()},
        )
    return moved


async def create_lead(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    data: LeadCreate,
    created_by: str | None,
    now: datetime | None = None,
) -> PendingLead:
    issued = issue_confirmation_token(now)
    lead = PendingLead(
        **data.model_dump(),
        confirmation_token=issued.token,
        confirmation_expires_at=issued.expires_at,
        status=LEAD_PENDING,
        outreach_status="pending",
        reminder_count=0,
        created_by=created_by,
        updated_by=created_by,
    )
    db.add(lead)
    await db.commit()
    await db.refresh(lead)

    await activity.record(
        actor_id=created_by,
        action="lead_created",
        target_type=TARGET,
        target_id=lead.id,
        details={"source_type": lead.source_type},
    )
    return lead


async def list_leads(
    db: AsyncSession,
    *,
    status: str | None = None,
    source_type: str | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[PendingLead]:
    stmt = select(PendingLead)
    if status:
        stmt = stmt.where(PendingLead.status == status)
    if source_type:
        stmt = stmt.where(PendingLead.source_type == source_type)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(
            PendingLead.name.ilike(pattern),
            PendingLead.email.ilike(pattern),
            PendingLead.instagram_handle.ilike(pattern),
        ))
    stmt = stmt.order_by(PendingLead.created_at.desc(), PendingLead.id).limit(limit).offset(offset)
    return list((await db.execute(stmt)).scalars().all())


async def update_lead_profile(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    lead_id: str,
    data: LeadUpdate,
    actor_id: str | None,
) -> PendingLead:
    lead = await get_lead(db, lead_id)
    changes = {
        k: v for k, v in data.model_dump(exclude_unset=True).items()
        if v is not None or k not in ("name", "portfolio_urls", "tags")
    }
    if not changes:
        return lead

    # the profile is frozen once the lead reached a terminal state
    moved = await conditional_update(
        db, lead_id, from_statuses=OPEN_LEAD_STATUSES, updated_by=actor_id, **changes
    )
    if not moved:
        await db.rollback()
        await db.refresh(lead)
        raise InvalidTransition(f"Lead is {lead.status}; its profile can no longer be edited")

    await db.commit()
    await db.refresh(lead)
    await activity.record(
        actor_id=actor_id,
        action="lead_updated",
        target_type=TARGET,
        target_id=lead.id,
        details={"fields": sorted(changes)},
    )
    return lead


@dataclass(frozen=True)
class InvitationResult:
    lead: PendingLead
    link: str
    reminder: bool
    notification: Notification | None


async def send_invitation(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    lead_id: str,
    method: str,
    gig_id: str | None = None,
    actor_id: str | None = None,
    now: datetime | None = None,
) -> InvitationResult:
    """
    pending -> invited. Invited/viewed leads get a reminder instead (status kept,
    reminder_count bumped). The caller dispatches ``notification`` fire-and-forget.
    """
    now = now or utcnow()
    lead = await get_lead(db, lead_id)

    if lead.status in OPEN_LEAD_STATUSES and is_past_expiry(lead, now):
        await expire_lead(db, activity, lead, actor_id=actor_id)
        raise TokenExpired("Confirmation token expired; re-invite the lead instead")

    if lead.status == LEAD_PENDING:
        reminder = False
        moved = await transition_status(
            db, lead.id,
            from_statuses=(LEAD_PENDING,),
            to_status=LEAD_INVITED,
            invitation_sent_at=now,
            invitation_method=method,
            updated_by=actor_id,
        )
    elif lead.status in (LEAD_INVITED, LEAD_VIEWED):
        reminder = True
        moved = await conditional_update(
            db, lead.id,
            from_statuses=(LEAD_INVITED, LEAD_VIEWED),
            reminder_count=PendingLead.reminder_count + 1,
            last_reminder_at=now,
            invitation_method=method,
            updated_by=actor_id,
        )
    else:
        raise InvalidTransition(f"Cannot invite a {lead.status} lead")

    if not moved:
        await db.rollback()
        raise InvalidTransition("Lead changed state while sending the invitation, reload and retry")

    await db.commit()
    await db.refresh(lead)

    link = build_confirmation_link(lead.confirmation_token, gig_id)
    await activity.record(
        actor_id=actor_id,
        action="lead_reminded" if reminder else "lead_invited",
        target_type=TARGET,
        target_id=lead.id,
        details={"method": method, "reminder_count": lead.reminder_count},
    )

    notification = None
    if method == "email" and lead.email:
        notification = Notification(kind="invite", to=lead.email, name=lead.name or "Vendor", link=link)

    return InvitationResult(lead=lead, link=link, reminder=reminder, notification=notification)


async def reinvite_lead(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    lead_id: str,
    actor_id: str | None = None,
    now: datetime | None = None,
) -> PendingLead:
    """
    Declined and expired leads stay terminal; re-inviting copies the profile
    into a brand new pending lead with its own token.
    """
    now = now or utcnow()
    old = await get_lead(db, lead_id)

    if old.status in OPEN_LEAD_STATUSES and is_past_expiry(old, now):
        await expire_lead(db, activity, old, actor_id=actor_id)

    if old.status not in (LEAD_DECLINED, LEAD_EXPIRED):
        raise InvalidTransition(f"Only declined or expired leads can be re-invited (lead is {old.status})")

    issued = issue_confirmation_token(now)
    lead = PendingLead(
        **{f: getattr(old, f) for f in PROFILE_FIELDS},
        source_type=old.source_type,
        source_url=old.source_url,
        source_data=dict(old.source_data or {}),
        admin_notes=old.admin_notes,
        confirmation_token=issued.token,
        confirmation_expires_at=issued.expires_at,
        status=LEAD_PENDING,
        outreach_status="pending",
        reminder_count=0,
        reinvited_from_id=old.id,
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.add(lead)
    await db.commit()
    await db.refresh(lead)

    await activity.record(
        actor_id=actor_id,
        action="lead_reinvited",
        target_type=TARGET,
        target_id=lead.id,
        details={"reinvited_from_id": old.id, "previous_status": old.status},
    )
    return lead


async def set_outreach_status(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    lead_id: str,
    outreach_status: str,
    actor_id: str | None = None,
) -> PendingLead:
    # campaign bookkeeping only; never touches the confirmation status
    lead = await get_lead(db, lead_id)
    previous = lead.outreach_status
    lead.outreach_status = outreach_status
    lead.updated_by = actor_id
    await db.commit()
    await db.refresh(lead)

    await activity.record(
        actor_id=actor_id,
        action="lead_outreach_updated",
        target_type=TARGET,
        target_id=lead.id,
        details={"outreach_status": outreach_status, "previous": previous},
    )
    return lead


async def purge_lead(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    lead_id: str,
    actor_id: str | None,
) -> None:
    lead = await get_lead(db, lead_id)
    snapshot = {"name": lead.name, "status": lead.status, "converted_vendor_id": lead.converted_vendor_id}

    await db.execute(delete(PendingLead).where(PendingLead.id == lead.id))
    await db.commit()

    await activity.record(
        actor_id=actor_id,
        action="lead_purged",
        target_type=TARGET,
        target_id=lead_id,
        details=snapshot,
    )


async def expire_stale_leads(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    now: datetime | None = None,
    batch_size: int = 500,
) -> list[str]:
    """Optional sweep; confirmation correctness never depends on it running."""
    now = now or utcnow()
    stmt = (
        select(PendingLead.id)
        .where(
            PendingLead.status.in_(OPEN_LEAD_STATUSES),
            PendingLead.confirmation_expires_at <= now,
        )
        .order_by(PendingLead.confirmation_expires_at.asc())
        .limit(batch_size)
    )
    candidates = (await db.execute(stmt)).scalars().all()

    expired: list[str] = []
    for lead_id in candidates:
        if await transition_status(db, lead_id, from_statuses=OPEN_LEAD_STATUSES, to_status=LEAD_EXPIRED):
            expired.append(lead_id)
    await db.commit()

    for lead_id in expired:
        await activity.record(actor_id=None, action="lead_expired", target_type=TARGET, target_id=lead_id,
                              details={"via": "sweep"})

    if expired:
        log.info("expiry sweep: expired %d leads", len(expired))
    return expired


async def lead_stats(db: AsyncSession, *, now: datetime | None = None) -> dict[str, Any]:
    now = now or utcnow()
    start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    rows = (await db.execute(
        select(PendingLead.status, func.count()).group_by(PendingLead.status)
    )).all()
    by_status = {s: 0 for s in LEAD_STATUSES}
    for status, count in rows:
        by_status[status] = int(count)

    confirmed_this_month = (await db.execute(
        select(func.count()).select_from(PendingLead).where(
            PendingLead.status == LEAD_CONFIRMED,
            PendingLead.updated_at >= start_of_month,
        )
    )).scalar_one()

    return {
        "by_status": by_status,
        "total": sum(by_status.values()),
        "confirmed_this_month": int(confirmed_this_month),
    }
