"""
Confirmation engine: turns a pending lead into a vendor.

    pending  --invite-->  invited  --open link-->  viewed
    pending|invited|viewed --token past expiry--> expired
    pending|invited|viewed --submit profile-->    confirmed (vendor created)
    pending|invited|viewed --decline-->           declined

Every lifecycle change goes through ``leads.transition_status`` (a
compare-and-swap on ``status``). Per-lead mutual exclusion for confirmation is
the unique ``vendors.source_lead_id`` constraint: vendor insert and the lead
CAS share one transaction, so a concurrent loser either sees ``confirmed`` or
hits the unique violation and replays the winner's result.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.config import settings
from onboarding.core.errors import (
    AlreadyConfirmed,
    AlreadyDeclined,
    InvalidToken,
    LinkFailure,
    PersistenceFailure,
    TokenExpired,
)
from onboarding.core.ids import utcnow
from onboarding.models.pending_lead import (
    LEAD_CONFIRMED,
    LEAD_DECLINED,
    LEAD_EXPIRED,
    LEAD_INVITED,
    LEAD_PENDING,
    LEAD_VIEWED,
    OPEN_LEAD_STATUSES,
    PendingLead,
)
from onboarding.models.vendor import Vendor
from onboarding.schemas.confirmation import ProfileOverrides
from onboarding.services.audit import ActivityLog
from onboarding.services.credentials import attach_credential, issue_edit_credential, reveal_edit_token
from onboarding.services.gigs import link_gig
from onboarding.services.leads import (
    TARGET,
    expire_lead,
    get_lead,
    get_lead_by_token,
    is_past_expiry,
    transition_status,
)
from onboarding.services.notifier import Notification
from onboarding.services.tokens import build_edit_link


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfirmationResult:
    lead_id: str
    vendor_id: str
    edit_token: str
    replayed: bool
    vendor_name: str
    vendor_email: str | None = None


@dataclass
class OnboardingResult:
    confirmation: ConfirmationResult
    gig_linked: bool = False
    warnings: list[dict[str, Any]] = field(default_factory=list)
    notification: Notification | None = None


def _pick(*candidates: Any, default: Any = None) -> Any:
    for value in candidates:
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return default


def _clean_strings(values: Any) -> list[str]:
    if not isinstance(values, list):
        return []
    return [v for v in values if isinstance(v, str) and v]


def merge_profile(lead: PendingLead, overrides: ProfileOverrides) -> dict[str, Any]:
    """Overrides win field by field; blanks fall back to the lead, then to defaults."""
    email = _pick(overrides.email, lead.email)
    portfolio = overrides.portfolio_gallery if overrides.portfolio_gallery is not None else lead.portfolio_urls
    tags = overrides.tags if overrides.tags is not None else lead.tags

    return {
        "name": _pick(overrides.name, lead.name, default="Unknown Vendor"),
        "category": _pick(overrides.category, lead.category, default=settings.default_vendor_category),
        "city": _pick(overrides.city, lead.city, default=settings.default_vendor_city),
        "description": _pick(overrides.description, lead.description, default=""),
        "image_url": _pick(overrides.image_url, lead.image_url),
        "phone": _pick(overrides.phone, lead.phone),
        "email": email.strip().lower() if email else None,
        "instagram_handle": _pick(overrides.instagram_handle, lead.instagram_handle),
        "website": _pick(overrides.website, lead.website),
        "price_from": float(_pick(overrides.price_from, lead.price_from, default=0)),
        "portfolio_gallery": _clean_strings(portfolio),
        "tags": _clean_strings(tags),
    }


async def _vendor_for_lead(db: AsyncSession, lead_id: str) -> Vendor | None:
    return (await db.execute(select(Vendor).where(Vendor.source_lead_id == lead_id))).scalar_one_or_none()


async def resolve_token(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    token: str,
    now: datetime | None = None,
) -> PendingLead:
    """
    Look up the lead behind a confirmation link.

    First successful resolution advances pending/invited to viewed. Confirmed
    leads are returned untouched, declined ones too until their link expires.
    An open lead past its expiry is flipped to expired and rejected.
    """
    now = now or utcnow()
    lead = await get_lead_by_token(db, token)
    if lead is None:
        raise InvalidToken()

    if lead.status == LEAD_CONFIRMED:
        return lead
    if lead.status == LEAD_EXPIRED:
        raise TokenExpired()
    if is_past_expiry(lead, now):
        if lead.status in OPEN_LEAD_STATUSES:
            await expire_lead(db, activity, lead)
        if lead.status != LEAD_CONFIRMED:
            raise TokenExpired()
        return lead
    if lead.status == LEAD_DECLINED:
        return lead

    if lead.status in (LEAD_PENDING, LEAD_INVITED):
        previous = lead.status
        moved = await transition_status(
            db, lead.id, from_statuses=(LEAD_PENDING, LEAD_INVITED), to_status=LEAD_VIEWED
        )
        await db.commit()
        await db.refresh(lead)
        if moved:
            await activity.record(
                actor_id=None,
                action="lead_viewed",
                target_type=TARGET,
                target_id=lead.id,
                details={"from": previous},
            )
    return lead


async def _replay(db: AsyncSession, lead: PendingLead) -> ConfirmationResult:
    vendor = None
    if lead.converted_vendor_id:
        vendor = (await db.execute(select(Vendor).where(Vendor.id == lead.converted_vendor_id))).scalar_one_or_none()
    if vendor is None:
        vendor = await _vendor_for_lead(db, lead.id)
    if vendor is None:
        # confirmed, but an admin has since removed the vendor
        raise AlreadyConfirmed("This profile was confirmed but the vendor no longer exists")

    return ConfirmationResult(
        lead_id=lead.id,
        vendor_id=vendor.id,
        edit_token=reveal_edit_token(vendor),
        replayed=True,
        vendor_name=vendor.name,
        vendor_email=vendor.email,
    )


async def _repair(
    db: AsyncSession,
    activity: ActivityLog,
    lead: PendingLead,
    vendor: Vendor,
) -> ConfirmationResult:
    """A vendor exists for this lead but the lead never got marked; finish the job instead of re-creating."""
    previous = lead.status
    moved = await transition_status(
        db, lead.id,
        from_statuses=OPEN_LEAD_STATUSES + (LEAD_EXPIRED,),
        to_status=LEAD_CONFIRMED,
        converted_vendor_id=vendor.id,
    )
    await db.commit()
    await db.refresh(lead)

    if moved:
        log.warning("repaired orphaned confirmation: lead=%s vendor=%s", lead.id, vendor.id)
        await activity.record(
            actor_id=None,
            action="vendor_confirmation_repaired",
            target_type=TARGET,
            target_id=lead.id,
            details={"vendor_id": vendor.id, "previous_status": previous},
        )
    elif lead.status == LEAD_DECLINED:
        raise AlreadyDeclined()

    return await _replay(db, lead)


async def _converge(db: AsyncSession, activity: ActivityLog, token: str) -> ConfirmationResult:
    """Called after losing a race: whatever the winner left behind is the answer."""
    lead = await get_lead_by_token(db, token)
    if lead is None:
        raise InvalidToken()
    if lead.status == LEAD_CONFIRMED:
        return await _replay(db, lead)

    vendor = await _vendor_for_lead(db, lead.id)
    if vendor is not None:
        return await _repair(db, activity, lead, vendor)
    if lead.status == LEAD_DECLINED:
        raise AlreadyDeclined()
    if lead.status == LEAD_EXPIRED:
        raise TokenExpired()
    raise PersistenceFailure("Confirmation is still in progress, please retry")


async def _provision(
    db: AsyncSession,
    activity: ActivityLog,
    lead: PendingLead,
    *,
    token: str,
    overrides: ProfileOverrides,
    user_id: str | None,
) -> ConfirmationResult:
    lead_id = lead.id
    credential = issue_edit_credential()
    vendor = Vendor(
        **merge_profile(lead, overrides),
        user_id=user_id,
        source_lead_id=lead_id,
        is_active=True,
        is_verified=False,
        is_archived=False,
        created_by=user_id or "system",
        updated_by=user_id or "system",
    )
    attach_credential(vendor, credential)
    db.add(vendor)

    try:
        await db.flush()
    except IntegrityError:
        # another confirm for this lead inserted its vendor first
        await db.rollback()
        log.info("concurrent confirmation lost: lead=%s", lead_id)
        return await _converge(db, activity, token)

    moved = await transition_status(
        db, lead_id,
        from_statuses=OPEN_LEAD_STATUSES,
        to_status=LEAD_CONFIRMED,
        converted_vendor_id=vendor.id,
        updated_by=user_id or "system",
    )
    if not moved:
        await db.rollback()
        return await _converge(db, activity, token)

    vendor_id, vendor_name, vendor_email = vendor.id, vendor.name, vendor.email
    await db.commit()

    await activity.record(
        actor_id=None,
        action="vendor_confirmed",
        target_type=TARGET,
        target_id=lead_id,
        details={"vendor_id": vendor_id, "user_id": user_id},
    )
    return ConfirmationResult(
        lead_id=lead_id,
        vendor_id=vendor_id,
        edit_token=credential.plain,
        replayed=False,
        vendor_name=vendor_name,
        vendor_email=vendor_email,
    )


async def _confirm(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    token: str,
    overrides: ProfileOverrides,
    now: datetime,
    user_id: str | None,
) -> ConfirmationResult:
    lead = await get_lead_by_token(db, token)
    if lead is None:
        raise InvalidToken()

    # idempotent re-confirmation: same vendor, same edit token, overrides ignored
    if lead.status == LEAD_CONFIRMED:
        return await _replay(db, lead)

    orphan = await _vendor_for_lead(db, lead.id)
    if orphan is not None:
        return await _repair(db, activity, lead, orphan)

    if lead.status == LEAD_EXPIRED:
        raise TokenExpired()
    if is_past_expiry(lead, now):
        if lead.status in OPEN_LEAD_STATUSES:
            await expire_lead(db, activity, lead)
        if lead.status == LEAD_CONFIRMED:
            return await _replay(db, lead)
        raise TokenExpired()
    if lead.status == LEAD_DECLINED:
        raise AlreadyDeclined()

    return await _provision(db, activity, lead, token=token, overrides=overrides, user_id=user_id)


async def confirm(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    token: str,
    overrides: ProfileOverrides | dict[str, Any] | None = None,
    now: datetime | None = None,
    user_id: str | None = None,
) -> ConfirmationResult:
    """
    Provision the vendor for a confirmation token.

    Safe to call any number of times, sequentially or concurrently: every call
    for the same lead yields the same (vendor_id, edit_token).
    """
    if not isinstance(overrides, ProfileOverrides):
        overrides = ProfileOverrides.model_validate(overrides or {})

    try:
        return await _confirm(db, activity, token=token, overrides=overrides, now=now or utcnow(), user_id=user_id)
    except (OperationalError, InterfaceError) as e:
        await db.rollback()
        log.exception("confirmation hit a storage failure")
        raise PersistenceFailure() from e


async def _decline(
    db: AsyncSession,
    activity: ActivityLog,
    lead: PendingLead,
    *,
    reason: str | None,
    actor_id: str | None,
    declined_by: str,
) -> PendingLead:
    if lead.status == LEAD_DECLINED:
        return lead
    if lead.status == LEAD_CONFIRMED:
        raise AlreadyConfirmed()
    if lead.status == LEAD_EXPIRED:
        raise TokenExpired()

    note = f"Declined: {reason}" if reason else f"Declined by {declined_by}"
    if lead.admin_notes:
        note = f"{lead.admin_notes}\n{note}"

    moved = await transition_status(
        db, lead.id,
        from_statuses=OPEN_LEAD_STATUSES,
        to_status=LEAD_DECLINED,
        admin_notes=note,
        updated_by=actor_id,
    )
    await db.commit()
    await db.refresh(lead)

    if not moved:
        # lost to a concurrent transition; lead is terminal now
        return await _decline(db, activity, lead, reason=reason, actor_id=actor_id, declined_by=declined_by)

    await activity.record(
        actor_id=actor_id,
        action="lead_declined",
        target_type=TARGET,
        target_id=lead.id,
        details={"reason": reason, "declined_by": declined_by},
    )
    return lead


async def decline(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    token: str,
    reason: str | None = None,
    now: datetime | None = None,
) -> PendingLead:
    """Recipient declines through the link. Declining twice is a no-op."""
    lead = await get_lead_by_token(db, token)
    if lead is None:
        raise InvalidToken()

    if lead.status in OPEN_LEAD_STATUSES and is_past_expiry(lead, now or utcnow()):
        await expire_lead(db, activity, lead)

    return await _decline(db, activity, lead, reason=reason, actor_id=None, declined_by="vendor")


async def decline_lead(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    lead_id: str,
    reason: str | None = None,
    actor_id: str | None = None,
) -> PendingLead:
    lead = await get_lead(db, lead_id)
    return await _decline(db, activity, lead, reason=reason, actor_id=actor_id, declined_by="admin")


async def complete_onboarding(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    token: str,
    overrides: ProfileOverrides | dict[str, Any] | None = None,
    gig_id: str | None = None,
    now: datetime | None = None,
    user_id: str | None = None,
) -> OnboardingResult:
    """
    Confirm, then link the draft gig carried through the wizard.
    A link failure is reported as a warning; the confirmation stands.
    """
    confirmation = await confirm(db, activity, token=token, overrides=overrides, now=now, user_id=user_id)
    result = OnboardingResult(confirmation=confirmation)

    if gig_id:
        try:
            await link_gig(db, activity, gig_id=gig_id, vendor_id=confirmation.vendor_id)
            result.gig_linked = True
        except LinkFailure as e:
            log.warning("gig link failed after confirmation: gig=%s vendor=%s: %s",
                        gig_id, confirmation.vendor_id, e.message)
            result.warnings.append({"code": e.code, "message": e.message, "details": e.details})
        except SQLAlchemyError:
            await db.rollback()
            log.exception("gig link failed after confirmation: gig=%s", gig_id)
            result.warnings.append({"code": LinkFailure.code, "message": LinkFailure.default_message, "details": []})

    if not confirmation.replayed and confirmation.vendor_email:
        result.notification = Notification(
            kind="magic_link",
            to=confirmation.vendor_email,
            name=confirmation.vendor_name,
            link=build_edit_link(confirmation.edit_token),
        )
    return result
