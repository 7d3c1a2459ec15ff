from __future__ import annotations

import logging

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.errors import GigNotFound, LinkFailure
from onboarding.models.gig import (
    GIG_DRAFT,
    GIG_DRAFT_PROFILE_MISSING,
    GIG_DRAFT_STATUSES,
    GIG_PENDING_REVIEW,
    Gig,
)
from onboarding.models.vendor import Vendor
from onboarding.schemas.gig import GigDraftCreate
from onboarding.services.audit import ActivityLog
from onboarding.services.leads import get_lead_by_token


log = logging.getLogger(__name__)


def ensure_can_leave_draft(gig: Gig, next_status: str, *, vendor_id: str | None = None) -> None:
    # a gig only leaves draft* once it has an owner
    if next_status not in GIG_DRAFT_STATUSES and not (vendor_id or gig.vendor_id):
        raise LinkFailure(
            "Gig has no vendor yet and must stay in draft",
            details=[{"gig_id": gig.id, "status": gig.status, "next_status": next_status}],
        )


async def get_gig(db: AsyncSession, gig_id: str) -> Gig:
    gig = (await db.execute(select(Gig).where(Gig.id == gig_id))).scalar_one_or_none()
    if gig is None:
        raise GigNotFound()
    return gig


async def create_draft_gig(
    db: AsyncSession,
    *,
    data: GigDraftCreate,
    vendor_id: str | None = None,
    actor_id: str | None = None,
) -> Gig:
    gig = Gig(
        **data.model_dump(),
        vendor_id=vendor_id,
        status=GIG_DRAFT if vendor_id else GIG_DRAFT_PROFILE_MISSING,
        wizard_completed=False,
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.add(gig)
    await db.commit()
    await db.refresh(gig)
    return gig


async def link_gig(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    gig_id: str,
    vendor_id: str,
    actor_id: str | None = None,
) -> Gig:
    """
    Attach a draft gig to its (just confirmed) vendor and send it to review.

    An ownerless draft is keyed by the invite token it was created under; only
    the vendor confirmed from that invitation may claim it.

    Raises LinkFailure for every precondition violation. The vendor side is
    never touched here, so a failure cannot undo a confirmation.
    """
    try:
        gig = await get_gig(db, gig_id)
    except GigNotFound as e:
        raise LinkFailure("Gig not found", details=[{"code": e.code, "gig_id": gig_id}]) from e

    vendor = (await db.execute(
        select(Vendor.id, Vendor.source_lead_id).where(Vendor.id == vendor_id)
    )).one_or_none()
    if vendor is None:
        raise LinkFailure("Vendor not found", details=[{"code": "vendor_not_found", "vendor_id": vendor_id}])

    # replayed confirmation: already linked to this vendor
    if gig.status == GIG_PENDING_REVIEW and gig.vendor_id == vendor_id:
        return gig

    if gig.status not in GIG_DRAFT_STATUSES:
        raise LinkFailure(
            f"Gig is {gig.status}; only draft gigs can be linked",
            details=[{"gig_id": gig.id, "status": gig.status}],
        )
    if gig.vendor_id and gig.vendor_id != vendor_id:
        raise LinkFailure("Gig belongs to another vendor", details=[{"gig_id": gig.id}])
    if gig.vendor_id is None:
        if not gig.invite_token:
            raise LinkFailure("Gig is not keyed to an invitation", details=[{"gig_id": gig.id}])
        lead = await get_lead_by_token(db, gig.invite_token)
        if lead is None or lead.id != vendor.source_lead_id:
            raise LinkFailure("Gig was created for a different invitation", details=[{"gig_id": gig.id}])

    ensure_can_leave_draft(gig, GIG_PENDING_REVIEW, vendor_id=vendor_id)

    try:
        result = await db.execute(
            update(Gig)
            .where(
                Gig.id == gig_id,
                Gig.status.in_(GIG_DRAFT_STATUSES),
                or_(Gig.vendor_id.is_(None), Gig.vendor_id == vendor_id),
            )
            .values(
                vendor_id=vendor_id,
                status=GIG_PENDING_REVIEW,
                moderation_status="pending",
                wizard_completed=True,
                updated_by=actor_id,
            )
            .execution_options(synchronize_session=False)
        )
        if (result.rowcount or 0) != 1:
            await db.rollback()
            raise LinkFailure("Gig changed while linking, reload and retry", details=[{"gig_id": gig_id}])
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        log.exception("gig link failed: gig=%s vendor=%s", gig_id, vendor_id)
        raise LinkFailure("Gig could not be saved", details=[{"gig_id": gig_id}]) from e

    await db.refresh(gig)
    await activity.record(
        actor_id=actor_id,
        action="gig_linked",
        target_type="gig",
        target_id=gig.id,
        details={"vendor_id": vendor_id},
    )
    return gig
