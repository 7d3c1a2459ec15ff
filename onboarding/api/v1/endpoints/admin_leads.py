from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.db import get_db
from onboarding.schemas.lead import (
    DeclineRequest,
    InvitationOut,
    InvitationRequest,
    LeadCreate,
    LeadCreatedOut,
    LeadOut,
    LeadStatsOut,
    LeadUpdate,
    OutreachUpdate,
)
from onboarding.services import leads as lead_store
from onboarding.services.audit import ActivityLog, get_activity_log
from onboarding.services.confirmation import decline_lead
from onboarding.services.internal_admin import get_admin_id, require_internal_admin
from onboarding.services.notifier import Notifier, get_notifier
from onboarding.services.tokens import build_confirmation_link

router = APIRouter(prefix="/admin", dependencies=[Depends(require_internal_admin)])


@router.post("/leads", response_model=LeadCreatedOut, status_code=201)
async def create_pending_lead(
    payload: LeadCreate,
    admin_id: str = Depends(get_admin_id),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLog = Depends(get_activity_log),
) -> LeadCreatedOut:
    lead = await lead_store.create_lead(db, activity, data=payload, created_by=admin_id)
    return LeadCreatedOut(
        lead=LeadOut.model_validate(lead),
        confirm_link=build_confirmation_link(lead.confirmation_token),
    )


@router.get("/leads", response_model=list[LeadOut])
async def list_pending_leads(
    status: str | None = Query(default=None),
    source: str | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> list[LeadOut]:
    rows = await lead_store.list_leads(
        db, status=status, source_type=source, search=search, limit=limit, offset=offset
    )
    return [LeadOut.model_validate(r) for r in rows]


@router.get("/leads/stats", response_model=LeadStatsOut)
async def pending_lead_stats(db: AsyncSession = Depends(get_db)) -> LeadStatsOut:
    return LeadStatsOut(**await lead_store.lead_stats(db))


@router.get("/leads/{lead_id}", response_model=LeadOut)
async def read_pending_lead(lead_id: str, db: AsyncSession = Depends(get_db)) -> LeadOut:
    return LeadOut.model_validate(await lead_store.get_lead(db, lead_id))


@router.patch("/leads/{lead_id}", response_model=LeadOut)
async def update_pending_lead(
    lead_id: str,
    payload: LeadUpdate,
    admin_id: str = Depends(get_admin_id),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLog = Depends(get_activity_log),
) -> LeadOut:
    lead = await lead_store.update_lead_profile(db, activity, lead_id=lead_id, data=payload, actor_id=admin_id)
    return LeadOut.model_validate(lead)


@router.delete("/leads/{lead_id}")
async def purge_pending_lead(
    lead_id: str,
    admin_id: str = Depends(get_admin_id),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLog = Depends(get_activity_log),
) -> dict:
    await lead_store.purge_lead(db, activity, lead_id=lead_id, actor_id=admin_id)
    return {"status": "purged", "lead_id": lead_id}


@router.post("/leads/{lead_id}/invite", response_model=InvitationOut)
async def invite_pending_lead(
    lead_id: str,
    payload: InvitationRequest,
    background_tasks: BackgroundTasks,
    admin_id: str = Depends(get_admin_id),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLog = Depends(get_activity_log),
    notifier: Notifier = Depends(get_notifier),
) -> InvitationOut:
    result = await lead_store.send_invitation(
        db, activity, lead_id=lead_id, method=payload.method, gig_id=payload.gig_id, actor_id=admin_id
    )
    if result.notification is not None:
        background_tasks.add_task(notifier.notify, result.notification)
    return InvitationOut(lead_id=result.lead.id, status=result.lead.status, link=result.link, reminder=result.reminder)


@router.post("/leads/{lead_id}/reinvite", response_model=LeadCreatedOut, status_code=201)
async def reinvite_pending_lead(
    lead_id: str,
    admin_id: str = Depends(get_admin_id),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLog = Depends(get_activity_log),
) -> LeadCreatedOut:
    lead = await lead_store.reinvite_lead(db, activity, lead_id=lead_id, actor_id=admin_id)
    return LeadCreatedOut(
        lead=LeadOut.model_validate(lead),
        confirm_link=build_confirmation_link(lead.confirmation_token),
    )


@router.post("/leads/{lead_id}/decline", response_model=LeadOut)
async def decline_pending_lead(
    lead_id: str,
    payload: DeclineRequest,
    admin_id: str = Depends(get_admin_id),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLog = Depends(get_activity_log),
) -> LeadOut:
    lead = await decline_lead(db, activity, lead_id=lead_id, reason=payload.reason, actor_id=admin_id)
    return LeadOut.model_validate(lead)


@router.put("/leads/{lead_id}/outreach", response_model=LeadOut)
async def set_lead_outreach_status(
    lead_id: str,
    payload: OutreachUpdate,
    admin_id: str = Depends(get_admin_id),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLog = Depends(get_activity_log),
) -> LeadOut:
    lead = await lead_store.set_outreach_status(
        db, activity, lead_id=lead_id, outreach_status=payload.outreach_status, actor_id=admin_id
    )
    return LeadOut.model_validate(lead)
