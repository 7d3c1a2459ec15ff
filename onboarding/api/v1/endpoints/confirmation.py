from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.db import get_db
from onboarding.schemas.confirmation import ConfirmOut, ConfirmRequest, DeclineOut
from onboarding.schemas.lead import DeclineRequest, LeadPublicOut
from onboarding.services.audit import ActivityLog, get_activity_log
from onboarding.services.confirmation import complete_onboarding, decline, resolve_token
from onboarding.services.notifier import Notifier, get_notifier
from onboarding.services.rate_limit import limit_confirmation_requests
from onboarding.services.tokens import build_edit_link

router = APIRouter(dependencies=[Depends(limit_confirmation_requests)])


@router.get("/confirm/{token}", response_model=LeadPublicOut)
async def get_pending_profile(
    token: str,
    db: AsyncSession = Depends(get_db),
    activity: ActivityLog = Depends(get_activity_log),
) -> LeadPublicOut:
    lead = await resolve_token(db, activity, token=token)
    return LeadPublicOut.model_validate(lead)


@router.post("/confirm/{token}", response_model=ConfirmOut)
async def confirm_profile(
    token: str,
    payload: ConfirmRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    activity: ActivityLog = Depends(get_activity_log),
    notifier: Notifier = Depends(get_notifier),
) -> ConfirmOut:
    result = await complete_onboarding(
        db,
        activity,
        token=token,
        overrides=payload.profile,
        gig_id=payload.gig_id,
    )
    if result.notification is not None:
        background_tasks.add_task(notifier.notify, result.notification)

    confirmation = result.confirmation
    return ConfirmOut(
        vendor_id=confirmation.vendor_id,
        edit_token=confirmation.edit_token,
        edit_link=build_edit_link(confirmation.edit_token),
        replayed=confirmation.replayed,
        gig_linked=result.gig_linked,
        warnings=result.warnings,
    )


@router.post("/confirm/{token}/decline", response_model=DeclineOut)
async def decline_profile(
    token: str,
    payload: DeclineRequest,
    db: AsyncSession = Depends(get_db),
    activity: ActivityLog = Depends(get_activity_log),
) -> DeclineOut:
    lead = await decline(db, activity, token=token, reason=payload.reason)
    return DeclineOut(lead_id=lead.id, status=lead.status)
