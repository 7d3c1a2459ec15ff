from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.db import get_db
from onboarding.schemas.vendor import RecoverOut, RecoverRequest, VendorOut, VendorUpdate
from onboarding.services.audit import ActivityLog, get_activity_log
from onboarding.services.notifier import Notifier, get_notifier
from onboarding.services.rate_limit import limit_confirmation_requests
from onboarding.services.vendors import get_vendor_by_edit_token, recover_edit_link, update_vendor_by_edit_token

router = APIRouter(dependencies=[Depends(limit_confirmation_requests)])


@router.get("/vendor/edit/{token}", response_model=VendorOut)
async def read_own_vendor(token: str, db: AsyncSession = Depends(get_db)) -> VendorOut:
    return VendorOut.model_validate(await get_vendor_by_edit_token(db, token))


@router.patch("/vendor/edit/{token}", response_model=VendorOut)
async def update_own_vendor(
    token: str,
    payload: VendorUpdate,
    db: AsyncSession = Depends(get_db),
    activity: ActivityLog = Depends(get_activity_log),
) -> VendorOut:
    vendor = await update_vendor_by_edit_token(db, activity, token=token, data=payload)
    return VendorOut.model_validate(vendor)


@router.post("/vendor/recover", response_model=RecoverOut)
async def recover_magic_link(
    payload: RecoverRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> RecoverOut:
    notification = await recover_edit_link(db, email=payload.email)
    if notification is not None:
        background_tasks.add_task(notifier.notify, notification)
    # same answer whether or not the email is known
    return RecoverOut()
