from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.config import settings
from onboarding.core.db import get_db
from onboarding.services.audit import ActivityLog, get_activity_log
from onboarding.services.internal_admin import require_internal_admin
from onboarding.services.leads import expire_stale_leads

router = APIRouter()

@router.post("/internal/leads/expire", dependencies=[Depends(require_internal_admin)])
async def internal_expire_leads(
    db: AsyncSession = Depends(get_db),
    activity: ActivityLog = Depends(get_activity_log),
) -> dict:
    expired = await expire_stale_leads(db, activity, batch_size=settings.sweep_batch_size)
    return {"expired": len(expired), "lead_ids": expired}
