from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.db import get_db
from onboarding.schemas.gig import GigDraftCreate, GigOut
from onboarding.services.audit import ActivityLog, get_activity_log
from onboarding.services.gigs import create_draft_gig, get_gig, link_gig
from onboarding.services.vendors import get_vendor_by_edit_token

router = APIRouter()


@router.post("/gigs", response_model=GigOut, status_code=201)
async def create_gig(
    payload: GigDraftCreate,
    x_edit_token: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> GigOut:
    # wizard may run before the vendor exists; with an edit token the gig is owned right away
    vendor_id = None
    if x_edit_token:
        vendor_id = (await get_vendor_by_edit_token(db, x_edit_token)).id
    elif not payload.invite_token:
        raise HTTPException(status_code=400, detail="invite_token or X-Edit-Token required")

    gig = await create_draft_gig(db, data=payload, vendor_id=vendor_id)
    return GigOut.model_validate(gig)


@router.get("/gigs/{gig_id}", response_model=GigOut)
async def read_gig(gig_id: str, db: AsyncSession = Depends(get_db)) -> GigOut:
    return GigOut.model_validate(await get_gig(db, gig_id))


@router.post("/gigs/{gig_id}/link", response_model=GigOut)
async def link_gig_to_vendor(
    gig_id: str,
    x_edit_token: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLog = Depends(get_activity_log),
) -> GigOut:
    if not x_edit_token:
        raise HTTPException(status_code=401, detail="Missing X-Edit-Token")
    vendor = await get_vendor_by_edit_token(db, x_edit_token)

    gig = await link_gig(db, activity, gig_id=gig_id, vendor_id=vendor.id, actor_id=f"edit_token:{vendor.id}")
    return GigOut.model_validate(gig)
