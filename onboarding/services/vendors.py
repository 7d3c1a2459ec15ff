from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.errors import VendorNotFound
from onboarding.models.vendor import Vendor
from onboarding.schemas.vendor import VendorUpdate
from onboarding.services.audit import ActivityLog
from onboarding.services.credentials import find_vendor_by_edit_token, reveal_edit_token
from onboarding.services.notifier import Notification
from onboarding.services.tokens import build_edit_link


log = logging.getLogger(__name__)

# columns that may not be written as NULL through a partial update
_REQUIRED_FIELDS = ("name", "category", "description", "portfolio_gallery", "price_from", "tags")


async def get_vendor_by_edit_token(db: AsyncSession, token: str) -> Vendor:
    vendor = await find_vendor_by_edit_token(db, token)
    if vendor is None or vendor.is_archived:
        raise VendorNotFound()
    return vendor


async def update_vendor_by_edit_token(
    db: AsyncSession,
    activity: ActivityLog,
    *,
    token: str,
    data: VendorUpdate,
) -> Vendor:
    vendor = await get_vendor_by_edit_token(db, token)

    changes = {
        k: v for k, v in data.model_dump(exclude_unset=True).items()
        if v is not None or k not in _REQUIRED_FIELDS
    }
    if "email" in changes and changes["email"]:
        changes["email"] = changes["email"].strip().lower()
    if not changes:
        return vendor

    for key, value in changes.items():
        setattr(vendor, key, value)
    vendor.updated_by = f"edit_token:{vendor.id}"
    await db.commit()
    await db.refresh(vendor)

    await activity.record(
        actor_id=None,
        action="vendor_updated",
        target_type="vendor",
        target_id=vendor.id,
        details={"fields": sorted(changes), "via": "edit_token"},
    )
    return vendor


async def recover_edit_link(db: AsyncSession, *, email: str) -> Notification | None:
    """
    Magic-link recovery. Returns the notification to dispatch, or None; the
    caller answers identically either way so emails cannot be enumerated.
    """
    normalized = email.strip().lower()
    stmt = (
        select(Vendor)
        .where(Vendor.email == normalized, Vendor.is_archived.is_(False))
        .order_by(Vendor.created_at.desc())
        .limit(1)
    )
    vendor = (await db.execute(stmt)).scalar_one_or_none()
    if vendor is None:
        log.info("magic link requested for unknown email")
        return None

    return Notification(
        kind="magic_link",
        to=vendor.email,
        name=vendor.name or "Vendor",
        link=build_edit_link(reveal_edit_token(vendor)),
    )
