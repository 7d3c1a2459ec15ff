import secrets

from fastapi import Header, HTTPException

from onboarding.core.config import settings


async def require_internal_admin(x_internal_admin_key: str | None = Header(default=None)) -> None:
    if not x_internal_admin_key or not secrets.compare_digest(x_internal_admin_key, settings.internal_admin_key):
        raise HTTPException(status_code=403, detail="Internal admin key required")


async def get_admin_id(x_admin_id: str | None = Header(default=None)) -> str:
    # attribution only; the admin key above is the actual gate
    return x_admin_id or "internal"
