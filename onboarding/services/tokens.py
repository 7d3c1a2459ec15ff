from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from urllib.parse import urlencode

from onboarding.core.config import settings
from onboarding.core.ids import utcnow
from onboarding.core.security import generate_token


@dataclass(frozen=True)
class ConfirmationToken:
    token: str
    expires_at: datetime


def confirmation_ttl() -> timedelta:
    return timedelta(days=settings.confirmation_token_ttl_days)


def issue_confirmation_token(now: datetime | None = None) -> ConfirmationToken:
    """
    Fresh bearer token for exactly one pending lead.
    The caller persists it; nothing is stored here.
    """
    issued_at = now or utcnow()
    return ConfirmationToken(token=generate_token(), expires_at=issued_at + confirmation_ttl())


def issue_edit_token() -> str:
    # No expiry and no rotation yet; see services.credentials
    return generate_token()


def _base_url() -> str:
    return settings.app_base_url.rstrip("/")


def build_confirmation_link(token: str, gig_id: str | None = None) -> str:
    params = {"invite": token}
    if gig_id:
        params["gigId"] = gig_id
    return f"{_base_url()}/onboarding?{urlencode(params)}"


def build_edit_link(edit_token: str) -> str:
    return f"{_base_url()}/vendor/edit/{edit_token}"
