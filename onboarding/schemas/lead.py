from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


SourceType = Literal["instagram", "google", "facebook", "manual", "referral"]
InvitationMethod = Literal["email", "whatsapp", "instagram_dm"]
OutreachStatus = Literal["pending", "hold", "invited"]


class LeadProfile(BaseModel):
    category: str | None = Field(default=None, max_length=120)
    city: str | None = Field(default=None, max_length=120)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=50)
    instagram_handle: str | None = Field(default=None, max_length=120)
    website: str | None = None
    description: str | None = None
    image_url: str | None = None
    portfolio_urls: list[str] = Field(default_factory=list)
    price_from: float | None = Field(default=None, ge=0)
    tags: list[str] = Field(default_factory=list)
    instagram_followers: int | None = Field(default=None, ge=0)


class LeadCreate(LeadProfile):
    name: str = Field(min_length=1, max_length=200)
    source_type: SourceType = "manual"
    source_url: str | None = None
    source_data: dict = Field(default_factory=dict)
    admin_notes: str | None = None


class LeadUpdate(BaseModel):
    # partial admin edit; only provided fields are written
    name: str | None = Field(default=None, min_length=1, max_length=200)
    category: str | None = Field(default=None, max_length=120)
    city: str | None = Field(default=None, max_length=120)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=50)
    instagram_handle: str | None = Field(default=None, max_length=120)
    website: str | None = None
    description: str | None = None
    image_url: str | None = None
    portfolio_urls: list[str] | None = None
    price_from: float | None = Field(default=None, ge=0)
    tags: list[str] | None = None
    admin_notes: str | None = None


class LeadOut(LeadProfile):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    source_type: str
    source_url: str | None
    status: str
    outreach_status: str
    converted_vendor_id: str | None
    confirmation_token: str
    confirmation_expires_at: datetime
    invitation_sent_at: datetime | None
    invitation_method: str | None
    reminder_count: int
    admin_notes: str | None
    created_by: str | None
    reinvited_from_id: str | None


class LeadCreatedOut(BaseModel):
    lead: LeadOut
    confirm_link: str


class LeadPublicOut(LeadProfile):
    """What the confirmation page may show to whoever holds the token."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    source_type: str
    source_url: str | None
    status: str


class InvitationRequest(BaseModel):
    method: InvitationMethod = "email"
    gig_id: str | None = None


class InvitationOut(BaseModel):
    lead_id: str
    status: str
    link: str
    reminder: bool


class OutreachUpdate(BaseModel):
    outreach_status: OutreachStatus


class DeclineRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class LeadStatsOut(BaseModel):
    by_status: dict[str, int]
    total: int
    confirmed_this_month: int
