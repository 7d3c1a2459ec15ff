from datetime import datetime

from sqlalchemy import Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from onboarding.core.ids import gen_id
from onboarding.models.base import Base, AuditMixin, JSONType


LEAD_PENDING = "pending"
LEAD_INVITED = "invited"
LEAD_VIEWED = "viewed"
LEAD_CONFIRMED = "confirmed"
LEAD_DECLINED = "declined"
LEAD_EXPIRED = "expired"

LEAD_STATUSES = (LEAD_PENDING, LEAD_INVITED, LEAD_VIEWED, LEAD_CONFIRMED, LEAD_DECLINED, LEAD_EXPIRED)
OPEN_LEAD_STATUSES = (LEAD_PENDING, LEAD_INVITED, LEAD_VIEWED)


class PendingLead(AuditMixin, Base):
    __tablename__ = "pending_leads"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("lead"))

    confirmation_token: Mapped[str] = mapped_column(String(120), nullable=False, unique=True, index=True)
    confirmation_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    source_type: Mapped[str] = mapped_column(String(30), nullable=False, default="manual")
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # Profile (everything but name is optional)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str | None] = mapped_column(String(120), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    instagram_handle: Mapped[str | None] = mapped_column(String(120), nullable=True)
    website: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    portfolio_urls: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    price_from: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    tags: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    instagram_followers: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # "pending" | "invited" | "viewed" | "confirmed" | "declined" | "expired"
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=LEAD_PENDING, index=True)
    converted_vendor_id: Mapped[str | None] = mapped_column(String, nullable=True)

    # messaging-campaign contact state ("pending" | "hold" | "invited"); independent of status
    outreach_status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")

    invitation_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    invitation_method: Mapped[str | None] = mapped_column(String(30), nullable=True)
    reminder_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reminder_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # set when this lead was created by re-inviting a declined/expired one
    reinvited_from_id: Mapped[str | None] = mapped_column(String, nullable=True)
