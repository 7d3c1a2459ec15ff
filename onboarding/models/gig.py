from sqlalchemy import Boolean, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.core.ids import gen_id
from onboarding.models.base import Base, AuditMixin, JSONType


GIG_DRAFT = "draft"
GIG_DRAFT_PROFILE_MISSING = "draft_profile_missing"
GIG_PENDING_REVIEW = "pending_review"
GIG_PUBLISHED = "published"
GIG_UNLISTED = "unlisted"
GIG_ARCHIVED = "archived"

GIG_DRAFT_STATUSES = (GIG_DRAFT, GIG_DRAFT_PROFILE_MISSING)


class Gig(AuditMixin, Base):
    __tablename__ = "gigs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("gig"))

    # Null until the owning vendor exists; the wizard keys the draft by invite token meanwhile
    vendor_id: Mapped[str | None] = mapped_column(String, ForeignKey("vendors.id"), nullable=True, index=True)
    invite_token: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str | None] = mapped_column(String(120), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price_from: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)

    # packages, media, etc. as the wizard submitted them
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # "draft" | "draft_profile_missing" | "pending_review" | "published" | "unlisted" | "archived"
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=GIG_DRAFT_PROFILE_MISSING)
    moderation_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    wizard_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
