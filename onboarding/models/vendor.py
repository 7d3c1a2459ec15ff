from sqlalchemy import Boolean, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.core.ids import gen_id
from onboarding.models.base import Base, AuditMixin, JSONType


class Vendor(AuditMixin, Base):
    __tablename__ = "vendors"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("vnd"))

    # Absent for guest-owned vendors that authenticate with the edit token only
    user_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    # One vendor per lead: the unique constraint is what serialises concurrent confirmations
    source_lead_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("pending_leads.id", ondelete="SET NULL"), nullable=True, unique=True
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(120), nullable=False)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    instagram_handle: Mapped[str | None] = mapped_column(String(120), nullable=True)
    website: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    portfolio_gallery: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    price_from: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    tags: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # Magic link credential: hash for lookup, sealed copy so confirmations can be replayed
    edit_token_hash: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    edit_token_sealed: Mapped[str] = mapped_column(Text, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
