from pydantic import BaseModel, Field


class ProfileOverrides(BaseModel):
    """Profile data submitted by the recipient; any field left out falls back to the lead."""

    name: str | None = Field(default=None, max_length=200)
    category: str | None = Field(default=None, max_length=120)
    city: str | None = Field(default=None, max_length=120)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=50)
    instagram_handle: str | None = Field(default=None, max_length=120)
    website: str | None = None
    description: str | None = None
    image_url: str | None = None
    portfolio_gallery: list[str] | None = None
    price_from: float | None = Field(default=None, ge=0)
    tags: list[str] | None = None


class ConfirmRequest(BaseModel):
    profile: ProfileOverrides = Field(default_factory=ProfileOverrides)
    gig_id: str | None = None


class ConfirmOut(BaseModel):
    success: bool = True
    vendor_id: str
    edit_token: str
    edit_link: str
    replayed: bool
    gig_linked: bool = False
    warnings: list[dict] = Field(default_factory=list)


class DeclineOut(BaseModel):
    success: bool = True
    lead_id: str
    status: str
