from pydantic import BaseModel, ConfigDict, Field


class GigDraftCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    category: str | None = Field(default=None, max_length=120)
    description: str | None = None
    price_from: float | None = Field(default=None, ge=0)
    payload: dict = Field(default_factory=dict)

    # carried through the onboarding wizard before any vendor exists
    invite_token: str | None = Field(default=None, max_length=120)


class GigOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    vendor_id: str | None
    title: str
    category: str | None
    description: str | None
    price_from: float | None
    payload: dict
    status: str
    moderation_status: str | None
    wizard_completed: bool
