from pydantic import BaseModel, ConfigDict, Field


class VendorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str | None
    name: str
    category: str
    city: str | None
    email: str | None
    phone: str | None
    instagram_handle: str | None
    website: str | None
    description: str
    image_url: str | None
    portfolio_gallery: list[str]
    price_from: float
    tags: list[str]
    is_active: bool
    is_verified: bool
    is_archived: bool


class VendorUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
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


class RecoverRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)


class RecoverOut(BaseModel):
    success: bool = True
    message: str = "If this email is registered, you will receive a login link shortly."
