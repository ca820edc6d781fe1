from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from datetime import datetime
from typing import Optional

from ..core.clock import utcnow


class ProfileBase(SQLModel):
    """Billing-facing fields shared by the table model and its public view."""
    email: Optional[str] = Field(default=None, max_length=320)
    plan: str = Field(default="free", max_length=16, description="free|premium|super")
    stripe_customer_id: Optional[str] = Field(default=None, unique=True, index=True)
    stripe_subscription_id: Optional[str] = Field(default=None)
    subscription_status: Optional[str] = Field(default=None, max_length=32)  # active, trialing, past_due, canceled, ...
    current_period_end: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


class Profile(ProfileBase, table=True):
    """One row per signed-in user; the id is owned by the auth provider."""
    id: str = Field(primary_key=True, max_length=64)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class EntitlementsPublic(SQLModel):
    name: str
    price: float
    max_reports: int
    max_items: int
    max_photos_per_item: int
    can_download_docx: bool
    can_create_templates: bool
    show_ads: bool
    branded_footer: bool


class ProfilePublic(ProfileBase):
    id: str
    entitlements: EntitlementsPublic
