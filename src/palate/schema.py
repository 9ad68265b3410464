"""Pydantic schemas for Palate Collectif rows and forms."""

from datetime import date as DateType
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from palate.constants import BeverageType, PricePoint, WineType


class Row(BaseModel):
    """Base for backend rows: unknown columns are kept, not rejected."""

    model_config = ConfigDict(extra="allow", use_enum_values=True)


# ---------- Users ----------

class Profile(Row):
    """User identity, permanent or temporary."""

    id: str
    display_name: str = "Guest"
    email: Optional[str] = None
    eventbrite_email: Optional[str] = None
    is_admin: bool = False
    is_curator: bool = False
    is_temp_account: bool = False
    account_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        """Temporary accounts lapse once their expiry date has passed."""
        if not self.is_temp_account or self.account_expires_at is None:
            return False
        expires_at = self.account_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=now.tzinfo)
        return expires_at < now


# ---------- Wines ----------

class GrapeVariety(BaseModel):
    name: str
    percentage: Optional[float] = Field(None, ge=0, le=100)


class EventWine(Row):
    """A wine poured at one event."""

    id: str
    event_id: str
    wine_name: str
    producer: Optional[str] = None
    vintage: Optional[Union[int, str]] = None
    wine_type: WineType = WineType.RED
    beverage_type: BeverageType = BeverageType.WINE
    region: Optional[str] = None
    country: Optional[str] = None
    price_point: Optional[PricePoint] = None
    alcohol_content: Optional[Union[float, str]] = None
    sommelier_notes: Optional[str] = None
    image_url: Optional[str] = None
    tasting_order: int = 0
    location_id: Optional[str] = None
    wine_master_id: Optional[str] = None
    grape_varieties: List[GrapeVariety] = Field(default_factory=list)
    wine_style: List[str] = Field(default_factory=list)

    @field_validator("grape_varieties", "wine_style", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return value or []


# ---------- Forms ----------

class EventForm(BaseModel):
    """Fields an admin fills in to create an event."""

    model_config = ConfigDict(use_enum_values=True, str_strip_whitespace=True)

    event_name: str = Field(..., min_length=1, max_length=200)
    event_code: str = Field(..., min_length=4, max_length=12)
    event_date: DateType
    location: Optional[str] = None
    description: Optional[str] = None
    max_participants: Optional[int] = Field(None, gt=0)
    is_booth_mode: bool = False
    booth_welcome_message: Optional[str] = None

    @field_validator("event_code")
    @classmethod
    def upper_alphanumeric(cls, value: str) -> str:
        value = value.upper()
        if not value.isalnum():
            raise ValueError("Event code may only contain letters and digits")
        return value


class WineForm(BaseModel):
    """Fields an admin fills in to add a wine to an event."""

    model_config = ConfigDict(use_enum_values=True, str_strip_whitespace=True)

    wine_name: str = Field(..., min_length=1, max_length=200)
    producer: Optional[str] = None
    vintage: Optional[int] = Field(None, ge=1800, le=2100)
    wine_type: WineType = WineType.RED
    beverage_type: BeverageType = BeverageType.WINE
    region: Optional[str] = None
    country: Optional[str] = None
    price_point: Optional[PricePoint] = None
    alcohol_content: Optional[float] = Field(None, ge=0, le=100)
    sommelier_notes: Optional[str] = None
    image_url: Optional[str] = None
    tasting_order: int = Field(0, ge=0)
    location_id: Optional[str] = None
    wine_master_id: Optional[str] = None
    grape_varieties: List[GrapeVariety] = Field(default_factory=list)
    wine_style: List[str] = Field(default_factory=list)


class RatingForm(BaseModel):
    """An attendee's rating of one wine."""

    rating: int = Field(..., ge=1, le=5, description="Star rating (1-5)")
    personal_notes: Optional[str] = Field(None, description="Free-text tasting notes")
    would_buy: bool = False


class UserWineForm(BaseModel):
    """A wine an attendee logs outside an event for curator review."""

    model_config = ConfigDict(use_enum_values=True, str_strip_whitespace=True)

    wine_name: str = Field(..., min_length=1, max_length=200)
    producer: Optional[str] = None
    vintage: Optional[int] = Field(None, ge=1800, le=2100)
    wine_type: Optional[WineType] = None
    region: Optional[str] = None
    country: Optional[str] = None
    price_point: Optional[PricePoint] = None
    personal_notes: Optional[str] = None
