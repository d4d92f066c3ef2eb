"""Profile models consumed read-only by discovery."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class Profile(BaseModel):
    """Public profile of an identity."""

    id: str
    user_id: str
    first_name: str
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    city: Optional[str] = None
    area: Optional[str] = None
    profession: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    is_companion: Optional[bool] = False
    is_identity_verified: bool = False
    is_verified: Optional[bool] = False  # Badge, not identity verification
    is_online: Optional[bool] = False
    is_active: Optional[bool] = True
    created_at: Optional[datetime] = None
    age: Optional[int] = None  # Derived, not stored

    def age_on(self, today: date) -> Optional[int]:
        """Age in whole years on ``today``."""
        if not self.date_of_birth:
            return None
        born = self.date_of_birth
        age = today.year - born.year
        if (today.month, today.day) < (born.month, born.day):
            age -= 1
        return age


class CompanionProfile(BaseModel):
    """Companion listing joined with its owning profile."""

    id: str
    profile_id: str
    hourly_rate: float = Field(..., ge=0)
    activities: list[str] = Field(default_factory=list)
    gallery_images: list[str] = Field(default_factory=list)
    availability_status: Optional[bool] = True
    payment_qr_url: Optional[str] = None
    payment_method: Optional[str] = None
    profile: Optional[Profile] = None

    @property
    def owner_id(self) -> Optional[str]:
        """Identity that owns this listing."""
        return self.profile.user_id if self.profile else None


class DiscoveryFilters(BaseModel):
    """Optional filters for the discovery listing."""

    city: Optional[str] = None
    gender: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    activities: list[str] = Field(default_factory=list)
    online_only: bool = False
