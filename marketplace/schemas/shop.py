from pydantic import AfterValidator, BaseModel, EmailStr, Field
from typing import Annotated, Optional
from datetime import datetime

from marketplace.models.shop import SHOP_CATEGORIES

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def _validate_category(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in SHOP_CATEGORIES:
        raise ValueError(f"Category must be one of: {', '.join(SHOP_CATEGORIES)}")
    return value


def _validate_website(value: Optional[str]) -> Optional[str]:
    if value and not value.startswith(("http://", "https://")):
        raise ValueError("Website must be a valid URL")
    return value


ShopCategory = Annotated[str, AfterValidator(_validate_category)]
Website = Annotated[Optional[str], AfterValidator(_validate_website)]


class DayHours(BaseModel):
    is_open: bool = True
    open_time: str = Field("09:00", pattern=TIME_PATTERN)
    close_time: str = Field("17:00", pattern=TIME_PATTERN)


class OpeningHours(BaseModel):
    monday: Optional[DayHours] = None
    tuesday: Optional[DayHours] = None
    wednesday: Optional[DayHours] = None
    thursday: Optional[DayHours] = None
    friday: Optional[DayHours] = None
    saturday: Optional[DayHours] = None
    sunday: Optional[DayHours] = None


class ShopCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    category: ShopCategory
    phone: str = Field(..., min_length=1)
    email: EmailStr
    website: Website = None
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    district: str = Field(..., min_length=1)
    postal_code: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    about: Optional[str] = Field(None, max_length=2000)
    opening_hours: Optional[OpeningHours] = None


class ShopUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    category: Optional[ShopCategory] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    website: Website = None
    street: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    postal_code: Optional[str] = None
    about: Optional[str] = Field(None, max_length=2000)
    logo: Optional[str] = None
    cover_image: Optional[str] = None
    opening_hours: Optional[OpeningHours] = None


class ShopResponse(BaseModel):
    id: int
    owner_id: int
    name: str
    description: Optional[str]
    category: str
    logo: Optional[str]
    cover_image: Optional[str]
    about: Optional[str]
    phone: str
    email: str
    website: Optional[str]
    street: str
    city: str
    district: str
    postal_code: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    opening_hours: Optional[dict]
    rating: float
    total_reviews: int
    total_products: int
    is_verified: bool
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ShopSearchResult(BaseModel):
    id: int
    name: str
    category: str
    city: str
    rating: float
    total_reviews: int

    class Config:
        from_attributes = True
