from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey, DateTime, Text, JSON, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from marketplace.db.base_class import Base
from marketplace.models.mixins import RatingSummaryMixin


SHOP_CATEGORIES = (
    "Electronics",
    "Clothing",
    "Food & Beverages",
    "Home & Garden",
    "Health & Beauty",
    "Books & Media",
    "Sports & Outdoors",
    "Toys & Games",
    "Automotive",
    "Services",
    "Other",
)


def default_opening_hours() -> dict:
    weekday = {"is_open": True, "open_time": "09:00", "close_time": "17:00"}
    return {
        "monday": dict(weekday),
        "tuesday": dict(weekday),
        "wednesday": dict(weekday),
        "thursday": dict(weekday),
        "friday": dict(weekday),
        "saturday": {"is_open": True, "open_time": "10:00", "close_time": "18:00"},
        "sunday": {"is_open": False, "open_time": "10:00", "close_time": "16:00"},
    }


class Shop(RatingSummaryMixin, Base):
    __tablename__ = "shops"

    id = Column(Integer, primary_key=True, index=True)
    # One shop per owner
    owner_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    name = Column(String(100), nullable=False, index=True)
    description = Column(String(1000), nullable=True)
    category = Column(String(50), nullable=False, index=True)
    logo = Column(String(500))
    cover_image = Column(String(500))
    about = Column(Text, nullable=True)

    # Contact
    phone = Column(String(20), nullable=False)
    email = Column(String(255), nullable=False)
    website = Column(String(500))

    # Address
    street = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False, index=True)
    district = Column(String(100), nullable=False)
    postal_code = Column(String(20))
    latitude = Column(Float)
    longitude = Column(Float)

    opening_hours = Column(JSON, default=default_opening_hours)

    total_products = Column(Integer, default=0, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    business_license = Column(String(100))
    registration_number = Column(String(100))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    owner = relationship("User", back_populates="shop")
    products = relationship("Product", back_populates="shop", cascade="all, delete-orphan")


Index("idx_shop_city_active", Shop.city, Shop.is_active)
