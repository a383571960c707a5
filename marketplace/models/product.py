from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey, DateTime, Text, JSON, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from marketplace.db.base_class import Base
from marketplace.models.mixins import RatingSummaryMixin


class Product(RatingSummaryMixin, Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)

    name = Column(String(150), nullable=False, index=True)
    description = Column(Text, nullable=False)

    # Pricing
    price = Column(Float, nullable=False)
    discount_price = Column(Float, nullable=True)

    # Stock & Status
    images = Column(JSON, default=list)
    in_stock = Column(Boolean, default=True, nullable=False)
    quantity = Column(Integer, default=0, nullable=False)
    sku = Column(String(100), unique=True, nullable=True)
    tags = Column(JSON, default=list)
    weight = Column(Float)
    is_active = Column(Boolean, default=True, nullable=False)
    is_highlighted = Column(Boolean, default=False, nullable=False)
    views = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    shop = relationship("Shop", back_populates="products")
    category = relationship("Category", back_populates="products")

# Composite indexes for performance
Index("ix_products_category_id", Product.category_id)
Index("idx_product_active_price", Product.is_active, Product.price)
Index("idx_product_rating", Product.rating)
