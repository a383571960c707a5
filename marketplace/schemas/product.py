from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import datetime


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: str = Field(..., min_length=1, max_length=2000)
    category_id: int
    price: float = Field(..., ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    quantity: int = Field(0, ge=0)
    sku: Optional[str] = Field(None, max_length=100)
    images: List[str] = []
    tags: List[str] = []

    @model_validator(mode="after")
    def discount_below_price(self):
        if self.discount_price is not None and self.discount_price >= self.price:
            raise ValueError("Discount price must be less than regular price")
        return self


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    price: Optional[float] = Field(None, ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    in_stock: Optional[bool] = None
    category_id: Optional[int] = None
    tags: Optional[List[str]] = None
    images: Optional[List[str]] = None


class ProductResponse(BaseModel):
    id: int
    shop_id: int
    category_id: int
    name: str
    description: str
    price: float
    discount_price: Optional[float]
    images: List[str] = []
    in_stock: bool
    quantity: int
    sku: Optional[str]
    tags: List[str] = []
    is_active: bool
    is_highlighted: bool
    views: int
    rating: float
    total_reviews: int
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ProductSearchResult(BaseModel):
    id: int
    shop_id: int
    category_id: int
    name: str
    price: float
    discount_price: Optional[float]
    rating: float
    images: List[str] = []

    class Config:
        from_attributes = True
