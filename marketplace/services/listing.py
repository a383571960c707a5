"""Filter, sort and pagination building for the public listings."""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Query

from marketplace.core.exceptions import ValidationFailed
from marketplace.models.category import Category
from marketplace.models.product import Product
from marketplace.models.review import Review, ReviewStatus
from marketplace.models.shop import Shop
from marketplace.services.target_resolver import ReviewTarget

DEFAULT_LIMIT = 10
DEFAULT_CATEGORY_LIMIT = 20
MAX_LIMIT = 100


@dataclass(frozen=True)
class Page:
    page: int = 1
    limit: int = DEFAULT_LIMIT

    def __post_init__(self):
        if self.page < 1:
            raise ValidationFailed("page", "Page must be at least 1")
        if self.limit < 1:
            raise ValidationFailed("limit", "Limit must be at least 1")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def pages(self, total: int) -> int:
        return (total + self.limit - 1) // self.limit

    def meta(self, total: int) -> dict:
        return {
            "total": total,
            "page": self.page,
            "limit": self.limit,
            "pages": self.pages(total),
        }


SHOP_SORT_FIELDS = {
    "created_at": Shop.created_at,
    "name": Shop.name,
    "rating": Shop.rating,
    "total_reviews": Shop.total_reviews,
    "total_products": Shop.total_products,
}

PRODUCT_SORT_FIELDS = {
    "created_at": Product.created_at,
    "name": Product.name,
    "price": Product.price,
    "rating": Product.rating,
    "total_reviews": Product.total_reviews,
    "views": Product.views,
}

REVIEW_SORT_FIELDS = {
    "created_at": Review.created_at,
    "rating": Review.rating,
    "helpful": Review.helpful,
}

CATEGORY_SORT_FIELDS = {
    "name": Category.name,
    "created_at": Category.created_at,
}


def parse_sort(sort: str, fields: Dict[str, object], tiebreaker) -> List:
    """Turn ``"-rating"`` style keys into ORDER BY clauses.

    The tiebreaker keeps page boundaries stable when the sort key repeats.
    """
    sort = (sort or "").strip()
    descending = sort.startswith("-")
    key = sort[1:] if descending else sort

    column = fields.get(key)
    if column is None:
        allowed = ", ".join(sorted(fields))
        raise ValidationFailed("sort", f"Cannot sort by '{key}'. Allowed fields: {allowed}")

    return [column.desc() if descending else column.asc(), tiebreaker.asc()]


def search_clause(term: str, *columns):
    pattern = f"%{term.strip()}%"
    return or_(*(column.ilike(pattern) for column in columns))


@dataclass
class ShopFilters:
    category: Optional[str] = None
    city: Optional[str] = None
    search: Optional[str] = None

    def apply(self, query: Query) -> Query:
        query = query.filter(Shop.is_active == True)
        if self.category:
            query = query.filter(Shop.category == self.category)
        if self.city:
            query = query.filter(Shop.city.ilike(self.city.strip()))
        if self.search:
            query = query.filter(search_clause(self.search, Shop.name, Shop.description))
        return query


@dataclass
class ProductFilters:
    category_id: Optional[int] = None
    shop_id: Optional[int] = None
    search: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    in_stock: Optional[bool] = None
    highlighted: Optional[bool] = None
    active_only: bool = True

    def __post_init__(self):
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValidationFailed("min_price", "min_price cannot exceed max_price")

    def apply(self, query: Query) -> Query:
        if self.active_only:
            query = query.filter(Product.is_active == True)
        if self.category_id is not None:
            query = query.filter(Product.category_id == self.category_id)
        if self.shop_id is not None:
            query = query.filter(Product.shop_id == self.shop_id)
        if self.in_stock is not None:
            query = query.filter(Product.in_stock == self.in_stock)
        if self.highlighted is not None:
            query = query.filter(Product.is_highlighted == self.highlighted)
        if self.min_price is not None:
            query = query.filter(Product.price >= self.min_price)
        if self.max_price is not None:
            query = query.filter(Product.price <= self.max_price)
        if self.search:
            query = query.filter(search_clause(self.search, Product.name, Product.description))
        return query


@dataclass
class ReviewFilters:
    target: Optional[ReviewTarget] = None
    reviewer_id: Optional[int] = None
    status: Optional[ReviewStatus] = None

    def apply(self, query: Query) -> Query:
        if self.target is not None:
            query = query.filter(
                Review.target_type == self.target.kind,
                Review.target_id == self.target.id,
            )
        if self.reviewer_id is not None:
            query = query.filter(Review.reviewer_id == self.reviewer_id)
        if self.status is not None:
            query = query.filter(Review.status == self.status)
        return query


@dataclass
class CategoryFilters:
    parent_only: bool = False
    active_only: bool = True

    def apply(self, query: Query) -> Query:
        if self.active_only:
            query = query.filter(Category.is_active == True)
        if self.parent_only:
            query = query.filter(Category.parent_id.is_(None))
        return query


def paginate(query: Query, page: Page, order_by: List) -> Tuple[list, int]:
    total = query.order_by(None).count()
    items = query.order_by(*order_by).offset(page.offset).limit(page.limit).all()
    return items, total
