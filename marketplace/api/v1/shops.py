from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import Optional

from marketplace.api.deps import get_current_user
from marketplace.core.rate_limiter import limiter
from marketplace.db.session import get_db
from marketplace.models.user import User
from marketplace.schemas.shop import ShopCreate, ShopResponse, ShopSearchResult, ShopUpdate
from marketplace.services.listing import DEFAULT_LIMIT, MAX_LIMIT, Page, ShopFilters
from marketplace.services.shop_service import ShopService
from marketplace.utils.response import paginated_response, success

router = APIRouter()


def _serialize(shops):
    return [ShopResponse.model_validate(shop) for shop in shops]


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/hour")
def create_shop(
    request: Request,
    shop_data: ShopCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    shop = ShopService.create_shop(db, current_user, shop_data)
    return success(data=ShopResponse.model_validate(shop), message="Shop created successfully")


@router.get("", response_model=dict)
@limiter.limit("100/minute")
def list_shops(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    category: Optional[str] = None,
    city: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = Query("-created_at"),
    db: Session = Depends(get_db),
):
    """Active shops, filtered by category, city and free text."""
    pager = Page(page, limit)
    filters = ShopFilters(category=category, city=city, search=search)
    shops, total = ShopService.list_shops(db, filters, pager, sort)
    return paginated_response(_serialize(shops), total, pager, items_key="shops",
                              message="Shops retrieved successfully")


@router.get("/search", response_model=dict)
@limiter.limit("100/minute")
def search_shops(
    request: Request,
    q: str = Query(..., min_length=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
):
    shops = ShopService.search_shops(db, q, limit)
    return success(data=[ShopSearchResult.model_validate(shop) for shop in shops],
                   message="Search results retrieved")


@router.get("/category/{category}", response_model=dict)
@limiter.limit("100/minute")
def shops_by_category(
    request: Request,
    category: str,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
):
    pager = Page(page, limit)
    shops, total = ShopService.list_shops(db, ShopFilters(category=category), pager, "-rating")
    return paginated_response(_serialize(shops), total, pager, items_key="shops",
                              message="Shops retrieved successfully")


@router.get("/city/{city}", response_model=dict)
@limiter.limit("100/minute")
def shops_by_city(
    request: Request,
    city: str,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
):
    pager = Page(page, limit)
    shops, total = ShopService.list_shops(db, ShopFilters(city=city), pager, "-rating")
    return paginated_response(_serialize(shops), total, pager, items_key="shops",
                              message="Shops retrieved successfully")


@router.get("/user/my-shop", response_model=dict)
@limiter.limit("60/minute")
def get_my_shop(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    shop = ShopService.get_owner_shop(db, current_user)
    return success(data=ShopResponse.model_validate(shop), message="Shop retrieved successfully")


@router.get("/{shop_id}", response_model=dict)
@limiter.limit("100/minute")
def get_shop(request: Request, shop_id: int, db: Session = Depends(get_db)):
    shop = ShopService.get_shop(db, shop_id)
    return success(data=ShopResponse.model_validate(shop), message="Shop retrieved successfully")


@router.put("/{shop_id}", response_model=dict)
@limiter.limit("20/minute")
def update_shop(
    request: Request,
    shop_id: int,
    shop_data: ShopUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update a shop. Only its owner can update it."""
    shop = ShopService.update_shop(db, current_user, shop_id, shop_data)
    return success(data=ShopResponse.model_validate(shop), message="Shop updated successfully")


@router.delete("/{shop_id}", response_model=dict)
@limiter.limit("10/minute")
def delete_shop(
    request: Request,
    shop_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete a shop with its products and their reviews."""
    ShopService.delete_shop(db, current_user, shop_id)
    return success(message="Shop deleted successfully")
