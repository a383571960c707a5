from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import Optional

from marketplace.api.deps import get_current_user
from marketplace.core.rate_limiter import limiter
from marketplace.db.session import get_db
from marketplace.models.user import User
from marketplace.schemas.product import ProductCreate, ProductResponse, ProductSearchResult, ProductUpdate
from marketplace.services.listing import DEFAULT_LIMIT, MAX_LIMIT, Page, ProductFilters
from marketplace.services.product_service import ProductService
from marketplace.utils.response import paginated_response, success

router = APIRouter()


def _serialize(products):
    return [ProductResponse.model_validate(product) for product in products]


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_product(
    request: Request,
    product_data: ProductCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    product = ProductService.create_product(db, current_user, product_data)
    return success(data=ProductResponse.model_validate(product), message="Product created successfully")


@router.get("", response_model=dict)
@limiter.limit("100/minute")
def list_products(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    category_id: Optional[int] = None,
    shop_id: Optional[int] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    in_stock: Optional[bool] = None,
    sort: str = Query("-created_at"),
    db: Session = Depends(get_db),
):
    """
    Get products with filtering and pagination
    """
    pager = Page(page, limit)
    filters = ProductFilters(
        category_id=category_id,
        shop_id=shop_id,
        search=search,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
    )
    products, total = ProductService.list_products(db, filters, pager, sort)
    return paginated_response(_serialize(products), total, pager, items_key="products",
                              message="Products retrieved successfully")


@router.get("/featured", response_model=dict)
@limiter.limit("100/minute")
def featured_products(
    request: Request,
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
):
    products = ProductService.featured_products(db, limit)
    return success(data=_serialize(products), message="Featured products retrieved")


@router.get("/search", response_model=dict)
@limiter.limit("100/minute")
def search_products(
    request: Request,
    q: str = Query(..., min_length=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
):
    products = ProductService.search_products(db, q, limit)
    return success(data=[ProductSearchResult.model_validate(p) for p in products],
                   message="Search results retrieved")


@router.get("/shop/{shop_id}", response_model=dict)
@limiter.limit("100/minute")
def products_by_shop(
    request: Request,
    shop_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    sort: str = Query("-created_at"),
    db: Session = Depends(get_db),
):
    pager = Page(page, limit)
    products, total = ProductService.list_products(db, ProductFilters(shop_id=shop_id), pager, sort)
    return paginated_response(_serialize(products), total, pager, items_key="products",
                              message="Products retrieved successfully")


@router.get("/user/my-products", response_model=dict)
@limiter.limit("60/minute")
def get_my_products(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    pager = Page(page, limit)
    products, total = ProductService.list_owner_products(db, current_user, pager)
    return paginated_response(_serialize(products), total, pager, items_key="products",
                              message="Products retrieved successfully")


@router.get("/{product_id}", response_model=dict)
@limiter.limit("100/minute")
def get_product(request: Request, product_id: int, db: Session = Depends(get_db)):
    product = ProductService.get_product(db, product_id)
    return success(data=ProductResponse.model_validate(product), message="Product retrieved successfully")


@router.put("/{product_id}", response_model=dict)
@limiter.limit("30/minute")
def update_product(
    request: Request,
    product_id: int,
    product_data: ProductUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update a product. Only the owner of its shop can update it."""
    product = ProductService.update_product(db, current_user, product_id, product_data)
    return success(data=ProductResponse.model_validate(product), message="Product updated successfully")


@router.delete("/{product_id}", response_model=dict)
@limiter.limit("30/minute")
def delete_product(
    request: Request,
    product_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ProductService.delete_product(db, current_user, product_id)
    return success(message="Product deleted successfully")
