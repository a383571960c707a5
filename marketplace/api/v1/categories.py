from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from marketplace.api.deps import require_admin
from marketplace.core.rate_limiter import limiter
from marketplace.db.session import get_db
from marketplace.models.user import User
from marketplace.schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from marketplace.services.category_service import CategoryService
from marketplace.services.listing import DEFAULT_CATEGORY_LIMIT, MAX_LIMIT, CategoryFilters, Page
from marketplace.utils.response import paginated_response, success

router = APIRouter()


@router.get("", response_model=dict)
@limiter.limit("100/minute")
def get_categories(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_CATEGORY_LIMIT, ge=1, le=MAX_LIMIT),
    parent_only: bool = Query(False),
    db: Session = Depends(get_db),
):
    """Public: active categories ordered by name."""
    pager = Page(page, limit)
    categories, total = CategoryService.list_categories(db, CategoryFilters(parent_only=parent_only), pager)
    return paginated_response(
        [CategoryResponse.model_validate(c) for c in categories],
        total,
        pager,
        items_key="categories",
        message="Categories retrieved",
    )


@router.get("/slug/{slug}", response_model=dict)
@limiter.limit("100/minute")
def get_category_by_slug(request: Request, slug: str, db: Session = Depends(get_db)):
    category = CategoryService.get_by_slug(db, slug)
    return success(data=CategoryResponse.model_validate(category), message="Category retrieved")


@router.get("/{category_id}", response_model=dict)
@limiter.limit("100/minute")
def get_category(request: Request, category_id: int, db: Session = Depends(get_db)):
    category = CategoryService.get_category(db, category_id)
    return success(data=CategoryResponse.model_validate(category), message="Category retrieved")


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_category(
    request: Request,
    category_data: CategoryCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    category = CategoryService.create_category(db, category_data)
    return success(data=CategoryResponse.model_validate(category), message="Category created")


@router.put("/{category_id}", response_model=dict)
@limiter.limit("30/minute")
def update_category(
    request: Request,
    category_id: int,
    category_data: CategoryUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    category = CategoryService.update_category(db, category_id, category_data)
    return success(data=CategoryResponse.model_validate(category), message="Category updated")


@router.delete("/{category_id}", response_model=dict)
@limiter.limit("30/minute")
def delete_category(
    request: Request,
    category_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    CategoryService.delete_category(db, category_id)
    return success(message="Category deleted")
