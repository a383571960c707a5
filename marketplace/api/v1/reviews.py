from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from marketplace.api.deps import get_current_user
from marketplace.core.rate_limiter import limiter
from marketplace.db.session import get_db
from marketplace.models.user import User
from marketplace.schemas.review import RatingSummaryResponse, ReviewCreate, ReviewResponse, ReviewUpdate
from marketplace.services.listing import DEFAULT_LIMIT, MAX_LIMIT, Page
from marketplace.services.review_service import ReviewService
from marketplace.utils.response import paginated_response, success

router = APIRouter()


def _serialize(reviews):
    return [ReviewResponse.model_validate(review) for review in reviews]


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/hour")
def create_review(
    request: Request,
    review_data: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Review a shop or product. One review per reviewer per target."""
    review = ReviewService.create_review(db, current_user, review_data)
    return success(data=ReviewResponse.model_validate(review), message="Review created successfully")


@router.get("/item/{review_id}", response_model=dict)
@limiter.limit("100/minute")
def get_review(request: Request, review_id: str, db: Session = Depends(get_db)):
    review = ReviewService.get_review(db, review_id)
    return success(data=ReviewResponse.model_validate(review), message="Review retrieved successfully")


@router.get("/user/my-reviews", response_model=dict)
@limiter.limit("60/minute")
def get_my_reviews(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    pager = Page(page, limit)
    reviews, total = ReviewService.list_for_reviewer(db, current_user, pager)
    return paginated_response(_serialize(reviews), total, pager, items_key="reviews",
                              message="Reviews retrieved successfully")


@router.get("/summary/{target_type}/{target_id}", response_model=dict)
@limiter.limit("100/minute")
def get_rating_summary(request: Request, target_type: str, target_id: int, db: Session = Depends(get_db)):
    """Star distribution for a target, counting reviews of every status."""
    summary = ReviewService.rating_summary(db, target_type, target_id)
    return success(data=RatingSummaryResponse(**summary), message="Rating summary retrieved successfully")


@router.get("/{target_type}/{target_id}", response_model=dict)
@limiter.limit("100/minute")
def get_target_reviews(
    request: Request,
    target_type: str,
    target_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    sort: str = Query("-created_at"),
    db: Session = Depends(get_db)
):
    """Approved reviews for a shop or product. Public endpoint."""
    pager = Page(page, limit)
    reviews, total = ReviewService.list_for_target(db, target_type, target_id, pager, sort)
    return paginated_response(_serialize(reviews), total, pager, items_key="reviews",
                              message="Reviews retrieved successfully")


@router.put("/{review_id}", response_model=dict)
@limiter.limit("20/minute")
def update_review(
    request: Request,
    review_id: str,
    review_data: ReviewUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update a review. Only its author can update it."""
    review = ReviewService.update_review(db, current_user, review_id, review_data)
    return success(data=ReviewResponse.model_validate(review), message="Review updated successfully")


@router.delete("/{review_id}", response_model=dict)
@limiter.limit("20/minute")
def delete_review(
    request: Request,
    review_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a review. Only its author can delete it."""
    ReviewService.delete_review(db, current_user, review_id)
    return success(message="Review deleted successfully")


@router.patch("/{review_id}/helpful", response_model=dict)
@limiter.limit("30/minute")
def mark_helpful(request: Request, review_id: str, db: Session = Depends(get_db)):
    review = ReviewService.mark_helpful(db, review_id)
    return success(data={"id": review.id, "helpful": review.helpful}, message="Marked as helpful")


@router.patch("/{review_id}/unhelpful", response_model=dict)
@limiter.limit("30/minute")
def mark_unhelpful(request: Request, review_id: str, db: Session = Depends(get_db)):
    review = ReviewService.mark_unhelpful(db, review_id)
    return success(data={"id": review.id, "unhelpful": review.unhelpful}, message="Marked as unhelpful")
