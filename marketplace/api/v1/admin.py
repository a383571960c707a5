import structlog
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from marketplace.api.deps import require_admin
from marketplace.core.rate_limiter import limiter
from marketplace.db.session import get_db
from marketplace.models.user import User
from marketplace.services.rating_aggregator import RatingAggregator
from marketplace.services.target_resolver import ReviewTarget
from marketplace.utils.response import success

router = APIRouter()
logger = structlog.get_logger()


@router.post("/ratings/{target_type}/{target_id}/recompute", response_model=dict)
@limiter.limit("30/minute")
def recompute_rating(
    request: Request,
    target_type: str,
    target_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Rebuild a shop or product rating from its approved reviews."""
    target = ReviewTarget.of(target_type, target_id)
    summary = RatingAggregator.recompute(db, target)
    db.commit()

    logger.info(
        "rating_recompute_requested",
        admin_user_id=admin.id,
        target_type=target.kind.value,
        target_id=target.id,
    )
    return success(
        data={
            "target_type": target.kind,
            "target_id": target.id,
            "rating": summary.rating,
            "total_reviews": summary.total_reviews,
        },
        message="Rating recomputed",
    )


@router.post("/ratings/reconcile", response_model=dict, status_code=status.HTTP_202_ACCEPTED)
@limiter.limit("5/minute")
def reconcile_ratings(
    request: Request,
    admin: User = Depends(require_admin),
):
    """Queue a full reconciliation of every rating summary."""
    from marketplace.tasks.rating_tasks import reconcile_rating_summaries

    result = reconcile_rating_summaries.delay()
    logger.info("rating_reconcile_queued", admin_user_id=admin.id, task_id=result.id)
    return success(data={"task_id": result.id}, message="Reconciliation queued")
