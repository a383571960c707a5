"""Derived rating summary maintenance for shops and products.

Every review target carries ``rating_sum``, ``total_reviews`` and ``rating``.
Ledger writes fold their change into that pair with one UPDATE statement, so
two writers on the same target serialize on the row instead of racing through
a read-average-write cycle. ``recompute`` rebuilds the pair from the ledger
under a row lock and is used for repair.

When a target's last counted review goes away the summary drops back to
``rating=0.0, total_reviews=0``.
"""
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import Float, case, cast, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core.exceptions import TargetNotFound
from marketplace.models.review import Review, ReviewStatus
from marketplace.services.target_resolver import ReviewTarget

logger = structlog.get_logger()

# Only reviews visible in public listings contribute to the stored summary
COUNTED_STATUSES = (ReviewStatus.APPROVED,)


@dataclass(frozen=True)
class RatingSummary:
    rating: float
    total_reviews: int
    rating_sum: int

    @classmethod
    def of(cls, rating_sum: int, total_reviews: int) -> "RatingSummary":
        rating = rating_sum / total_reviews if total_reviews else 0.0
        return cls(rating=rating, total_reviews=total_reviews, rating_sum=rating_sum)


class RatingAggregator:

    @staticmethod
    def counts(review: Review) -> bool:
        return review.status in COUNTED_STATUSES

    @staticmethod
    def apply(
        db: Session,
        target: ReviewTarget,
        added: Optional[int] = None,
        removed: Optional[int] = None,
    ) -> bool:
        """Fold one rating added and/or removed into the target's summary.

        An update of a rating is ``added=new, removed=old``. Returns False when
        the target row no longer exists.
        """
        delta_sum = (added or 0) - (removed or 0)
        delta_count = (added is not None) - (removed is not None)
        if delta_sum == 0 and delta_count == 0:
            return True

        model = target.model
        new_sum = model.rating_sum + delta_sum
        new_count = model.total_reviews + delta_count

        # Right-hand sides see the pre-update row, so all three columns move together
        updated = (
            db.query(model)
            .filter(model.id == target.id)
            .update(
                {
                    model.rating_sum: new_sum,
                    model.total_reviews: new_count,
                    model.rating: case(
                        (new_count > 0, cast(new_sum, Float) / new_count),
                        else_=0.0,
                    ),
                },
                synchronize_session=False,
            )
        )
        if not updated:
            logger.warning(
                "rating_target_missing",
                target_type=target.kind.value,
                target_id=target.id,
            )
            return False
        return True

    @staticmethod
    def recompute(db: Session, target: ReviewTarget) -> RatingSummary:
        """Rebuild the summary from the ledger. Caller commits."""
        model = target.model
        row = (
            db.query(model)
            .filter(model.id == target.id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if row is None:
            raise TargetNotFound(target.kind.value)

        total_reviews, rating_sum = (
            db.query(
                func.count(Review.id),
                func.coalesce(func.sum(Review.rating), 0),
            )
            .filter(
                Review.target_type == target.kind,
                Review.target_id == target.id,
                Review.status.in_(COUNTED_STATUSES),
            )
            .one()
        )

        summary = RatingSummary.of(int(rating_sum), int(total_reviews))
        row.rating_sum = summary.rating_sum
        row.total_reviews = summary.total_reviews
        row.rating = summary.rating
        db.flush()

        logger.info(
            "rating_summary_recomputed",
            target_type=target.kind.value,
            target_id=target.id,
            rating=summary.rating,
            total_reviews=summary.total_reviews,
        )
        return summary

    @staticmethod
    def sync(
        db: Session,
        target: ReviewTarget,
        added: Optional[int] = None,
        removed: Optional[int] = None,
    ) -> bool:
        """Apply a ledger change after the review row has been written.

        Runs in a savepoint. If the summary update fails the review write is
        kept and a recompute is queued.
        """
        try:
            with db.begin_nested():
                RatingAggregator.apply(db, target, added=added, removed=removed)
        except SQLAlchemyError:
            logger.exception(
                "rating_summary_stale",
                target_type=target.kind.value,
                target_id=target.id,
                added=added,
                removed=removed,
            )
            schedule_recompute(target)
            return False
        return True


def schedule_recompute(target: ReviewTarget) -> None:
    try:
        from marketplace.tasks.rating_tasks import recompute_target_rating
        recompute_target_rating.delay(target.kind.value, target.id)
    except Exception:
        # Broker down: the nightly reconciliation repairs the summary
        logger.exception(
            "rating_recompute_enqueue_failed",
            target_type=target.kind.value,
            target_id=target.id,
        )
