from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func
from typing import List, Tuple

import structlog

from marketplace.core.exceptions import DuplicateReview, ReviewChanged, ReviewNotFound
from marketplace.models.review import Review, ReviewStatus
from marketplace.models.user import User
from marketplace.schemas.review import ReviewCreate, ReviewUpdate
from marketplace.services import counters
from marketplace.services.listing import Page, ReviewFilters, REVIEW_SORT_FIELDS, paginate, parse_sort
from marketplace.services.ownership import Action, OwnershipGate
from marketplace.services.rating_aggregator import RatingAggregator
from marketplace.services.target_resolver import ReviewTarget, resolve_target

logger = structlog.get_logger()

RATING_WRITE_ATTEMPTS = 3


class ReviewService:

    @staticmethod
    def _already_reviewed(db: Session, reviewer_id: int, target: ReviewTarget) -> bool:
        return db.query(Review.id).filter(
            Review.reviewer_id == reviewer_id,
            Review.target_type == target.kind,
            Review.target_id == target.id,
        ).first() is not None

    @staticmethod
    def create_review(db: Session, actor: User, review_data: ReviewCreate) -> Review:
        """Create a review. One review per reviewer per target."""
        target = ReviewTarget.of(review_data.target_type, review_data.target_id)
        resolve_target(db, target)

        if ReviewService._already_reviewed(db, actor.id, target):
            raise DuplicateReview()

        review = Review(
            reviewer_id=actor.id,
            target_type=target.kind,
            target_id=target.id,
            rating=review_data.rating,
            title=review_data.title,
            comment=review_data.comment,
            images=review_data.images,
            status=ReviewStatus.APPROVED,
        )
        db.add(review)

        # A concurrent duplicate slips past the check above; the constraint catches it
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            raise DuplicateReview()

        if RatingAggregator.counts(review):
            RatingAggregator.sync(db, target, added=review.rating)

        db.commit()
        db.refresh(review)

        logger.info(
            "review_created",
            review_id=review.id,
            reviewer_id=actor.id,
            target_type=target.kind.value,
            target_id=target.id,
            rating=review.rating,
        )
        return review

    @staticmethod
    def get_review(db: Session, review_id: str) -> Review:
        review = db.query(Review).filter(Review.id == review_id).first()
        if not review:
            raise ReviewNotFound()
        return review

    @staticmethod
    def list_for_target(
        db: Session,
        target_type: str,
        target_id: int,
        page: Page,
        sort: str = "-created_at",
    ) -> Tuple[List[Review], int]:
        """Approved reviews for a target, newest first by default."""
        target = ReviewTarget.of(target_type, target_id)
        order_by = parse_sort(sort, REVIEW_SORT_FIELDS, Review.id)

        query = ReviewFilters(target=target, status=ReviewStatus.APPROVED).apply(db.query(Review))
        return paginate(query, page, order_by)

    @staticmethod
    def list_for_reviewer(db: Session, actor: User, page: Page) -> Tuple[List[Review], int]:
        order_by = parse_sort("-created_at", REVIEW_SORT_FIELDS, Review.id)
        query = ReviewFilters(reviewer_id=actor.id).apply(db.query(Review))
        return paginate(query, page, order_by)

    @staticmethod
    def _write_at_rating(db: Session, review: Review, write) -> int:
        """Run ``write`` on the review row only while its rating is the one last read.

        Returns the rating the write matched, which is the value the summary
        has to give back. A miss means another request changed or removed the
        row in between, so the rating is read again and the write retried.
        """
        rating = review.rating
        for _ in range(RATING_WRITE_ATTEMPTS):
            matched = write(db.query(Review).filter(Review.id == review.id, Review.rating == rating))
            if matched == 1:
                return rating

            rating = db.query(Review.rating).filter(Review.id == review.id).scalar()
            if rating is None:
                raise ReviewNotFound()

        raise ReviewChanged()

    @staticmethod
    def update_review(db: Session, actor: User, review_id: str, review_data: ReviewUpdate) -> Review:
        """Update rating, title or comment. Only the author may do this."""
        review = OwnershipGate.authorize_review(db, actor, review_id, Action.UPDATE)

        changes = review_data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return review

        old_rating = ReviewService._write_at_rating(
            db, review, lambda query: query.update(changes, synchronize_session=False)
        )
        new_rating = changes.get("rating", old_rating)

        if new_rating != old_rating and RatingAggregator.counts(review):
            RatingAggregator.sync(
                db,
                ReviewTarget.for_review(review),
                added=new_rating,
                removed=old_rating,
            )

        db.commit()
        db.refresh(review)

        logger.info(
            "review_updated",
            review_id=review.id,
            reviewer_id=actor.id,
            rating=review.rating,
            previous_rating=old_rating,
        )
        return review

    @staticmethod
    def delete_review(db: Session, actor: User, review_id: str) -> None:
        review = OwnershipGate.authorize_review(db, actor, review_id, Action.DELETE)

        target = ReviewTarget.for_review(review)
        counted = RatingAggregator.counts(review)

        rating = ReviewService._write_at_rating(
            db, review, lambda query: query.delete(synchronize_session=False)
        )
        db.expunge(review)

        if counted:
            RatingAggregator.sync(db, target, removed=rating)

        db.commit()

        logger.info(
            "review_deleted",
            review_id=review_id,
            reviewer_id=actor.id,
            target_type=target.kind.value,
            target_id=target.id,
        )

    @staticmethod
    def _bump(db: Session, column, review_id: str) -> Review:
        if not counters.increment(db, column, review_id):
            raise ReviewNotFound()
        db.commit()

        review = db.query(Review).filter(Review.id == review_id).populate_existing().first()
        return review

    @staticmethod
    def mark_helpful(db: Session, review_id: str) -> Review:
        return ReviewService._bump(db, Review.helpful, review_id)

    @staticmethod
    def mark_unhelpful(db: Session, review_id: str) -> Review:
        return ReviewService._bump(db, Review.unhelpful, review_id)

    @staticmethod
    def rating_summary(db: Session, target_type: str, target_id: int) -> dict:
        """Distribution of 1-5 star ratings over every review of the target."""
        target = ReviewTarget.of(target_type, target_id)

        rows = db.query(Review.rating, func.count(Review.id)).filter(
            Review.target_type == target.kind,
            Review.target_id == target.id,
        ).group_by(Review.rating).all()

        distribution = {stars: 0 for stars in range(1, 6)}
        for rating, count in rows:
            distribution[rating] = count

        total = sum(distribution.values())
        rating_sum = sum(stars * count for stars, count in distribution.items())
        average = round(rating_sum / total, 2) if total else 0.0

        return {
            "target_type": target.kind,
            "target_id": target.id,
            "total_reviews": total,
            "average_rating": average,
            "rating_distribution": distribution,
        }
