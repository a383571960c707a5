from celery.utils.log import get_task_logger

from marketplace.core.celery_app import celery_app
from marketplace.core.exceptions import TargetNotFound
from marketplace.db.session import SessionLocal
from marketplace.services.rating_aggregator import RatingAggregator
from marketplace.services.target_resolver import TARGET_MODELS, ReviewTarget

logger = get_task_logger(__name__)


@celery_app.task(bind=True, max_retries=3)
def recompute_target_rating(self, target_type: str, target_id: int):
    """Rebuild one target's summary after an incremental update failed."""
    db = SessionLocal()
    try:
        target = ReviewTarget.of(target_type, target_id)
        summary = RatingAggregator.recompute(db, target)
        db.commit()
        return {"rating": summary.rating, "total_reviews": summary.total_reviews}
    except TargetNotFound:
        # Target deleted since the task was queued
        db.rollback()
        logger.info("rating_recompute_skipped target_type=%s target_id=%s", target_type, target_id)
        return None
    except Exception as exc:
        db.rollback()
        raise self.retry(exc=exc, countdown=60)
    finally:
        db.close()


@celery_app.task(bind=True, max_retries=3)
def reconcile_rating_summaries(self):
    """
    Recompute the summary of every shop and product.
    Runs nightly via Celery Beat.
    """
    db = SessionLocal()
    try:
        reconciled = 0
        for kind, model in TARGET_MODELS.items():
            ids = [row.id for row in db.query(model.id).order_by(model.id).all()]
            for target_id in ids:
                try:
                    RatingAggregator.recompute(db, ReviewTarget(kind=kind, id=target_id))
                except TargetNotFound:
                    db.rollback()
                    continue
                # One row lock at a time
                db.commit()
                reconciled += 1
        logger.info("rating_summaries_reconciled count=%s", reconciled)
        return {"reconciled": reconciled}
    except Exception as exc:
        db.rollback()
        raise self.retry(exc=exc, countdown=300)
    finally:
        db.close()
