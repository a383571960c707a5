from collections.abc import Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

from marketplace.core.exceptions import ReviewNotFound
from marketplace.models.product import Product
from marketplace.models.review import Review
from marketplace.models.user import User
from marketplace.schemas.review import ReviewCreate, ReviewUpdate
from marketplace.services.ownership import OwnershipGate
from marketplace.services.review_service import ReviewService
from tests.factories import create_category, create_product, create_shop, create_user


@pytest.fixture()
def other_session(db_session: Session) -> Generator[Session, None, None]:
    """A second connection to the same database, standing in for a concurrent request."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=db_session.get_bind())()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


def _reviewed_product(db: Session, rating: int):
    owner = create_user(db, "owner@example.com")
    product = create_product(db, create_shop(db, owner), create_category(db))
    author = create_user(db, "author@example.com")
    review = ReviewService.create_review(db, author, ReviewCreate(
        target_type="PRODUCT",
        target_id=product.id,
        rating=rating,
        title="Review",
        comment="A perfectly reasonable review.",
    ))
    return product, author, review.id


def _run_after_read(monkeypatch, session: Session, competing) -> None:
    """Run ``competing`` once ``session`` has read the review and before it writes."""
    authorize = OwnershipGate.authorize_review

    def authorize_then_compete(db, actor, review_id, action):
        review = authorize(db, actor, review_id, action)
        if db is session:
            competing()
        return review

    monkeypatch.setattr(OwnershipGate, "authorize_review", staticmethod(authorize_then_compete))


def _stored_summary(db: Session, product_id: int):
    db.expire_all()
    product = db.query(Product).filter(Product.id == product_id).one()
    return product.rating, product.total_reviews, product.rating_sum


def test_interleaved_rating_updates_fold_against_the_committed_rating(
    db_session: Session, other_session: Session, monkeypatch
):
    product, author, review_id = _reviewed_product(db_session, rating=3)
    _run_after_read(
        monkeypatch,
        other_session,
        lambda: ReviewService.update_review(db_session, author, review_id, ReviewUpdate(rating=5)),
    )

    ReviewService.update_review(
        other_session, other_session.get(User, author.id), review_id, ReviewUpdate(rating=4)
    )

    assert _stored_summary(db_session, product.id) == (4.0, 1, 4)
    assert db_session.query(Review).filter(Review.id == review_id).one().rating == 4


def test_interleaved_deletes_remove_the_rating_once(
    db_session: Session, other_session: Session, monkeypatch
):
    product, author, review_id = _reviewed_product(db_session, rating=3)
    _run_after_read(
        monkeypatch,
        other_session,
        lambda: ReviewService.delete_review(db_session, author, review_id),
    )

    with pytest.raises(ReviewNotFound):
        ReviewService.delete_review(other_session, other_session.get(User, author.id), review_id)
    other_session.rollback()

    assert _stored_summary(db_session, product.id) == (0.0, 0, 0)
    assert db_session.query(Review).count() == 0


def test_update_of_a_review_deleted_meanwhile_is_not_found(
    db_session: Session, other_session: Session, monkeypatch
):
    product, author, review_id = _reviewed_product(db_session, rating=2)
    _run_after_read(
        monkeypatch,
        other_session,
        lambda: ReviewService.delete_review(db_session, author, review_id),
    )

    with pytest.raises(ReviewNotFound):
        ReviewService.update_review(
            other_session, other_session.get(User, author.id), review_id, ReviewUpdate(rating=5)
        )
    other_session.rollback()

    assert _stored_summary(db_session, product.id) == (0.0, 0, 0)
