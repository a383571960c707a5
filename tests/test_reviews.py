from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from marketplace.models.product import Product
from marketplace.models.review import Review, ReviewStatus, TargetType
from marketplace.models.shop import Shop
from marketplace.services.review_service import ReviewService
from tests.factories import (
    auth_headers,
    create_category,
    create_product,
    create_shop,
    create_user,
    review_payload,
)


def _catalog(db: Session):
    owner = create_user(db, "owner@example.com")
    shop = create_shop(db, owner)
    product = create_product(db, shop, create_category(db))
    return owner, shop, product


def test_create_product_review_returns_201_and_updates_summary(client: TestClient, db_session: Session):
    _, _, product = _catalog(db_session)
    reviewer = create_user(db_session, "reviewer@example.com", first_name="Ama", last_name="Perera")

    response = client.post(
        "/api/v1/reviews",
        json=review_payload("PRODUCT", product.id, rating=4),
        headers=auth_headers(reviewer),
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["success"] is True
    data = payload["data"]
    assert data["rating"] == 4
    assert data["reviewer_id"] == reviewer.id
    assert data["reviewer_name"] == "Ama Perera"
    assert data["status"] == "APPROVED"

    db_session.expire_all()
    refreshed = db_session.query(Product).filter(Product.id == product.id).one()
    assert refreshed.total_reviews == 1
    assert refreshed.rating == 4.0


def test_second_review_for_same_target_is_conflict(client: TestClient, db_session: Session):
    _, shop, _ = _catalog(db_session)
    reviewer = create_user(db_session, "reviewer@example.com")
    headers = auth_headers(reviewer)

    first = client.post("/api/v1/reviews", json=review_payload("SHOP", shop.id), headers=headers)
    assert first.status_code == 201

    second = client.post("/api/v1/reviews", json=review_payload("SHOP", shop.id, rating=1), headers=headers)
    assert second.status_code == 409
    assert second.json()["success"] is False

    db_session.expire_all()
    assert db_session.query(Review).count() == 1
    refreshed = db_session.query(Shop).filter(Shop.id == shop.id).one()
    assert refreshed.total_reviews == 1
    assert refreshed.rating == 5.0


def test_duplicate_caught_by_unique_constraint_is_conflict(
    client: TestClient, db_session: Session, monkeypatch
):
    _, _, product = _catalog(db_session)
    reviewer = create_user(db_session, "reviewer@example.com")
    headers = auth_headers(reviewer)
    first = client.post("/api/v1/reviews", json=review_payload("PRODUCT", product.id), headers=headers)
    assert first.status_code == 201

    # Both requests passed the existence check before either inserted
    monkeypatch.setattr(ReviewService, "_already_reviewed", staticmethod(lambda *args: False))
    second = client.post(
        "/api/v1/reviews",
        json=review_payload("PRODUCT", product.id, rating=1),
        headers=headers,
    )

    assert second.status_code == 409
    assert second.json()["message"] == "You have already reviewed this"

    db_session.expire_all()
    assert db_session.query(Review).count() == 1
    refreshed = db_session.query(Product).filter(Product.id == product.id).one()
    assert refreshed.total_reviews == 1
    assert refreshed.rating == 5.0


def test_same_reviewer_may_review_different_targets(client: TestClient, db_session: Session):
    _, shop, product = _catalog(db_session)
    reviewer = create_user(db_session, "reviewer@example.com")
    headers = auth_headers(reviewer)

    shop_review = client.post("/api/v1/reviews", json=review_payload("SHOP", shop.id), headers=headers)
    product_review = client.post("/api/v1/reviews", json=review_payload("PRODUCT", product.id), headers=headers)

    assert shop_review.status_code == 201
    assert product_review.status_code == 201


def test_same_id_under_other_target_type_is_a_separate_target(client: TestClient, db_session: Session):
    _, shop, product = _catalog(db_session)
    assert shop.id == product.id == 1
    reviewer = create_user(db_session, "reviewer@example.com")
    headers = auth_headers(reviewer)

    client.post("/api/v1/reviews", json=review_payload("SHOP", 1, rating=2), headers=headers)
    client.post("/api/v1/reviews", json=review_payload("PRODUCT", 1, rating=5), headers=headers)

    db_session.expire_all()
    assert db_session.query(Shop).filter(Shop.id == 1).one().rating == 2.0
    assert db_session.query(Product).filter(Product.id == 1).one().rating == 5.0


def test_invalid_target_type_is_validation_error(client: TestClient, db_session: Session):
    reviewer = create_user(db_session, "reviewer@example.com")

    response = client.post(
        "/api/v1/reviews",
        json=review_payload("CATEGORY", 1),
        headers=auth_headers(reviewer),
    )

    assert response.status_code == 400
    fields = [error["field"] for error in response.json()["errors"]]
    assert "target_type" in fields


def test_rating_out_of_range_is_validation_error(client: TestClient, db_session: Session):
    _, _, product = _catalog(db_session)
    reviewer = create_user(db_session, "reviewer@example.com")

    response = client.post(
        "/api/v1/reviews",
        json=review_payload("PRODUCT", product.id, rating=6),
        headers=auth_headers(reviewer),
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "rating"


def test_review_of_missing_target_is_not_found(client: TestClient, db_session: Session):
    reviewer = create_user(db_session, "reviewer@example.com")

    response = client.post(
        "/api/v1/reviews",
        json=review_payload("PRODUCT", 999),
        headers=auth_headers(reviewer),
    )

    assert response.status_code == 404
    assert response.json()["message"] == "product not found"


def test_create_review_requires_authentication(client: TestClient, db_session: Session):
    _, _, product = _catalog(db_session)

    response = client.post("/api/v1/reviews", json=review_payload("PRODUCT", product.id))

    assert response.status_code == 401


def test_review_text_is_stripped_of_markup(client: TestClient, db_session: Session):
    _, _, product = _catalog(db_session)
    reviewer = create_user(db_session, "reviewer@example.com")

    response = client.post(
        "/api/v1/reviews",
        json=review_payload(
            "PRODUCT",
            product.id,
            comment="<script>alert(1)</script>Works <b>great</b> for me",
        ),
        headers=auth_headers(reviewer),
    )

    assert response.status_code == 201
    assert "<" not in response.json()["data"]["comment"]


def test_non_author_cannot_update_or_delete_review(client: TestClient, db_session: Session):
    _, _, product = _catalog(db_session)
    author = create_user(db_session, "author@example.com")
    other = create_user(db_session, "other@example.com")

    created = client.post(
        "/api/v1/reviews",
        json=review_payload("PRODUCT", product.id),
        headers=auth_headers(author),
    )
    review_id = created.json()["data"]["id"]

    update = client.put(f"/api/v1/reviews/{review_id}", json={"rating": 1}, headers=auth_headers(other))
    delete = client.delete(f"/api/v1/reviews/{review_id}", headers=auth_headers(other))

    assert update.status_code == 403
    assert update.json()["message"] == "You do not have permission to update this review"
    assert delete.status_code == 403

    db_session.expire_all()
    assert db_session.query(Review).filter(Review.id == review_id).one().rating == 5


def test_missing_review_is_not_found_before_ownership(client: TestClient, db_session: Session):
    someone = create_user(db_session, "someone@example.com")

    response = client.put(
        "/api/v1/reviews/does-not-exist",
        json={"rating": 3},
        headers=auth_headers(someone),
    )

    assert response.status_code == 404


def test_author_updates_rating_and_summary_follows(client: TestClient, db_session: Session):
    _, _, product = _catalog(db_session)
    first = create_user(db_session, "first@example.com")
    second = create_user(db_session, "second@example.com")

    created = client.post(
        "/api/v1/reviews",
        json=review_payload("PRODUCT", product.id, rating=2),
        headers=auth_headers(first),
    )
    client.post(
        "/api/v1/reviews",
        json=review_payload("PRODUCT", product.id, rating=4),
        headers=auth_headers(second),
    )

    response = client.put(
        f"/api/v1/reviews/{created.json()['data']['id']}",
        json={"rating": 5, "title": "Changed my mind"},
        headers=auth_headers(first),
    )

    assert response.status_code == 200
    assert response.json()["data"]["title"] == "Changed my mind"

    db_session.expire_all()
    refreshed = db_session.query(Product).filter(Product.id == product.id).one()
    assert refreshed.total_reviews == 2
    assert refreshed.rating == 4.5


def test_helpful_and_unhelpful_need_no_authentication(client: TestClient, db_session: Session):
    _, _, product = _catalog(db_session)
    author = create_user(db_session, "author@example.com")
    created = client.post(
        "/api/v1/reviews",
        json=review_payload("PRODUCT", product.id),
        headers=auth_headers(author),
    )
    review_id = created.json()["data"]["id"]

    client.patch(f"/api/v1/reviews/{review_id}/helpful")
    helpful = client.patch(f"/api/v1/reviews/{review_id}/helpful")
    unhelpful = client.patch(f"/api/v1/reviews/{review_id}/unhelpful")

    assert helpful.status_code == 200
    assert helpful.json()["data"]["helpful"] == 2
    assert unhelpful.json()["data"]["unhelpful"] == 1


def test_helpful_on_missing_review_is_not_found(client: TestClient):
    response = client.patch("/api/v1/reviews/missing/helpful")
    assert response.status_code == 404


def test_listing_shows_only_approved_reviews(client: TestClient, db_session: Session):
    _, _, product = _catalog(db_session)
    for index, status in enumerate([ReviewStatus.APPROVED, ReviewStatus.PENDING, ReviewStatus.APPROVED]):
        reviewer = create_user(db_session, f"r{index}@example.com")
        db_session.add(Review(
            reviewer_id=reviewer.id,
            target_type=TargetType.PRODUCT,
            target_id=product.id,
            rating=index + 3,
            title="Review",
            comment="A perfectly reasonable review.",
            status=status,
        ))
    db_session.commit()

    response = client.get(f"/api/v1/reviews/PRODUCT/{product.id}?sort=rating")

    assert response.status_code == 200
    data = response.json()["data"]
    assert [review["rating"] for review in data["reviews"]] == [3, 5]
    assert data["pagination"] == {"total": 2, "page": 1, "limit": 10, "pages": 1}


def test_rating_summary_counts_every_status(client: TestClient, db_session: Session):
    _, shop, _ = _catalog(db_session)
    for index, (rating, status) in enumerate([(5, ReviewStatus.APPROVED), (5, ReviewStatus.APPROVED),
                                              (2, ReviewStatus.PENDING)]):
        reviewer = create_user(db_session, f"s{index}@example.com")
        db_session.add(Review(
            reviewer_id=reviewer.id,
            target_type=TargetType.SHOP,
            target_id=shop.id,
            rating=rating,
            title="Review",
            comment="A perfectly reasonable review.",
            status=status,
        ))
    db_session.commit()

    response = client.get(f"/api/v1/reviews/summary/SHOP/{shop.id}")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_reviews"] == 3
    assert data["average_rating"] == 4.0
    assert data["rating_distribution"] == {"1": 0, "2": 1, "3": 0, "4": 0, "5": 2}


def test_get_review_by_id_and_my_reviews(client: TestClient, db_session: Session):
    _, shop, product = _catalog(db_session)
    reviewer = create_user(db_session, "reviewer@example.com")
    headers = auth_headers(reviewer)
    created = client.post("/api/v1/reviews", json=review_payload("SHOP", shop.id), headers=headers)
    client.post("/api/v1/reviews", json=review_payload("PRODUCT", product.id), headers=headers)

    single = client.get(f"/api/v1/reviews/item/{created.json()['data']['id']}")
    mine = client.get("/api/v1/reviews/user/my-reviews", headers=headers)

    assert single.status_code == 200
    assert single.json()["data"]["target_type"] == "SHOP"
    assert mine.status_code == 200
    assert mine.json()["data"]["pagination"]["total"] == 2
