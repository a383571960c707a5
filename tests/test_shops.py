from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from marketplace.models.category import Category
from marketplace.models.product import Product
from marketplace.models.review import Review, TargetType
from marketplace.models.shop import Shop
from marketplace.models.user import User, UserType
from tests.factories import (
    auth_headers,
    create_category,
    create_product,
    create_shop,
    create_user,
    review_payload,
    shop_payload,
)


def test_create_shop_promotes_customer_to_shop_owner(client: TestClient, db_session: Session):
    user = create_user(db_session, "seller@example.com")

    response = client.post("/api/v1/shops", json=shop_payload(), headers=auth_headers(user))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["owner_id"] == user.id
    assert data["rating"] == 0.0
    assert data["total_reviews"] == 0
    assert data["opening_hours"]["sunday"]["is_open"] is False

    db_session.expire_all()
    assert db_session.query(User).filter(User.id == user.id).one().user_type == UserType.SHOP_OWNER


def test_second_shop_for_same_owner_is_conflict(client: TestClient, db_session: Session):
    user = create_user(db_session, "seller@example.com")
    headers = auth_headers(user)

    client.post("/api/v1/shops", json=shop_payload(), headers=headers)
    response = client.post("/api/v1/shops", json=shop_payload(name="Another"), headers=headers)

    assert response.status_code == 409
    assert db_session.query(Shop).count() == 1


def test_create_shop_rejects_unknown_category(client: TestClient, db_session: Session):
    user = create_user(db_session, "seller@example.com")

    response = client.post(
        "/api/v1/shops",
        json=shop_payload(category="Spaceships"),
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "category"


def test_non_owner_update_is_forbidden_owner_update_applies(client: TestClient, db_session: Session):
    owner = create_user(db_session, "a@example.com")
    intruder = create_user(db_session, "b@example.com")
    shop = create_shop(db_session, owner)

    forbidden = client.put(
        f"/api/v1/shops/{shop.id}",
        json={"name": "Hijacked"},
        headers=auth_headers(intruder),
    )
    allowed = client.put(
        f"/api/v1/shops/{shop.id}",
        json={"name": "Renamed", "city": "Kandy"},
        headers=auth_headers(owner),
    )

    assert forbidden.status_code == 403
    assert forbidden.json()["message"] == "You do not have permission to update this shop"
    assert allowed.status_code == 200
    assert allowed.json()["data"]["name"] == "Renamed"
    assert allowed.json()["data"]["city"] == "Kandy"


def test_update_merges_opening_hours(client: TestClient, db_session: Session):
    owner = create_user(db_session, "a@example.com")
    shop = create_shop(db_session, owner)

    response = client.put(
        f"/api/v1/shops/{shop.id}",
        json={"opening_hours": {"monday": {"is_open": True, "open_time": "08:00", "close_time": "20:00"}}},
        headers=auth_headers(owner),
    )

    hours = response.json()["data"]["opening_hours"]
    assert hours["monday"]["open_time"] == "08:00"
    assert hours["tuesday"]["open_time"] == "09:00"


def test_update_missing_shop_is_not_found(client: TestClient, db_session: Session):
    user = create_user(db_session, "a@example.com")

    response = client.put("/api/v1/shops/999", json={"name": "X"}, headers=auth_headers(user))

    assert response.status_code == 404


def test_non_owner_cannot_delete_shop(client: TestClient, db_session: Session):
    owner = create_user(db_session, "a@example.com")
    intruder = create_user(db_session, "b@example.com")
    shop = create_shop(db_session, owner)

    response = client.delete(f"/api/v1/shops/{shop.id}", headers=auth_headers(intruder))

    assert response.status_code == 403
    assert db_session.query(Shop).count() == 1


def test_delete_shop_removes_products_reviews_and_reverts_owner(client: TestClient, db_session: Session):
    owner = create_user(db_session, "a@example.com")
    reviewer = create_user(db_session, "r@example.com")
    category = create_category(db_session)
    shop = create_shop(db_session, owner)
    product = create_product(db_session, shop, category)
    category.total_products = 1
    db_session.commit()

    client.post("/api/v1/reviews", json=review_payload("SHOP", shop.id), headers=auth_headers(reviewer))
    client.post("/api/v1/reviews", json=review_payload("PRODUCT", product.id), headers=auth_headers(reviewer))

    response = client.delete(f"/api/v1/shops/{shop.id}", headers=auth_headers(owner))

    assert response.status_code == 200
    db_session.expire_all()
    assert db_session.query(Shop).count() == 0
    assert db_session.query(Product).count() == 0
    assert db_session.query(Review).count() == 0
    assert db_session.query(Category).one().total_products == 0
    assert db_session.query(User).filter(User.id == owner.id).one().user_type == UserType.CUSTOMER


def test_list_shops_filters_and_paginates(client: TestClient, db_session: Session):
    for index in range(12):
        owner = create_user(db_session, f"o{index}@example.com")
        create_shop(db_session, owner, name=f"Shop {index}", city="Galle" if index % 2 else "Colombo")

    first_page = client.get("/api/v1/shops?city=galle&limit=5")
    second_page = client.get("/api/v1/shops?city=galle&limit=5&page=2")

    assert first_page.status_code == 200
    pagination = first_page.json()["data"]["pagination"]
    assert pagination == {"total": 6, "page": 1, "limit": 5, "pages": 2}
    assert len(first_page.json()["data"]["shops"]) == 5
    assert len(second_page.json()["data"]["shops"]) == 1


def test_list_shops_rejects_unknown_sort_field(client: TestClient):
    response = client.get("/api/v1/shops?sort=-owner_password")

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "sort"


def test_search_and_my_shop(client: TestClient, db_session: Session):
    owner = create_user(db_session, "a@example.com")
    create_shop(db_session, owner, name="Spice Garden")
    other = create_user(db_session, "b@example.com")
    create_shop(db_session, other, name="Book Nook")

    search = client.get("/api/v1/shops/search?q=spice")
    mine = client.get("/api/v1/shops/user/my-shop", headers=auth_headers(other))

    assert [shop["name"] for shop in search.json()["data"]] == ["Spice Garden"]
    assert mine.json()["data"]["name"] == "Book Nook"


def test_my_shop_without_shop_is_not_found(client: TestClient, db_session: Session):
    user = create_user(db_session, "a@example.com")

    response = client.get("/api/v1/shops/user/my-shop", headers=auth_headers(user))

    assert response.status_code == 404
