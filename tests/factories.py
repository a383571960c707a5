from sqlalchemy.orm import Session

from marketplace.core.security import create_access_token, hash_password
from marketplace.models.category import Category
from marketplace.models.product import Product
from marketplace.models.shop import Shop
from marketplace.models.user import User, UserType

TEST_PASSWORD = "StrongPass1"
# bcrypt is slow; hash once for every user the suite creates
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


def create_user(
    db: Session,
    email: str,
    user_type: UserType = UserType.CUSTOMER,
    first_name: str = "Test",
    last_name: str = "User",
) -> User:
    user = User(
        email=email,
        password_hash=TEST_PASSWORD_HASH,
        first_name=first_name,
        last_name=last_name,
        user_type=user_type,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def create_category(db: Session, name: str = "Electronics", slug: str = "electronics") -> Category:
    category = Category(name=name, slug=slug, is_active=True)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def create_shop(db: Session, owner: User, name: str = "Corner Shop", city: str = "Colombo",
                category: str = "Electronics") -> Shop:
    shop = Shop(
        owner_id=owner.id,
        name=name,
        description=f"{name} sells things",
        category=category,
        phone="0771234567",
        email=f"shop{owner.id}@example.com",
        street="1 Main Street",
        city=city,
        district=city,
    )
    owner.user_type = UserType.SHOP_OWNER
    db.add(shop)
    db.commit()
    db.refresh(shop)
    return shop


def create_product(db: Session, shop: Shop, category: Category, name: str = "Phone",
                   price: float = 100.0, **extra) -> Product:
    product = Product(
        shop_id=shop.id,
        category_id=category.id,
        name=name,
        description=f"{name} description",
        price=price,
        quantity=5,
        **extra,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def shop_payload(**overrides) -> dict:
    payload = {
        "name": "Lanka Electronics",
        "description": "Phones and laptops",
        "category": "Electronics",
        "phone": "0771234567",
        "email": "hello@lanka-electronics.com",
        "street": "12 Galle Road",
        "city": "Colombo",
        "district": "Colombo",
    }
    payload.update(overrides)
    return payload


def review_payload(target_type: str, target_id: int, rating: int = 5, **overrides) -> dict:
    payload = {
        "target_type": target_type,
        "target_id": target_id,
        "rating": rating,
        "title": "Solid purchase",
        "comment": "Exactly as described and arrived quickly.",
    }
    payload.update(overrides)
    return payload
