from sqlalchemy.orm import Session
import logging
from slugify import slugify

from marketplace.models.user import User, UserType
from marketplace.models.category import Category
from marketplace.core.config import settings
from marketplace.core.security import hash_password

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {"name": "Electronics", "description": "Phones, computers and accessories", "icon": "cpu"},
    {"name": "Fashion", "description": "Clothing, shoes and jewellery", "icon": "shirt"},
    {"name": "Groceries", "description": "Fresh food and household staples", "icon": "basket"},
    {"name": "Home & Living", "description": "Furniture, decor and kitchenware", "icon": "home"},
    {"name": "Beauty", "description": "Cosmetics and personal care", "icon": "sparkles"},
    {"name": "Books", "description": "Books, magazines and stationery", "icon": "book"},
    {"name": "Sports", "description": "Sporting goods and outdoor gear", "icon": "ball"},
    {"name": "Toys", "description": "Toys and games for all ages", "icon": "puzzle"},
]


def init_db(db: Session) -> None:
    """Initialize database with default data"""

    # Create admin user
    admin_email = settings.DEFAULT_ADMIN_EMAIL
    admin = db.query(User).filter(User.email == admin_email).first()
    if not admin:
        seed_password = (settings.DEFAULT_ADMIN_PASSWORD or "").strip()
        if not seed_password:
            message = (
                "Missing admin bootstrap credentials: set DEFAULT_ADMIN_PASSWORD "
                "or create an admin user manually before launch."
            )
            if settings.ENVIRONMENT == "production":
                logger.error("%s env=%s", message, settings.ENVIRONMENT)
                raise RuntimeError(message)
            logger.warning("%s env=%s", message, settings.ENVIRONMENT)
        else:
            admin = User(
                email=admin_email,
                password_hash=hash_password(seed_password),
                first_name="Marketplace",
                last_name="Admin",
                user_type=UserType.ADMIN,
                is_active=True,
            )
            db.add(admin)
            logger.info("admin_user_created email=%s", admin_email)

    # Create categories
    for cat_data in DEFAULT_CATEGORIES:
        existing = db.query(Category).filter(Category.name == cat_data["name"]).first()
        if not existing:
            category = Category(slug=slugify(cat_data["name"]), **cat_data)
            db.add(category)
            logger.info("category_created name=%s", cat_data["name"])

    db.commit()
    logger.info("database_initialized")


if __name__ == "__main__":
    from marketplace.db.session import SessionLocal
    db = SessionLocal()
    init_db(db)
    db.close()
