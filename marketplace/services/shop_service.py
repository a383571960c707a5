from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import or_, and_
from typing import List, Tuple

import structlog

from marketplace.core.exceptions import ShopAlreadyExists, ShopNotFound
from marketplace.models.category import Category
from marketplace.models.product import Product
from marketplace.models.review import Review, TargetType
from marketplace.models.shop import Shop
from marketplace.models.user import User, UserType
from marketplace.schemas.shop import ShopCreate, ShopUpdate
from marketplace.services import counters
from marketplace.services.listing import Page, ShopFilters, SHOP_SORT_FIELDS, paginate, parse_sort
from marketplace.services.ownership import Action, OwnershipGate

logger = structlog.get_logger()


class ShopService:

    @staticmethod
    def create_shop(db: Session, actor: User, shop_data: ShopCreate) -> Shop:
        """Open a shop for the actor. Each user may own at most one."""
        if db.query(Shop.id).filter(Shop.owner_id == actor.id).first():
            raise ShopAlreadyExists()

        values = shop_data.model_dump(exclude_none=True)
        shop = Shop(owner_id=actor.id, **values)
        db.add(shop)

        if actor.user_type == UserType.CUSTOMER:
            actor.user_type = UserType.SHOP_OWNER

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ShopAlreadyExists()
        db.refresh(shop)

        logger.info("shop_created", shop_id=shop.id, owner_id=actor.id, category=shop.category)
        return shop

    @staticmethod
    def list_shops(
        db: Session,
        filters: ShopFilters,
        page: Page,
        sort: str = "-created_at",
    ) -> Tuple[List[Shop], int]:
        order_by = parse_sort(sort, SHOP_SORT_FIELDS, Shop.id)
        return paginate(filters.apply(db.query(Shop)), page, order_by)

    @staticmethod
    def search_shops(db: Session, term: str, limit: int = 10) -> List[Shop]:
        """Best-rated active shops whose name or description matches."""
        query = ShopFilters(search=term).apply(db.query(Shop))
        return query.order_by(Shop.rating.desc(), Shop.id.asc()).limit(limit).all()

    @staticmethod
    def get_shop(db: Session, shop_id: int) -> Shop:
        shop = db.query(Shop).filter(Shop.id == shop_id).first()
        if not shop:
            raise ShopNotFound()
        return shop

    @staticmethod
    def get_owner_shop(db: Session, actor: User) -> Shop:
        shop = db.query(Shop).filter(Shop.owner_id == actor.id).first()
        if not shop:
            raise ShopNotFound("You have not created a shop yet")
        return shop

    @staticmethod
    def update_shop(db: Session, actor: User, shop_id: int, shop_data: ShopUpdate) -> Shop:
        shop = OwnershipGate.authorize_shop(db, actor, shop_id, Action.UPDATE)

        changes = shop_data.model_dump(exclude_unset=True, exclude_none=True)

        # Days not mentioned keep their current hours
        opening_hours = changes.pop("opening_hours", None)
        if opening_hours:
            merged = dict(shop.opening_hours or {})
            merged.update(opening_hours)
            shop.opening_hours = merged

        for field, value in changes.items():
            setattr(shop, field, value)

        db.commit()
        db.refresh(shop)

        logger.info("shop_updated", shop_id=shop.id, owner_id=actor.id, fields=sorted(changes))
        return shop

    @staticmethod
    def delete_shop(db: Session, actor: User, shop_id: int) -> None:
        """Remove the shop, its products and every review pointing at either."""
        shop = OwnershipGate.authorize_shop(db, actor, shop_id, Action.DELETE)

        products = db.query(Product.id, Product.category_id).filter(Product.shop_id == shop.id).all()
        product_ids = [row.id for row in products]

        review_targets = [and_(Review.target_type == TargetType.SHOP, Review.target_id == shop.id)]
        if product_ids:
            review_targets.append(
                and_(Review.target_type == TargetType.PRODUCT, Review.target_id.in_(product_ids))
            )
        removed_reviews = db.query(Review).filter(or_(*review_targets)).delete(synchronize_session=False)

        for row in products:
            counters.decrement(db, Category.total_products, row.category_id)

        db.delete(shop)

        owner = db.query(User).filter(User.id == shop.owner_id).first()
        if owner and owner.user_type == UserType.SHOP_OWNER:
            owner.user_type = UserType.CUSTOMER

        db.commit()

        logger.info(
            "shop_deleted",
            shop_id=shop_id,
            owner_id=actor.id,
            products_removed=len(product_ids),
            reviews_removed=removed_reviews,
        )

