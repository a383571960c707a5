from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from datetime import datetime
from typing import List, Tuple

import structlog

from marketplace.core.exceptions import APIError, CategoryNotFound, ProductNotFound, ShopNotFound, ValidationFailed
from marketplace.models.category import Category
from marketplace.models.product import Product
from marketplace.models.review import Review, TargetType
from marketplace.models.shop import Shop
from marketplace.models.user import User
from marketplace.schemas.product import ProductCreate, ProductUpdate
from marketplace.services import counters
from marketplace.services.listing import Page, ProductFilters, PRODUCT_SORT_FIELDS, paginate, parse_sort
from marketplace.services.ownership import Action, OwnershipGate

logger = structlog.get_logger()


class ProductService:

    @staticmethod
    def _require_category(db: Session, category_id: int) -> Category:
        category = db.query(Category).filter(Category.id == category_id).first()
        if not category:
            raise CategoryNotFound()
        return category

    @staticmethod
    def _default_sku(shop: Shop) -> str:
        return f"{shop.id}-{int(datetime.utcnow().timestamp() * 1000)}"

    @staticmethod
    def create_product(db: Session, actor: User, product_data: ProductCreate) -> Product:
        """Add a product to the actor's shop."""
        shop = db.query(Shop).filter(Shop.owner_id == actor.id).first()
        if not shop:
            raise ShopNotFound("You need to create a shop first")

        ProductService._require_category(db, product_data.category_id)

        values = product_data.model_dump()
        values["sku"] = values.get("sku") or ProductService._default_sku(shop)
        product = Product(shop_id=shop.id, in_stock=values["quantity"] > 0, **values)
        db.add(product)

        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            raise APIError(409, "Product with this SKU already exists")

        counters.increment(db, Shop.total_products, shop.id)
        counters.increment(db, Category.total_products, product.category_id)

        db.commit()
        db.refresh(product)

        logger.info("product_created", product_id=product.id, shop_id=shop.id, sku=product.sku)
        return product

    @staticmethod
    def list_products(
        db: Session,
        filters: ProductFilters,
        page: Page,
        sort: str = "-created_at",
    ) -> Tuple[List[Product], int]:
        order_by = parse_sort(sort, PRODUCT_SORT_FIELDS, Product.id)
        return paginate(filters.apply(db.query(Product)), page, order_by)

    @staticmethod
    def featured_products(db: Session, limit: int = 10) -> List[Product]:
        query = ProductFilters(highlighted=True).apply(db.query(Product))
        return query.order_by(Product.rating.desc(), Product.id.asc()).limit(limit).all()

    @staticmethod
    def search_products(db: Session, term: str, limit: int = 10) -> List[Product]:
        query = ProductFilters(search=term).apply(db.query(Product))
        return query.order_by(Product.rating.desc(), Product.id.asc()).limit(limit).all()

    @staticmethod
    def list_owner_products(db: Session, actor: User, page: Page) -> Tuple[List[Product], int]:
        shop = db.query(Shop).filter(Shop.owner_id == actor.id).first()
        if not shop:
            raise ShopNotFound("You have not created a shop yet")

        filters = ProductFilters(shop_id=shop.id, active_only=False)
        return ProductService.list_products(db, filters, page)

    @staticmethod
    def get_product(db: Session, product_id: int, count_view: bool = True) -> Product:
        """Fetch a product. A public read counts as one view."""
        if count_view:
            if not counters.increment(db, Product.views, product_id):
                raise ProductNotFound()
            db.commit()

        product = db.query(Product).filter(Product.id == product_id).populate_existing().first()
        if not product:
            raise ProductNotFound()
        return product

    @staticmethod
    def update_product(db: Session, actor: User, product_id: int, product_data: ProductUpdate) -> Product:
        product, _shop = OwnershipGate.authorize_product(db, actor, product_id, Action.UPDATE)

        changes = product_data.model_dump(exclude_unset=True, exclude_none=True)
        if "quantity" in changes and "in_stock" not in changes:
            changes["in_stock"] = changes["quantity"] > 0

        price = changes.get("price", product.price)
        discount_price = changes.get("discount_price", product.discount_price)
        if discount_price is not None and discount_price >= price:
            raise ValidationFailed("discount_price", "Discount price must be less than regular price")

        new_category_id = changes.get("category_id")
        if new_category_id is not None and new_category_id != product.category_id:
            ProductService._require_category(db, new_category_id)
            counters.decrement(db, Category.total_products, product.category_id)
            counters.increment(db, Category.total_products, new_category_id)

        for field, value in changes.items():
            setattr(product, field, value)

        db.commit()
        db.refresh(product)

        logger.info("product_updated", product_id=product.id, owner_id=actor.id, fields=sorted(changes))
        return product

    @staticmethod
    def delete_product(db: Session, actor: User, product_id: int) -> None:
        product, shop = OwnershipGate.authorize_product(db, actor, product_id, Action.DELETE)

        removed_reviews = db.query(Review).filter(
            Review.target_type == TargetType.PRODUCT,
            Review.target_id == product.id,
        ).delete(synchronize_session=False)

        category_id = product.category_id
        db.delete(product)
        db.flush()

        counters.decrement(db, Shop.total_products, shop.id)
        counters.decrement(db, Category.total_products, category_id)

        db.commit()

        logger.info(
            "product_deleted",
            product_id=product_id,
            shop_id=shop.id,
            reviews_removed=removed_reviews,
        )
