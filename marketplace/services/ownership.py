import enum
from typing import Tuple

from sqlalchemy.orm import Session

from marketplace.core.exceptions import (
    NotResourceOwner,
    ProductNotFound,
    ReviewNotFound,
    ShopNotFound,
)
from marketplace.models.product import Product
from marketplace.models.review import Review
from marketplace.models.shop import Shop
from marketplace.models.user import User


class Action(str, enum.Enum):
    UPDATE = "update"
    DELETE = "delete"


class OwnershipGate:
    """Decides whether an actor may mutate a shop, product or review.

    Existence is always checked first, so a missing resource is a 404 and
    never a 403. The gate only reads.
    """

    @staticmethod
    def check(actor: User, owner_id: int, action: Action, resource: str) -> None:
        if owner_id != actor.id:
            raise NotResourceOwner(action.value, resource)

    @staticmethod
    def authorize_shop(db: Session, actor: User, shop_id: int, action: Action) -> Shop:
        shop = db.query(Shop).filter(Shop.id == shop_id).first()
        if not shop:
            raise ShopNotFound()

        OwnershipGate.check(actor, shop.owner_id, action, "shop")
        return shop

    @staticmethod
    def authorize_product(db: Session, actor: User, product_id: int, action: Action) -> Tuple[Product, Shop]:
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise ProductNotFound()

        # Products are owned through their shop
        shop = db.query(Shop).filter(Shop.id == product.shop_id).first()
        if not shop:
            raise ShopNotFound()

        OwnershipGate.check(actor, shop.owner_id, action, "product")
        return product, shop

    @staticmethod
    def authorize_review(db: Session, actor: User, review_id: str, action: Action) -> Review:
        review = db.query(Review).filter(Review.id == review_id).first()
        if not review:
            raise ReviewNotFound()

        OwnershipGate.check(actor, review.reviewer_id, action, "review")
        return review
