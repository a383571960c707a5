"""Resolution of polymorphic review targets.

A review points at either a Shop or a Product. Instead of passing a loose
``(type string, id)`` pair around, callers build a ``ReviewTarget`` and look the
underlying row up through the per-kind model table below.
"""
from dataclasses import dataclass
from typing import Dict, Type, Union

from sqlalchemy.orm import Session

from marketplace.core.exceptions import TargetNotFound, ValidationFailed
from marketplace.models.product import Product
from marketplace.models.review import Review, TargetType
from marketplace.models.shop import Shop

Target = Union[Shop, Product]

TARGET_MODELS: Dict[TargetType, Type[Target]] = {
    TargetType.PRODUCT: Product,
    TargetType.SHOP: Shop,
}


@dataclass(frozen=True)
class ReviewTarget:
    kind: TargetType
    id: int

    @classmethod
    def of(cls, target_type: Union[str, TargetType], target_id: int) -> "ReviewTarget":
        """Build a target from raw request values, rejecting unknown kinds."""
        try:
            kind = TargetType(target_type)
        except ValueError:
            raise ValidationFailed("target_type", "Target type must be PRODUCT or SHOP")
        return cls(kind=kind, id=int(target_id))

    @classmethod
    def for_review(cls, review: Review) -> "ReviewTarget":
        return cls(kind=TargetType(review.target_type), id=review.target_id)

    @property
    def model(self) -> Type[Target]:
        return TARGET_MODELS[self.kind]


def resolve_target(db: Session, target: ReviewTarget) -> Target:
    """Return the Shop or Product behind ``target`` or raise 404."""
    model = target.model
    row = db.query(model).filter(model.id == target.id).first()
    if row is None:
        raise TargetNotFound(target.kind.value)
    return row
