from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Tuple

import structlog
from slugify import slugify

from marketplace.core.exceptions import APIError, CategoryAlreadyExists, CategoryNotFound, ValidationFailed
from marketplace.models.category import Category
from marketplace.models.product import Product
from marketplace.schemas.category import CategoryCreate, CategoryUpdate
from marketplace.services.listing import CATEGORY_SORT_FIELDS, CategoryFilters, Page, paginate, parse_sort

logger = structlog.get_logger()


class CategoryService:

    @staticmethod
    def _check_parent(db: Session, parent_id, category_id=None) -> None:
        if parent_id is None:
            return
        if parent_id == category_id:
            raise ValidationFailed("parent_id", "A category cannot be its own parent")
        if not db.query(Category.id).filter(Category.id == parent_id).first():
            raise CategoryNotFound()

    @staticmethod
    def list_categories(db: Session, filters: CategoryFilters, page: Page) -> Tuple[List[Category], int]:
        order_by = parse_sort("name", CATEGORY_SORT_FIELDS, Category.id)
        return paginate(filters.apply(db.query(Category)), page, order_by)

    @staticmethod
    def get_category(db: Session, category_id: int) -> Category:
        category = db.query(Category).filter(Category.id == category_id).first()
        if not category:
            raise CategoryNotFound()
        return category

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Category:
        category = db.query(Category).filter(Category.slug == slug.lower()).first()
        if not category:
            raise CategoryNotFound()
        return category

    @staticmethod
    def create_category(db: Session, category_data: CategoryCreate) -> Category:
        name = category_data.name.strip()
        slug = slugify(name)
        if db.query(Category.id).filter((Category.name == name) | (Category.slug == slug)).first():
            raise CategoryAlreadyExists()

        CategoryService._check_parent(db, category_data.parent_id)

        values = category_data.model_dump(exclude={"name"})
        category = Category(name=name, slug=slug, **values)
        db.add(category)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise CategoryAlreadyExists()
        db.refresh(category)

        logger.info("category_created", category_id=category.id, slug=category.slug)
        return category

    @staticmethod
    def update_category(db: Session, category_id: int, category_data: CategoryUpdate) -> Category:
        category = CategoryService.get_category(db, category_id)
        changes = category_data.model_dump(exclude_unset=True, exclude_none=True)

        if "name" in changes:
            name = changes.pop("name").strip()
            slug = slugify(name)
            clash = db.query(Category.id).filter(
                (Category.name == name) | (Category.slug == slug),
                Category.id != category.id,
            ).first()
            if clash:
                raise CategoryAlreadyExists()
            category.name = name
            category.slug = slug

        if "parent_id" in changes:
            CategoryService._check_parent(db, changes["parent_id"], category.id)

        for field, value in changes.items():
            setattr(category, field, value)

        db.commit()
        db.refresh(category)

        logger.info("category_updated", category_id=category.id)
        return category

    @staticmethod
    def delete_category(db: Session, category_id: int) -> None:
        category = CategoryService.get_category(db, category_id)

        if db.query(Product.id).filter(Product.category_id == category.id).first():
            raise APIError(409, "Category still has products")

        db.query(Category).filter(Category.parent_id == category.id).update(
            {Category.parent_id: None}, synchronize_session=False
        )
        db.delete(category)
        db.commit()

        logger.info("category_deleted", category_id=category_id)
