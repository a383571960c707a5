from marketplace.db.base_class import Base


# IMPORT ALL MODELS HERE (THIS REGISTERS THEM WITH Base.metadata)
from marketplace.models.user import User
from marketplace.models.category import Category
from marketplace.models.shop import Shop
from marketplace.models.product import Product
from marketplace.models.review import Review
