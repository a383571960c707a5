from marketplace.models.user import User, UserType
from marketplace.models.category import Category
from marketplace.models.shop import Shop, SHOP_CATEGORIES
from marketplace.models.product import Product
from marketplace.models.review import Review, ReviewStatus, TargetType
