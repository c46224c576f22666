from .catalog import Category, Product, Ingredient, ProductIngredient
from .customers import CustomerTier, Customer
from .staff import Employee
from .discounts import Discount, discount_products, discount_categories, discount_customer_tiers
from .orders import Order, OrderItem

__all__ = [
    'Category', 'Product', 'Ingredient', 'ProductIngredient',
    'CustomerTier', 'Customer',
    'Employee',
    'Discount', 'discount_products', 'discount_categories', 'discount_customer_tiers',
    'Order', 'OrderItem',
]
