"""
Modelos de base de datos
"""
from .order import Order, OrderItem
from .product import Product, ProductStock
from .cart import Cart, PromoCode
from .user_role import UserRole

__all__ = [
    "Order",
    "OrderItem",
    "Product",
    "ProductStock",
    "Cart",
    "PromoCode",
    "UserRole",
]
