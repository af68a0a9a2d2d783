"""
Repository Layer - Data Access

This layer handles all database queries and returns domain models.
Repositories abstract away SQL details from business logic.

Author: TM3
Date: 2025-10-17
"""
from storefront.repositories.product_repository import ProductRepository
from storefront.repositories.order_repository import OrderRepository, OrderSubscription
from storefront.repositories.cart_repository import CartRepository
from storefront.repositories.promo_repository import PromoRepository
from storefront.repositories.role_repository import RoleRepository

__all__ = [
    'ProductRepository',
    'OrderRepository',
    'OrderSubscription',
    'CartRepository',
    'PromoRepository',
    'RoleRepository',
]
