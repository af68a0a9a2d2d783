"""
Domain Layer - Business Entities

This layer contains Pydantic models representing business entities.
These models enforce type safety and validation across the application.

Author: TM3
Date: 2025-10-17
"""
from storefront.domain.product import Product, money
from storefront.domain.cart import (
    LineItem, Cart, CartSnapshot, CartIdentity, PromoCode, PromoResult, stock_key,
)
from storefront.domain.order import (
    Order, OrderItem, OrderCreate, OrderFilter, OrderStatus, PaymentStatus,
    Customer, ShippingAddress, OrderTotals,
)
from storefront.domain.checkout import (
    CheckoutStep, CheckoutErrorCode, ShippingInfo, PaymentInfo, PaymentMethod,
    StockReason, StockVerdict, TransitionResult,
)
from storefront.domain.notification import Notification

__all__ = [
    'Product', 'money',
    'LineItem', 'Cart', 'CartSnapshot', 'CartIdentity', 'PromoCode', 'PromoResult', 'stock_key',
    'Order', 'OrderItem', 'OrderCreate', 'OrderFilter', 'OrderStatus', 'PaymentStatus',
    'Customer', 'ShippingAddress', 'OrderTotals',
    'CheckoutStep', 'CheckoutErrorCode', 'ShippingInfo', 'PaymentInfo', 'PaymentMethod',
    'StockReason', 'StockVerdict', 'TransitionResult',
    'Notification',
]
