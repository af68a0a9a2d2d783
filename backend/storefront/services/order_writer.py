"""
Order Writer
Turns a validated cart into a persisted order, exactly once

Flow:
1. Refuse re-entry while a commit is in flight
2. Validate cart and form data
3. Final stock validation (fresh read)
4. Price with PricingPolicy
5. OrderRepository.create: conditional stock decrement + insert, one transaction
6. Clear the cart

The cart is only cleared after the order is stored. Any failure before
that leaves it intact.

Author: TM3
Date: 2025-12-02
"""
import logging
import random
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from storefront.core.errors import (
    DuplicateSubmission, PersistenceError, StockConflict, ValidationError,
)
from storefront.domain.checkout import PaymentInfo, ShippingInfo
from storefront.domain.order import OrderCreate, OrderItem, OrderStatus, PaymentStatus
from storefront.repositories.order_repository import OrderRepository
from storefront.services.cart_service import CartStore
from storefront.services.pricing_service import PricingPolicy
from storefront.services.stock_validator import StockValidator

logger = logging.getLogger(__name__)


def generate_order_number() -> str:
    """ORD-<epoch millis>-<4 random digits>"""
    return f"ORD-{int(time.time() * 1000)}-{random.randint(1000, 9999)}"


class OrderWriter:

    def __init__(
        self,
        order_repository: OrderRepository,
        stock_validator: StockValidator,
        pricing: Optional[PricingPolicy] = None,
        order_number_factory: Callable[[], str] = generate_order_number,
    ):
        self.order_repository = order_repository
        self.stock_validator = stock_validator
        self.pricing = pricing or PricingPolicy.from_settings()
        self.order_number_factory = order_number_factory
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def commit(
        self,
        cart_store: CartStore,
        shipping: ShippingInfo,
        payment: PaymentInfo,
        user_id: Optional[str] = None,
    ) -> int:
        """
        Place the order for the cart in cart_store

        Args:
            cart_store: Cart to order; cleared on success
            shipping: Customer and address
            payment: Payment selection (only the method is stored)
            user_id: Owner; defaults to the cart identity's user

        Returns:
            The new order id

        Raises:
            DuplicateSubmission: another commit is in flight
            ValidationError: empty cart or missing shipping/payment fields
            StockConflict: stock cannot cover one or more lines
            PersistenceError: the store failed; nothing was written
        """
        if self._in_flight:
            raise DuplicateSubmission()

        self._in_flight = True
        try:
            return self._commit(cart_store, shipping, payment, user_id)
        finally:
            self._in_flight = False

    def _commit(self, cart_store, shipping, payment, user_id) -> int:
        cart = cart_store.cart
        if cart.is_empty:
            raise ValidationError("Your cart is empty", fields=["items"])

        missing = shipping.missing_fields() + payment.missing_fields()
        if missing:
            raise ValidationError("Please fill in all required fields", fields=missing)

        failures = StockValidator.failures(self.stock_validator.validate(cart))
        if failures:
            raise StockConflict(failures)

        totals = self.pricing.quote(cart)
        order = OrderCreate(
            order_number=self.order_number_factory(),
            user_id=user_id or cart_store.identity.user_id,
            items=[
                OrderItem(
                    product_id=item.product_id,
                    size=item.size,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    original_price=item.original_price,
                )
                for item in cart.items
            ],
            customer=shipping.customer(),
            shipping_address=shipping.address(),
            payment_method=payment.method.value,
            payment_status=PaymentStatus.PENDING,
            status=OrderStatus.PENDING,
            promo_code=cart.promo_code,
            subtotal=totals.subtotal,
            discount=totals.discount,
            shipping=totals.shipping,
            tax=totals.tax,
            total=totals.total,
            is_read=False,
            created_at=datetime.now(timezone.utc),
        )

        created = self.order_repository.create(order)
        logger.info(f"Placed order {created.order_number} (id {created.id}, total {created.total})")

        try:
            cart_store.clear()
        except PersistenceError as e:
            logger.error(f"Order {created.id} placed but cart {cart_store.identity.key} not cleared: {e}")

        return created.id
