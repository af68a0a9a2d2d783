"""
Pricing Service
Shipping and tax for a cart at checkout

Author: TM3
Date: 2025-12-02
"""
from dataclasses import dataclass
from decimal import Decimal

from storefront.core.config import settings
from storefront.domain.cart import Cart
from storefront.domain.order import OrderTotals
from storefront.domain.product import money


@dataclass(frozen=True)
class PricingPolicy:
    """
    Shipping is waived when the subtotal reaches free_shipping_threshold.
    Tax is tax_rate applied to the subtotal (before discount).
    """

    free_shipping_threshold: Decimal = Decimal("1000")
    shipping_fee: Decimal = Decimal("100")
    tax_rate: Decimal = Decimal("0.18")

    @classmethod
    def from_settings(cls) -> "PricingPolicy":
        return cls(
            free_shipping_threshold=Decimal(settings.FREE_SHIPPING_THRESHOLD),
            shipping_fee=Decimal(settings.SHIPPING_FEE),
            tax_rate=Decimal(settings.TAX_RATE),
        )

    def shipping_for(self, subtotal: Decimal) -> Decimal:
        if subtotal <= 0 or subtotal >= self.free_shipping_threshold:
            return money(0)
        return money(self.shipping_fee)

    def tax_for(self, subtotal: Decimal) -> Decimal:
        return money(subtotal * self.tax_rate)

    def quote(self, cart: Cart) -> OrderTotals:
        subtotal = cart.subtotal
        discount = cart.discount_amount
        shipping = self.shipping_for(subtotal)
        tax = self.tax_for(subtotal)
        return OrderTotals(
            subtotal=subtotal,
            discount=discount,
            shipping=shipping,
            tax=tax,
            total=money(subtotal - discount + shipping + tax),
        )
