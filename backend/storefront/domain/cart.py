"""
Cart Domain Models

The cart is owned by a single browsing identity (anonymous session or
authenticated user). Line items are unique by (product_id, size).

Author: TM3
Date: 2025-12-02
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Tuple
from datetime import datetime
from decimal import Decimal

from storefront.domain.product import money


def stock_key(product_id: str, size: str) -> str:
    """Key used for per-(product, size) maps that must serialize to JSON"""
    return f"{product_id}::{size}"


class LineItem(BaseModel):
    """
    A (product, size) pair with quantity and a price snapshot

    Prices are captured when the line is created; later catalog changes
    do not reprice the cart.
    """

    product_id: str = Field(..., description="Product ID")
    size: str = Field(..., description="Size label")
    quantity: int = Field(..., description="Units", ge=1)
    unit_price: Decimal = Field(..., description="Price charged per unit", ge=0)
    original_price: Decimal = Field(..., description="List price per unit", ge=0)

    # Display snapshot
    name: Optional[str] = None
    slug: Optional[str] = None
    image: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.product_id, self.size)

    @property
    def line_total(self) -> Decimal:
        return money(self.unit_price * self.quantity)

    def to_dict(self) -> dict:
        data = self.model_dump()
        data['unit_price'] = float(self.unit_price)
        data['original_price'] = float(self.original_price)
        data['line_total'] = float(self.line_total)
        return data


class Cart(BaseModel):
    """
    Cart domain model

    Totals here stop at the discount; shipping and tax are a checkout
    concern (see PricingPolicy).
    """

    items: List[LineItem] = Field(default_factory=list)
    promo_code: Optional[str] = None
    discount_percent: int = Field(0, ge=0, le=100)

    @property
    def subtotal(self) -> Decimal:
        return money(sum((item.unit_price * item.quantity for item in self.items), Decimal("0")))

    @property
    def discount_amount(self) -> Decimal:
        return money(self.subtotal * self.discount_percent / Decimal(100))

    @property
    def total(self) -> Decimal:
        return self.subtotal - self.discount_amount

    @property
    def item_count(self) -> int:
        """Total units, what a cart badge shows"""
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find(self, product_id: str, size: str) -> Optional[LineItem]:
        for item in self.items:
            if item.product_id == product_id and item.size == size:
                return item
        return None

    def to_dict(self) -> dict:
        return {
            'items': [item.to_dict() for item in self.items],
            'promo_code': self.promo_code,
            'discount_percent': self.discount_percent,
            'subtotal': float(self.subtotal),
            'discount_amount': float(self.discount_amount),
            'total': float(self.total),
            'item_count': self.item_count,
        }


class CartSnapshot(BaseModel):
    """
    What gets persisted per identity: the cart plus the last stock observed
    for each line, so quantity caps survive a reload.
    """

    cart: Cart = Field(default_factory=Cart)
    known_stock: Dict[str, int] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None


class CartIdentity(BaseModel):
    """
    Who owns a cart. Authenticated users win over the anonymous session id.
    """

    user_id: Optional[str] = None
    session_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def key(self) -> str:
        if self.user_id:
            return f"user:{self.user_id}"
        if self.session_id:
            return f"anonymous:{self.session_id}"
        raise ValueError("CartIdentity needs a user_id or a session_id")


class PromoCode(BaseModel):
    """Row of the promo table"""

    code: str
    discount_percent: int = Field(..., ge=0, le=100)
    is_active: bool = True
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    def is_valid_at(self, moment: datetime) -> bool:
        if not self.is_active:
            return False
        if self.valid_from and moment < self.valid_from:
            return False
        if self.valid_until and moment > self.valid_until:
            return False
        return True


class PromoResult(BaseModel):
    success: bool
    discount_percent: int = 0
    message: Optional[str] = None
