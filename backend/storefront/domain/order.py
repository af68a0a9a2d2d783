"""
Order Domain Models

Represents order-related entities in the storefront.
These are the single source of truth for order data structure.

An Order is written once by OrderWriter. After that only `status` (forward
only) and `is_read` (false -> true) ever change; the item snapshot and the
amounts are immutable.

Author: TM3
Date: 2025-10-17
Updated: 2025-12-02 (storefront checkout orders, read flag, status rules)
"""
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, FrozenSet
from datetime import datetime
from decimal import Decimal

from storefront.domain.product import money


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in ORDER_STATUS_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not ORDER_STATUS_TRANSITIONS[self]


# Forward-only. Cancelling is allowed until the parcel is delivered.
ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED,
    }),
    OrderStatus.PROCESSING: frozenset({
        OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED,
    }),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class Customer(BaseModel):
    """Customer contact captured at checkout"""

    name: str = Field(..., description="Customer full name")
    email: str = Field(..., description="Customer email")
    phone: str = Field(..., description="Customer phone")

    model_config = ConfigDict(frozen=True)


class ShippingAddress(BaseModel):
    address_line: str
    city: str
    state: str
    postal_code: str
    country: str = "India"

    model_config = ConfigDict(frozen=True)


class OrderItem(BaseModel):
    """
    Order Item domain model - snapshot of a cart line at order time
    """

    product_id: str = Field(..., description="Product ID")
    size: str = Field(..., description="Size label")
    name: Optional[str] = Field(None, description="Product name at order time")
    quantity: int = Field(..., description="Quantity ordered", ge=1)
    unit_price: Decimal = Field(..., description="Price per unit", ge=0)
    original_price: Decimal = Field(..., description="List price per unit", ge=0)

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def line_total(self) -> Decimal:
        return money(self.unit_price * self.quantity)

    def to_dict(self) -> dict:
        """Convert to dictionary with Decimal to float conversion"""
        data = self.model_dump()
        for field in ['unit_price', 'original_price']:
            data[field] = float(data[field])
        data['line_total'] = float(self.line_total)
        return data


class OrderTotals(BaseModel):
    """Amounts for an order. total == subtotal - discount + shipping + tax"""

    subtotal: Decimal
    discount: Decimal = Decimal("0.00")
    shipping: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    total: Decimal

    model_config = ConfigDict(frozen=True)


class OrderCreate(BaseModel):
    """Schema for creating a new order (everything but the store-assigned id)"""

    order_number: str
    user_id: Optional[str] = None
    items: List[OrderItem]
    customer: Customer
    shipping_address: ShippingAddress
    payment_method: str
    payment_status: PaymentStatus = PaymentStatus.PENDING
    status: OrderStatus = OrderStatus.PENDING
    promo_code: Optional[str] = None
    subtotal: Decimal
    discount: Decimal = Decimal("0.00")
    shipping: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    total: Decimal
    is_read: bool = False
    created_at: datetime

    model_config = ConfigDict(frozen=True)


class Order(BaseModel):
    """
    Order domain model - represents a placed order

    Fields:
        id: Internal order ID (primary key)
        order_number: Human-readable order number (ORD-<millis>-<4 digits>)
        user_id: Owner, None for guest checkouts
        items: Snapshot of the cart lines
        customer: Name, email and phone given at checkout
        shipping_address: Delivery address
        payment_method: cod, card or upi
        payment_status: pending, paid, failed, refunded
        status: pending, processing, shipped, delivered, cancelled
        subtotal / discount / shipping / tax / total: amounts
        is_read: Admin acknowledged the order. None only on legacy rows
            written before the flag existed.
        created_at / updated_at: timestamps
    """

    id: int = Field(..., description="Internal order ID")
    order_number: str = Field(..., description="Order number")
    user_id: Optional[str] = Field(None, description="Owner user ID")

    items: List[OrderItem] = Field(default_factory=list, description="Order items")
    customer: Customer
    shipping_address: ShippingAddress

    payment_method: str = Field(..., description="Payment method")
    payment_status: PaymentStatus = PaymentStatus.PENDING
    status: OrderStatus = OrderStatus.PENDING
    promo_code: Optional[str] = None

    # Financial information
    subtotal: Decimal = Field(..., ge=0)
    discount: Decimal = Field(Decimal("0.00"), ge=0)
    shipping: Decimal = Field(Decimal("0.00"), ge=0)
    tax: Decimal = Field(Decimal("0.00"), ge=0)
    total: Decimal = Field(..., ge=0)

    is_read: Optional[bool] = Field(False, description="Acknowledged by an admin")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_legacy(self) -> bool:
        """Written before is_read existed"""
        return self.is_read is None

    @property
    def needs_attention(self) -> bool:
        return not self.is_read

    def to_dict(self) -> dict:
        """
        Convert to dictionary with computed fields

        Returns dict with all fields plus computed properties
        """
        data = self.model_dump(mode='json')

        data['item_count'] = self.item_count
        data['total_quantity'] = self.total_quantity

        # Convert Decimal to float for JSON compatibility
        for field in ['subtotal', 'discount', 'shipping', 'tax', 'total']:
            data[field] = float(getattr(self, field))

        data['items'] = [item.to_dict() for item in self.items]
        return data


class OrderFilter(BaseModel):
    """
    Filter for listing and subscribing to orders

    is_read=None with is_read_missing=False matches every order;
    is_read_missing=True matches legacy rows where the flag is absent.
    """

    is_read: Optional[bool] = None
    is_read_missing: bool = False
    status: Optional[OrderStatus] = None
    user_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def matches(self, order: Order) -> bool:
        if self.is_read_missing and order.is_read is not None:
            return False
        if self.is_read is not None and order.is_read is not self.is_read:
            return False
        if self.status is not None and order.status != self.status:
            return False
        if self.user_id is not None and order.user_id != self.user_id:
            return False
        return True
