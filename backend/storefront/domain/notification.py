"""
Notification Domain Model

Admin-facing projection of an unread order. Keyed by order id; the order
record itself is never deleted when a notification is acknowledged.

Author: TM3
Date: 2025-12-02
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from decimal import Decimal

from storefront.domain.order import Order, OrderStatus


class Notification(BaseModel):
    order_id: int = Field(..., description="Order this notification is about")
    order_number: str
    customer_name: Optional[str] = None
    total: Decimal
    status: OrderStatus
    timestamp: datetime = Field(..., description="Order creation time")
    read: bool = False

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_order(cls, order: Order) -> "Notification":
        return cls(
            order_id=order.id,
            order_number=order.order_number,
            customer_name=order.customer.name,
            total=order.total,
            status=order.status,
            timestamp=order.created_at,
            read=bool(order.is_read),
        )

    def to_dict(self) -> dict:
        data = self.model_dump(mode='json')
        data['total'] = float(self.total)
        return data
