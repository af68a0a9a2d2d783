"""
Order Status Service
Admin status changes and cancellation for placed orders, plus
cancellation by the customer who placed the order

Transitions are forward-only (see ORDER_STATUS_TRANSITIONS). Writes only
apply if the order is still in the status read here.

Author: TM3
Date: 2025-12-02
"""
import logging
from typing import Optional

from storefront.core.errors import AuthorizationError, NotFound, ValidationError
from storefront.domain.order import Order, OrderStatus
from storefront.repositories.order_repository import OrderRepository

logger = logging.getLogger(__name__)


class OrderStatusService:

    def __init__(self, order_repository: OrderRepository):
        self.order_repository = order_repository

    def _get(self, order_id: int) -> Order:
        order = self.order_repository.find_by_id(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order

    def update_status(self, order_id: int, status: OrderStatus) -> Order:
        """
        Move an order forward

        Cancelling goes through cancel() so stock is restored.

        Raises:
            NotFound: unknown order
            ValidationError: transition not allowed, or the order changed meanwhile
        """
        status = OrderStatus(status)
        if status == OrderStatus.CANCELLED:
            return self.cancel(order_id)

        order = self._get(order_id)
        if not order.status.can_transition_to(status):
            raise ValidationError(
                f"Cannot change order {order.order_number} from {order.status.value} to {status.value}",
                fields=["status"],
            )

        if not self.order_repository.update_status(order_id, status, expected=order.status):
            raise ValidationError(
                f"Order {order.order_number} was modified by someone else, reload and try again",
                fields=["status"],
            )
        return self._get(order_id)

    def cancel(self, order_id: int, reason: Optional[str] = None) -> Order:
        """
        Cancel an order and restore stock for every line

        Raises:
            NotFound: unknown order
            ValidationError: order already delivered or cancelled
        """
        order = self._get(order_id)
        if not order.status.can_transition_to(OrderStatus.CANCELLED):
            raise ValidationError(
                f"Order {order.order_number} cannot be cancelled (status: {order.status.value})",
                fields=["status"],
            )

        if not self.order_repository.cancel(order_id, reason, expected=order.status):
            raise ValidationError(
                f"Order {order.order_number} was modified by someone else, reload and try again",
                fields=["status"],
            )

        logger.info(f"Order {order.order_number} cancelled: {reason or 'no reason given'}")
        return self._get(order_id)

    def cancel_for_user(
        self,
        order_id: int,
        user_id: str,
        reason: Optional[str] = None,
        is_admin: bool = False,
    ) -> Order:
        """
        Cancel on behalf of a signed-in user: the order's owner, or an admin

        Raises:
            NotFound: unknown order
            AuthorizationError: the order belongs to someone else
            ValidationError: order already delivered or cancelled
        """
        order = self._get(order_id)
        if order.user_id != user_id and not is_admin:
            logger.warning(f"User {user_id} tried to cancel order {order.order_number} of {order.user_id}")
            raise AuthorizationError("You do not have permission to cancel this order")

        return self.cancel(order_id, reason or "Customer requested cancellation")
