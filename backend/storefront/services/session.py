"""
Storefront Session
Explicit per-session container for cart, checkout and admin notifications

Created when a browsing session starts and closed when it ends. Owns:
- the CartStore for the current identity
- an EventEmitter shared by everything in the session
- for admins, a started NotificationAggregator

The role is resolved once, from the user_roles table, when the identity is
set.

Author: TM3
Date: 2025-12-02
"""
import logging
from typing import List, Optional

from storefront.core.events import EventEmitter
from storefront.domain.cart import CartIdentity, LineItem
from storefront.repositories.cart_repository import CartRepository
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.repositories.promo_repository import PromoRepository
from storefront.repositories.role_repository import RoleRepository
from storefront.services.cart_service import CartStore
from storefront.services.checkout_service import CheckoutStateMachine
from storefront.services.notification_service import AlertCallback, NotificationAggregator
from storefront.services.order_writer import OrderWriter
from storefront.services.pricing_service import PricingPolicy
from storefront.services.stock_validator import StockValidator

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
DEFAULT_ROLE = "user"


class StorefrontSession:

    def __init__(
        self,
        identity: CartIdentity,
        cart_repository: Optional[CartRepository] = None,
        promo_repository: Optional[PromoRepository] = None,
        product_repository: Optional[ProductRepository] = None,
        order_repository: Optional[OrderRepository] = None,
        role_repository: Optional[RoleRepository] = None,
        pricing: Optional[PricingPolicy] = None,
        on_alert: Optional[AlertCallback] = None,
    ):
        self.cart_repository = cart_repository or CartRepository()
        self.promo_repository = promo_repository or PromoRepository()
        self.product_repository = product_repository or ProductRepository()
        self.order_repository = order_repository or OrderRepository()
        self.role_repository = role_repository or RoleRepository()
        self.on_alert = on_alert

        self.events = EventEmitter()
        self.stock_validator = StockValidator(self.product_repository)
        self.order_writer = OrderWriter(self.order_repository, self.stock_validator, pricing)

        self.identity = identity
        self.role: Optional[str] = None
        self.cart: CartStore = self._open_cart(identity)
        self.notifications: Optional[NotificationAggregator] = None
        self._closed = False

        self._set_role(identity)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def closed(self) -> bool:
        return self._closed

    def new_checkout(self) -> CheckoutStateMachine:
        """Checkout over this session's cart. Placements share one OrderWriter."""
        return CheckoutStateMachine(
            self.cart,
            self.stock_validator,
            self.order_writer,
            events=self.events,
            user_id=self.identity.user_id,
        )

    def login(self, user_id: str) -> List[LineItem]:
        """
        Switch to an authenticated identity and fold the anonymous cart into it

        Returns:
            Lines reduced during the merge because of stock
        """
        anonymous = self.cart
        identity = CartIdentity(user_id=user_id, session_id=self.identity.session_id)

        authenticated = self._open_cart(identity)
        reduced: List[LineItem] = []
        if not anonymous.identity.is_authenticated and not anonymous.is_empty:
            reduced = authenticated.merge(anonymous.snapshot())
            anonymous.discard()

        self.identity = identity
        self.cart = authenticated
        self._set_role(identity)
        logger.info(f"Session logged in as {user_id} (role: {self.role})")
        return reduced

    def close(self):
        """Cancel subscriptions and drop listeners. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self.notifications is not None:
            self.notifications.close()
            self.notifications = None
        self.events.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _open_cart(self, identity: CartIdentity) -> CartStore:
        return CartStore(identity, self.cart_repository, self.promo_repository, events=self.events)

    def _set_role(self, identity: CartIdentity):
        if identity.user_id:
            self.role = self.role_repository.find_role(identity.user_id) or DEFAULT_ROLE
        else:
            self.role = None

        if self.is_admin and self.notifications is None:
            self.notifications = NotificationAggregator(
                self.order_repository, on_alert=self.on_alert, events=self.events,
            )
            if not self.notifications.start():
                logger.warning(f"Notification feed unavailable: {self.notifications.error}")
        elif not self.is_admin and self.notifications is not None:
            self.notifications.close()
            self.notifications = None
