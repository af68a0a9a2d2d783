"""
Pytest fixtures and configuration for Storefront Backend tests

This file provides shared fixtures that can be used across all test modules.
Services are tested against in-memory repositories with the same interface
as the psycopg2 ones; repository tests mock the connection instead.

Author: TM3
Date: 2025-10-17
Updated: 2025-12-02 (in-memory storefront repositories)
"""
import itertools
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
from dotenv import load_dotenv

from storefront.core.errors import (
    NotificationSyncError, PersistenceError, StockConflict,
)
from storefront.core.events import EventEmitter
from storefront.core.subscriptions import Subscription
from storefront.domain.cart import CartIdentity, CartSnapshot, PromoCode
from storefront.domain.checkout import (
    PaymentInfo, PaymentMethod, ShippingInfo, StockReason, StockVerdict,
)
from storefront.domain.order import (
    Customer, Order, OrderCreate, OrderFilter, OrderItem, OrderStatus, ShippingAddress,
)
from storefront.domain.product import Product
from storefront.services.cart_service import CartStore
from storefront.services.pricing_service import PricingPolicy

# Load environment variables for tests
load_dotenv()

BASE_TIME = datetime(2025, 12, 1, 12, 0, tzinfo=timezone.utc)


# ============================================
# In-memory repositories
# ============================================

class InMemoryProductRepository:

    def __init__(self, products: Optional[List[Product]] = None):
        self.products: Dict[str, Product] = {p.id: p for p in (products or [])}
        self.stock_reads = 0
        self.fail = False

    def _check(self):
        if self.fail:
            raise PersistenceError("products unavailable")

    def set_stock(self, product_id: str, size: str, quantity: int):
        product = self.products[product_id]
        stock = dict(product.stock)
        stock[size] = quantity
        self.products[product_id] = product.model_copy(update={'stock': stock})

    def find_by_id(self, product_id: str) -> Optional[Product]:
        self._check()
        product = self.products.get(product_id)
        if product is None or not product.is_active:
            return None
        return product.model_copy(deep=True)

    def get_stock(self, product_id: str) -> Optional[Dict[str, int]]:
        self._check()
        self.stock_reads += 1
        product = self.products.get(product_id)
        if product is None or not product.is_active:
            return None
        return dict(product.stock)

    def find_many(self, product_ids: List[str]) -> List[Product]:
        return [p for p in (self.find_by_id(pid) for pid in product_ids) if p is not None]


class InMemoryCartRepository:

    def __init__(self):
        self.carts: Dict[str, CartSnapshot] = {}
        self.saves = 0
        self.fail_save = False

    def load(self, key: str) -> Optional[CartSnapshot]:
        snapshot = self.carts.get(key)
        return snapshot.model_copy(deep=True) if snapshot else None

    def save(self, key: str, snapshot: CartSnapshot):
        if self.fail_save:
            raise PersistenceError("cart store unavailable")
        self.saves += 1
        self.carts[key] = snapshot.model_copy(deep=True, update={'updated_at': datetime.now(timezone.utc)})

    def delete(self, key: str) -> bool:
        return self.carts.pop(key, None) is not None


class InMemoryPromoRepository:

    def __init__(self, codes: Optional[List[PromoCode]] = None):
        self.codes = {c.code.upper(): c for c in (codes or [])}

    def find_by_code(self, code: str) -> Optional[PromoCode]:
        return self.codes.get(code.strip().upper())


class InMemoryRoleRepository:

    def __init__(self, roles: Optional[Dict[str, str]] = None):
        self.roles = dict(roles or {})
        self.lookups = 0

    def find_role(self, user_id: str) -> Optional[str]:
        self.lookups += 1
        return self.roles.get(user_id)


class InMemorySubscription(Subscription):

    def __init__(self, repository, order_filter: OrderFilter):
        super().__init__()
        self.repository = repository
        self.order_filter = order_filter
        self.released = False
        self.error: Optional[Exception] = None
        self._push(repository.find_matching(order_filter))

    def publish(self):
        self._push(self.repository.find_matching(self.order_filter))

    def fail(self, message: str = "connection reset"):
        self.error = NotificationSyncError(message)

    def _wait(self, timeout):
        if self.error is not None:
            raise self.error
        return None

    def _release(self):
        self.released = True


class InMemoryOrderRepository:
    """
    Orders plus an atomic all-or-nothing stock reservation against the
    product repository, and live subscriptions fed on every write.
    """

    def __init__(self, product_repository: InMemoryProductRepository):
        self.product_repository = product_repository
        self.orders: Dict[int, Order] = {}
        self.subscriptions: List[InMemorySubscription] = []
        self._ids = itertools.count(1)
        self.fail_create = False
        self.fail_legacy = False
        self.fail_subscribe = False
        self.before_create = None
        self.mark_read_calls = 0

    # reads

    def find_by_id(self, order_id: int) -> Optional[Order]:
        return self.orders.get(order_id)

    def find_matching(self, order_filter: OrderFilter) -> List[Order]:
        matching = [o for o in self.orders.values() if order_filter.matches(o)]
        return sorted(matching, key=lambda o: (o.created_at, o.id), reverse=True)

    def find_all(self, status=None, is_read=None, limit=50, offset=0):
        orders = self.find_matching(OrderFilter(
            status=OrderStatus(status) if status else None, is_read=is_read,
        ))
        return orders[offset:offset + limit], len(orders)

    def find_by_user(self, user_id, status=None, limit=10, offset=0):
        orders = self.find_matching(OrderFilter(
            user_id=user_id, status=OrderStatus(status) if status else None,
        ))
        return orders[offset:offset + limit], len(orders)

    def find_unread(self) -> List[Order]:
        return self.find_matching(OrderFilter(is_read=False))

    def find_legacy_unread(self) -> List[Order]:
        if self.fail_legacy:
            raise PersistenceError("legacy query failed")
        return self.find_matching(OrderFilter(is_read_missing=True, status=OrderStatus.PENDING))

    # writes

    def create(self, order: OrderCreate) -> Order:
        if self.before_create:
            self.before_create()
        if self.fail_create:
            raise PersistenceError("We could not reach the store. Please try again.")

        conflicts = []
        for item in order.items:
            product = self.product_repository.products.get(item.product_id)
            stock = dict(product.stock) if product else {}
            available = stock.get(item.size)
            if available is None:
                conflicts.append(StockVerdict(
                    product_id=item.product_id, size=item.size, requested=item.quantity,
                    ok=False, reason=StockReason.NOT_FOUND, message="gone",
                ))
            elif available < item.quantity:
                conflicts.append(StockVerdict(
                    product_id=item.product_id, size=item.size, requested=item.quantity,
                    ok=False, available=available, reason=StockReason.INSUFFICIENT_STOCK,
                    message=f"Only {available} left",
                ))
        if conflicts:
            raise StockConflict(conflicts)

        for item in order.items:
            stock = self.product_repository.products[item.product_id].stock
            self.product_repository.set_stock(item.product_id, item.size, stock[item.size] - item.quantity)

        created = Order(id=next(self._ids), updated_at=order.created_at, **order.model_dump())
        self.orders[created.id] = created
        self._publish()
        return created

    def insert(self, order: Order) -> Order:
        """Test helper: store an order as-is (legacy rows, fixed timestamps)"""
        self.orders[order.id] = order
        self._publish()
        return order

    def update_status(self, order_id: int, status: OrderStatus, expected: OrderStatus) -> bool:
        order = self.orders.get(order_id)
        if order is None or order.status != expected:
            return False
        self.orders[order_id] = order.model_copy(update={'status': status})
        self._publish()
        return True

    def cancel(self, order_id: int, reason, expected: OrderStatus) -> bool:
        order = self.orders.get(order_id)
        if order is None or order.status != expected:
            return False
        for item in order.items:
            current = self.product_repository.products[item.product_id].stock.get(item.size, 0)
            self.product_repository.set_stock(item.product_id, item.size, current + item.quantity)
        self.orders[order_id] = order.model_copy(update={'status': OrderStatus.CANCELLED})
        self._publish()
        return True

    def mark_read(self, order_id: int) -> bool:
        self.mark_read_calls += 1
        order = self.orders.get(order_id)
        if order is None or order.is_read is True:
            return False
        self.orders[order_id] = order.model_copy(update={'is_read': True})
        self._publish()
        return True

    def mark_read_many(self, order_ids: List[int]) -> int:
        changed = 0
        for order_id in order_ids:
            order = self.orders.get(order_id)
            if order is not None and order.is_read is not True:
                self.orders[order_id] = order.model_copy(update={'is_read': True})
                changed += 1
        self._publish()
        return changed

    def backfill_is_read(self) -> int:
        legacy = [o for o in self.orders.values() if o.is_read is None]
        for order in legacy:
            self.orders[order.id] = order.model_copy(
                update={'is_read': order.status != OrderStatus.PENDING}
            )
        self._publish()
        return len(legacy)

    def subscribe(self, order_filter: OrderFilter) -> InMemorySubscription:
        if self.fail_subscribe:
            raise NotificationSyncError("feed unavailable")
        subscription = InMemorySubscription(self, order_filter)
        self.subscriptions.append(subscription)
        return subscription

    def _publish(self):
        for subscription in self.subscriptions:
            if not subscription.cancelled:
                subscription.publish()


# ============================================
# Builders
# ============================================

def make_order(order_id: int, minutes: int = 0, is_read: Optional[bool] = False,
               status: OrderStatus = OrderStatus.PENDING, total: str = "1000.00",
               name: str = "Asha Rao", user_id: Optional[str] = None) -> Order:
    """Order created `minutes` after BASE_TIME"""
    created = BASE_TIME + timedelta(minutes=minutes)
    return Order(
        id=order_id,
        order_number=f"ORD-{order_id:04d}",
        user_id=user_id,
        items=[OrderItem(product_id="P1", size="M", quantity=1,
                         unit_price=Decimal(total), original_price=Decimal(total))],
        customer=Customer(name=name, email="asha@example.com", phone="9876543210"),
        shipping_address=ShippingAddress(address_line="12 MG Road", city="Pune",
                                         state="MH", postal_code="411001"),
        payment_method="cod",
        status=status,
        subtotal=Decimal(total),
        total=Decimal(total),
        is_read=is_read,
        created_at=created,
        updated_at=created,
    )


# ============================================
# Fixtures
# ============================================

@pytest.fixture(scope="session")
def database_url():
    """
    Provides the database URL for tests

    Scope: session (created once per test session)
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        pytest.skip("DATABASE_URL not configured")
    return url


@pytest.fixture
def shirt():
    return Product(id="P1", name="Linen Shirt", slug="linen-shirt", price=Decimal("500.00"),
                   stock={"S": 0, "M": 5, "L": 2}, images=["/img/p1.jpg"])


@pytest.fixture
def jacket():
    return Product(id="P2", name="Denim Jacket", slug="denim-jacket", price=Decimal("1200.00"),
                   sale_price=Decimal("999.00"), stock={"M": 3})


@pytest.fixture
def product_repo(shirt, jacket):
    return InMemoryProductRepository([shirt, jacket])


@pytest.fixture
def cart_repo():
    return InMemoryCartRepository()


@pytest.fixture
def promo_repo():
    now = datetime.now(timezone.utc)
    return InMemoryPromoRepository([
        PromoCode(code="WELCOME10", discount_percent=10),
        PromoCode(code="SUMMER20", discount_percent=20),
        PromoCode(code="SAVE10", discount_percent=10),
        PromoCode(code="OLD5", discount_percent=5, valid_until=now - timedelta(days=1)),
        PromoCode(code="SOON15", discount_percent=15, valid_from=now + timedelta(days=1)),
        PromoCode(code="OFF30", discount_percent=30, is_active=False),
    ])


@pytest.fixture
def role_repo():
    return InMemoryRoleRepository({"admin-1": "admin", "user-1": "user"})


@pytest.fixture
def order_repo(product_repo):
    return InMemoryOrderRepository(product_repo)


@pytest.fixture
def events():
    return EventEmitter()


@pytest.fixture
def guest():
    return CartIdentity(session_id="sess-123")


@pytest.fixture
def cart_store(guest, cart_repo, promo_repo, events):
    return CartStore(guest, cart_repo, promo_repo, events=events)


@pytest.fixture
def pricing():
    return PricingPolicy(
        free_shipping_threshold=Decimal("1000"),
        shipping_fee=Decimal("100"),
        tax_rate=Decimal("0.18"),
    )


@pytest.fixture
def shipping_info():
    return ShippingInfo(
        full_name="Asha Rao",
        email="asha@example.com",
        phone="9876543210",
        address_line="12 MG Road",
        city="Pune",
        state="MH",
        postal_code="411001",
    )


@pytest.fixture
def cod_payment():
    return PaymentInfo(method=PaymentMethod.COD)


@pytest.fixture
def order_factory():
    """make_order(order_id, minutes=0, is_read=False, status=..., total=..., name=..., user_id=None)"""
    return make_order
