"""
End-to-end flows across cart, checkout and admin notifications

The storefront flows run against the in-memory repositories; the database
checks only run when DATABASE_URL is configured.

Author: TM3
Date: 2025-12-02
"""
import uuid
from decimal import Decimal

import pytest

from storefront.core.config import settings
from storefront.domain.cart import CartIdentity
from storefront.domain.checkout import CheckoutErrorCode, CheckoutStep
from storefront.services.pricing_service import PricingPolicy
from storefront.services.session import StorefrontSession


@pytest.fixture
def no_tax():
    return PricingPolicy(
        free_shipping_threshold=Decimal("1000"),
        shipping_fee=Decimal("100"),
        tax_rate=Decimal("0"),
    )


@pytest.fixture
def open_session(cart_repo, promo_repo, product_repo, order_repo, role_repo, no_tax):
    sessions = []

    def _open(identity, on_alert=None):
        session = StorefrontSession(
            identity, cart_repo, promo_repo, product_repo, order_repo, role_repo,
            pricing=no_tax, on_alert=on_alert,
        )
        sessions.append(session)
        return session

    yield _open
    for session in sessions:
        session.close()


def checkout_all_steps(session, shipping_info, cod_payment):
    checkout = session.new_checkout()
    assert checkout.submit_shipping(shipping_info).ok
    assert checkout.submit_payment(cod_payment).ok
    return checkout, checkout.place_order()


def test_guest_order_reaches_admin(open_session, shirt, order_repo, product_repo,
                                   shipping_info, cod_payment):
    alerts = []
    admin = open_session(CartIdentity(user_id="admin-1"),
                         on_alert=lambda count, notifications: alerts.append(count))
    shopper = open_session(CartIdentity(session_id="guest-42"))

    shopper.cart.add_item(shirt, "M", 2)
    assert shopper.cart.apply_promo_code("SAVE10").success
    checkout, result = checkout_all_steps(shopper, shipping_info, cod_payment)

    assert result.ok
    order = order_repo.find_by_id(result.order_id)
    assert order.subtotal == Decimal("1000.00")
    assert order.discount == Decimal("100.00")
    assert order.shipping == Decimal("0.00")
    assert order.tax == Decimal("0.00")
    assert order.total == Decimal("900.00")
    assert shopper.cart.is_empty
    assert product_repo.products["P1"].stock["M"] == 3

    admin.notifications.sync()
    assert [n.order_id for n in admin.notifications.notifications] == [order.id]
    assert alerts == [1]

    admin.notifications.mark_read(order.id)
    admin.notifications.sync()
    assert admin.notifications.unread_count == 0
    assert order_repo.find_by_id(order.id).is_read is True


def test_two_shoppers_race_for_last_units(open_session, shirt, order_repo, product_repo,
                                          shipping_info, cod_payment):
    first = open_session(CartIdentity(session_id="a"))
    second = open_session(CartIdentity(session_id="b"))
    first.cart.add_item(shirt, "L", 2)
    second.cart.add_item(shirt, "L", 2)

    first_checkout = first.new_checkout()
    second_checkout = second.new_checkout()
    for checkout in (first_checkout, second_checkout):
        checkout.submit_shipping(shipping_info)
        checkout.submit_payment(cod_payment)

    assert first_checkout.place_order().ok
    lost = second_checkout.place_order()

    assert lost.error == CheckoutErrorCode.STOCK_CONFLICT
    assert second_checkout.state == CheckoutStep.REVIEW
    assert product_repo.products["P1"].stock["L"] == 0
    assert len(order_repo.orders) == 1
    assert second.cart.items[0].quantity == 2


def test_login_merges_cart_then_orders_as_user(open_session, shirt, jacket, order_repo,
                                               shipping_info, cod_payment):
    session = open_session(CartIdentity(session_id="guest-7"))
    session.cart.add_item(jacket, "M", 1)

    session.login("user-1")
    _, result = checkout_all_steps(session, shipping_info, cod_payment)

    order = order_repo.find_by_id(result.order_id)
    assert order.user_id == "user-1"
    assert order.items[0].unit_price == Decimal("999.00")
    assert order.items[0].original_price == Decimal("1200.00")


def test_legacy_orders_backfilled(open_session, order_repo, order_factory):
    order_repo.insert(order_factory(1, is_read=None))
    order_repo.insert(order_factory(2, is_read=None, status="delivered"))
    admin = open_session(CartIdentity(user_id="admin-1"))
    assert admin.notifications.unread_count == 1

    assert order_repo.backfill_is_read() == 2
    admin.notifications.sync()

    assert [n.order_id for n in admin.notifications.notifications] == [1]
    assert order_repo.find_by_id(2).is_read is True


class TestDatabase:
    """Requires a reachable PostgreSQL (DATABASE_URL)"""

    @pytest.fixture(autouse=True)
    def configured(self, database_url, monkeypatch):
        monkeypatch.setattr(settings, "DATABASE_URL", database_url)

    def test_schema_and_reads(self):
        from storefront.core.database import init_db
        from storefront.repositories.order_repository import OrderRepository
        from storefront.repositories.product_repository import ProductRepository
        from storefront.repositories.role_repository import RoleRepository

        init_db()

        missing = f"missing-{uuid.uuid4().hex}"
        assert ProductRepository().get_stock(missing) is None
        assert RoleRepository().find_role(missing) is None
        assert isinstance(OrderRepository().find_unread(), list)
