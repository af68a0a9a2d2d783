"""
Unit tests for StorefrontSession

Author: TM3
Date: 2025-12-02
"""
import pytest

from storefront.core.events import CART_CHANGED
from storefront.domain.cart import CartIdentity
from storefront.domain.checkout import CheckoutStep
from storefront.services.session import StorefrontSession


@pytest.fixture
def make_session(cart_repo, promo_repo, product_repo, order_repo, role_repo, pricing):
    sessions = []

    def _make(identity, on_alert=None):
        session = StorefrontSession(
            identity,
            cart_repository=cart_repo,
            promo_repository=promo_repo,
            product_repository=product_repo,
            order_repository=order_repo,
            role_repository=role_repo,
            pricing=pricing,
            on_alert=on_alert,
        )
        sessions.append(session)
        return session

    yield _make
    for session in sessions:
        session.close()


class TestRoles:

    def test_guest_has_no_role(self, make_session, guest):
        session = make_session(guest)

        assert session.role is None
        assert not session.is_admin
        assert session.notifications is None

    def test_unknown_user_defaults_to_user(self, make_session):
        session = make_session(CartIdentity(user_id="someone"))
        assert session.role == "user"

    def test_admin_gets_live_notifications(self, make_session, order_repo, order_factory):
        order_repo.insert(order_factory(1))

        session = make_session(CartIdentity(user_id="admin-1"))

        assert session.is_admin
        assert session.notifications.is_live
        assert session.notifications.unread_count == 1

    def test_admin_feed_failure_does_not_block_session(self, make_session, order_repo):
        order_repo.fail_subscribe = True

        session = make_session(CartIdentity(user_id="admin-1"))

        assert session.notifications.error is not None

    def test_role_resolved_once_per_identity(self, make_session, role_repo):
        session = make_session(CartIdentity(user_id="user-1"))

        assert role_repo.lookups == 1


class TestLogin:

    def test_anonymous_cart_is_merged(self, make_session, guest, shirt, cart_repo):
        session = make_session(guest)
        session.cart.add_item(shirt, "M", 2)

        reduced = session.login("user-1")

        assert reduced == []
        assert session.identity.user_id == "user-1"
        assert session.cart.items[0].quantity == 2
        assert cart_repo.load(guest.key) is None
        assert cart_repo.load("user:user-1") is not None

    def test_merge_adds_to_existing_user_cart(self, make_session, guest, shirt, jacket):
        user_session = make_session(CartIdentity(user_id="user-1"))
        user_session.cart.add_item(jacket, "M", 1)

        session = make_session(guest)
        session.cart.add_item(shirt, "M", 1)
        session.login("user-1")

        assert sorted(i.product_id for i in session.cart.items) == ["P1", "P2"]

    def test_admin_login_starts_feed(self, make_session, guest):
        session = make_session(guest)

        session.login("admin-1")

        assert session.notifications is not None
        assert session.notifications.is_live

    def test_cart_events_follow_new_cart(self, make_session, guest, shirt):
        session = make_session(guest)
        seen = []
        session.events.on(CART_CHANGED, lambda cart: seen.append(cart.item_count))

        session.login("user-1")
        session.cart.add_item(shirt, "M", 1)

        assert seen[-1] == 1


class TestCheckoutAndClose:

    def test_checkout_places_order_for_user(self, make_session, shirt, order_repo,
                                            shipping_info, cod_payment):
        session = make_session(CartIdentity(user_id="user-1"))
        session.cart.add_item(shirt, "M", 1)
        checkout = session.new_checkout()

        checkout.submit_shipping(shipping_info)
        checkout.submit_payment(cod_payment)
        result = checkout.place_order()

        assert checkout.state == CheckoutStep.PLACED
        assert order_repo.find_by_id(result.order_id).user_id == "user-1"

    def test_checkouts_share_one_writer(self, make_session, guest):
        session = make_session(guest)
        assert session.new_checkout().order_writer is session.new_checkout().order_writer

    def test_admin_sees_order_placed_by_customer(self, make_session, shirt, order_repo,
                                                 shipping_info, cod_payment):
        alerts = []
        admin = make_session(CartIdentity(user_id="admin-1"),
                             on_alert=lambda count, notifications: alerts.append(count))
        customer = make_session(CartIdentity(session_id="shopper"))
        customer.cart.add_item(shirt, "M", 1)
        checkout = customer.new_checkout()
        checkout.submit_shipping(shipping_info)
        checkout.submit_payment(cod_payment)
        checkout.place_order()

        admin.notifications.sync()

        assert admin.notifications.unread_count == 1
        assert alerts == [1]

    def test_close_is_idempotent(self, make_session, order_repo):
        session = make_session(CartIdentity(user_id="admin-1"))

        session.close()
        session.close()

        assert session.closed
        assert session.notifications is None
        assert order_repo.subscriptions[0].released

    def test_context_manager(self, make_session, guest):
        with make_session(guest) as session:
            pass
        assert session.closed
