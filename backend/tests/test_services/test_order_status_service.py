"""
Unit tests for OrderStatusService

Author: TM3
Date: 2025-12-02
"""
import pytest

from storefront.core.errors import AuthorizationError, NotFound, ValidationError
from storefront.domain.order import OrderStatus
from storefront.services.order_status_service import OrderStatusService


@pytest.fixture
def service(order_repo):
    return OrderStatusService(order_repo)


@pytest.fixture
def pending(order_repo, order_factory):
    return order_repo.insert(order_factory(1))


def test_forward_transition(service, pending):
    order = service.update_status(pending.id, OrderStatus.SHIPPED)
    assert order.status == OrderStatus.SHIPPED


def test_accepts_plain_string(service, pending):
    assert service.update_status(pending.id, "processing").status == OrderStatus.PROCESSING


def test_backward_transition_rejected(service, order_repo, order_factory):
    order_repo.insert(order_factory(2, status=OrderStatus.SHIPPED))

    with pytest.raises(ValidationError) as exc_info:
        service.update_status(2, OrderStatus.PENDING)

    assert exc_info.value.fields == ["status"]
    assert order_repo.find_by_id(2).status == OrderStatus.SHIPPED


def test_unknown_order(service):
    with pytest.raises(NotFound):
        service.update_status(99, OrderStatus.SHIPPED)


def test_concurrent_change_is_detected(service, pending, order_repo, monkeypatch):
    monkeypatch.setattr(order_repo, "update_status", lambda order_id, status, expected: False)

    with pytest.raises(ValidationError, match="modified"):
        service.update_status(pending.id, OrderStatus.SHIPPED)


def test_cancel_restores_stock(service, pending, product_repo):
    before = product_repo.products["P1"].stock["M"]

    order = service.cancel(pending.id, reason="customer request")

    assert order.status == OrderStatus.CANCELLED
    assert product_repo.products["P1"].stock["M"] == before + 1


def test_cancel_through_update_status(service, pending):
    assert service.update_status(pending.id, OrderStatus.CANCELLED).status == OrderStatus.CANCELLED


def test_delivered_cannot_be_cancelled(service, order_repo, order_factory, product_repo):
    order_repo.insert(order_factory(3, status=OrderStatus.DELIVERED))
    before = product_repo.products["P1"].stock["M"]

    with pytest.raises(ValidationError):
        service.cancel(3)

    assert product_repo.products["P1"].stock["M"] == before


def test_cancel_twice(service, pending):
    service.cancel(pending.id)
    with pytest.raises(ValidationError):
        service.cancel(pending.id)


def test_owner_cancels_own_order(service, order_repo, order_factory, product_repo):
    order_repo.insert(order_factory(4, user_id="user-1"))
    before = product_repo.products["P1"].stock["M"]

    order = service.cancel_for_user(4, "user-1")

    assert order.status == OrderStatus.CANCELLED
    assert product_repo.products["P1"].stock["M"] == before + 1


def test_other_customer_cannot_cancel(service, order_repo, order_factory, product_repo):
    order_repo.insert(order_factory(4, user_id="user-1"))
    before = product_repo.products["P1"].stock["M"]

    with pytest.raises(AuthorizationError):
        service.cancel_for_user(4, "user-2")

    assert order_repo.find_by_id(4).status == OrderStatus.PENDING
    assert product_repo.products["P1"].stock["M"] == before


def test_admin_cancels_any_order(service, order_repo, order_factory):
    order_repo.insert(order_factory(4, user_id="user-1"))
    assert service.cancel_for_user(4, "admin-1", is_admin=True).status == OrderStatus.CANCELLED


def test_guest_order_cannot_be_cancelled_by_customer(service, pending):
    with pytest.raises(AuthorizationError):
        service.cancel_for_user(pending.id, "user-1")


def test_owner_cancel_of_unknown_order(service):
    with pytest.raises(NotFound):
        service.cancel_for_user(99, "user-1")
