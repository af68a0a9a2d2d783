"""
Orders API Endpoints
Customer order history and self-service cancel; admin order listing,
status changes and cancellation

Author: TM3
Date: 2025-10-03
Updated: 2025-12-02 (storefront orders: forward-only status, cancel with stock restore)
Updated: 2025-12-09 (customer order history and owner cancel)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from storefront.api.dependencies import get_order_repository, http_error
from storefront.core.auth import TokenUser, get_current_user, get_role_repository, require_admin
from storefront.core.errors import NotFound, StorefrontError, ValidationError
from storefront.domain.order import OrderStatus
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.role_repository import RoleRepository
from storefront.services.order_status_service import OrderStatusService

logger = logging.getLogger(__name__)

router = APIRouter()


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class CancelRequest(BaseModel):
    reason: Optional[str] = None


# ============================================
# Customer: own orders
# ============================================

@router.get("/mine")
async def get_my_orders(
    status: Optional[str] = Query(None, description="Filter by order status"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: TokenUser = Depends(get_current_user),
    repo: OrderRepository = Depends(get_order_repository),
):
    """
    Orders placed by the signed-in customer, newest first
    """
    try:
        if status and status not in {s.value for s in OrderStatus}:
            raise ValidationError(f"Unknown status '{status}'", fields=["status"])

        orders, total = repo.find_by_user(user.id, status=status, limit=limit, offset=offset)

        return {
            "status": "success",
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(orders),
            "has_more": offset + len(orders) < total,
            "data": [order.to_dict() for order in orders]
        }
    except StorefrontError as e:
        raise http_error(e)


@router.get("/mine/{order_id}")
async def get_my_order(
    order_id: int,
    user: TokenUser = Depends(get_current_user),
    repo: OrderRepository = Depends(get_order_repository),
):
    try:
        order = repo.find_by_id(order_id)
        # someone else's order is reported as missing
        if order is None or order.user_id != user.id:
            raise NotFound(f"Order {order_id} not found")
        return {"status": "success", "data": order.to_dict()}
    except StorefrontError as e:
        raise http_error(e)


@router.post("/mine/{order_id}/cancel")
async def cancel_my_order(
    order_id: int,
    payload: CancelRequest,
    user: TokenUser = Depends(get_current_user),
    roles: RoleRepository = Depends(get_role_repository),
    repo: OrderRepository = Depends(get_order_repository),
):
    """
    Cancel one of your own orders and restore its stock

    Admins may cancel any order here as well.
    """
    try:
        is_admin = roles.find_role(user.id) == "admin"
        order = OrderStatusService(repo).cancel_for_user(order_id, user.id, payload.reason, is_admin=is_admin)
        logger.info(f"User {user.id} cancelled order {order_id}")
        return {"status": "success", "data": order.to_dict()}
    except StorefrontError as e:
        raise http_error(e)


# ============================================
# Admin
# ============================================

@router.get("/")
async def get_orders(
    status: Optional[str] = Query(None, description="Filter by order status"),
    is_read: Optional[bool] = Query(None, description="Filter by admin read flag"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: TokenUser = Depends(require_admin),
    repo: OrderRepository = Depends(get_order_repository),
):
    """
    Get orders, newest first, with optional filters
    """
    try:
        if status and status not in {s.value for s in OrderStatus}:
            raise ValidationError(f"Unknown status '{status}'", fields=["status"])

        orders, total = repo.find_all(status=status, is_read=is_read, limit=limit, offset=offset)

        return {
            "status": "success",
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(orders),
            "data": [order.to_dict() for order in orders]
        }
    except StorefrontError as e:
        raise http_error(e)


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    admin: TokenUser = Depends(require_admin),
    repo: OrderRepository = Depends(get_order_repository),
):
    try:
        order = repo.find_by_id(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return {"status": "success", "data": order.to_dict()}
    except StorefrontError as e:
        raise http_error(e)


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: int,
    payload: StatusUpdateRequest,
    admin: TokenUser = Depends(require_admin),
    repo: OrderRepository = Depends(get_order_repository),
):
    """
    Move an order forward: pending -> processing -> shipped -> delivered

    Setting "cancelled" behaves like POST /{order_id}/cancel.
    """
    try:
        order = OrderStatusService(repo).update_status(order_id, payload.status)
        logger.info(f"Admin {admin.id} set order {order_id} to {order.status.value}")
        return {"status": "success", "data": order.to_dict()}
    except StorefrontError as e:
        raise http_error(e)


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    payload: CancelRequest,
    admin: TokenUser = Depends(require_admin),
    repo: OrderRepository = Depends(get_order_repository),
):
    """Cancel an order that has not been delivered and restore its stock"""
    try:
        order = OrderStatusService(repo).cancel(order_id, payload.reason)
        logger.info(f"Admin {admin.id} cancelled order {order_id}")
        return {"status": "success", "data": order.to_dict()}
    except StorefrontError as e:
        raise http_error(e)
