"""
Notifications API Endpoints
Unread order notifications for the admin dashboard

HTTP clients get a one-shot view; the live feed is used in-process through
NotificationAggregator.start().

Author: TM3
Date: 2025-12-02
"""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from storefront.api.dependencies import get_order_repository, http_error
from storefront.core.auth import TokenUser, require_admin
from storefront.core.errors import StorefrontError
from storefront.core.rate_limit import rate_limit_check
from storefront.repositories.order_repository import OrderRepository
from storefront.services.notification_service import NotificationAggregator

logger = logging.getLogger(__name__)

router = APIRouter()


class AcknowledgeRequest(BaseModel):
    order_id: int


@router.get("/")
async def get_notifications(
    admin: TokenUser = Depends(require_admin),
    repo: OrderRepository = Depends(get_order_repository),
):
    """Unread orders, newest first, legacy orders merged in"""
    try:
        aggregator = NotificationAggregator(repo)
        aggregator.refresh()
        return {
            "status": "success",
            "unread_count": aggregator.unread_count,
            "data": [n.to_dict() for n in aggregator.notifications],
        }
    except StorefrontError as e:
        raise http_error(e)


@router.patch("/acknowledge")
async def acknowledge(
    payload: AcknowledgeRequest,
    admin: TokenUser = Depends(require_admin),
    repo: OrderRepository = Depends(get_order_repository),
):
    """Mark one order as read. Acknowledging twice is harmless."""
    try:
        changed = NotificationAggregator(repo).mark_read(payload.order_id)
        return {"status": "success", "order_id": payload.order_id, "changed": changed}
    except StorefrontError as e:
        raise http_error(e)


@router.patch("/acknowledge-all", dependencies=[Depends(rate_limit_check)])
async def acknowledge_all(
    admin: TokenUser = Depends(require_admin),
    repo: OrderRepository = Depends(get_order_repository),
):
    """Mark every unread order as read in one update"""
    try:
        aggregator = NotificationAggregator(repo)
        aggregator.refresh()
        count = aggregator.mark_all_read()
        logger.info(f"Admin {admin.id} acknowledged {count} notification(s)")
        return {"status": "success", "count": count}
    except StorefrontError as e:
        raise http_error(e)
