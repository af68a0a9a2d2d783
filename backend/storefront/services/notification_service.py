"""
Notification Service
Admin view of unread orders, kept live from the order feed

Sources:
- live: OrderRepository.subscribe(is_read = false)
- legacy: pending orders with no is_read flag (written before the flag
  existed). Merged while NOTIFICATIONS_INCLUDE_LEGACY is on; turn it off
  after scripts/migrations/backfill_is_read.py has run.

The merged view is deduplicated by order id and sorted newest first.
The alert callback fires only when the unread count grows past the last
observed value, never on the first load.

A feed failure sets `error`, cancels the subscription and keeps the
notifications already shown. Reconnecting is a manual `retry()`.

Author: TM3
Date: 2025-12-02
"""
import logging
from datetime import timezone
from typing import Callable, Dict, List, Optional, Set

from storefront.core.config import settings
from storefront.core.errors import NotificationSyncError, StorefrontError
from storefront.core.events import EventEmitter, NOTIFICATIONS_CHANGED
from storefront.core.subscriptions import Subscription
from storefront.domain.notification import Notification
from storefront.domain.order import Order, OrderFilter
from storefront.repositories.order_repository import OrderRepository

logger = logging.getLogger(__name__)

AlertCallback = Callable[[int, List[Notification]], None]


def _sort_key(notification: Notification):
    timestamp = notification.timestamp
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return (timestamp, notification.order_id)


class NotificationAggregator:
    """
    Usage:
        with NotificationAggregator(OrderRepository(), on_alert=play_sound) as feed:
            feed.start()
            while running:
                feed.sync(timeout=1.0)
                render(feed.notifications, feed.unread_count)
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        on_alert: Optional[AlertCallback] = None,
        events: Optional[EventEmitter] = None,
        include_legacy: Optional[bool] = None,
        alerts_enabled: bool = True,
    ):
        self.order_repository = order_repository
        self.on_alert = on_alert
        self.events = events or EventEmitter()
        self.include_legacy = (
            settings.NOTIFICATIONS_INCLUDE_LEGACY if include_legacy is None else include_legacy
        )
        self.alerts_enabled = alerts_enabled

        self.error: Optional[NotificationSyncError] = None
        self._handle: Optional[Subscription] = None
        self._live: Dict[int, Notification] = {}
        self._legacy: Dict[int, Notification] = {}
        self._acknowledged: Set[int] = set()
        self._last_count: Optional[int] = None

    # ============================================
    # View
    # ============================================

    @property
    def notifications(self) -> List[Notification]:
        merged = dict(self._legacy)
        merged.update(self._live)
        visible = [n for order_id, n in merged.items() if order_id not in self._acknowledged]
        return sorted(visible, key=_sort_key, reverse=True)

    @property
    def unread_count(self) -> int:
        return len(self.notifications)

    @property
    def is_live(self) -> bool:
        return self._handle is not None and not self._handle.cancelled

    @property
    def loaded(self) -> bool:
        return self._last_count is not None

    # ============================================
    # Feed lifecycle
    # ============================================

    def start(self) -> bool:
        """
        Subscribe to unread orders and apply the initial snapshot

        Returns:
            False if the feed could not be opened (see `error`)
        """
        if self.is_live:
            return True

        self.error = None
        try:
            self._handle = self.order_repository.subscribe(OrderFilter(is_read=False))
        except StorefrontError as e:
            self._fail(e)
            return False

        logger.info("Order notification feed started")
        self.sync(timeout=0)
        return self.error is None

    def sync(self, timeout: Optional[float] = 0.0) -> int:
        """
        Apply every snapshot available now, waiting up to timeout for the first

        Returns:
            Number of snapshots applied
        """
        applied = 0
        while self.is_live:
            try:
                snapshot = self._handle.poll(timeout)
            except StorefrontError as e:
                self._fail(e)
                break
            if snapshot is None:
                break
            self._apply(snapshot)
            applied += 1
            timeout = 0
        return applied

    def run(self):
        """Apply snapshots until the feed is closed or fails"""
        while self.is_live:
            self.sync(timeout=None)

    def refresh(self):
        """
        One-shot load without a subscription

        Raises:
            PersistenceError: the unread query failed
        """
        self._apply(self.order_repository.find_unread())

    def retry(self) -> bool:
        """Reopen the feed after a failure"""
        logger.info("Retrying order notification feed")
        self._cancel_handle()
        return self.start()

    def close(self):
        self._cancel_handle()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ============================================
    # Acknowledgement
    # ============================================

    def mark_read(self, order_id: int) -> bool:
        """
        Flag an order as read and drop it from the view

        Returns:
            False when the order was already read (no-op)

        Raises:
            PersistenceError: the flag could not be written; the view is unchanged
        """
        if order_id in self._acknowledged:
            return False

        changed = self.order_repository.mark_read(order_id)
        self._acknowledged.add(order_id)
        self._changed()
        return changed

    def mark_all_read(self) -> int:
        """
        Flag every notification currently shown, in one update

        Returns:
            Number of orders whose flag changed
        """
        order_ids = [n.order_id for n in self.notifications]
        if not order_ids:
            return 0

        changed = self.order_repository.mark_read_many(order_ids)
        self._acknowledged.update(order_ids)
        self._changed()
        return changed

    def toggle_alerts(self) -> bool:
        self.alerts_enabled = not self.alerts_enabled
        return self.alerts_enabled

    # ============================================
    # Internals
    # ============================================

    def _apply(self, orders: List[Order]):
        self._live = {order.id: Notification.from_order(order) for order in orders}
        self._legacy = self._load_legacy()

        # ids gone from both sources are settled in the store
        current = set(self._live) | set(self._legacy)
        self._acknowledged &= current

        self._changed()

    def _load_legacy(self) -> Dict[int, Notification]:
        if not self.include_legacy:
            return {}
        try:
            legacy = self.order_repository.find_legacy_unread()
        except StorefrontError as e:
            logger.warning(f"Legacy order query failed, showing live notifications only: {e.message}")
            return {}
        return {order.id: Notification.from_order(order) for order in legacy}

    def _changed(self):
        count = self.unread_count
        previous = self._last_count
        self._last_count = count

        if previous is not None and count > previous and self.alerts_enabled and self.on_alert:
            try:
                self.on_alert(count, self.notifications)
            except Exception:
                logger.exception("Notification alert callback failed")

        self.events.emit(NOTIFICATIONS_CHANGED, count)

    def _fail(self, error: StorefrontError):
        if isinstance(error, NotificationSyncError):
            self.error = error
        else:
            self.error = NotificationSyncError(details={"cause": error.message})
        logger.error(f"Order notification feed failed: {error.message}")
        self._cancel_handle()

    def _cancel_handle(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
