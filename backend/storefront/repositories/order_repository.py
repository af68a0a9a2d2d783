"""
Order Repository - Data Access Layer for Orders

Handles all database queries for orders and returns Order domain models.

Writes that admins need to see live (create, status changes, read flags)
publish a pg_notify on settings.ORDERS_NOTIFY_CHANNEL inside the same
transaction, so the notification is delivered only if the write commits.

Author: TM3
Date: 2025-10-17
Updated: 2025-12-02 (storefront orders, stock reservation, live subscriptions)
"""
import json
import logging
import select
from typing import List, Optional, Tuple, Dict

import psycopg2

from storefront.core.config import settings
from storefront.core.database import (
    get_db_connection_dict_with_retry,
    get_listen_connection,
    transaction,
)
from storefront.core.errors import PersistenceError, StockConflict, NotificationSyncError
from storefront.core.subscriptions import Subscription
from storefront.domain.checkout import StockReason, StockVerdict
from storefront.domain.order import (
    Order, OrderCreate, OrderFilter, OrderItem, OrderStatus, Customer, ShippingAddress,
)

logger = logging.getLogger(__name__)

ORDER_COLUMNS = """
    o.id, o.order_number, o.user_id,
    o.customer_name, o.customer_email, o.customer_phone,
    o.address_line, o.city, o.state, o.postal_code, o.country,
    o.subtotal, o.discount, o.shipping, o.tax, o.total, o.promo_code,
    o.status, o.payment_method, o.payment_status,
    o.is_read, o.created_at, o.updated_at
"""


def _build_where(order_filter: Optional[OrderFilter]) -> Tuple[str, list]:
    conditions = []
    params = []

    if order_filter is not None:
        if order_filter.is_read_missing:
            conditions.append("o.is_read IS NULL")
        elif order_filter.is_read is not None:
            conditions.append("o.is_read = %s")
            params.append(order_filter.is_read)

        if order_filter.status is not None:
            conditions.append("o.status = %s")
            params.append(order_filter.status.value)

        if order_filter.user_id is not None:
            conditions.append("o.user_id = %s")
            params.append(order_filter.user_id)

    where_clause = " AND ".join(conditions) if conditions else "1=1"
    return where_clause, params


def _notify(cursor, order_id: int, op: str):
    cursor.execute(
        "SELECT pg_notify(%s, %s)",
        (settings.ORDERS_NOTIFY_CHANNEL, json.dumps({"order_id": order_id, "op": op})),
    )


class OrderRepository:
    """
    Repository for Order data access

    All SQL queries for orders are centralized here.
    Returns Order domain models with their item snapshots.
    """

    @staticmethod
    def _map_row_to_order(row: dict, items: List[OrderItem]) -> Order:
        return Order(
            id=row['id'],
            order_number=row['order_number'],
            user_id=row.get('user_id'),
            items=items,
            customer=Customer(
                name=row['customer_name'],
                email=row['customer_email'],
                phone=row['customer_phone'],
            ),
            shipping_address=ShippingAddress(
                address_line=row['address_line'],
                city=row['city'],
                state=row['state'],
                postal_code=row['postal_code'],
                country=row.get('country') or "India",
            ),
            payment_method=row['payment_method'],
            payment_status=row['payment_status'],
            status=row['status'],
            promo_code=row.get('promo_code'),
            subtotal=row['subtotal'],
            discount=row['discount'],
            shipping=row['shipping'],
            tax=row['tax'],
            total=row['total'],
            is_read=row['is_read'],
            created_at=row['created_at'],
            updated_at=row.get('updated_at'),
        )

    @staticmethod
    def _load_items(cursor, order_ids: List[int]) -> Dict[int, List[OrderItem]]:
        """All items for these orders in ONE query, grouped by order_id"""
        if not order_ids:
            return {}

        cursor.execute("""
            SELECT
                oi.order_id, oi.product_id, oi.size, oi.product_name,
                oi.quantity, oi.unit_price, oi.original_price
            FROM order_items oi
            WHERE oi.order_id = ANY(%s)
            ORDER BY oi.order_id, oi.id
        """, (order_ids,))

        items_by_order: Dict[int, List[OrderItem]] = {}
        for item in cursor.fetchall():
            items_by_order.setdefault(item['order_id'], []).append(OrderItem(
                product_id=item['product_id'],
                size=item['size'],
                name=item.get('product_name'),
                quantity=item['quantity'],
                unit_price=item['unit_price'],
                original_price=item['original_price'],
            ))
        return items_by_order

    # ============================================
    # Reads
    # ============================================

    def find_by_id(self, order_id: int) -> Optional[Order]:
        """
        Find order by ID with its items

        Returns:
            Order or None if not found
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders o
                WHERE o.id = %s
            """, (order_id,))

            row = cursor.fetchone()
            if not row:
                return None

            items = self._load_items(cursor, [row['id']])
            return self._map_row_to_order(row, items.get(row['id'], []))

        except psycopg2.Error as e:
            logger.error(f"Error loading order {order_id}: {e}")
            raise PersistenceError(f"Could not load order {order_id}") from e

        finally:
            cursor.close()
            conn.close()

    def find_all(
        self,
        status: Optional[str] = None,
        is_read: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[Order], int]:
        """
        Find orders with filters, newest first

        Args:
            status: Filter by order status
            is_read: Filter by admin read flag
            limit: Maximum results to return
            offset: Number of results to skip

        Returns:
            Tuple of (list of orders, total count)
        """
        order_filter = OrderFilter(
            status=OrderStatus(status) if status else None,
            is_read=is_read,
        )
        return self._page(order_filter, limit, offset, "orders")

    def find_by_user(
        self,
        user_id: str,
        status: Optional[str] = None,
        limit: int = 10,
        offset: int = 0
    ) -> Tuple[List[Order], int]:
        """
        One customer's orders, newest first

        Returns:
            Tuple of (list of orders, total count for this user)
        """
        order_filter = OrderFilter(
            user_id=user_id,
            status=OrderStatus(status) if status else None,
        )
        return self._page(order_filter, limit, offset, f"orders for user {user_id}")

    def _page(self, order_filter: OrderFilter, limit: int, offset: int, label: str) -> Tuple[List[Order], int]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            where_clause, params = _build_where(order_filter)

            cursor.execute(f"""
                SELECT COUNT(*) as total
                FROM orders o
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            orders = self._find(cursor, where_clause, params, limit=limit, offset=offset)
            return orders, total

        except psycopg2.Error as e:
            logger.error(f"Error listing {label}: {e}")
            raise PersistenceError(f"Could not list {label}") from e

        finally:
            cursor.close()
            conn.close()

    def find_matching(self, order_filter: OrderFilter) -> List[Order]:
        """Every order matching the filter, newest first"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            where_clause, params = _build_where(order_filter)
            return self._find(cursor, where_clause, params)

        except psycopg2.Error as e:
            logger.error(f"Error querying orders: {e}")
            raise PersistenceError("Could not query orders") from e

        finally:
            cursor.close()
            conn.close()

    def find_unread(self) -> List[Order]:
        return self.find_matching(OrderFilter(is_read=False))

    def find_legacy_unread(self) -> List[Order]:
        """Pending orders written before is_read existed"""
        return self.find_matching(OrderFilter(is_read_missing=True, status=OrderStatus.PENDING))

    def _find(self, cursor, where_clause: str, params: list,
              limit: Optional[int] = None, offset: int = 0) -> List[Order]:
        query = f"""
            SELECT {ORDER_COLUMNS}
            FROM orders o
            WHERE {where_clause}
            ORDER BY o.created_at DESC, o.id DESC
        """
        query_params = list(params)
        if limit is not None:
            query += " LIMIT %s OFFSET %s"
            query_params += [limit, offset]

        cursor.execute(query, query_params)
        order_rows = cursor.fetchall()
        if not order_rows:
            return []

        items_by_order = self._load_items(cursor, [row['id'] for row in order_rows])
        return [
            self._map_row_to_order(row, items_by_order.get(row['id'], []))
            for row in order_rows
        ]

    # ============================================
    # Writes
    # ============================================

    def create(self, order: OrderCreate) -> Order:
        """
        Reserve stock and insert the order in one transaction

        Every line is reserved with a conditional decrement
        (quantity >= requested). If any reservation fails nothing is
        written and StockConflict lists every line that could not be
        reserved.

        Raises:
            StockConflict: authoritative stock cannot cover the order
            PersistenceError: the store is unreachable or rejected the write
        """
        with transaction() as cursor:
            conflicts = self._reserve_stock(cursor, order.items)
            if conflicts:
                logger.warning(
                    f"Stock reservation failed for {order.order_number}: "
                    f"{[c.message for c in conflicts]}"
                )
                raise StockConflict(conflicts)

            cursor.execute("""
                INSERT INTO orders (
                    order_number, user_id,
                    customer_name, customer_email, customer_phone,
                    address_line, city, state, postal_code, country,
                    subtotal, discount, shipping, tax, total, promo_code,
                    status, payment_method, payment_status,
                    is_read, created_at, updated_at
                ) VALUES (
                    %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                    %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s
                )
                RETURNING id, updated_at
            """, (
                order.order_number, order.user_id,
                order.customer.name, order.customer.email, order.customer.phone,
                order.shipping_address.address_line, order.shipping_address.city,
                order.shipping_address.state, order.shipping_address.postal_code,
                order.shipping_address.country,
                order.subtotal, order.discount, order.shipping, order.tax, order.total,
                order.promo_code,
                order.status.value, order.payment_method, order.payment_status.value,
                order.is_read, order.created_at, order.created_at,
            ))
            inserted = cursor.fetchone()
            order_id = inserted['id']

            for item in order.items:
                cursor.execute("""
                    INSERT INTO order_items (
                        order_id, product_id, size, product_name,
                        quantity, unit_price, original_price
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s)
                """, (
                    order_id, item.product_id, item.size, item.name,
                    item.quantity, item.unit_price, item.original_price,
                ))

            _notify(cursor, order_id, "insert")

        logger.info(f"Order {order.order_number} created with id {order_id}")
        return Order(
            id=order_id,
            updated_at=inserted.get('updated_at'),
            **order.model_dump(),
        )

    @staticmethod
    def _reserve_stock(cursor, items: List[OrderItem]) -> List[StockVerdict]:
        conflicts = []
        # fixed lock order so concurrent checkouts cannot deadlock
        for item in sorted(items, key=lambda i: (i.product_id, i.size)):
            cursor.execute("""
                UPDATE product_stock
                SET quantity = quantity - %s, updated_at = NOW()
                WHERE product_id = %s AND size = %s AND quantity >= %s
                RETURNING quantity
            """, (item.quantity, item.product_id, item.size, item.quantity))
            if cursor.fetchone() is not None:
                continue

            cursor.execute("""
                SELECT quantity FROM product_stock
                WHERE product_id = %s AND size = %s
            """, (item.product_id, item.size))
            row = cursor.fetchone()

            if row is None:
                conflicts.append(StockVerdict(
                    product_id=item.product_id, size=item.size, requested=item.quantity,
                    ok=False, available=0, reason=StockReason.NOT_FOUND,
                    message=f"{item.name or item.product_id} (size {item.size}) is no longer available",
                ))
            else:
                conflicts.append(StockVerdict(
                    product_id=item.product_id, size=item.size, requested=item.quantity,
                    ok=False, available=row['quantity'], reason=StockReason.INSUFFICIENT_STOCK,
                    message=(
                        f"Only {row['quantity']} of {item.name or item.product_id} "
                        f"(size {item.size}) left, {item.quantity} requested"
                    ),
                ))
        return conflicts

    def update_status(self, order_id: int, status: OrderStatus, expected: OrderStatus) -> bool:
        """
        Move an order to `status` if it is still in `expected`

        Returns:
            False when the order changed (or vanished) in between
        """
        with transaction() as cursor:
            cursor.execute("""
                UPDATE orders
                SET status = %s, updated_at = NOW()
                WHERE id = %s AND status = %s
                RETURNING id
            """, (status.value, order_id, expected.value))
            if cursor.fetchone() is None:
                return False
            _notify(cursor, order_id, "status")

        logger.info(f"Order {order_id}: {expected.value} -> {status.value}")
        return True

    def cancel(self, order_id: int, reason: Optional[str], expected: OrderStatus) -> bool:
        """
        Cancel an order and put its units back in stock, atomically

        Returns:
            False when the order is no longer in `expected`
        """
        with transaction() as cursor:
            cursor.execute("""
                UPDATE orders
                SET status = %s, cancel_reason = %s, cancelled_at = NOW(), updated_at = NOW()
                WHERE id = %s AND status = %s
                RETURNING id
            """, (OrderStatus.CANCELLED.value, reason, order_id, expected.value))
            if cursor.fetchone() is None:
                return False

            cursor.execute("""
                SELECT product_id, size, quantity
                FROM order_items
                WHERE order_id = %s
            """, (order_id,))
            for item in cursor.fetchall():
                cursor.execute("""
                    INSERT INTO product_stock (product_id, size, quantity, updated_at)
                    VALUES (%s, %s, %s, NOW())
                    ON CONFLICT (product_id, size) DO UPDATE SET
                        quantity = product_stock.quantity + EXCLUDED.quantity,
                        updated_at = NOW()
                """, (item['product_id'], item['size'], item['quantity']))

            _notify(cursor, order_id, "cancel")

        logger.info(f"Order {order_id} cancelled, stock restored")
        return True

    def mark_read(self, order_id: int) -> bool:
        """
        Set is_read = true. The order itself is kept.

        Returns:
            True if the flag changed, False if already read or missing
        """
        with transaction() as cursor:
            cursor.execute("""
                UPDATE orders
                SET is_read = true, updated_at = NOW()
                WHERE id = %s AND is_read IS DISTINCT FROM true
                RETURNING id
            """, (order_id,))
            if cursor.fetchone() is None:
                return False
            _notify(cursor, order_id, "read")
        return True

    def mark_read_many(self, order_ids: List[int]) -> int:
        """Set is_read = true for every id in a single transaction. Returns rows changed."""
        if not order_ids:
            return 0

        with transaction() as cursor:
            cursor.execute("""
                UPDATE orders
                SET is_read = true, updated_at = NOW()
                WHERE id = ANY(%s) AND is_read IS DISTINCT FROM true
                RETURNING id
            """, (list(order_ids),))
            changed = [row['id'] for row in cursor.fetchall()]
            if changed:
                # one notification is enough, subscribers re-query
                _notify(cursor, changed[0], "read")

        logger.info(f"Marked {len(changed)} order(s) as read")
        return len(changed)

    def backfill_is_read(self) -> int:
        """
        Give legacy orders an explicit read flag

        Pending legacy orders become unread (they show up in the live feed),
        everything else is considered handled.
        """
        with transaction() as cursor:
            cursor.execute("""
                UPDATE orders
                SET is_read = (status <> %s)
                WHERE is_read IS NULL
                RETURNING id
            """, (OrderStatus.PENDING.value,))
            updated = cursor.fetchall()
            if updated:
                _notify(cursor, updated[0]['id'], "backfill")

        logger.info(f"Backfilled is_read on {len(updated)} legacy order(s)")
        return len(updated)

    # ============================================
    # Live subscriptions
    # ============================================

    def subscribe(self, order_filter: OrderFilter) -> "OrderSubscription":
        """
        Live query over orders matching the filter

        The current result is available immediately; a new full snapshot is
        produced whenever an order write is committed. Cancel the handle to
        release its connection.
        """
        conn = get_listen_connection(settings.ORDERS_NOTIFY_CHANNEL)
        try:
            return OrderSubscription(self, order_filter, conn)
        except Exception:
            conn.close()
            raise


class OrderSubscription(Subscription[List[Order]]):
    """
    Snapshot stream backed by LISTEN on a dedicated connection

    LISTEN is issued before the initial query so no commit can fall
    between the two.
    """

    def __init__(self, repository: OrderRepository, order_filter: OrderFilter, conn):
        super().__init__()
        self._repository = repository
        self._filter = order_filter
        self._conn = conn
        self._push(repository.find_matching(order_filter))

    def _wait(self, timeout: float) -> Optional[List[Order]]:
        try:
            ready, _, _ = select.select([self._conn], [], [], timeout)
            if not ready:
                return None

            self._conn.poll()
            if not self._conn.notifies:
                return None

            # several commits collapse into one re-query
            self._conn.notifies.clear()
        except (psycopg2.Error, OSError) as e:
            logger.error(f"Order subscription lost: {e}")
            raise NotificationSyncError(f"Lost connection to the order feed: {e}") from e

        try:
            return self._repository.find_matching(self._filter)
        except PersistenceError as e:
            raise NotificationSyncError(e.message) from e

    def _release(self):
        try:
            self._conn.close()
        except psycopg2.Error as e:
            logger.warning(f"Error closing subscription connection: {e}")
