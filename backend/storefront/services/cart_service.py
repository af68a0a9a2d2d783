"""
Cart Service
Stock-aware cart owned by one browsing identity

Every mutation is computed on a copy, persisted through CartRepository and
only then becomes the current state, so a failed save leaves the cart as it
was. Successful mutations emit CART_CHANGED.

Quantities are capped by the "known stock": the per-size stock last seen
for a line (when the product was added, when an add was refused for lack
of stock, or from a validation pass the user chose to apply). The cap is
advisory; StockValidator and the reservation at commit are authoritative.

Author: TM3
Date: 2025-12-02
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from storefront.core.errors import OutOfStock, PersistenceError, ValidationError
from storefront.core.events import EventEmitter, CART_CHANGED
from storefront.domain.cart import (
    Cart, CartIdentity, CartSnapshot, LineItem, PromoResult, stock_key,
)
from storefront.domain.checkout import StockVerdict
from storefront.domain.product import Product, money
from storefront.repositories.cart_repository import CartRepository
from storefront.repositories.promo_repository import PromoRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CartStore:
    """
    Cart for a single identity

    Usage:
        store = CartStore(CartIdentity(session_id="abc"), CartRepository(), PromoRepository())
        store.add_item(product, "M", 2)
        store.apply_promo_code("welcome10")
    """

    def __init__(
        self,
        identity: CartIdentity,
        cart_repository: CartRepository,
        promo_repository: PromoRepository,
        events: Optional[EventEmitter] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.identity = identity
        self.cart_repository = cart_repository
        self.promo_repository = promo_repository
        self.events = events or EventEmitter()
        self._clock = clock

        snapshot = cart_repository.load(identity.key)
        if snapshot is None:
            snapshot = CartSnapshot()
        else:
            logger.debug(f"Restored cart {identity.key} with {snapshot.cart.item_count} unit(s)")

        self._cart: Cart = snapshot.cart
        self._known_stock: Dict[str, int] = dict(snapshot.known_stock)

    # ============================================
    # Read access
    # ============================================

    @property
    def cart(self) -> Cart:
        """Copy of the current cart; mutate through the store methods"""
        return self._cart.model_copy(deep=True)

    @property
    def items(self) -> List[LineItem]:
        return self.cart.items

    @property
    def is_empty(self) -> bool:
        return self._cart.is_empty

    @property
    def item_count(self) -> int:
        return self._cart.item_count

    @property
    def subtotal(self):
        return self._cart.subtotal

    def known_stock(self, product_id: str, size: str) -> Optional[int]:
        return self._known_stock.get(stock_key(product_id, size))

    def snapshot(self) -> CartSnapshot:
        return CartSnapshot(cart=self.cart, known_stock=dict(self._known_stock))

    # ============================================
    # Mutations
    # ============================================

    def add_item(self, product: Product, size: str, quantity: int = 1) -> LineItem:
        """
        Add units of (product, size), merging into an existing line

        Raises:
            ValidationError: quantity < 1
            OutOfStock: the resulting quantity exceeds the product's stock for size
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", fields=["quantity"])

        available = product.available(size)
        cart = self.cart
        existing = cart.find(product.id, size)
        resulting = quantity + (existing.quantity if existing else 0)

        if resulting > available:
            if existing and self.known_stock(product.id, size) != available:
                self._record_stock(cart, stock_key(product.id, size), available)
            raise OutOfStock(product.id, size, resulting, available)

        if existing:
            line = existing.model_copy(update={'quantity': resulting})
            cart.items = [line if item.key == line.key else item for item in cart.items]
        else:
            line = LineItem(
                product_id=product.id,
                size=size,
                quantity=quantity,
                unit_price=product.unit_price,
                original_price=money(product.price),
                name=product.name,
                slug=product.slug,
                image=product.cover_image,
            )
            cart.items.append(line)

        known_stock = dict(self._known_stock)
        known_stock[stock_key(product.id, size)] = available
        self._commit(cart, known_stock)
        return line

    def update_quantity(self, product_id: str, size: str, quantity: int) -> LineItem:
        """
        Set a line's quantity, clamped to the known stock

        Quantity below 1 is rejected, never treated as a removal.

        Returns:
            The line as stored (quantity may be lower than requested)

        Raises:
            ValidationError: quantity < 1 or no such line
            OutOfStock: known stock for the line is 0
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", fields=["quantity"])

        cart = self.cart
        existing = cart.find(product_id, size)
        if existing is None:
            raise ValidationError(f"{product_id} (size {size}) is not in the cart", fields=["product_id", "size"])

        known = self._known_stock.get(stock_key(product_id, size))
        if known is not None:
            if known <= 0:
                raise OutOfStock(product_id, size, quantity, 0)
            if quantity > known:
                logger.info(f"Clamped {product_id}/{size} from {quantity} to known stock {known}")
                quantity = known

        line = existing.model_copy(update={'quantity': quantity})
        cart.items = [line if item.key == line.key else item for item in cart.items]
        self._commit(cart, self._known_stock)
        return line

    def remove_item(self, product_id: str, size: str) -> bool:
        """Remove a line. Returns False (and changes nothing) when absent."""
        cart = self.cart
        if cart.find(product_id, size) is None:
            return False

        cart.items = [item for item in cart.items if item.key != (product_id, size)]
        known_stock = dict(self._known_stock)
        known_stock.pop(stock_key(product_id, size), None)
        self._commit(cart, known_stock)
        return True

    def apply_promo_code(self, code: str) -> PromoResult:
        """
        Look up a code (case-insensitive) and apply its discount

        An invalid, inactive or out-of-window code leaves the cart unchanged.
        """
        if not code or not code.strip():
            return PromoResult(success=False, message="Please enter a promo code")

        promo = self.promo_repository.find_by_code(code)
        if promo is None or not promo.is_valid_at(self._clock()):
            logger.info(f"Rejected promo code '{code.strip()}' for {self.identity.key}")
            return PromoResult(success=False, message="Invalid or expired promo code")

        cart = self.cart
        cart.promo_code = promo.code.upper()
        cart.discount_percent = promo.discount_percent
        self._commit(cart, self._known_stock)

        return PromoResult(
            success=True,
            discount_percent=promo.discount_percent,
            message=f"{promo.discount_percent}% discount applied",
        )

    def remove_promo_code(self):
        cart = self.cart
        if cart.promo_code is None and cart.discount_percent == 0:
            return
        cart.promo_code = None
        cart.discount_percent = 0
        self._commit(cart, self._known_stock)

    def clear(self):
        """Empty items and promo state"""
        self._commit(Cart(), {})

    def merge(self, other: CartSnapshot) -> List[LineItem]:
        """
        Fold another cart (the anonymous one, on login) into this one

        Quantities for the same (product, size) are summed and capped at the
        lower of the two stock observations; a line capped to 0 is dropped.
        The higher discount wins.

        Returns:
            Lines whose merged quantity had to be reduced
        """
        cart = self.cart
        known_stock = dict(self._known_stock)
        reduced: List[LineItem] = []

        for incoming in other.cart.items:
            key = stock_key(incoming.product_id, incoming.size)
            observations = [
                value for value in (known_stock.get(key), other.known_stock.get(key))
                if value is not None
            ]
            cap = min(observations) if observations else None

            existing = cart.find(incoming.product_id, incoming.size)
            wanted = incoming.quantity + (existing.quantity if existing else 0)
            quantity = wanted if cap is None else min(wanted, cap)

            if cap is not None:
                known_stock[key] = cap

            if quantity < 1:
                cart.items = [item for item in cart.items if item.key != incoming.key]
                reduced.append(incoming)
                continue

            line = (existing or incoming).model_copy(update={'quantity': quantity})
            if existing:
                cart.items = [line if item.key == line.key else item for item in cart.items]
            else:
                cart.items.append(line)
            if quantity < wanted:
                reduced.append(line)

        if other.cart.discount_percent > cart.discount_percent:
            cart.promo_code = other.cart.promo_code
            cart.discount_percent = other.cart.discount_percent

        self._commit(cart, known_stock)
        logger.info(
            f"Merged {len(other.cart.items)} line(s) into {self.identity.key}, "
            f"{len(reduced)} reduced for stock"
        )
        return reduced

    def reconcile_stock(self, verdicts: List[StockVerdict]) -> List[LineItem]:
        """
        Apply a validation pass to the cart (explicit user action)

        Every verdict refreshes the known stock. Lines that exceed the
        reported availability are clamped; lines with nothing available are
        removed.

        Returns:
            The clamped lines as stored. Removed lines are not included.
        """
        cart = self.cart
        known_stock = dict(self._known_stock)
        adjusted: List[LineItem] = []

        for verdict in verdicts:
            known_stock[stock_key(verdict.product_id, verdict.size)] = verdict.available
            if verdict.ok:
                continue

            existing = cart.find(verdict.product_id, verdict.size)
            if existing is None:
                continue

            if verdict.available <= 0:
                cart.items = [item for item in cart.items if item.key != existing.key]
                logger.info(f"Removed {existing.product_id}/{existing.size}: no stock left")
            elif existing.quantity > verdict.available:
                line = existing.model_copy(update={'quantity': verdict.available})
                cart.items = [line if item.key == line.key else item for item in cart.items]
                adjusted.append(line)

        self._commit(cart, known_stock)
        return adjusted

    def discard(self):
        """Delete the persisted cart for this identity (after a merge on login)"""
        self.cart_repository.delete(self.identity.key)
        self._cart = Cart()
        self._known_stock = {}

    # ============================================
    # Internals
    # ============================================

    def _commit(self, cart: Cart, known_stock: Dict[str, int]):
        live_keys = {stock_key(item.product_id, item.size) for item in cart.items}
        known_stock = {key: value for key, value in known_stock.items() if key in live_keys}

        snapshot = CartSnapshot(cart=cart, known_stock=known_stock)
        self.cart_repository.save(self.identity.key, snapshot)

        self._cart = cart
        self._known_stock = known_stock
        self.events.emit(CART_CHANGED, self.cart)

    def _record_stock(self, cart: Cart, key: str, available: int):
        """Persist a fresher stock observation without changing the lines"""
        known_stock = dict(self._known_stock)
        known_stock[key] = available
        try:
            self._commit(cart, known_stock)
        except PersistenceError as e:
            logger.warning(f"Could not record stock {available} for {key} on {self.identity.key}: {e}")
