"""
Stock Validator
Checks every cart line against authoritative stock

Read-only: the cart is never modified here. Callers decide whether to
surface the verdicts or apply them (CartStore.reconcile_stock).

Author: TM3
Date: 2025-12-02
"""
import logging
from typing import Dict, List, Optional

from storefront.domain.cart import Cart
from storefront.domain.checkout import StockReason, StockVerdict
from storefront.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)


class StockValidator:

    def __init__(self, product_repository: ProductRepository):
        self.product_repository = product_repository

    def validate(self, cart: Cart) -> List[StockVerdict]:
        """
        One verdict per cart line, in cart order

        Each product's stock is fetched once per pass even when several
        sizes of it are in the cart.

        Raises:
            PersistenceError: stock could not be read
        """
        stock_cache: Dict[str, Optional[Dict[str, int]]] = {}
        verdicts = []

        for item in cart.items:
            if item.product_id not in stock_cache:
                stock_cache[item.product_id] = self.product_repository.get_stock(item.product_id)
            stock = stock_cache[item.product_id]
            label = item.name or item.product_id

            if stock is None or item.size not in stock:
                verdicts.append(StockVerdict(
                    product_id=item.product_id,
                    size=item.size,
                    requested=item.quantity,
                    ok=False,
                    available=0,
                    reason=StockReason.NOT_FOUND,
                    message=(
                        f"{label} is no longer available" if stock is None
                        else f"{label} is not available in size {item.size}"
                    ),
                ))
                continue

            available = max(0, stock[item.size])
            if item.quantity > available:
                verdicts.append(StockVerdict(
                    product_id=item.product_id,
                    size=item.size,
                    requested=item.quantity,
                    ok=False,
                    available=available,
                    reason=StockReason.INSUFFICIENT_STOCK,
                    message=(
                        f"{label} (size {item.size}) is out of stock" if available == 0
                        else f"Only {available} of {label} (size {item.size}) left, {item.quantity} requested"
                    ),
                ))
            else:
                verdicts.append(StockVerdict(
                    product_id=item.product_id,
                    size=item.size,
                    requested=item.quantity,
                    ok=True,
                    available=available,
                ))

        failed = [v for v in verdicts if not v.ok]
        if failed:
            logger.info(f"Stock validation: {len(failed)}/{len(verdicts)} line(s) failed")
        return verdicts

    @staticmethod
    def failures(verdicts: List[StockVerdict]) -> List[StockVerdict]:
        return [v for v in verdicts if not v.ok]
