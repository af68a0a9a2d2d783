"""
Product Domain Model

Represents a catalog product as seen by the cart: price snapshot and the
per-size stock observed when the product was loaded.

Author: TM3
Date: 2025-10-17
Updated: 2025-12-02 (per-size stock map for the storefront cart)
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, List
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

CENTS = Decimal("0.01")


def money(value) -> Decimal:
    """
    Quantize an amount to 2 decimals with ROUND_HALF_UP.

    Every amount stored on a cart or an order goes through here so totals
    are rounded the same way everywhere. Floats are converted through str to
    avoid binary noise (0.1 -> 0.1000000000000000055...).
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


class Product(BaseModel):
    """
    Product domain model - represents a product in our catalog

    Fields:
        id: Product ID (catalog key, e.g. "P1")
        name: Product name
        slug: URL slug (optional)
        price: List price
        sale_price: Discounted price, when on sale
        stock: Available quantity per size, e.g. {"S": 3, "M": 0}
        images: Image URLs, first one is the cover
        is_active: Whether product is active in catalog
    """

    id: str = Field(..., description="Product ID")
    name: str = Field(..., description="Product name")
    slug: Optional[str] = Field(None, description="URL slug")
    price: Decimal = Field(..., description="List price", ge=0)
    sale_price: Optional[Decimal] = Field(None, description="Sale price", ge=0)

    # Inventory by size
    stock: Dict[str, int] = Field(default_factory=dict, description="Available quantity per size")

    images: List[str] = Field(default_factory=list, description="Image URLs")
    is_active: bool = Field(True, description="Whether product is active")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    model_config = ConfigDict(from_attributes=True)

    @property
    def unit_price(self) -> Decimal:
        """Price charged per unit: sale price when set, list price otherwise"""
        if self.sale_price:
            return money(self.sale_price)
        return money(self.price)

    @property
    def cover_image(self) -> Optional[str]:
        return self.images[0] if self.images else None

    @property
    def is_out_of_stock(self) -> bool:
        return sum(self.stock.values()) <= 0

    def available(self, size: str) -> int:
        """Available units for size (0 when the size does not exist)"""
        return max(0, self.stock.get(size, 0))

    def to_dict(self) -> dict:
        data = self.model_dump()
        data['unit_price'] = float(self.unit_price)
        data['price'] = float(self.price)
        if data.get('sale_price') is not None:
            data['sale_price'] = float(data['sale_price'])
        data['is_out_of_stock'] = self.is_out_of_stock
        return data
