"""
Cart API Endpoints
Cart for the calling identity (bearer token or X-Cart-Session header)

Author: TM3
Date: 2025-12-02
"""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from storefront.api.dependencies import (
    get_cart_store, get_product_repository, http_error,
)
from storefront.core.errors import NotFound, StorefrontError
from storefront.core.rate_limit import rate_limit_check
from storefront.repositories.product_repository import ProductRepository
from storefront.services.cart_service import CartStore
from storefront.services.stock_validator import StockValidator

logger = logging.getLogger(__name__)

router = APIRouter()


class AddItemRequest(BaseModel):
    product_id: str = Field(..., description="Product ID")
    size: str = Field(..., description="Size label")
    quantity: int = Field(1, description="Units to add")


class UpdateQuantityRequest(BaseModel):
    product_id: str
    size: str
    quantity: int


class PromoRequest(BaseModel):
    code: str


def _cart_response(store: CartStore, **extra) -> dict:
    return {
        "status": "success",
        "data": store.cart.to_dict(),
        **extra,
    }


@router.get("/")
async def get_cart(store: CartStore = Depends(get_cart_store)):
    """Current cart with totals (before shipping and tax)"""
    return _cart_response(store)


@router.post("/items", dependencies=[Depends(rate_limit_check)])
async def add_item(
    payload: AddItemRequest,
    store: CartStore = Depends(get_cart_store),
    products: ProductRepository = Depends(get_product_repository),
):
    """
    Add units of a product size to the cart

    Returns 409 OUT_OF_STOCK when the resulting quantity exceeds stock;
    the cart is unchanged in that case.
    """
    try:
        product = products.find_by_id(payload.product_id)
        if product is None:
            raise NotFound(f"Product {payload.product_id} not found")
        line = store.add_item(product, payload.size, payload.quantity)
        return _cart_response(store, item=line.to_dict())
    except StorefrontError as e:
        raise http_error(e)


@router.patch("/items", dependencies=[Depends(rate_limit_check)])
async def update_quantity(payload: UpdateQuantityRequest, store: CartStore = Depends(get_cart_store)):
    """Set a line's quantity. The stored quantity may be clamped to known stock."""
    try:
        line = store.update_quantity(payload.product_id, payload.size, payload.quantity)
        return _cart_response(store, item=line.to_dict())
    except StorefrontError as e:
        raise http_error(e)


@router.delete("/items/{product_id}/{size}", dependencies=[Depends(rate_limit_check)])
async def remove_item(product_id: str, size: str, store: CartStore = Depends(get_cart_store)):
    try:
        removed = store.remove_item(product_id, size)
        return _cart_response(store, removed=removed)
    except StorefrontError as e:
        raise http_error(e)


@router.post("/promo", dependencies=[Depends(rate_limit_check)])
async def apply_promo(payload: PromoRequest, store: CartStore = Depends(get_cart_store)):
    """Apply a promo code. A rejected code is reported, not an HTTP error."""
    try:
        result = store.apply_promo_code(payload.code)
    except StorefrontError as e:
        raise http_error(e)

    response = _cart_response(store, promo=result.model_dump())
    if not result.success:
        response["status"] = "error"
    return response


@router.delete("/promo", dependencies=[Depends(rate_limit_check)])
async def remove_promo(store: CartStore = Depends(get_cart_store)):
    try:
        store.remove_promo_code()
        return _cart_response(store)
    except StorefrontError as e:
        raise http_error(e)


@router.post("/reconcile", dependencies=[Depends(rate_limit_check)])
async def reconcile_stock(
    store: CartStore = Depends(get_cart_store),
    products: ProductRepository = Depends(get_product_repository),
):
    """
    Check the cart against current stock and apply the result

    Lines above availability are clamped, unavailable lines removed.
    """
    try:
        verdicts = StockValidator(products).validate(store.cart)
        adjusted = store.reconcile_stock(verdicts)
        return _cart_response(
            store,
            issues=[v.to_dict() for v in verdicts if not v.ok],
            adjusted=[line.to_dict() for line in adjusted],
        )
    except StorefrontError as e:
        raise http_error(e)


@router.delete("/", dependencies=[Depends(rate_limit_check)])
async def clear_cart(store: CartStore = Depends(get_cart_store)):
    try:
        store.clear()
        return _cart_response(store)
    except StorefrontError as e:
        raise http_error(e)
