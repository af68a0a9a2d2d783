"""
Shared FastAPI dependencies for the Storefront API

Repositories are provided through dependencies so tests can swap them
with app.dependency_overrides.

Author: TM3
Date: 2025-12-02
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException

from storefront.core.auth import TokenUser, get_current_user_optional
from storefront.core.errors import StorefrontError
from storefront.domain.cart import CartIdentity
from storefront.repositories.cart_repository import CartRepository
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.repositories.promo_repository import PromoRepository
from storefront.services.cart_service import CartStore


def get_cart_repository() -> CartRepository:
    return CartRepository()


def get_promo_repository() -> PromoRepository:
    return PromoRepository()


def get_product_repository() -> ProductRepository:
    return ProductRepository()


def get_order_repository() -> OrderRepository:
    return OrderRepository()


def http_error(error: StorefrontError) -> HTTPException:
    """Map a StorefrontError to an HTTPException carrying the error envelope"""
    return HTTPException(status_code=error.http_status, detail=error.to_dict())


async def get_cart_identity(
    user: Optional[TokenUser] = Depends(get_current_user_optional),
    x_cart_session: Optional[str] = Header(None, description="Anonymous cart session id"),
) -> CartIdentity:
    """Authenticated user when a valid token is sent, else the X-Cart-Session header"""
    if user is None and not x_cart_session:
        raise HTTPException(
            status_code=400,
            detail="Send a bearer token or an X-Cart-Session header",
        )
    return CartIdentity(user_id=user.id if user else None, session_id=x_cart_session)


def get_cart_store(
    identity: CartIdentity = Depends(get_cart_identity),
    carts: CartRepository = Depends(get_cart_repository),
    promos: PromoRepository = Depends(get_promo_repository),
) -> CartStore:
    try:
        return CartStore(identity, carts, promos)
    except StorefrontError as e:
        raise http_error(e)
