"""
API test fixtures: the FastAPI app wired to the in-memory repositories

Author: TM3
Date: 2025-12-02
"""
import pytest
from fastapi.testclient import TestClient

from storefront.api.dependencies import (
    get_cart_repository, get_order_repository, get_product_repository, get_promo_repository,
)
from storefront.core.auth import TokenUser, get_role_repository, require_admin
from storefront.core.rate_limit import rate_limiter
from storefront.main import app


@pytest.fixture
def api(cart_repo, promo_repo, product_repo, order_repo, role_repo):
    app.dependency_overrides[get_cart_repository] = lambda: cart_repo
    app.dependency_overrides[get_promo_repository] = lambda: promo_repo
    app.dependency_overrides[get_product_repository] = lambda: product_repo
    app.dependency_overrides[get_order_repository] = lambda: order_repo
    app.dependency_overrides[get_role_repository] = lambda: role_repo
    rate_limiter.reset()
    yield app
    app.dependency_overrides.clear()
    rate_limiter.reset()


@pytest.fixture
def client(api):
    return TestClient(api)


@pytest.fixture
def admin_client(api):
    """Client whose requests pass require_admin as admin-1"""
    api.dependency_overrides[require_admin] = lambda: TokenUser(id="admin-1", role="admin")
    return TestClient(api)


@pytest.fixture
def session_headers():
    return {"X-Cart-Session": "sess-123"}
