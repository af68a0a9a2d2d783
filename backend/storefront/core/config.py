"""
Configuración centralizada de la aplicación
"""
from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Configuración de la aplicación"""

    # API Settings
    API_TITLE: str = "Storefront API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Cart, checkout and order notification API"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database (checked when a connection is requested, not at import time)
    DATABASE_URL: str = ""

    # Auth - tokens are issued elsewhere, we only verify them
    AUTH_SECRET: str = ""

    # CORS - Can be string (comma-separated) or JSON array
    # Example: "http://localhost:3000,https://yourdomain.com" or '["http://localhost:3000"]'
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:3000,http://localhost:3001"

    # Pricing policy
    CURRENCY: str = "INR"
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal("1000")
    SHIPPING_FEE: Decimal = Decimal("100")
    TAX_RATE: Decimal = Decimal("0.18")

    # Order notifications
    ORDERS_NOTIFY_CHANNEL: str = "orders_changed"
    # Merge orders created before is_read existed. Turn off once
    # scripts/migrations/backfill_is_read.py has run.
    NOTIFICATIONS_INCLUDE_LEGACY: bool = True

    # Requests per minute for cart mutations
    CHECKOUT_RATE_LIMIT: int = 30

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:3000"]

        # Try JSON parse first (for array format)
        import json
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        # Fall back to comma-separated string
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
