"""
Promo Repository - promotional code lookup

Author: TM3
Date: 2025-12-02
"""
import logging
from typing import Optional

import psycopg2

from storefront.domain.cart import PromoCode
from storefront.core.database import get_db_connection_dict_with_retry
from storefront.core.errors import PersistenceError

logger = logging.getLogger(__name__)


class PromoRepository:

    def find_by_code(self, code: str) -> Optional[PromoCode]:
        """Case-insensitive lookup. Inactive codes are returned too, the caller decides."""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT code, discount_percent, is_active, valid_from, valid_until
                FROM promo_codes
                WHERE UPPER(code) = UPPER(%s)
            """, (code.strip(),))

            row = cursor.fetchone()
            if not row:
                return None
            return PromoCode(**row)

        except psycopg2.Error as e:
            logger.error(f"Error looking up promo code: {e}")
            raise PersistenceError("Could not look up promo code") from e

        finally:
            cursor.close()
            conn.close()
