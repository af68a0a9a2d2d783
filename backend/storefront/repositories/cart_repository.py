"""
Cart Repository - persisted cart snapshots

One JSONB document per identity key. Saves are upserts and the last
writer wins; there is no merging at this layer.

Author: TM3
Date: 2025-12-02
"""
import logging
from typing import Optional

import psycopg2
from psycopg2.extras import Json
from pydantic import ValidationError as PydanticValidationError

from storefront.domain.cart import CartSnapshot
from storefront.core.database import get_db_connection_dict_with_retry, transaction
from storefront.core.errors import PersistenceError

logger = logging.getLogger(__name__)


class CartRepository:

    def load(self, key: str) -> Optional[CartSnapshot]:
        """
        Load the snapshot stored under key

        Returns:
            CartSnapshot, or None if this identity has no cart yet or the
            stored document no longer parses
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT data, updated_at
                FROM carts
                WHERE cart_key = %s
            """, (key,))

            row = cursor.fetchone()
            if not row:
                return None

            try:
                snapshot = CartSnapshot.model_validate(row['data'])
            except PydanticValidationError as e:
                # next save overwrites the unreadable document
                logger.error(f"Discarding unreadable cart {key}: {e.error_count()} error(s)")
                return None

            return snapshot.model_copy(update={'updated_at': row['updated_at']})

        except psycopg2.Error as e:
            logger.error(f"Error loading cart {key}: {e}")
            raise PersistenceError("Could not load cart") from e

        finally:
            cursor.close()
            conn.close()

    def save(self, key: str, snapshot: CartSnapshot):
        data = snapshot.model_dump(mode='json', exclude={'updated_at'})
        with transaction() as cursor:
            cursor.execute("""
                INSERT INTO carts (cart_key, data, updated_at)
                VALUES (%s, %s, NOW())
                ON CONFLICT (cart_key) DO UPDATE SET
                    data = EXCLUDED.data,
                    updated_at = NOW()
            """, (key, Json(data)))

    def delete(self, key: str) -> bool:
        with transaction() as cursor:
            cursor.execute("DELETE FROM carts WHERE cart_key = %s", (key,))
            return cursor.rowcount > 0
