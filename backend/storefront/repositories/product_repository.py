"""
Product Repository - Data Access Layer for Products

Handles all database queries for products and returns Product domain models.
Stock is stored per (product, size) in product_stock and exposed as a map.

Author: TM3
Date: 2025-10-17
Updated: 2025-12-02 (per-size stock)
"""
import logging
from typing import Dict, List, Optional

import psycopg2

from storefront.domain.product import Product
from storefront.core.database import get_db_connection_dict_with_retry
from storefront.core.errors import PersistenceError

logger = logging.getLogger(__name__)


class ProductRepository:
    """
    Repository for Product data access

    All SQL queries for products are centralized here.
    Returns Product domain models, not raw dictionaries.
    """

    @staticmethod
    def _map_row_to_product(row: dict, stock: Dict[str, int]) -> Product:
        """Helper method to map database row plus its stock rows to Product"""
        return Product(
            id=row['id'],
            name=row['name'],
            slug=row.get('slug'),
            price=row['price'],
            sale_price=row.get('sale_price'),
            stock=stock,
            images=row.get('images') or [],
            is_active=row['is_active'],
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at'),
        )

    def find_by_id(self, product_id: str) -> Optional[Product]:
        """
        Find an active product by ID, with its stock map

        Args:
            product_id: Catalog product ID

        Returns:
            Product or None if not found or inactive
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    id, name, slug, price, sale_price, images,
                    is_active, created_at, updated_at
                FROM products
                WHERE id = %s AND is_active = true
            """, (product_id,))

            row = cursor.fetchone()
            if not row:
                return None

            cursor.execute("""
                SELECT size, quantity
                FROM product_stock
                WHERE product_id = %s
                ORDER BY size
            """, (product_id,))
            stock = {r['size']: r['quantity'] for r in cursor.fetchall()}

            return self._map_row_to_product(row, stock)

        except psycopg2.Error as e:
            logger.error(f"Error loading product {product_id}: {e}")
            raise PersistenceError(f"Could not load product {product_id}") from e

        finally:
            cursor.close()
            conn.close()

    def get_stock(self, product_id: str) -> Optional[Dict[str, int]]:
        """
        Authoritative stock map for one product

        Returns:
            {size: quantity}, empty when the product has no sizes,
            None when the product does not exist or is inactive
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT s.size, s.quantity
                FROM products p
                LEFT JOIN product_stock s ON s.product_id = p.id
                WHERE p.id = %s AND p.is_active = true
            """, (product_id,))

            rows = cursor.fetchall()
            if not rows:
                return None

            # LEFT JOIN yields one row with NULL size for a product without stock rows
            return {r['size']: r['quantity'] for r in rows if r['size'] is not None}

        except psycopg2.Error as e:
            logger.error(f"Error loading stock for {product_id}: {e}")
            raise PersistenceError(f"Could not load stock for {product_id}") from e

        finally:
            cursor.close()
            conn.close()

    def find_many(self, product_ids: List[str]) -> List[Product]:
        """Active products for the given IDs (missing IDs are skipped)"""
        if not product_ids:
            return []

        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    id, name, slug, price, sale_price, images,
                    is_active, created_at, updated_at
                FROM products
                WHERE id = ANY(%s) AND is_active = true
                ORDER BY id
            """, (list(product_ids),))
            rows = cursor.fetchall()

            cursor.execute("""
                SELECT product_id, size, quantity
                FROM product_stock
                WHERE product_id = ANY(%s)
            """, (list(product_ids),))

            stock_by_product: Dict[str, Dict[str, int]] = {}
            for r in cursor.fetchall():
                stock_by_product.setdefault(r['product_id'], {})[r['size']] = r['quantity']

            return [
                self._map_row_to_product(row, stock_by_product.get(row['id'], {}))
                for row in rows
            ]

        except psycopg2.Error as e:
            logger.error(f"Error loading products: {e}")
            raise PersistenceError("Could not load products") from e

        finally:
            cursor.close()
            conn.close()
