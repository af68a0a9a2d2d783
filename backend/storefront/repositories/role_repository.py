"""
Role Repository - user role policy table

Author: TM3
Date: 2025-12-02
"""
import logging
from typing import Optional

import psycopg2

from storefront.core.database import get_db_connection_dict_with_retry
from storefront.core.errors import PersistenceError

logger = logging.getLogger(__name__)


class RoleRepository:

    def find_role(self, user_id: str) -> Optional[str]:
        """Role assigned to user_id, or None when the user has no entry"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT role
                FROM user_roles
                WHERE user_id = %s
            """, (user_id,))

            row = cursor.fetchone()
            return row['role'] if row else None

        except psycopg2.Error as e:
            logger.error(f"Error resolving role for {user_id}: {e}")
            raise PersistenceError("Could not resolve user role") from e

        finally:
            cursor.close()
            conn.close()
