"""
Conexión a base de datos PostgreSQL

Este módulo centraliza TODAS las formas de acceso a la base de datos:
- SQLAlchemy (declaración del esquema y creación de tablas)
- psycopg2 directo (para queries SQL raw en los repositorios)

Author: TM3
Updated: 2025-12-02
"""
import time
import logging
from contextlib import contextmanager
from functools import lru_cache

import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT
from psycopg2.extras import RealDictCursor
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base

from .config import settings
from .errors import PersistenceError

logger = logging.getLogger(__name__)

# Seconds before giving up on a single connection attempt
CONNECTION_TIMEOUT = 10


# ============================================================================
# SQLAlchemy Configuration (schema declaration)
# ============================================================================

# Base para modelos
Base = declarative_base()


@lru_cache(maxsize=1)
def get_engine():
    """
    SQLAlchemy engine, created on first use so importing models does not
    require DATABASE_URL.
    """
    return create_engine(
        _database_url(),
        pool_pre_ping=True,  # Verificar conexión antes de usar
        pool_size=5,
        max_overflow=10,
    )


def init_db():
    """Create every table declared under storefront.models"""
    from storefront import models  # noqa: F401  (registers the tables on Base)

    Base.metadata.create_all(bind=get_engine())
    logger.info("Database schema created")


def _database_url() -> str:
    # Use settings.DATABASE_URL which loads from .env file
    database_url = settings.DATABASE_URL
    if not database_url:
        raise PersistenceError("DATABASE_URL not configured")
    return database_url


# ============================================================================
# psycopg2 Direct Connections (for raw SQL queries)
# ============================================================================

def get_db_connection():
    """
    Get a direct psycopg2 database connection (returns tuples)

    Returns:
        psycopg2 connection object

    Raises:
        PersistenceError if DATABASE_URL is not configured
    """
    return psycopg2.connect(_database_url(), connect_timeout=CONNECTION_TIMEOUT)


def get_db_connection_dict():
    """
    Get a database connection with RealDictCursor (returns dictionaries)

    Example:
        conn = get_db_connection_dict()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM orders")
        results = cursor.fetchall()  # Returns list of dicts
        cursor.close()
        conn.close()
    """
    return psycopg2.connect(
        _database_url(),
        cursor_factory=RealDictCursor,
        connect_timeout=CONNECTION_TIMEOUT,
    )


def get_listen_connection(channel: str):
    """
    Dedicated autocommit connection subscribed to a NOTIFY channel.

    The caller owns the connection and must close it.
    """
    conn = get_db_connection_dict_with_retry()
    try:
        conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
        cursor = conn.cursor()
        try:
            # channel names are identifiers, they cannot be bound as parameters
            cursor.execute(f'LISTEN "{channel}"')
        finally:
            cursor.close()
    except Exception:
        conn.close()
        raise
    return conn


@contextmanager
def transaction():
    """
    Dict connection wrapped in a single transaction.

    Commits on success, rolls back on any exception, always closes.
    psycopg2 errors are re-raised as PersistenceError.

    Usage:
        with transaction() as cursor:
            cursor.execute("UPDATE orders SET is_read = true WHERE id = %s", (1,))
    """
    conn = get_db_connection_dict_with_retry()
    cursor = conn.cursor()
    try:
        yield cursor
        conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        logger.error(f"Transaction rolled back: {e}")
        raise PersistenceError(f"Database error: {e}") from e
    except Exception:
        conn.rollback()
        raise
    finally:
        cursor.close()
        conn.close()


# ============================================================================
# Database Connection with Retry Logic (SSL Failure Recovery)
# ============================================================================

def get_db_connection_with_retry(max_retries=3, retry_delay=1.0):
    """
    Get a psycopg2 connection with automatic retry on SSL/connection failures

    This function handles intermittent connection issues by:
    - Retrying failed connections up to max_retries times
    - Adding exponential backoff between retries
    - Logging connection attempts for debugging

    Args:
        max_retries: Maximum number of connection attempts (default: 3)
        retry_delay: Initial delay between retries in seconds (default: 1.0)

    Returns:
        psycopg2 connection object

    Raises:
        PersistenceError: If all retry attempts fail
    """
    return _connect_with_retry(max_retries, retry_delay, cursor_factory=None)


def get_db_connection_dict_with_retry(max_retries=3, retry_delay=1.0):
    """
    Get a psycopg2 connection with RealDictCursor and automatic retry

    Same as get_db_connection_with_retry but returns dicts instead of tuples.
    """
    return _connect_with_retry(max_retries, retry_delay, cursor_factory=RealDictCursor)


def _connect_with_retry(max_retries, retry_delay, cursor_factory):
    database_url = _database_url()
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database connection attempt {attempt}/{max_retries}")
            conn = psycopg2.connect(
                database_url,
                cursor_factory=cursor_factory,
                connect_timeout=CONNECTION_TIMEOUT,
            )

            # Test connection with a simple query
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.close()

            logger.debug(f"Database connection successful on attempt {attempt}")
            return conn

        except psycopg2.OperationalError as e:
            last_error = e
            error_msg = str(e)

            # Check if it's an SSL connection error
            if "SSL connection has been closed unexpectedly" in error_msg:
                logger.warning(f"SSL connection error on attempt {attempt}/{max_retries}: {error_msg}")
            else:
                logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {error_msg}")

            # Don't retry on last attempt
            if attempt < max_retries:
                # Exponential backoff
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)

    logger.error(f"All {max_retries} connection attempts failed")
    raise PersistenceError(f"Database unavailable: {last_error}") from last_error
