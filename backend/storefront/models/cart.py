"""
Carritos persistidos y códigos promocionales
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from storefront.core.database import Base


class Cart(Base):
    """
    Un snapshot por identidad ("user:<id>" o "anonymous:<session>")
    Last-writer-wins: cada mutación reemplaza el documento completo.
    """
    __tablename__ = "carts"

    cart_key = Column(String(255), primary_key=True)
    data = Column(JSONB, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class PromoCode(Base):
    __tablename__ = "promo_codes"

    # Guardado en mayúsculas; la búsqueda no distingue mayúsculas
    code = Column(String(50), primary_key=True)
    discount_percent = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    valid_from = Column(DateTime(timezone=True))
    valid_until = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
