"""
Modelos de catálogo: productos y stock por talla
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, DECIMAL, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.core.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True)

    price = Column(DECIMAL(12, 2), nullable=False)
    sale_price = Column(DECIMAL(12, 2))

    images = Column(JSONB, nullable=False, server_default="[]")
    is_active = Column(Boolean, default=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    stock = relationship("ProductStock", back_populates="product", cascade="all, delete-orphan")
    order_items = relationship("OrderItem", back_populates="product")


class ProductStock(Base):
    """
    Stock disponible por (producto, talla)

    La reserva en checkout es un UPDATE condicional (quantity >= pedido),
    por eso la cantidad nunca baja de cero.
    """
    __tablename__ = "product_stock"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_product_stock_non_negative"),
    )

    product_id = Column(String(100), ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    size = Column(String(20), primary_key=True)
    quantity = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product = relationship("Product", back_populates="stock")
