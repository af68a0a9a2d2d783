"""
Modelos relacionados con órdenes/pedidos
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, DECIMAL, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func, expression
from storefront.core.database import Base


class Order(Base):
    """
    Tabla principal de órdenes del storefront

    Una orden se escribe una sola vez; después solo cambian `status` e `is_read`.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)

    # Identificación
    order_number = Column(String(100), nullable=False, unique=True, index=True)
    user_id = Column(String(255), index=True)

    # Cliente (snapshot del checkout)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=False)

    # Dirección de envío
    address_line = Column(Text, nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    postal_code = Column(String(20), nullable=False)
    country = Column(String(100), nullable=False, default="India")

    # Montos
    subtotal = Column(DECIMAL(12, 2), nullable=False)
    discount = Column(DECIMAL(12, 2), nullable=False, default=0)
    shipping = Column(DECIMAL(12, 2), nullable=False, default=0)
    tax = Column(DECIMAL(12, 2), nullable=False, default=0)
    total = Column(DECIMAL(12, 2), nullable=False)
    promo_code = Column(String(50))

    # Estados
    status = Column(String(50), nullable=False, default="pending", index=True)
    payment_method = Column(String(20), nullable=False)
    payment_status = Column(String(50), nullable=False, default="pending")

    # Notificaciones admin. NULL solo en filas anteriores al flag (ver backfill_is_read.py)
    is_read = Column(Boolean, nullable=True, server_default=expression.false(), index=True)

    # Cancelación
    cancel_reason = Column(Text)
    cancelled_at = Column(DateTime(timezone=True))

    # Metadata
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    """
    Items de cada orden (snapshot del carrito al momento de la compra)
    """
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id = Column(String(100), ForeignKey("products.id"), index=True, nullable=False)
    size = Column(String(20), nullable=False)

    # Datos del producto al momento de venta
    product_name = Column(String(255))

    quantity = Column(Integer, nullable=False)
    unit_price = Column(DECIMAL(12, 2), nullable=False)
    original_price = Column(DECIMAL(12, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")
