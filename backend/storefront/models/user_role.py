"""
Tabla de políticas de roles (reemplaza la comparación por email)
"""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from storefront.core.database import Base


class UserRole(Base):
    __tablename__ = "user_roles"

    user_id = Column(String(255), primary_key=True)
    role = Column(String(50), nullable=False, default="user")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
