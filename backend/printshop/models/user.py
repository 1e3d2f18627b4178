# backend/printshop/models/user.py

from sqlalchemy import Boolean, Column, Integer, String, Enum
from sqlalchemy.orm import relationship
from .base import BaseModel
import enum

class UserRole(str, enum.Enum):
    """Enumeration of all supported user roles."""

    CUSTOMER = "customer"
    SHOP_OWNER = "shop_owner"
    ADMIN = "admin"

class User(BaseModel):
    __tablename__ = "users"

    id        = Column(Integer, primary_key=True, index=True)
    email     = Column(String, unique=True, index=True, nullable=False)
    password  = Column(String, nullable=False)
    name      = Column(String, nullable=False)
    phone     = Column(String, nullable=True)
    role      = Column(Enum(UserRole), nullable=False, default=UserRole.CUSTOMER)
    is_active = Column(Boolean, default=True)

    # A shop owner runs exactly one shop
    shop = relationship(
        "Shop",
        back_populates="owner",
        uselist=False,
    )

    orders_as_customer = relationship(
        "Order",
        foreign_keys="Order.customer_id",
        back_populates="customer",
    )

    @property
    def shop_id(self) -> int | None:
        return self.shop.id if self.shop is not None else None
