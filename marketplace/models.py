import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .db import Base


class Role(str, enum.Enum):
    CUSTOMER = "customer"
    SHOP_OWNER = "shop_owner"
    ADMIN = "admin"


class ShopCategory(str, enum.Enum):
    TAILOR = "tailor"
    LAUNDRY = "laundry"
    RETAIL = "retail"
    SERVICE = "service"


class ShopStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class TaskStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    TRANSPORT_REQUESTED = "transport_requested"
    PICKED_UP = "picked_up"
    DELIVERED = "delivered"
    COMPLETED = "completed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enum_column(enum_cls, **kwargs) -> Column:
    # store the enum values ("in_progress"), not member names, as plain strings
    return Column(
        Enum(enum_cls, native_enum=False, values_callable=lambda e: [m.value for m in e], validate_strings=True),
        **kwargs,
    )


class User(Base):
    __tablename__ = "users"

    # subject id issued by the identity provider
    id = Column(String, primary_key=True)
    email = Column(String, nullable=True, index=True)
    first_name = Column(String, nullable=False, default="")
    last_name = Column(String, nullable=False, default="")
    role = enum_column(Role, nullable=False, default=Role.CUSTOMER, index=True)
    profile_image_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    shops = relationship("Shop", back_populates="owner")


class Shop(Base):
    __tablename__ = "shops"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    category = enum_column(ShopCategory, nullable=False, index=True)
    image_url = Column(Text, nullable=False)
    location = Column(Text, nullable=False)
    status = enum_column(ShopStatus, nullable=False, default=ShopStatus.ACTIVE)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    owner = relationship("User", back_populates="shops")
    products = relationship("Product", back_populates="shop", order_by="Product.id")
    orders = relationship("Order", back_populates="shop", order_by="Order.id")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(Text, nullable=False)
    in_stock = Column(Boolean, nullable=False, default=True)

    shop = relationship("Shop", back_populates="products")


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    creator_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    budget = Column(Numeric(10, 2), nullable=False)
    location = Column(Text, nullable=False)
    status = enum_column(TaskStatus, nullable=False, default=TaskStatus.OPEN, index=True)
    assignee_id = Column(String, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    status = enum_column(OrderStatus, nullable=False, default=OrderStatus.PENDING, index=True)
    # user id of the transporter, set when the order is picked up
    transport_id = Column(String, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    shop = relationship("Shop", back_populates="orders")
