from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict

from .models import OrderStatus, Role, ShopCategory, ShopStatus, TaskStatus
from .utils import is_http_url, sanitize_input

# largest value a Numeric(10, 2) column holds
MAX_AMOUNT = Decimal("99999999.99")
MAX_ID = 2**63 - 1


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InputModel(CamelModel):
    # free text is stripped of markup before length checks run
    @field_validator("name", "title", "description", "location", mode="before", check_fields=False)
    @classmethod
    def strip_markup(cls, v):
        return sanitize_input(v) if isinstance(v, str) else v

    @field_validator("image_url", check_fields=False)
    @classmethod
    def valid_image_url(cls, v):
        if v is not None and not is_http_url(v):
            raise ValueError("Please provide a valid image URL")
        return v


class ReadModel(CamelModel):
    model_config = ConfigDict(from_attributes=True)


# -------------------- Users --------------------

class UserRead(ReadModel):
    id: str
    email: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    role: Role = Role.CUSTOMER
    profile_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RoleUpdate(CamelModel):
    role: Role


# -------------------- Shops --------------------

class ShopCreate(InputModel):
    name: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    category: ShopCategory
    image_url: str
    location: str = Field(..., min_length=3)


class ShopUpdate(InputModel):
    name: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, min_length=10)
    category: Optional[ShopCategory] = None
    image_url: Optional[str] = None
    location: Optional[str] = Field(default=None, min_length=3)
    status: Optional[ShopStatus] = None


class ShopStatusUpdate(CamelModel):
    status: ShopStatus


class ShopRead(ReadModel):
    id: int
    owner_id: str
    name: str
    description: str
    category: ShopCategory
    image_url: str
    location: str
    status: ShopStatus
    created_at: datetime


# -------------------- Products --------------------

class ProductCreate(InputModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str
    price: Decimal = Field(..., gt=0, le=MAX_AMOUNT)
    image_url: str
    in_stock: bool = True


class ProductUpdate(InputModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, gt=0, le=MAX_AMOUNT)
    image_url: Optional[str] = None
    in_stock: Optional[bool] = None


class ProductRead(ReadModel):
    id: int
    shop_id: int
    name: str
    description: str
    price: Decimal
    image_url: str
    in_stock: bool


# -------------------- Tasks --------------------

class TaskCreate(InputModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    budget: Decimal = Field(..., ge=1, le=MAX_AMOUNT)
    location: str = Field(..., min_length=3)


class TaskStatusUpdate(CamelModel):
    # open is never a requested target; tasks start there
    status: Literal["in_progress", "completed"]


class TaskRead(ReadModel):
    id: int
    creator_id: str
    title: str
    description: str
    budget: Decimal
    location: str
    status: TaskStatus
    assignee_id: Optional[str] = None
    created_at: datetime


# -------------------- Orders --------------------

class OrderCreate(CamelModel):
    shop_id: int = Field(..., gt=0, le=MAX_ID)
    product_id: int = Field(..., gt=0, le=MAX_ID)
    status: Optional[Literal["pending", "transport_requested"]] = None
    transport_requested: Optional[bool] = None

    @model_validator(mode="after")
    def consistent_transport_flag(self):
        if self.status is not None and self.transport_requested is not None:
            if (self.status == "transport_requested") != self.transport_requested:
                raise ValueError("status and transportRequested disagree")
        return self

    @property
    def wants_transport(self) -> bool:
        if self.transport_requested is not None:
            return self.transport_requested
        return self.status == "transport_requested"


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


class OrderRead(ReadModel):
    id: int
    customer_id: str
    shop_id: int
    product_id: int
    status: OrderStatus
    transport_id: Optional[str] = None
    created_at: datetime


# -------------------- Dashboards --------------------

class ShopSummary(CamelModel):
    shop: ShopRead
    products_count: int
    orders_count: int
    recent_orders: List[OrderRead] = []


class AdminStats(CamelModel):
    total_users: int
    total_shops: int
    active_shops: int
    total_orders: int
    total_tasks: int
