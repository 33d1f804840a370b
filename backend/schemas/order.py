# backend/schemas/order.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from models.order import OrderStatus
from schemas.common import IdName, ORMBase, PageQuery


# Input schema for a single order line; `price` overrides the catalogue price
class OrderItemCreate(ORMBase):
    product_id: int
    quantity: int = Field(..., gt=0)
    price: Optional[int] = Field(None, ge=0)


# Input schema for creating a new order
class OrderCreate(ORMBase):
    shop_id: int
    items: List[OrderItemCreate] = Field(..., min_length=1)


class AllocationIn(ORMBase):
    stock_entry_id: int
    quantity: int = Field(..., gt=0)


class AcceptItemIn(ORMBase):
    order_item_id: int
    allocations: List[AllocationIn] = Field(..., min_length=1)


# Accept payload: every order item split across concrete stock entries
class OrderAccept(ORMBase):
    items: List[AcceptItemIn] = Field(..., min_length=1)


class OrderQuery(PageQuery):
    sort_by: Literal["id", "status", "totalAmount", "createdAt", "updatedAt"] = "createdAt"
    status: Optional[OrderStatus] = None
    shop_id: Optional[int] = None


class ProductRef(ORMBase):
    id: int
    name: str
    slug: str


class UserRef(ORMBase):
    id: int
    name: str
    email: str


# Output schema for one lot allocation of an order item
class AllocationOut(ORMBase):
    id: int
    stock_entry_id: int
    quantity: int
    unit_cost: int
    unit_price: int
    margin_amount: int
    margin_rate: float


# Output schema for an individual order line item
class OrderItemOut(ORMBase):
    id: int
    product_id: int
    quantity: int
    price: int
    total_cost: Optional[int] = None
    total_margin: Optional[int] = None
    avg_margin_rate: Optional[float] = None
    product: Optional[ProductRef] = None
    allocations: List[AllocationOut] = []


# Output schema representing the full order details
class OrderOut(ORMBase):
    id: int
    shop_id: int
    created_by: Optional[int] = None
    status: OrderStatus
    total_amount: int
    created_at: datetime
    updated_at: datetime
    shop: Optional[IdName] = None
    creator: Optional[UserRef] = None
    items: List[OrderItemOut] = []


class OrderDetailOut(OrderOut):
    can_delete: bool = False
