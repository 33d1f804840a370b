# backend/schemas/stock.py
from datetime import datetime
from typing import Optional

from pydantic import Field

from schemas.common import IdName, ORMBase, PageQuery


# Schema for registering a purchased lot
class StockEntryCreate(ORMBase):
    product_id: int
    supplier_id: int
    quantity: int = Field(..., gt=0)
    unit_cost: int = Field(..., ge=0)
    purchase_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)


class StockEntryQuery(PageQuery):
    product_id: Optional[int] = None
    supplier_id: Optional[int] = None
    has_stock: Optional[bool] = None


class ProductRef(ORMBase):
    id: int
    name: str
    slug: str


# Returning stock entry details together with product and supplier
class StockEntryOut(ORMBase):
    id: int
    product_id: int
    supplier_id: int
    quantity: int
    unit_cost: int
    total_cost: int
    remaining_qty: int
    purchase_date: datetime
    notes: Optional[str] = None
    created_at: datetime
    product: Optional[ProductRef] = None
    supplier: Optional[IdName] = None


# Lot still available for allocation (FIFO listing)
class AvailableLotOut(ORMBase):
    id: int
    quantity: int
    remaining_qty: int
    unit_cost: int
    purchase_date: datetime
    supplier: Optional[IdName] = None
