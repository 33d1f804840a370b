# backend/schemas/product.py
from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, computed_field, model_validator

from schemas.common import IdName, ORMBase, PageQuery


# Schema for creating a new product (slug is derived from the name)
class ProductCreate(ORMBase):
    name: str = Field(..., min_length=1, max_length=255)
    price: int = Field(0, ge=0)
    stock: int = Field(0, ge=0)
    category_id: Optional[int] = None


# Schema for PUT/PATCH requests - all fields optional, categoryId may be null
class ProductUpdate(ORMBase):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    price: Optional[int] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    category_id: Optional[int] = None


class ProductQuery(PageQuery):
    sort_by: Literal["id", "name", "price", "stock", "createdAt", "updatedAt"] = "createdAt"
    category: Optional[int] = None
    min_price: Optional[int] = Field(None, ge=0)
    max_price: Optional[int] = Field(None, ge=0)
    in_stock: Optional[bool] = None

    @model_validator(mode="after")
    def _check_price_range(self):
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("minPrice must not exceed maxPrice")
        return self


# Full product representation
class ProductOut(ORMBase):
    id: int
    name: str
    slug: str
    price: int
    stock: int
    reserved_stock: int
    category_id: Optional[int] = None
    category: Optional[IdName] = None
    created_at: datetime
    updated_at: datetime

    # What can still be promised to new orders
    @computed_field(alias="availableStock")
    @property
    def available_stock(self) -> int:
        return self.stock - self.reserved_stock
