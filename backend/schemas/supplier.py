# backend/schemas/supplier.py
from datetime import datetime
from typing import Literal, Optional

from pydantic import EmailStr, Field

from schemas.common import ORMBase, PageQuery


class SupplierBase(ORMBase):
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)


class SupplierCreate(SupplierBase):
    name: str = Field(..., min_length=1, max_length=255)


class SupplierUpdate(SupplierBase):
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class SupplierQuery(PageQuery):
    sort_by: Literal["id", "name", "createdAt", "updatedAt"] = "name"
    sort_order: Literal["asc", "desc"] = "asc"


class SupplierOut(ORMBase):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    created_at: datetime
    updated_at: datetime
