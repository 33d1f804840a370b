# backend/schemas/shop.py
from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from schemas.common import ORMBase, PageQuery


class ShopCreate(ORMBase):
    name: str = Field(..., min_length=1, max_length=255)


class ShopUpdate(ORMBase):
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class ShopQuery(PageQuery):
    sort_by: Literal["id", "name", "createdAt", "updatedAt"] = "createdAt"


class ShopOut(ORMBase):
    id: int
    name: str
    created_at: datetime
    updated_at: datetime
