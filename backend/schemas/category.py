# backend/schemas/category.py
from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from schemas.common import ORMBase, PageQuery


class CategoryCreate(ORMBase):
    name: str = Field(..., min_length=1, max_length=255)


# PUT/PATCH - every field optional
class CategoryUpdate(ORMBase):
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class CategoryQuery(PageQuery):
    sort_by: Literal["id", "name", "createdAt", "updatedAt"] = "name"
    sort_order: Literal["asc", "desc"] = "asc"
    include_count: bool = False


class CategoryOut(ORMBase):
    id: int
    name: str
    created_at: datetime
    updated_at: datetime
    product_count: Optional[int] = None
