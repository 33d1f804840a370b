# backend/schemas/common.py
from typing import Callable, Literal, Optional, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

M = TypeVar("M", bound=BaseModel)


# Base configuration: ORM compatibility + camelCase on the wire
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


# Shared list parameters: zero-indexed page, page size, free-text search
class PageQuery(ORMBase):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    page: int = Field(0, ge=0)
    limit: int = Field(10, ge=1, le=100)
    search: Optional[str] = None
    sort_order: Literal["asc", "desc"] = "desc"


def parse_query(model: Type[M]) -> Callable[[Request], M]:
    """Dependency that validates the raw query string against ``model``.

    Errors surface as pydantic ``ValidationError`` and are rendered by the
    VALIDATION_ERROR handler.
    """

    def _dependency(request: Request) -> M:
        raw = {k: v for k, v in request.query_params.items() if v != ""}
        return model.model_validate(raw)

    return _dependency


class IdName(ORMBase):
    id: int
    name: str
