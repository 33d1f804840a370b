# backend/utils/responses.py
import math
from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from utils.exceptions import ApiException


def _dump(data: Any) -> Any:
    # Pydantic schemas are rendered with their camelCase aliases
    return jsonable_encoder(data, by_alias=True)


def success_response(data: Any = None, message: str = "ok", status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"data": _dump(data), "message": message, "error": None},
    )


def created_response(data: Any, message: str = "Resource created successfully") -> JSONResponse:
    return success_response(data, message, status.HTTP_201_CREATED)


def error_response(exc: ApiException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"data": None, "message": exc.message, "error": exc.to_error()},
    )


def get_pagination_info(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "hasNext": (page + 1) * limit < total,
        "hasPrev": page > 0,
    }


def paginated(items: Any, page: int, limit: int, total: int, message: Optional[str] = None) -> JSONResponse:
    return success_response(
        {"data": items, "pagination": get_pagination_info(page, limit, total)},
        message or "ok",
    )
