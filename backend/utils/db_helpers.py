# backend/utils/db_helpers.py
from typing import Any, List, Mapping, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from schemas.common import PageQuery
from utils.exceptions import ConflictException


def apply_sort(query: Query, allowed: Mapping[str, Any], sort_by: str, sort_order: str) -> Query:
    # `sort_by` is already restricted by the schema's Literal
    column = allowed[sort_by]
    return query.order_by(column.asc() if sort_order == "asc" else column.desc())


def paginate(query: Query, params: PageQuery) -> Tuple[List[Any], int]:
    total = query.order_by(None).count()
    items = query.offset(params.page * params.limit).limit(params.limit).all()
    return items, total


def commit_or_conflict(db: Session, message: str) -> None:
    """Commit, turning a unique-constraint violation into a 409."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictException(message)
