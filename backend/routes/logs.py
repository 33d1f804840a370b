# backend/routes/logs.py
from datetime import date, datetime, time
from typing import Any, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.orm import Session

from database import get_db
from models.log import Log
from models.users import User
from schemas.common import ORMBase, PageQuery, parse_query
from utils.db_helpers import paginate
from utils.responses import paginated
from utils.tokenJWT import require_permission

router = APIRouter(prefix="/logs", tags=["Logs"])


# --- SCHEMAS ---
class LogResponse(ORMBase):
    id: int
    user_id: Optional[int] = None
    action: str
    resource: str
    status: str
    ip: Optional[str] = None
    ts: datetime
    meta: Optional[Any] = None


class LogQuery(PageQuery):
    limit: int = Field(20, ge=1, le=100)
    action: Optional[str] = None
    user_id: Optional[int] = None
    resource: Optional[str] = None
    status: Optional[str] = None
    # YYYY-MM-DD covers the whole day, a full timestamp is used as-is
    date_from: Optional[Union[date, datetime]] = None
    date_to: Optional[Union[date, datetime]] = None


def _bound(value: Union[datetime, date], end_of_day: bool) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return datetime.combine(value, time.max if end_of_day else time.min)


# --- ENDPOINT ---
@router.get("")
def get_logs(
    current_user: User = Depends(require_permission({"log": ["read"]})),
    params: LogQuery = Depends(parse_query(LogQuery)),
    db: Session = Depends(get_db),
):
    query = db.query(Log)

    if params.action:
        query = query.filter(Log.action.ilike(f"%{params.action}%"))
    if params.user_id is not None:
        query = query.filter(Log.user_id == params.user_id)
    if params.resource:
        query = query.filter(Log.resource.ilike(f"%{params.resource}%"))
    if params.status:
        query = query.filter(Log.status == params.status)
    if params.date_from:
        query = query.filter(Log.ts >= _bound(params.date_from, end_of_day=False))
    if params.date_to:
        query = query.filter(Log.ts <= _bound(params.date_to, end_of_day=True))

    # Newest first
    query = query.order_by(Log.ts.desc(), Log.id.desc())
    logs, total = paginate(query, params)
    return paginated([LogResponse.model_validate(entry) for entry in logs], params.page, params.limit, total)
