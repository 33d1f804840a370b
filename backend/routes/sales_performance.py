# backend/routes/sales_performance.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.common import parse_query
from schemas.sales_performance import SalesPerformanceFilter
from services import sales_performance as performance_service
from utils.responses import success_response
from utils.tokenJWT import require_permission

router = APIRouter(prefix="/sales-performance", tags=["Sales performance"])

read_performance = require_permission({"sales-performance": ["read"]})


# Current user's own numbers; all-time since sign-up unless month+year is given
@router.get("/me")
def my_performance(
    current_user: User = Depends(read_performance),
    filters: SalesPerformanceFilter = Depends(parse_query(SalesPerformanceFilter)),
    db: Session = Depends(get_db),
):
    return success_response(performance_service.my_performance(db, current_user, filters))


# Sales staff ranked by revenue
@router.get("/leaderboard")
def leaderboard(
    current_user: User = Depends(read_performance),
    filters: SalesPerformanceFilter = Depends(parse_query(SalesPerformanceFilter)),
    db: Session = Depends(get_db),
):
    return success_response(performance_service.leaderboard(db, current_user, filters))
