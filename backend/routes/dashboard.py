# backend/routes/dashboard.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.common import parse_query
from schemas.dashboard import DashboardPeriodQuery
from services import dashboard as dashboard_service
from utils.audit import client_ip, write_log
from utils.responses import success_response
from utils.tokenJWT import require_permission

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

read_dashboard = require_permission({"dashboard": ["read"]})
period_query = parse_query(DashboardPeriodQuery)


def _windowed(request: Request, db: Session, name: str, params: DashboardPeriodQuery):
    start, end = params.date_range()
    data = dashboard_service.windowed(request.app.state.cache, db, name, start, end)
    return success_response(data)


@router.get("/sales")
def sales(
    request: Request,
    current_user: User = Depends(read_dashboard),
    params: DashboardPeriodQuery = Depends(period_query),
    db: Session = Depends(get_db),
):
    return _windowed(request, db, "sales", params)


@router.get("/orders")
def orders_by_status(
    request: Request,
    current_user: User = Depends(read_dashboard),
    params: DashboardPeriodQuery = Depends(period_query),
    db: Session = Depends(get_db),
):
    return _windowed(request, db, "orders", params)


@router.get("/user")
def user_growth(
    request: Request,
    current_user: User = Depends(read_dashboard),
    params: DashboardPeriodQuery = Depends(period_query),
    db: Session = Depends(get_db),
):
    return _windowed(request, db, "user", params)


@router.get("/shops")
def shops_by_revenue(
    request: Request,
    current_user: User = Depends(read_dashboard),
    params: DashboardPeriodQuery = Depends(period_query),
    db: Session = Depends(get_db),
):
    return _windowed(request, db, "shops", params)


@router.get("/gross-profit")
def gross_profit(
    request: Request,
    current_user: User = Depends(read_dashboard),
    params: DashboardPeriodQuery = Depends(period_query),
    db: Session = Depends(get_db),
):
    return _windowed(request, db, "gross-profit", params)


@router.get("/total-avg-margin")
def total_avg_margin(
    request: Request,
    current_user: User = Depends(read_dashboard),
    params: DashboardPeriodQuery = Depends(period_query),
    db: Session = Depends(get_db),
):
    return _windowed(request, db, "total-avg-margin", params)


@router.get("/product-left-value")
def product_left_value(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(read_dashboard),
):
    data = dashboard_service.cached_product_stock_value(request.app.state.cache, db)
    return success_response(data)


@router.post("/revalidate")
def revalidate(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"dashboard": ["revalidate"]})),
):
    dropped = request.app.state.cache.invalidate_all()
    write_log(
        db, user_id=current_user.id, action="DASHBOARD_REVALIDATE", resource="dashboard",
        ip=client_ip(request), meta={"dropped": dropped},
    )
    return success_response({"revalidated": True}, "Dashboard cache revalidated successfully")
