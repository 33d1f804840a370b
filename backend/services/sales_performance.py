# backend/services/sales_performance.py
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.orm import Session, selectinload

from models.order import Order, OrderStatus
from models.users import User
from schemas.sales_performance import (
    Leaderboard,
    LeaderboardEntry,
    MarginMetrics,
    MyPerformance,
    PerformancePeriod,
    PerformanceSummary,
    SalesPerformanceFilter,
    SellerRef,
)
from services.dashboard import round_half_up


def month_window(year: int, month: int) -> Tuple[datetime, datetime]:
    """Half-open [first day, first day of next month)."""
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def _completion_rate(completed: int, total: int) -> float:
    return round_half_up(completed / total * 100, 1) if total else 0.0


def my_performance(db: Session, user: User, filters: SalesPerformanceFilter, now: Optional[datetime] = None) -> MyPerformance:
    now = now or datetime.utcnow()
    query = db.query(Order).options(selectinload(Order.items)).filter(Order.created_by == user.id)
    if filters.is_monthly:
        start, end = month_window(filters.year, filters.month)
        query = query.filter(Order.created_at >= start, Order.created_at < end)
        period = PerformancePeriod(type="monthly", month=filters.month, year=filters.year)
    else:
        query = query.filter(Order.created_at >= user.created_at, Order.created_at <= now)
        period = PerformancePeriod(type="all-time", since=user.created_at)
    orders = query.all()

    total_revenue = sum(o.total_amount for o in orders)
    order_count = len(orders)
    breakdown = {status.value: 0 for status in OrderStatus}
    for order in orders:
        breakdown[order.status.value] += 1
    completed = breakdown[OrderStatus.COMPLETED.value]

    # Only orders that went through allocation carry margin data
    with_margin = [o for o in orders if any(i.total_cost is not None for i in o.items)]
    total_margin = sum(i.total_margin or 0 for o in with_margin for i in o.items)

    # Plain mean of per-order margin percentages (the dashboard uses a weighted rate)
    rates = [
        sum(i.total_margin or 0 for i in o.items) / o.total_amount * 100 for o in with_margin if o.total_amount > 0
    ]
    avg_rate = sum(rates) / len(rates) if rates else 0.0

    return MyPerformance(
        user=SellerRef.model_validate(user),
        summary=PerformanceSummary(
            total_revenue=total_revenue,
            order_count=order_count,
            completed_orders=completed,
            completion_rate=_completion_rate(completed, order_count),
            average_order_value=int(round_half_up(total_revenue / order_count, 0)) if order_count else 0,
        ),
        status_breakdown=breakdown,
        margin_metrics=MarginMetrics(total_margin=total_margin, avg_margin_rate=round_half_up(avg_rate, 1)),
        period=period,
    )


def leaderboard(db: Session, current_user: User, filters: SalesPerformanceFilter, now: Optional[datetime] = None) -> Leaderboard:
    now = now or datetime.utcnow()
    if filters.is_monthly:
        start, end = month_window(filters.year, filters.month)
        period = PerformancePeriod(type="monthly", month=filters.month, year=filters.year)
    else:
        start, end = None, now
        period = PerformancePeriod(type="all-time")

    completed = func.sum(case((Order.status == OrderStatus.COMPLETED, 1), else_=0))
    query = (
        db.query(User.id, User.name, User.email, func.sum(Order.total_amount), func.count(Order.id), completed)
        .join(Order, Order.created_by == User.id)
        .filter(User.role == "sales", User.banned.is_(False))
    )
    if start is not None:
        query = query.filter(Order.created_at >= start, Order.created_at < end)
    else:
        query = query.filter(Order.created_at <= end)
    results = query.group_by(User.id, User.name, User.email).order_by(User.id).all()

    rows = [
        {
            "user_id": user_id,
            "name": name,
            "email": email,
            "total_revenue": int(revenue or 0),
            "order_count": order_count,
            "completed_orders": int(completed_orders or 0),
            "completion_rate": _completion_rate(int(completed_orders or 0), order_count),
        }
        for user_id, name, email, revenue, order_count, completed_orders in results
    ]

    rows.sort(key=lambda r: r["total_revenue"], reverse=True)
    entries = [LeaderboardEntry(rank=index, **row) for index, row in enumerate(rows, start=1)]
    mine = next((e for e in entries if e.user_id == current_user.id), None)
    return Leaderboard(leaderboard=entries, current_user=mine, period=period)
