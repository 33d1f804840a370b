# backend/services/dashboard.py
import logging
import math
from datetime import datetime
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.order import Order, OrderItem, OrderStatus
from models.product import Product
from models.shop import Shop
from models.users import User
from schemas.dashboard import (
    AvgMargin,
    GrossProfit,
    OrdersByStatus,
    ProductStockValue,
    ProductValue,
    SalesSummary,
    ShopRevenue,
    UserGrowth,
)
from utils.dashboard_cache import DASHBOARD_CACHE_TAGS as TAGS
from utils.dashboard_cache import CacheManager

logger = logging.getLogger(__name__)

# Orders that already carry allocation (cost / margin) data
ALLOCATED_STATUSES = (OrderStatus.PROCESSING, OrderStatus.COMPLETED)


def round_half_up(value: float, digits: int = 2) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _in_window(column, start: datetime, end: datetime):
    return column.between(start, end)


def _completed_revenue(db: Session, start: datetime, end: datetime) -> int:
    total = (
        db.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.status == OrderStatus.COMPLETED, _in_window(Order.created_at, start, end))
        .scalar()
    )
    return int(total or 0)


def _margin_sums(db: Session, start: datetime, end: datetime):
    return (
        db.query(
            func.coalesce(func.sum(OrderItem.total_cost), 0),
            func.coalesce(func.sum(OrderItem.total_margin), 0),
        )
        .join(Order, OrderItem.order_id == Order.id)
        .filter(Order.status.in_(ALLOCATED_STATUSES), _in_window(Order.created_at, start, end))
        .one()
    )


# ==========================================
# Aggregations (uncached)
# ==========================================


def sales_summary(db: Session, start: datetime, end: datetime) -> SalesSummary:
    order_count = (
        db.query(func.count(Order.id))
        .filter(Order.status == OrderStatus.COMPLETED, _in_window(Order.created_at, start, end))
        .scalar()
    )
    return SalesSummary(total_revenue=_completed_revenue(db, start, end), order_count=order_count or 0)


def orders_by_status(db: Session, start: datetime, end: datetime) -> OrdersByStatus:
    result = {status.value: 0 for status in OrderStatus}
    rows = (
        db.query(Order.status, func.count(Order.id))
        .filter(_in_window(Order.created_at, start, end))
        .group_by(Order.status)
        .all()
    )
    for status, count in rows:
        result[OrderStatus(status).value] = count
    return result


def user_growth(db: Session, start: datetime, end: datetime) -> UserGrowth:
    total = db.query(func.count(User.id)).filter(_in_window(User.created_at, start, end)).scalar()
    return UserGrowth(total_users=total or 0)


def shops_by_revenue(db: Session, start: datetime, end: datetime) -> List[ShopRevenue]:
    order_counts = dict(
        db.query(Order.shop_id, func.count(Order.id))
        .filter(_in_window(Order.created_at, start, end))
        .group_by(Order.shop_id)
        .all()
    )
    revenues = dict(
        db.query(Order.shop_id, func.sum(Order.total_amount))
        .filter(Order.status == OrderStatus.COMPLETED, _in_window(Order.created_at, start, end))
        .group_by(Order.shop_id)
        .all()
    )

    shops = [
        ShopRevenue(
            id=shop.id,
            name=shop.name,
            created_at=shop.created_at,
            order_count=order_counts.get(shop.id, 0),
            total_revenue=int(revenues.get(shop.id) or 0),
        )
        for shop in db.query(Shop).order_by(Shop.id).all()
    ]
    shops.sort(key=lambda s: (s.total_revenue, s.order_count), reverse=True)
    return shops


def gross_profit(db: Session, start: datetime, end: datetime) -> GrossProfit:
    total_cost, total_margin = _margin_sums(db, start, end)
    total_revenue = _completed_revenue(db, start, end)
    percentage = total_margin / total_revenue * 100 if total_revenue > 0 else 0.0
    return GrossProfit(
        total_cost=int(total_cost),
        total_revenue=total_revenue,
        total_margin=int(total_margin),
        profit_percentage=round_half_up(percentage, 2),
    )


def total_avg_margin(db: Session, start: datetime, end: datetime) -> AvgMargin:
    # Weighted: sum of margin over sum of revenue
    _, total_margin = _margin_sums(db, start, end)
    total_revenue = _completed_revenue(db, start, end)
    rate = total_margin / total_revenue * 100 if total_revenue > 0 else 0.0
    return AvgMargin(avg_margin_rate=round_half_up(rate, 2))


def product_stock_value(db: Session) -> ProductStockValue:
    products = [
        ProductValue(id=p.id, name=p.name, stock=p.stock, price=p.price, value=p.stock * p.price)
        for p in db.query(Product).order_by(Product.id).all()
    ]
    products.sort(key=lambda p: p.value, reverse=True)
    return ProductStockValue(total_stock_value=sum(p.value for p in products), products=products)


# ==========================================
# Cached entry points
# ==========================================

# name -> (tags, windowed aggregation)
WINDOWED: Dict[str, tuple] = {
    "sales": ((TAGS["SALES"],), sales_summary),
    "orders": ((TAGS["ORDERS"],), orders_by_status),
    "user": ((TAGS["USER"],), user_growth),
    "shops": ((TAGS["SHOPS"], TAGS["SALES"]), shops_by_revenue),
    "gross-profit": ((TAGS["GROSS_PROFIT"], TAGS["SALES"], TAGS["AVG_MARGIN"]), gross_profit),
    "total-avg-margin": ((TAGS["AVG_MARGIN"], TAGS["SALES"], TAGS["GROSS_PROFIT"]), total_avg_margin),
}


def windowed(cache: CacheManager, db: Session, name: str, start: datetime, end: datetime):
    tags, aggregate = WINDOWED[name]
    logger.debug("Dashboard %s for %s .. %s", name, start, end)
    key = f"{name}:{start.isoformat()}:{end.isoformat()}"
    return cache.get_or_set(key, tags, lambda: aggregate(db, start, end))


def cached_product_stock_value(cache: CacheManager, db: Session) -> dict:
    return cache.get_or_set("product-left-value", (TAGS["PRODUCT_VALUE"],), lambda: product_stock_value(db))
