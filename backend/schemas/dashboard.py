# backend/schemas/dashboard.py
import calendar
from datetime import date as Date, datetime, time
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from schemas.common import ORMBase

Period = Literal["daily", "monthly", "yearly"]


# Query string for every windowed dashboard endpoint
# Daily: period=daily&date=2025-01-21
# Monthly: period=monthly&month=1&year=2025
# Yearly: period=yearly&year=2025
class DashboardPeriodQuery(ORMBase):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    period: Period
    date: Optional[Date] = None
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=2000, le=2100)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_explicit_range(self):
        if self.start_date and self.end_date and _naive(self.start_date) > _naive(self.end_date):
            raise ValueError("startDate must not be after endDate")
        return self

    def date_range(self, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
        """Inclusive [start, end] window for the query.

        ``startDate``/``endDate`` win over the period when given; a missing side
        falls back to the period's boundary.
        """
        start, end = self._period_range(now or datetime.utcnow())
        if self.start_date is not None:
            start = _naive(self.start_date)
        if self.end_date is not None:
            end = _naive(self.end_date)
        return start, end

    def _period_range(self, now: datetime) -> Tuple[datetime, datetime]:
        year = self.year or now.year
        month = self.month or now.month

        if self.period == "daily":
            day = self.date or now.date()
            return datetime.combine(day, time.min), datetime.combine(day, time.max)

        if self.period == "monthly":
            last_day = calendar.monthrange(year, month)[1]
            return datetime(year, month, 1), datetime.combine(Date(year, month, last_day), time.max)

        return datetime(year, 1, 1), datetime.combine(Date(year, 12, 31), time.max)


def _naive(value: datetime) -> datetime:
    # Stored timestamps are naive UTC
    if value.tzinfo is None:
        return value
    return (value - value.utcoffset()).replace(tzinfo=None)


class SalesSummary(ORMBase):
    total_revenue: int
    order_count: int


class UserGrowth(ORMBase):
    total_users: int


class ShopRevenue(ORMBase):
    id: int
    name: str
    created_at: datetime
    order_count: int
    total_revenue: int


class GrossProfit(ORMBase):
    total_cost: int
    total_revenue: int
    total_margin: int
    profit_percentage: float


class AvgMargin(ORMBase):
    avg_margin_rate: float


class ProductValue(ORMBase):
    id: int
    name: str
    stock: int
    price: int
    value: int


class ProductStockValue(ORMBase):
    total_stock_value: int
    products: List[ProductValue]


# Keys are order statuses and stay upper-case on the wire
OrdersByStatus = Dict[str, int]
