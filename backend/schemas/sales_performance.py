# backend/schemas/sales_performance.py
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from schemas.common import ORMBase


# No params: all-time; month + year: one calendar month
class SalesPerformanceFilter(ORMBase):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=2000, le=2100)

    @property
    def is_monthly(self) -> bool:
        return self.month is not None and self.year is not None

    @model_validator(mode="after")
    def _month_needs_year(self):
        if (self.month is None) != (self.year is None):
            raise ValueError("month and year must be given together")
        return self


class PerformancePeriod(ORMBase):
    type: Literal["monthly", "all-time"]
    month: Optional[int] = None
    year: Optional[int] = None
    since: Optional[datetime] = None


class SellerRef(ORMBase):
    id: int
    name: str
    email: str
    created_at: datetime


class PerformanceSummary(ORMBase):
    total_revenue: int
    order_count: int
    completed_orders: int
    completion_rate: float
    average_order_value: int


class MarginMetrics(ORMBase):
    total_margin: int
    avg_margin_rate: float


class MyPerformance(ORMBase):
    user: SellerRef
    summary: PerformanceSummary
    status_breakdown: Dict[str, int]
    margin_metrics: MarginMetrics
    period: PerformancePeriod


class LeaderboardEntry(ORMBase):
    user_id: int
    name: str
    email: str
    total_revenue: int
    order_count: int
    completed_orders: int
    completion_rate: float
    rank: int


class Leaderboard(ORMBase):
    leaderboard: List[LeaderboardEntry]
    current_user: Optional[LeaderboardEntry] = None
    period: PerformancePeriod
