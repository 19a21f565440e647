"""Admin dashboard metric schemas. All values are point-in-time aggregates."""

from __future__ import annotations

from typing import Optional

from .common import CamelModel


class FinancialMetrics(CamelModel):
    total_active_subscriptions: int
    number_of_paid_members: int
    mrr: float
    churn_rate_simplified: float  # percentage
    churned_last30_days_count: int
    one_time_sales_count_last30_days: int
    one_time_sales_value_last30_days: float
    trials_in_progress_count: int
    recently_activated_subscriptions_last30_days: int
    trial_conversion_rate: Optional[float] = None


class ActivityDataStatus(CamelModel):
    active_members: str
    detailed_activity: str = "requires_advanced_analytics_or_dedicated_tracking"


class GroupActivityMetrics(CamelModel):
    total_members: int
    active_members_last30_days: Optional[int] = None
    monthly_active_members: Optional[int] = None
    daily_activity: Optional[list] = None
    data_status: ActivityDataStatus
    context: str
