"""
Reporting Domain Layer
======================

Pure aggregation helpers over ticket lists.
"""

from cityflow.reporting.domain.aggregations import (
    PERIOD_DAYS,
    DailyCount,
    DashboardStats,
    IssueTypeCount,
    SLABucket,
    TeamResolution,
    dashboard_stats,
    effective_sla_status,
    percentage,
    period_start,
    resolution_rate,
    resolution_rate_by_team,
    round_half_up,
    sla_breakdown,
    tickets_over_time,
    top_issue_types,
)

__all__ = [
    "PERIOD_DAYS",
    "DailyCount",
    "DashboardStats",
    "IssueTypeCount",
    "SLABucket",
    "TeamResolution",
    "dashboard_stats",
    "effective_sla_status",
    "percentage",
    "period_start",
    "resolution_rate",
    "resolution_rate_by_team",
    "round_half_up",
    "sla_breakdown",
    "tickets_over_time",
    "top_issue_types",
]
