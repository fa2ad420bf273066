"""
Reporting DTOs
==============
"""

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from cityflow.config import SLAStatus

PeriodStr = Literal["24h", "7d", "30d", "90d"]


class DailyCountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: date
    created: int
    resolved: int


class SLABucketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: SLAStatus
    count: int
    percentage: int


class TeamResolutionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    team_id: str
    team_name: str
    total: int
    resolved: int
    rate: int


class IssueTypeCountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    issue_type_id: str
    name: str
    count: int


class DashboardStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    open: int
    overdue: int
    resolved: int
    sla_compliance: int


class DashboardResponse(BaseModel):
    generated_at: datetime
    region_id: Optional[str] = None
    stats: DashboardStatsResponse
    sla_breakdown: List[SLABucketResponse]


class ReportSummaryResponse(BaseModel):
    generated_at: datetime
    period: PeriodStr
    region_id: Optional[str] = None
    total_tickets: int
    resolution_rate: int
    tickets_over_time: List[DailyCountResponse]
    sla_breakdown: List[SLABucketResponse]
    resolution_by_team: List[TeamResolutionResponse]
    top_issue_types: List[IssueTypeCountResponse]
