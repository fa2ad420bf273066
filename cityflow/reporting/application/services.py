"""
Reporting Application Services
===============================

Loads the tickets a user may see and runs the aggregation helpers over them.
"""

from datetime import datetime
from typing import Optional

from cityflow.directory.application import IDirectoryRepository
from cityflow.directory.domain import Profile
from cityflow.reporting.application.dto import (
    DailyCountResponse,
    DashboardResponse,
    DashboardStatsResponse,
    IssueTypeCountResponse,
    ReportSummaryResponse,
    SLABucketResponse,
    TeamResolutionResponse,
)
from cityflow.reporting.domain import (
    PERIOD_DAYS,
    dashboard_stats,
    period_start,
    resolution_rate,
    resolution_rate_by_team,
    sla_breakdown,
    tickets_over_time,
    top_issue_types,
)
from cityflow.shared.infrastructure.logging import get_logger, log_latency
from cityflow.tickets.application import ITicketRepository, TicketService
from cityflow.tickets.domain import utc_now

logger = get_logger(__name__)

TOP_ISSUE_TYPES = 5


class ReportingService:
    """
    Dashboard and period reports, scoped like the ticket inbox.
    """

    def __init__(self, ticket_repository: ITicketRepository, directory_repository: IDirectoryRepository):
        self._tickets = ticket_repository
        self._directory = directory_repository

    async def dashboard(self, user: Profile, now: Optional[datetime] = None) -> DashboardResponse:
        now = now or utc_now()
        scope = TicketService.region_scope(user)
        tickets = await self._tickets.list_created_since(None, scope)

        return DashboardResponse(
            generated_at=now,
            region_id=scope,
            stats=DashboardStatsResponse.model_validate(dashboard_stats(tickets, now)),
            sla_breakdown=[SLABucketResponse.model_validate(b) for b in sla_breakdown(tickets, now)]
        )

    async def summary(
        self,
        user: Profile,
        period: str = "7d",
        now: Optional[datetime] = None
    ) -> ReportSummaryResponse:
        """Figures for tickets created within the period."""
        now = now or utc_now()
        scope = TicketService.region_scope(user)

        with log_latency(logger, "report_summary", period=period):
            tickets = await self._tickets.list_created_since(period_start(period, now), scope)
            team_names = {t.id: t.name for t in await self._directory.list_teams(active_only=True)}
            type_names = {
                t.id: t.name for t in await self._directory.list_issue_types(active_only=False)
            }

            return ReportSummaryResponse(
                generated_at=now,
                period=period,
                region_id=scope,
                total_tickets=len(tickets),
                resolution_rate=resolution_rate(tickets),
                tickets_over_time=[
                    DailyCountResponse.model_validate(d)
                    for d in tickets_over_time(tickets, PERIOD_DAYS[period], now.date())
                ],
                sla_breakdown=[SLABucketResponse.model_validate(b) for b in sla_breakdown(tickets, now)],
                resolution_by_team=[
                    TeamResolutionResponse.model_validate(r)
                    for r in resolution_rate_by_team(tickets, team_names)
                ],
                top_issue_types=[
                    IssueTypeCountResponse.model_validate(c)
                    for c in top_issue_types(tickets, TOP_ISSUE_TYPES, type_names)
                ]
            )
