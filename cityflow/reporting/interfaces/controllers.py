"""
Reporting Controllers (API Routes)
===================================
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cityflow.directory.domain import Profile
from cityflow.directory.interfaces.dependencies import get_current_user, get_directory_repository
from cityflow.infrastructure.database import get_session
from cityflow.reporting.application import (
    DashboardResponse,
    PeriodStr,
    ReportingService,
    ReportSummaryResponse,
)
from cityflow.tickets.infrastructure import SQLAlchemyTicketRepository

router = APIRouter(prefix="/reports", tags=["Reports"])


async def get_reporting_service(
    session: AsyncSession = Depends(get_session),
    directory=Depends(get_directory_repository)
) -> ReportingService:
    """Get reporting service instance."""
    return ReportingService(SQLAlchemyTicketRepository(session), directory)


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Dashboard figures",
    description="Totals, overdue count, SLA compliance and SLA breakdown over all visible tickets."
)
async def get_dashboard(
    current_user: Profile = Depends(get_current_user),
    service: ReportingService = Depends(get_reporting_service)
):
    return await service.dashboard(current_user)


@router.get(
    "/summary",
    response_model=ReportSummaryResponse,
    summary="Period report",
    description="""
    Tickets over time, SLA breakdown, resolution rate by team and top issue
    types for tickets created in the last `period` (24h, 7d, 30d or 90d).
    """
)
async def get_summary(
    period: PeriodStr = Query("7d"),
    current_user: Profile = Depends(get_current_user),
    service: ReportingService = Depends(get_reporting_service)
):
    return await service.summary(current_user, period)


reporting_router = router
