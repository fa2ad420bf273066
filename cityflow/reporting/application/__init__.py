"""
Reporting Application Layer
============================

Contains:
- ReportingService: dashboard and period summaries
- DTOs: report response models
"""

from cityflow.reporting.application.dto import (
    DashboardResponse,
    PeriodStr,
    ReportSummaryResponse,
)
from cityflow.reporting.application.services import ReportingService

__all__ = [
    "DashboardResponse",
    "PeriodStr",
    "ReportSummaryResponse",
    "ReportingService",
]
