"""
Reporting Interfaces Layer
==========================
"""

from cityflow.reporting.interfaces.controllers import reporting_router

__all__ = ["reporting_router"]
