"""
SLA Application Layer
=====================

Contains:
- SLAMonitorService: periodic refresh of stored SLA statuses
"""

from cityflow.sla.application.services import SLAMonitorService

__all__ = ["SLAMonitorService"]
