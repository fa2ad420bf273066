"""
SLA Domain Layer
================

Contains:
- SLAClock: due-time computation and live status/label evaluation
- SLAReading: immutable evaluation result

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from cityflow.sla.domain.value_objects import (
    SLAClock,
    SLAReading,
    WARNING_WINDOW,
    COMPLETED_LABEL,
)

__all__ = [
    "SLAClock",
    "SLAReading",
    "WARNING_WINDOW",
    "COMPLETED_LABEL",
]
