"""
Routing Domain Layer
====================

Value objects describing where a ticket goes and when it is due.
"""

from cityflow.routing.domain.value_objects import (
    AssignmentDecision,
    AssignmentPreview,
    IssueTypeDefaults,
    RegionContacts,
    UNASSIGNED,
)

__all__ = [
    "AssignmentDecision",
    "AssignmentPreview",
    "IssueTypeDefaults",
    "RegionContacts",
    "UNASSIGNED",
]
