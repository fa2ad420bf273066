"""
Directory Domain Layer
======================

Entities for the reference data every other module reads.

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from cityflow.directory.domain.entities import (
    Profile,
    Region,
    CityMapping,
    Team,
    IssueType,
    RoutingRule,
    SLARule,
)

__all__ = [
    "Profile",
    "Region",
    "CityMapping",
    "Team",
    "IssueType",
    "RoutingRule",
    "SLARule",
]
