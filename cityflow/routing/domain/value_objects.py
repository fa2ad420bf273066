"""
Routing Value Objects
======================

The assignment decision assembled from the city, region and issue-type
resolvers.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from cityflow.directory.domain import Region, Team

UNASSIGNED = "Unassigned"


@dataclass(frozen=True)
class RegionContacts:
    """Who answers for a region: its manager and its tier-2 city team."""
    region: Region
    manager_name: str
    city_team: Optional[Team] = None


@dataclass(frozen=True)
class IssueTypeDefaults:
    """Routing and SLA defaults carried by an issue type."""
    issue_type_id: str
    issue_type_name: str
    sla_hours: int
    team_id: Optional[str] = None
    assignee_id: Optional[str] = None


@dataclass(frozen=True)
class AssignmentPreview:
    """
    Tier-1 and tier-2 routing for a prospective ticket.

    Absent assignee or team read as "Unassigned"; the ids stay None.
    """
    issue_type_id: str
    city: str
    region_id: str
    region_name: str
    manager_name: str
    assignee_id: Optional[str]
    assignee_name: str
    team_id: Optional[str]
    team_name: str
    tier2_team_id: Optional[str]
    tier2_team_name: Optional[str]
    sla_hours: int
    sla_due_at: datetime

    @property
    def is_assigned(self) -> bool:
        return self.assignee_id is not None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["sla_due_at"] = self.sla_due_at.isoformat()
        return data


@dataclass(frozen=True)
class AssignmentDecision(AssignmentPreview):
    """A preview frozen at commit time; sla_due_at = committed_at + sla_hours."""
    committed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["committed_at"] = self.committed_at.isoformat()
        return data
