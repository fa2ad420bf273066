"""
Directory Domain Entities
==========================

Reference data consulted by routing and shown on tickets: staff profiles,
regions, city mappings, teams, issue types and the admin rule tables.

Pure dataclasses, free of infrastructure concerns.
"""

from dataclasses import dataclass
from typing import Optional

from cityflow.config import Priority, TeamType, UserRole


@dataclass
class Profile:
    """A staff member."""
    id: str
    full_name: str
    email: Optional[str] = None
    role: UserRole = UserRole.AGENT
    region_id: Optional[str] = None
    team_id: Optional[str] = None
    is_active: bool = True

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN


@dataclass
class Region:
    """Administrative grouping of cities, optionally led by a manager."""
    id: str
    name: str
    manager_id: Optional[str] = None


@dataclass
class CityMapping:
    """Maps one city name to exactly one region."""
    id: str
    city_name: str
    region_id: str

    @staticmethod
    def normalize(city_name: str) -> str:
        """Key used for lookups and for the uniqueness check."""
        return " ".join(city_name.split()).casefold()


@dataclass
class Team:
    """
    A team tickets can be assigned to.

    A city team belongs to a region and acts as that region's tier-2
    escalation team; there is at most one active city team per region.
    """
    id: str
    name: str
    team_type: TeamType = TeamType.FUNCTIONAL
    region_id: Optional[str] = None
    is_active: bool = True

    def __post_init__(self):
        if self.team_type == TeamType.CITY_TEAM and not self.region_id:
            raise ValueError("A city team must belong to a region")

    @property
    def is_city_team(self) -> bool:
        return self.team_type == TeamType.CITY_TEAM


@dataclass
class IssueType:
    """Kind of supplier issue, carrying the routing and SLA defaults."""
    id: str
    name: str
    default_sla_hours: int
    icon: Optional[str] = None
    default_team_id: Optional[str] = None
    default_assignee_id: Optional[str] = None
    is_active: bool = True


@dataclass
class RoutingRule:
    """Admin override keyed by (issue type, region). Stored, not consulted."""
    id: str
    issue_type_id: str
    region_id: str
    team_id: Optional[str] = None
    assignee_id: Optional[str] = None
    is_active: bool = True


@dataclass
class SLARule:
    """Admin override keyed by (issue type, priority). Stored, not consulted."""
    id: str
    issue_type_id: str
    priority: Priority
    sla_hours: int
    escalation_threshold_percent: int = 80
    is_active: bool = True
