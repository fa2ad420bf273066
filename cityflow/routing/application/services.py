"""
Routing Application Services
=============================

Composes the city, region and issue-type resolvers into an assignment.

Preview is side-effect free and returns None for an unmapped city. Commit
runs the same resolution and refuses the ticket instead; it never falls back
to a default region.
"""

from datetime import datetime, timezone
from typing import Optional

from cityflow.core import ResourceNotFoundException, UnroutableTicketException
from cityflow.directory.application import IDirectoryRepository, NO_MANAGER
from cityflow.routing.domain import (
    AssignmentDecision,
    AssignmentPreview,
    IssueTypeDefaults,
    RegionContacts,
    UNASSIGNED,
)
from cityflow.shared.infrastructure.logging import get_logger
from cityflow.sla.domain import SLAClock

logger = get_logger(__name__)


class AssignmentService:
    """
    Resolves tier-1/tier-2 routing and the SLA due time for a ticket.
    """

    def __init__(self, directory_repository: IDirectoryRepository):
        self._repo = directory_repository

    # ---------- Resolvers ----------

    async def resolve_region(self, city: str) -> Optional[str]:
        """
        City -> region id.

        Matches case-insensitively after collapsing whitespace. Returns None
        when the city has no mapping.
        """
        if not city or not city.strip():
            return None
        mapping = await self._repo.get_city_mapping(city)
        return mapping.region_id if mapping else None

    async def resolve_region_contacts(self, region_id: str) -> Optional[RegionContacts]:
        """
        Region -> manager display name and tier-2 city team.

        Returns None when the region row is missing.
        """
        region = await self._repo.get_region(region_id)
        if region is None:
            logger.warning("City maps to a missing region", extra={"region_id": region_id})
            return None

        manager = await self._repo.get_profile(region.manager_id) if region.manager_id else None
        manager_name = manager.full_name if manager and manager.is_active else NO_MANAGER

        city_teams = await self._repo.find_city_teams(region.id)
        if len(city_teams) > 1:
            logger.warning(
                "Region has more than one active city team; using the first",
                extra={"region_id": region.id, "team_ids": [t.id for t in city_teams]}
            )

        return RegionContacts(
            region=region,
            manager_name=manager_name,
            city_team=city_teams[0] if city_teams else None
        )

    async def resolve_issue_type_defaults(self, issue_type_id: str) -> IssueTypeDefaults:
        """Issue type -> default SLA hours, team and assignee."""
        issue_type = await self._repo.get_issue_type(issue_type_id)
        if issue_type is None or not issue_type.is_active:
            raise ResourceNotFoundException("IssueType", issue_type_id)

        return IssueTypeDefaults(
            issue_type_id=issue_type.id,
            issue_type_name=issue_type.name,
            sla_hours=issue_type.default_sla_hours,
            team_id=issue_type.default_team_id,
            assignee_id=issue_type.default_assignee_id
        )

    # ---------- Preview / commit ----------

    async def preview(
        self,
        issue_type_id: str,
        city: str,
        now: Optional[datetime] = None
    ) -> Optional[AssignmentPreview]:
        """
        Assignment a ticket would get if created now.

        Returns None when the city is unroutable.
        """
        now = now or datetime.now(timezone.utc)
        fields = await self._resolve(issue_type_id, city, now)
        if fields is None:
            return None
        return AssignmentPreview(**fields)

    async def commit(
        self,
        issue_type_id: str,
        city: str,
        now: Optional[datetime] = None
    ) -> AssignmentDecision:
        """
        Resolve the assignment for a ticket being created.

        The SLA due time is anchored at the commit instant and never
        recomputed afterwards.

        Raises:
            UnroutableTicketException: city unmapped or region missing
            ResourceNotFoundException: unknown issue type
        """
        committed_at = now or datetime.now(timezone.utc)
        fields = await self._resolve(issue_type_id, city, committed_at)
        if fields is None:
            logger.warning("Ticket refused: city not routable", extra={"city": city})
            raise UnroutableTicketException(city)

        decision = AssignmentDecision(committed_at=committed_at, **fields)
        logger.info(
            "Assignment committed",
            extra={
                "city": city,
                "region_id": decision.region_id,
                "assignee_id": decision.assignee_id,
                "tier2_team_id": decision.tier2_team_id,
                "sla_due_at": decision.sla_due_at.isoformat()
            }
        )
        return decision

    async def _resolve(self, issue_type_id: str, city: str, anchor: datetime) -> Optional[dict]:
        defaults = await self.resolve_issue_type_defaults(issue_type_id)

        region_id = await self.resolve_region(city)
        if region_id is None:
            return None
        contacts = await self.resolve_region_contacts(region_id)
        if contacts is None:
            return None

        assignee = await self._repo.get_profile(defaults.assignee_id) if defaults.assignee_id else None
        if assignee is not None and not assignee.is_active:
            assignee = None
        team = await self._repo.get_team(defaults.team_id) if defaults.team_id else None
        if team is not None and not team.is_active:
            team = None
        city_team = contacts.city_team

        return {
            "issue_type_id": defaults.issue_type_id,
            "city": " ".join(city.split()),
            "region_id": contacts.region.id,
            "region_name": contacts.region.name,
            "manager_name": contacts.manager_name,
            "assignee_id": assignee.id if assignee else None,
            "assignee_name": assignee.full_name if assignee else UNASSIGNED,
            "team_id": team.id if team else None,
            "team_name": team.name if team else UNASSIGNED,
            "tier2_team_id": city_team.id if city_team else None,
            "tier2_team_name": city_team.name if city_team else None,
            "sla_hours": defaults.sla_hours,
            "sla_due_at": SLAClock.compute_due_at(anchor, defaults.sla_hours),
        }
