"""
Directory Application Services
===============================

Admin maintenance of the reference tables that routing reads.

The write-time checks here are what keeps routing simple: one region per
city, at most one active city team per region, positive whole-hour SLA
defaults on every issue type.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import List, Optional

from cityflow.config import Priority, TeamType
from cityflow.core import (
    DuplicateResourceException,
    ResourceNotFoundException,
    ValidationException,
)
from cityflow.directory.application.dto import (
    CityMappingCreateDTO,
    CityMappingResponse,
    CityMappingUpdateDTO,
    IssueTypeCreateDTO,
    IssueTypeUpdateDTO,
    RegionCreateDTO,
    RegionResponse,
    RegionUpdateDTO,
    RoutingRuleCreateDTO,
    SLARuleCreateDTO,
    TeamCreateDTO,
    TeamResponse,
    TeamUpdateDTO,
)
from cityflow.directory.domain import (
    CityMapping,
    IssueType,
    Profile,
    Region,
    RoutingRule,
    SLARule,
    Team,
)
from cityflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

NO_MANAGER = "No manager"


# ========== Repository Interface (Dependency Inversion) ==========

class IDirectoryRepository(ABC):
    """Interface for reference-data access."""

    # Profiles
    @abstractmethod
    async def get_profile(self, profile_id: str) -> Optional[Profile]:
        """Get a profile by id."""

    @abstractmethod
    async def list_profiles(self, active_only: bool = True) -> List[Profile]:
        """List profiles ordered by name."""

    # Regions
    @abstractmethod
    async def get_region(self, region_id: str) -> Optional[Region]:
        """Get a region by id."""

    @abstractmethod
    async def get_region_by_name(self, name: str) -> Optional[Region]:
        """Get a region by exact name."""

    @abstractmethod
    async def list_regions(self) -> List[Region]:
        """List regions ordered by name."""

    @abstractmethod
    async def save_region(self, region: Region) -> Region:
        """Insert or update a region."""

    @abstractmethod
    async def delete_region(self, region_id: str) -> bool:
        """Delete a region. Returns False if it did not exist."""

    # City mappings
    @abstractmethod
    async def get_city_mapping(self, city_name: str) -> Optional[CityMapping]:
        """Get the mapping for a city, matching on CityMapping.normalize()."""

    @abstractmethod
    async def get_city_mapping_by_id(self, mapping_id: str) -> Optional[CityMapping]:
        """Get a mapping by id."""

    @abstractmethod
    async def list_city_mappings(self, region_id: Optional[str] = None) -> List[CityMapping]:
        """List mappings ordered by city name, optionally for one region."""

    @abstractmethod
    async def save_city_mapping(self, mapping: CityMapping) -> CityMapping:
        """Insert or update a mapping."""

    @abstractmethod
    async def delete_city_mapping(self, mapping_id: str) -> bool:
        """Delete a mapping. Returns False if it did not exist."""

    # Teams
    @abstractmethod
    async def get_team(self, team_id: str) -> Optional[Team]:
        """Get a team by id."""

    @abstractmethod
    async def list_teams(self, active_only: bool = True) -> List[Team]:
        """List teams ordered by name."""

    @abstractmethod
    async def find_city_teams(self, region_id: str) -> List[Team]:
        """Active city teams of a region."""

    @abstractmethod
    async def save_team(self, team: Team) -> Team:
        """Insert or update a team."""

    # Issue types
    @abstractmethod
    async def get_issue_type(self, issue_type_id: str) -> Optional[IssueType]:
        """Get an issue type by id."""

    @abstractmethod
    async def list_issue_types(self, active_only: bool = True) -> List[IssueType]:
        """List issue types ordered by name."""

    @abstractmethod
    async def save_issue_type(self, issue_type: IssueType) -> IssueType:
        """Insert or update an issue type."""

    # Rule tables
    @abstractmethod
    async def list_routing_rules(self) -> List[RoutingRule]:
        """List routing rules."""

    @abstractmethod
    async def save_routing_rule(self, rule: RoutingRule) -> RoutingRule:
        """Insert a routing rule."""

    @abstractmethod
    async def delete_routing_rule(self, rule_id: str) -> bool:
        """Delete a routing rule."""

    @abstractmethod
    async def list_sla_rules(self) -> List[SLARule]:
        """List SLA rules."""

    @abstractmethod
    async def save_sla_rule(self, rule: SLARule) -> SLARule:
        """Insert an SLA rule."""

    @abstractmethod
    async def delete_sla_rule(self, rule_id: str) -> bool:
        """Delete an SLA rule."""


# ========== Application Service ==========

class DirectoryService:
    """
    Admin operations on regions, cities, teams, issue types and rules.
    """

    def __init__(self, repository: IDirectoryRepository):
        self._repo = repository

    # ---------- Profiles ----------

    async def list_users(self) -> List[Profile]:
        return await self._repo.list_profiles(active_only=True)

    async def get_user(self, profile_id: str) -> Profile:
        profile = await self._repo.get_profile(profile_id)
        if profile is None:
            raise ResourceNotFoundException("Profile", profile_id)
        return profile

    # ---------- Regions ----------

    async def list_regions(self) -> List[RegionResponse]:
        regions = await self._repo.list_regions()
        mappings = await self._repo.list_city_mappings()
        counts: dict[str, int] = {}
        for mapping in mappings:
            counts[mapping.region_id] = counts.get(mapping.region_id, 0) + 1
        return [
            await self._region_response(region, counts.get(region.id, 0))
            for region in regions
        ]

    async def create_region(self, dto: RegionCreateDTO) -> RegionResponse:
        if await self._repo.get_region_by_name(dto.name):
            raise DuplicateResourceException("Region", "Region already exists")
        await self._require_profile(dto.manager_id)

        region = await self._repo.save_region(
            Region(id="", name=dto.name, manager_id=dto.manager_id)
        )
        logger.info("Region created", extra={"region_id": region.id, "region": region.name})
        return await self._region_response(region)

    async def update_region(self, region_id: str, dto: RegionUpdateDTO) -> RegionResponse:
        region = await self._require_region(region_id)
        changes = dto.model_dump(exclude_unset=True)

        if "name" in changes and changes["name"] != region.name:
            existing = await self._repo.get_region_by_name(changes["name"])
            if existing and existing.id != region.id:
                raise DuplicateResourceException("Region", "Region already exists")
        if changes.get("manager_id"):
            await self._require_profile(changes["manager_id"])

        region = await self._repo.save_region(replace(region, **changes))
        cities = await self._repo.list_city_mappings(region_id=region.id)
        return await self._region_response(region, len(cities))

    async def delete_region(self, region_id: str) -> None:
        await self._require_region(region_id)
        if await self._repo.list_city_mappings(region_id=region_id):
            raise ValidationException(
                "Region still has mapped cities",
                {"region_id": region_id}
            )
        if await self._repo.find_city_teams(region_id):
            raise ValidationException(
                "Region still has a city team",
                {"region_id": region_id}
            )
        await self._repo.delete_region(region_id)
        logger.info("Region deleted", extra={"region_id": region_id})

    # ---------- City mappings ----------

    async def list_cities(self) -> List[CityMappingResponse]:
        regions = {r.id: r.name for r in await self._repo.list_regions()}
        return [
            CityMappingResponse(
                id=m.id,
                city_name=m.city_name,
                region_id=m.region_id,
                region_name=regions.get(m.region_id)
            )
            for m in await self._repo.list_city_mappings()
        ]

    async def map_city(self, dto: CityMappingCreateDTO) -> CityMappingResponse:
        region = await self._require_region(dto.region_id)
        if await self._repo.get_city_mapping(dto.city_name):
            raise DuplicateResourceException("CityMapping", "City already exists")

        mapping = await self._repo.save_city_mapping(
            CityMapping(id="", city_name=dto.city_name, region_id=region.id)
        )
        logger.info(
            "City mapped",
            extra={"city": mapping.city_name, "region_id": region.id}
        )
        return CityMappingResponse(
            id=mapping.id,
            city_name=mapping.city_name,
            region_id=region.id,
            region_name=region.name
        )

    async def update_city(self, mapping_id: str, dto: CityMappingUpdateDTO) -> CityMappingResponse:
        mapping = await self._repo.get_city_mapping_by_id(mapping_id)
        if mapping is None:
            raise ResourceNotFoundException("CityMapping", mapping_id)
        changes = dto.model_dump(exclude_unset=True, exclude_none=True)

        if "city_name" in changes:
            existing = await self._repo.get_city_mapping(changes["city_name"])
            if existing and existing.id != mapping.id:
                raise DuplicateResourceException("CityMapping", "City already exists")
        region = await self._require_region(changes.get("region_id", mapping.region_id))

        mapping = await self._repo.save_city_mapping(replace(mapping, **changes))
        return CityMappingResponse(
            id=mapping.id,
            city_name=mapping.city_name,
            region_id=region.id,
            region_name=region.name
        )

    async def delete_city(self, mapping_id: str) -> None:
        if not await self._repo.delete_city_mapping(mapping_id):
            raise ResourceNotFoundException("CityMapping", mapping_id)
        logger.info("City mapping removed", extra={"mapping_id": mapping_id})

    # ---------- Teams ----------

    async def list_teams(self) -> List[TeamResponse]:
        regions = {r.id: r.name for r in await self._repo.list_regions()}
        return [self._team_response(t, regions) for t in await self._repo.list_teams()]

    async def create_team(self, dto: TeamCreateDTO) -> TeamResponse:
        team_type = TeamType(dto.team_type)
        region_id = await self._check_team_region(team_type, dto.region_id)

        team = await self._repo.save_team(
            Team(id="", name=dto.name, team_type=team_type, region_id=region_id)
        )
        logger.info(
            "Team created",
            extra={"team_id": team.id, "team_type": team.team_type.value}
        )
        regions = {r.id: r.name for r in await self._repo.list_regions()}
        return self._team_response(team, regions)

    async def update_team(self, team_id: str, dto: TeamUpdateDTO) -> TeamResponse:
        team = await self._require_team(team_id)
        changes = dto.model_dump(exclude_unset=True)

        team_type = TeamType(changes.get("team_type") or team.team_type)
        region_id = changes["region_id"] if "region_id" in changes else team.region_id
        region_id = await self._check_team_region(team_type, region_id, exclude_team_id=team.id)

        team = await self._repo.save_team(
            replace(
                team,
                name=changes.get("name") or team.name,
                team_type=team_type,
                region_id=region_id
            )
        )
        regions = {r.id: r.name for r in await self._repo.list_regions()}
        return self._team_response(team, regions)

    async def deactivate_team(self, team_id: str) -> None:
        team = await self._require_team(team_id)
        await self._repo.save_team(replace(team, is_active=False))
        logger.info("Team deactivated", extra={"team_id": team_id})

    async def _check_team_region(
        self,
        team_type: TeamType,
        region_id: Optional[str],
        exclude_team_id: Optional[str] = None
    ) -> Optional[str]:
        """Validate the region of a team and return the region id to store."""
        if team_type != TeamType.CITY_TEAM:
            return None
        if not region_id:
            raise ValidationException("Region is required for city teams")
        await self._require_region(region_id)

        others = [
            t for t in await self._repo.find_city_teams(region_id)
            if t.id != exclude_team_id
        ]
        if others:
            raise DuplicateResourceException(
                "Team",
                "Region already has a city team",
                {"region_id": region_id, "team_id": others[0].id}
            )
        return region_id

    # ---------- Issue types ----------

    async def list_issue_types(self) -> List[IssueType]:
        return await self._repo.list_issue_types(active_only=True)

    async def create_issue_type(self, dto: IssueTypeCreateDTO) -> IssueType:
        self._check_sla_hours(dto.default_sla_hours)
        await self._require_team(dto.default_team_id, optional=True)
        await self._require_profile(dto.default_assignee_id)

        issue_type = await self._repo.save_issue_type(
            IssueType(
                id="",
                name=dto.name,
                icon=dto.icon,
                default_sla_hours=dto.default_sla_hours,
                default_team_id=dto.default_team_id,
                default_assignee_id=dto.default_assignee_id
            )
        )
        logger.info(
            "Issue type created",
            extra={"issue_type_id": issue_type.id, "default_sla_hours": issue_type.default_sla_hours}
        )
        return issue_type

    async def update_issue_type(self, issue_type_id: str, dto: IssueTypeUpdateDTO) -> IssueType:
        issue_type = await self._repo.get_issue_type(issue_type_id)
        if issue_type is None or not issue_type.is_active:
            raise ResourceNotFoundException("IssueType", issue_type_id)
        changes = dto.model_dump(exclude_unset=True)

        if "default_sla_hours" in changes:
            self._check_sla_hours(changes["default_sla_hours"])
        if changes.get("default_team_id"):
            await self._require_team(changes["default_team_id"])
        if changes.get("default_assignee_id"):
            await self._require_profile(changes["default_assignee_id"])

        return await self._repo.save_issue_type(replace(issue_type, **changes))

    async def deactivate_issue_type(self, issue_type_id: str) -> None:
        issue_type = await self._repo.get_issue_type(issue_type_id)
        if issue_type is None:
            raise ResourceNotFoundException("IssueType", issue_type_id)
        await self._repo.save_issue_type(replace(issue_type, is_active=False))
        logger.info("Issue type deactivated", extra={"issue_type_id": issue_type_id})

    @staticmethod
    def _check_sla_hours(hours) -> None:
        if isinstance(hours, bool) or not isinstance(hours, int) or hours <= 0:
            raise ValidationException(
                "Default SLA hours must be a positive whole number",
                {"default_sla_hours": hours}
            )

    # ---------- Rule tables (stored, not consulted by routing) ----------

    async def list_routing_rules(self) -> List[RoutingRule]:
        return await self._repo.list_routing_rules()

    async def create_routing_rule(self, dto: RoutingRuleCreateDTO) -> RoutingRule:
        await self._require_issue_type(dto.issue_type_id)
        await self._require_region(dto.region_id)
        await self._require_team(dto.team_id, optional=True)
        await self._require_profile(dto.assignee_id)

        rule = await self._repo.save_routing_rule(
            RoutingRule(
                id="",
                issue_type_id=dto.issue_type_id,
                region_id=dto.region_id,
                team_id=dto.team_id,
                assignee_id=dto.assignee_id
            )
        )
        logger.info(
            "Routing rule stored; ticket routing does not consult routing rules",
            extra={"rule_id": rule.id}
        )
        return rule

    async def delete_routing_rule(self, rule_id: str) -> None:
        if not await self._repo.delete_routing_rule(rule_id):
            raise ResourceNotFoundException("RoutingRule", rule_id)

    async def list_sla_rules(self) -> List[SLARule]:
        return await self._repo.list_sla_rules()

    async def create_sla_rule(self, dto: SLARuleCreateDTO) -> SLARule:
        await self._require_issue_type(dto.issue_type_id)

        rule = await self._repo.save_sla_rule(
            SLARule(
                id="",
                issue_type_id=dto.issue_type_id,
                priority=Priority(dto.priority),
                sla_hours=dto.sla_hours,
                escalation_threshold_percent=dto.escalation_threshold_percent
            )
        )
        logger.info(
            "SLA rule stored; SLA computation uses issue type defaults",
            extra={"rule_id": rule.id}
        )
        return rule

    async def delete_sla_rule(self, rule_id: str) -> None:
        if not await self._repo.delete_sla_rule(rule_id):
            raise ResourceNotFoundException("SLARule", rule_id)

    # ---------- Lookup helpers ----------

    async def _require_region(self, region_id: str) -> Region:
        region = await self._repo.get_region(region_id)
        if region is None:
            raise ResourceNotFoundException("Region", region_id)
        return region

    async def _require_team(self, team_id: Optional[str], optional: bool = False) -> Optional[Team]:
        if team_id is None and optional:
            return None
        team = await self._repo.get_team(team_id) if team_id else None
        if team is None or not team.is_active:
            raise ResourceNotFoundException("Team", team_id)
        return team

    async def _require_profile(self, profile_id: Optional[str]) -> Optional[Profile]:
        if profile_id is None:
            return None
        profile = await self._repo.get_profile(profile_id)
        if profile is None or not profile.is_active:
            raise ResourceNotFoundException("Profile", profile_id)
        return profile

    async def _require_issue_type(self, issue_type_id: str) -> IssueType:
        issue_type = await self._repo.get_issue_type(issue_type_id)
        if issue_type is None or not issue_type.is_active:
            raise ResourceNotFoundException("IssueType", issue_type_id)
        return issue_type

    async def _region_response(self, region: Region, city_count: int = 0) -> RegionResponse:
        manager = await self._repo.get_profile(region.manager_id) if region.manager_id else None
        return RegionResponse(
            id=region.id,
            name=region.name,
            manager_id=region.manager_id,
            manager_name=manager.full_name if manager else NO_MANAGER,
            city_count=city_count
        )

    @staticmethod
    def _team_response(team: Team, region_names: dict[str, str]) -> TeamResponse:
        return TeamResponse(
            id=team.id,
            name=team.name,
            team_type=team.team_type,
            region_id=team.region_id,
            region_name=region_names.get(team.region_id) if team.region_id else None,
            is_active=team.is_active
        )
