"""
Directory Infrastructure Repositories
======================================

SQLAlchemy implementation of the directory repository interface.

Rows are converted to domain entities on the way out, so nothing above this
layer sees an ORM object.
"""

from typing import List, Optional

from sqlalchemy import select

from cityflow.config import Priority, TeamType, UserRole
from cityflow.directory.application.services import IDirectoryRepository
from cityflow.directory.domain import (
    CityMapping,
    IssueType,
    Profile,
    Region,
    RoutingRule,
    SLARule,
    Team,
)
from cityflow.directory.infrastructure.models import (
    CityMappingModel,
    IssueTypeModel,
    ProfileModel,
    RegionModel,
    RoutingRuleModel,
    SLARuleModel,
    TeamModel,
)
from cityflow.shared.infrastructure.repository import (
    SQLAlchemyRepository,
    from_uuid,
    to_uuid,
)


# ========== Row <-> entity mapping ==========

def _profile(m: ProfileModel) -> Profile:
    return Profile(
        id=str(m.id),
        full_name=m.full_name,
        email=m.email,
        role=UserRole(m.role),
        region_id=from_uuid(m.region_id),
        team_id=from_uuid(m.team_id),
        is_active=m.is_active
    )


def _region(m: RegionModel) -> Region:
    return Region(id=str(m.id), name=m.name, manager_id=from_uuid(m.manager_id))


def _city(m: CityMappingModel) -> CityMapping:
    return CityMapping(id=str(m.id), city_name=m.city_name, region_id=str(m.region_id))


def _team(m: TeamModel) -> Team:
    return Team(
        id=str(m.id),
        name=m.name,
        team_type=TeamType(m.team_type),
        region_id=from_uuid(m.region_id),
        is_active=m.is_active
    )


def _issue_type(m: IssueTypeModel) -> IssueType:
    return IssueType(
        id=str(m.id),
        name=m.name,
        icon=m.icon,
        default_sla_hours=m.default_sla_hours,
        default_team_id=from_uuid(m.default_team_id),
        default_assignee_id=from_uuid(m.default_assignee_id),
        is_active=m.is_active
    )


def _routing_rule(m: RoutingRuleModel) -> RoutingRule:
    return RoutingRule(
        id=str(m.id),
        issue_type_id=str(m.issue_type_id),
        region_id=str(m.region_id),
        team_id=from_uuid(m.team_id),
        assignee_id=from_uuid(m.assignee_id),
        is_active=m.is_active
    )


def _sla_rule(m: SLARuleModel) -> SLARule:
    return SLARule(
        id=str(m.id),
        issue_type_id=str(m.issue_type_id),
        priority=Priority(m.priority),
        sla_hours=m.sla_hours,
        escalation_threshold_percent=m.escalation_threshold_percent,
        is_active=m.is_active
    )


class SQLAlchemyDirectoryRepository(SQLAlchemyRepository, IDirectoryRepository):
    """
    SQLAlchemy implementation of the directory repository.

    Handles persistence of the reference tables using async SQLAlchemy.
    """

    # ---------- Profiles ----------

    async def get_profile(self, profile_id: str) -> Optional[Profile]:
        model = await self._get(ProfileModel, profile_id)
        return _profile(model) if model else None

    async def list_profiles(self, active_only: bool = True) -> List[Profile]:
        stmt = select(ProfileModel).order_by(ProfileModel.full_name)
        if active_only:
            stmt = stmt.where(ProfileModel.is_active.is_(True))
        return [_profile(m) for m in await self._all(stmt)]

    # ---------- Regions ----------

    async def get_region(self, region_id: str) -> Optional[Region]:
        model = await self._get(RegionModel, region_id)
        return _region(model) if model else None

    async def get_region_by_name(self, name: str) -> Optional[Region]:
        models = await self._all(select(RegionModel).where(RegionModel.name == name))
        return _region(models[0]) if models else None

    async def list_regions(self) -> List[Region]:
        return [_region(m) for m in await self._all(select(RegionModel).order_by(RegionModel.name))]

    async def save_region(self, region: Region) -> Region:
        model = await self._upsert(RegionModel, region.id, {
            "name": region.name,
            "manager_id": to_uuid(region.manager_id),
        })
        return _region(model)

    async def delete_region(self, region_id: str) -> bool:
        return await self._delete(RegionModel, region_id)

    # ---------- City mappings ----------

    async def get_city_mapping(self, city_name: str) -> Optional[CityMapping]:
        stmt = select(CityMappingModel).where(
            CityMappingModel.city_key == CityMapping.normalize(city_name)
        )
        models = await self._all(stmt)
        return _city(models[0]) if models else None

    async def get_city_mapping_by_id(self, mapping_id: str) -> Optional[CityMapping]:
        model = await self._get(CityMappingModel, mapping_id)
        return _city(model) if model else None

    async def list_city_mappings(self, region_id: Optional[str] = None) -> List[CityMapping]:
        stmt = select(CityMappingModel).order_by(CityMappingModel.city_name)
        if region_id is not None:
            stmt = stmt.where(CityMappingModel.region_id == to_uuid(region_id))
        return [_city(m) for m in await self._all(stmt)]

    async def save_city_mapping(self, mapping: CityMapping) -> CityMapping:
        model = await self._upsert(CityMappingModel, mapping.id, {
            "city_name": mapping.city_name,
            "city_key": CityMapping.normalize(mapping.city_name),
            "region_id": to_uuid(mapping.region_id),
        })
        return _city(model)

    async def delete_city_mapping(self, mapping_id: str) -> bool:
        return await self._delete(CityMappingModel, mapping_id)

    # ---------- Teams ----------

    async def get_team(self, team_id: str) -> Optional[Team]:
        model = await self._get(TeamModel, team_id)
        return _team(model) if model else None

    async def list_teams(self, active_only: bool = True) -> List[Team]:
        stmt = select(TeamModel).order_by(TeamModel.name)
        if active_only:
            stmt = stmt.where(TeamModel.is_active.is_(True))
        return [_team(m) for m in await self._all(stmt)]

    async def find_city_teams(self, region_id: str) -> List[Team]:
        key = to_uuid(region_id)
        if key is None:
            return []
        stmt = (
            select(TeamModel)
            .where(
                TeamModel.team_type == TeamType.CITY_TEAM.value,
                TeamModel.region_id == key,
                TeamModel.is_active.is_(True),
            )
            .order_by(TeamModel.name)
        )
        return [_team(m) for m in await self._all(stmt)]

    async def save_team(self, team: Team) -> Team:
        model = await self._upsert(TeamModel, team.id, {
            "name": team.name,
            "team_type": team.team_type.value,
            "region_id": to_uuid(team.region_id),
            "is_active": team.is_active,
        })
        return _team(model)

    # ---------- Issue types ----------

    async def get_issue_type(self, issue_type_id: str) -> Optional[IssueType]:
        model = await self._get(IssueTypeModel, issue_type_id)
        return _issue_type(model) if model else None

    async def list_issue_types(self, active_only: bool = True) -> List[IssueType]:
        stmt = select(IssueTypeModel).order_by(IssueTypeModel.name)
        if active_only:
            stmt = stmt.where(IssueTypeModel.is_active.is_(True))
        return [_issue_type(m) for m in await self._all(stmt)]

    async def save_issue_type(self, issue_type: IssueType) -> IssueType:
        model = await self._upsert(IssueTypeModel, issue_type.id, {
            "name": issue_type.name,
            "icon": issue_type.icon,
            "default_sla_hours": issue_type.default_sla_hours,
            "default_team_id": to_uuid(issue_type.default_team_id),
            "default_assignee_id": to_uuid(issue_type.default_assignee_id),
            "is_active": issue_type.is_active,
        })
        return _issue_type(model)

    # ---------- Rule tables ----------

    async def list_routing_rules(self) -> List[RoutingRule]:
        return [_routing_rule(m) for m in await self._all(select(RoutingRuleModel))]

    async def save_routing_rule(self, rule: RoutingRule) -> RoutingRule:
        model = await self._upsert(RoutingRuleModel, rule.id, {
            "issue_type_id": to_uuid(rule.issue_type_id),
            "region_id": to_uuid(rule.region_id),
            "team_id": to_uuid(rule.team_id),
            "assignee_id": to_uuid(rule.assignee_id),
            "is_active": rule.is_active,
        })
        return _routing_rule(model)

    async def delete_routing_rule(self, rule_id: str) -> bool:
        return await self._delete(RoutingRuleModel, rule_id)

    async def list_sla_rules(self) -> List[SLARule]:
        return [_sla_rule(m) for m in await self._all(select(SLARuleModel))]

    async def save_sla_rule(self, rule: SLARule) -> SLARule:
        model = await self._upsert(SLARuleModel, rule.id, {
            "issue_type_id": to_uuid(rule.issue_type_id),
            "priority": rule.priority.value,
            "sla_hours": rule.sla_hours,
            "escalation_threshold_percent": rule.escalation_threshold_percent,
            "is_active": rule.is_active,
        })
        return _sla_rule(model)

    async def delete_sla_rule(self, rule_id: str) -> bool:
        return await self._delete(SLARuleModel, rule_id)
