"""
Directory Controllers (API Routes)
===================================

Admin maintenance of regions, city mappings, teams, issue types, routing
rules and SLA rules, plus sign-in/sign-out of the session context.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from cityflow.directory.application import (
    CityMappingCreateDTO,
    CityMappingResponse,
    CityMappingUpdateDTO,
    DirectoryService,
    IssueTypeCreateDTO,
    IssueTypeResponse,
    IssueTypeUpdateDTO,
    ProfileResponse,
    RegionCreateDTO,
    RegionResponse,
    RegionUpdateDTO,
    RoutingRuleCreateDTO,
    RoutingRuleResponse,
    SLARuleCreateDTO,
    SLARuleResponse,
    TeamCreateDTO,
    TeamResponse,
    TeamUpdateDTO,
)
from cityflow.directory.domain import Profile
from cityflow.directory.interfaces.dependencies import (
    get_current_user,
    get_directory_repository,
    require_admin,
)
from cityflow.shared.infrastructure.logging import get_logger
from cityflow.shared.session import session_context

logger = get_logger(__name__)

admin_router = APIRouter(prefix="/admin", tags=["Administration"], dependencies=[Depends(require_admin)])
session_router = APIRouter(prefix="/session", tags=["Session"])


# ========== Dependencies ==========

async def get_directory_service(repository=Depends(get_directory_repository)) -> DirectoryService:
    """Get directory service instance."""
    return DirectoryService(repository)


# ========== Session ==========

class SignInRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


@session_router.post("/sign-in", response_model=ProfileResponse, summary="Start a session")
async def sign_in(
    request: SignInRequest,
    repository=Depends(get_directory_repository)
):
    profile = await repository.get_profile(request.user_id)
    if profile is None or not profile.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown or inactive user")
    session_context.sign_in(profile)
    return ProfileResponse.model_validate(profile)


@session_router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT, summary="End the session")
async def sign_out(current_user: Profile = Depends(get_current_user)):
    session_context.sign_out(current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@session_router.get("/me", response_model=ProfileResponse, summary="Current user")
async def me(current_user: Profile = Depends(get_current_user)):
    return ProfileResponse.model_validate(current_user)


# ========== Users ==========

@admin_router.get("/users", response_model=List[ProfileResponse], summary="List active users")
async def list_users(service: DirectoryService = Depends(get_directory_service)):
    return [ProfileResponse.model_validate(p) for p in await service.list_users()]


@admin_router.get("/users/{user_id}", response_model=ProfileResponse, summary="Get a user")
async def get_user(user_id: str, service: DirectoryService = Depends(get_directory_service)):
    return ProfileResponse.model_validate(await service.get_user(user_id))


# ========== Regions ==========

@admin_router.get("/regions", response_model=List[RegionResponse], summary="List regions")
async def list_regions(service: DirectoryService = Depends(get_directory_service)):
    return await service.list_regions()


@admin_router.post(
    "/regions",
    response_model=RegionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a region"
)
async def create_region(dto: RegionCreateDTO, service: DirectoryService = Depends(get_directory_service)):
    return await service.create_region(dto)


@admin_router.patch("/regions/{region_id}", response_model=RegionResponse, summary="Update a region")
async def update_region(
    region_id: str,
    dto: RegionUpdateDTO,
    service: DirectoryService = Depends(get_directory_service)
):
    return await service.update_region(region_id, dto)


@admin_router.delete(
    "/regions/{region_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a region",
    description="Refused while cities or a city team still reference the region."
)
async def delete_region(region_id: str, service: DirectoryService = Depends(get_directory_service)):
    await service.delete_region(region_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ========== City mappings ==========

@admin_router.get("/cities", response_model=List[CityMappingResponse], summary="List city mappings")
async def list_cities(service: DirectoryService = Depends(get_directory_service)):
    return await service.list_cities()


@admin_router.post(
    "/cities",
    response_model=CityMappingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Map a city to a region",
    description="**409** `City already exists` when the city is already mapped."
)
async def map_city(dto: CityMappingCreateDTO, service: DirectoryService = Depends(get_directory_service)):
    return await service.map_city(dto)


@admin_router.patch("/cities/{mapping_id}", response_model=CityMappingResponse, summary="Update a city mapping")
async def update_city(
    mapping_id: str,
    dto: CityMappingUpdateDTO,
    service: DirectoryService = Depends(get_directory_service)
):
    return await service.update_city(mapping_id, dto)


@admin_router.delete("/cities/{mapping_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Remove a city mapping")
async def delete_city(mapping_id: str, service: DirectoryService = Depends(get_directory_service)):
    await service.delete_city(mapping_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ========== Teams ==========

@admin_router.get("/teams", response_model=List[TeamResponse], summary="List active teams")
async def list_teams(service: DirectoryService = Depends(get_directory_service)):
    return await service.list_teams()


@admin_router.post(
    "/teams",
    response_model=TeamResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a team",
    description="A `city_team` needs a region, and a region has at most one active city team."
)
async def create_team(dto: TeamCreateDTO, service: DirectoryService = Depends(get_directory_service)):
    return await service.create_team(dto)


@admin_router.patch("/teams/{team_id}", response_model=TeamResponse, summary="Update a team")
async def update_team(
    team_id: str,
    dto: TeamUpdateDTO,
    service: DirectoryService = Depends(get_directory_service)
):
    return await service.update_team(team_id, dto)


@admin_router.delete("/teams/{team_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Deactivate a team")
async def deactivate_team(team_id: str, service: DirectoryService = Depends(get_directory_service)):
    await service.deactivate_team(team_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ========== Issue types ==========

@admin_router.get("/issue-types", response_model=List[IssueTypeResponse], summary="List active issue types")
async def list_issue_types(service: DirectoryService = Depends(get_directory_service)):
    return [IssueTypeResponse.model_validate(t) for t in await service.list_issue_types()]


@admin_router.post(
    "/issue-types",
    response_model=IssueTypeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an issue type",
    description="`default_sla_hours` must be a positive whole number."
)
async def create_issue_type(dto: IssueTypeCreateDTO, service: DirectoryService = Depends(get_directory_service)):
    return IssueTypeResponse.model_validate(await service.create_issue_type(dto))


@admin_router.patch("/issue-types/{issue_type_id}", response_model=IssueTypeResponse, summary="Update an issue type")
async def update_issue_type(
    issue_type_id: str,
    dto: IssueTypeUpdateDTO,
    service: DirectoryService = Depends(get_directory_service)
):
    return IssueTypeResponse.model_validate(await service.update_issue_type(issue_type_id, dto))


@admin_router.delete(
    "/issue-types/{issue_type_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate an issue type"
)
async def deactivate_issue_type(issue_type_id: str, service: DirectoryService = Depends(get_directory_service)):
    await service.deactivate_issue_type(issue_type_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ========== Rule tables ==========

@admin_router.get("/routing-rules", response_model=List[RoutingRuleResponse], summary="List routing rules")
async def list_routing_rules(service: DirectoryService = Depends(get_directory_service)):
    return [RoutingRuleResponse.model_validate(r) for r in await service.list_routing_rules()]


@admin_router.post(
    "/routing-rules",
    response_model=RoutingRuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a routing rule",
    description="Stored for administration only; ticket routing uses issue type defaults."
)
async def create_routing_rule(dto: RoutingRuleCreateDTO, service: DirectoryService = Depends(get_directory_service)):
    return RoutingRuleResponse.model_validate(await service.create_routing_rule(dto))


@admin_router.delete("/routing-rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a routing rule")
async def delete_routing_rule(rule_id: str, service: DirectoryService = Depends(get_directory_service)):
    await service.delete_routing_rule(rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@admin_router.get("/sla-rules", response_model=List[SLARuleResponse], summary="List SLA rules")
async def list_sla_rules(service: DirectoryService = Depends(get_directory_service)):
    return [SLARuleResponse.model_validate(r) for r in await service.list_sla_rules()]


@admin_router.post(
    "/sla-rules",
    response_model=SLARuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an SLA rule",
    description="Stored for administration only; SLA due times use issue type defaults."
)
async def create_sla_rule(dto: SLARuleCreateDTO, service: DirectoryService = Depends(get_directory_service)):
    return SLARuleResponse.model_validate(await service.create_sla_rule(dto))


@admin_router.delete("/sla-rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete an SLA rule")
async def delete_sla_rule(rule_id: str, service: DirectoryService = Depends(get_directory_service)):
    await service.delete_sla_rule(rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
