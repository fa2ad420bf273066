"""
Directory Application Layer
============================

Contains:
- Services: admin maintenance of the reference tables
- DTOs: request/response models for the admin API
"""

from cityflow.directory.application.dto import (
    RegionCreateDTO,
    RegionUpdateDTO,
    CityMappingCreateDTO,
    CityMappingUpdateDTO,
    TeamCreateDTO,
    TeamUpdateDTO,
    IssueTypeCreateDTO,
    IssueTypeUpdateDTO,
    RoutingRuleCreateDTO,
    SLARuleCreateDTO,
    ProfileResponse,
    RegionResponse,
    CityMappingResponse,
    TeamResponse,
    IssueTypeResponse,
    RoutingRuleResponse,
    SLARuleResponse,
)
from cityflow.directory.application.services import (
    DirectoryService,
    IDirectoryRepository,
    NO_MANAGER,
)

__all__ = [
    # DTOs
    "RegionCreateDTO",
    "RegionUpdateDTO",
    "CityMappingCreateDTO",
    "CityMappingUpdateDTO",
    "TeamCreateDTO",
    "TeamUpdateDTO",
    "IssueTypeCreateDTO",
    "IssueTypeUpdateDTO",
    "RoutingRuleCreateDTO",
    "SLARuleCreateDTO",
    "ProfileResponse",
    "RegionResponse",
    "CityMappingResponse",
    "TeamResponse",
    "IssueTypeResponse",
    "RoutingRuleResponse",
    "SLARuleResponse",
    # Services
    "DirectoryService",
    "IDirectoryRepository",
    "NO_MANAGER",
]
