"""
Directory Application DTOs
===========================

Pydantic models for the admin API of the reference tables.
"""

from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StringConstraints, field_validator

from cityflow.config import Priority, TeamType, UserRole


TeamTypeStr = Literal["functional", "city_team", "custom"]
PriorityStr = Literal["low", "normal", "high", "critical"]
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]


# ========== Request DTOs ==========

class RegionCreateDTO(BaseModel):
    name: Name
    manager_id: Optional[str] = None


class RegionUpdateDTO(BaseModel):
    name: Optional[Name] = None
    manager_id: Optional[str] = None


class CityMappingCreateDTO(BaseModel):
    city_name: str = Field(..., min_length=1, max_length=120)
    region_id: str = Field(..., min_length=1)

    @field_validator("city_name")
    @classmethod
    def collapse_whitespace(cls, v: str) -> str:
        v = " ".join(v.split())
        if not v:
            raise ValueError("City name is required")
        return v


class CityMappingUpdateDTO(BaseModel):
    city_name: Optional[str] = Field(None, min_length=1, max_length=120)
    region_id: Optional[str] = None

    @field_validator("city_name")
    @classmethod
    def collapse_whitespace(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = " ".join(v.split())
        if not v:
            raise ValueError("City name is required")
        return v


class TeamCreateDTO(BaseModel):
    name: Name
    team_type: TeamTypeStr = "functional"
    region_id: Optional[str] = None


class TeamUpdateDTO(BaseModel):
    name: Optional[Name] = None
    team_type: Optional[TeamTypeStr] = None
    region_id: Optional[str] = None


class IssueTypeCreateDTO(BaseModel):
    name: Name
    icon: Optional[str] = Field(None, max_length=16)
    default_sla_hours: StrictInt = Field(..., gt=0, description="Whole hours, positive")
    default_team_id: Optional[str] = None
    default_assignee_id: Optional[str] = None


class IssueTypeUpdateDTO(BaseModel):
    name: Optional[Name] = None
    icon: Optional[str] = Field(None, max_length=16)
    default_sla_hours: Optional[StrictInt] = Field(None, gt=0)
    default_team_id: Optional[str] = None
    default_assignee_id: Optional[str] = None


class RoutingRuleCreateDTO(BaseModel):
    issue_type_id: str
    region_id: str
    team_id: Optional[str] = None
    assignee_id: Optional[str] = None


class SLARuleCreateDTO(BaseModel):
    issue_type_id: str
    priority: PriorityStr
    sla_hours: StrictInt = Field(..., gt=0)
    escalation_threshold_percent: StrictInt = Field(80, ge=1, le=100)


# ========== Response DTOs ==========

class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: str
    email: Optional[str] = None
    role: UserRole
    region_id: Optional[str] = None
    team_id: Optional[str] = None
    is_active: bool = True


class RegionResponse(BaseModel):
    id: str
    name: str
    manager_id: Optional[str] = None
    manager_name: str
    city_count: int = 0


class CityMappingResponse(BaseModel):
    id: str
    city_name: str
    region_id: str
    region_name: Optional[str] = None


class TeamResponse(BaseModel):
    id: str
    name: str
    team_type: TeamType
    region_id: Optional[str] = None
    region_name: Optional[str] = None
    is_active: bool = True


class IssueTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    icon: Optional[str] = None
    default_sla_hours: int
    default_team_id: Optional[str] = None
    default_assignee_id: Optional[str] = None
    is_active: bool = True


class RoutingRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issue_type_id: str
    region_id: str
    team_id: Optional[str] = None
    assignee_id: Optional[str] = None
    is_active: bool = True


class SLARuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issue_type_id: str
    priority: Priority
    sla_hours: int
    escalation_threshold_percent: int
    is_active: bool = True
