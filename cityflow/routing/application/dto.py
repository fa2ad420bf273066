"""
Routing DTOs
============
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AssignmentPreviewRequest(BaseModel):
    issue_type_id: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1, max_length=120)


class AssignmentResponse(BaseModel):
    """Routing shown on the create-ticket form."""
    model_config = ConfigDict(from_attributes=True)

    issue_type_id: str
    city: str
    region_id: str
    region_name: str
    manager_name: str
    assignee_id: Optional[str] = None
    assignee_name: str
    team_id: Optional[str] = None
    team_name: str
    tier2_team_id: Optional[str] = None
    tier2_team_name: Optional[str] = None
    sla_hours: int
    sla_due_at: datetime


class AssignmentPreviewResponse(BaseModel):
    routable: bool
    preview: Optional[AssignmentResponse] = None
    message: Optional[str] = None
