"""
Ticket Application DTOs
========================

Pydantic models for the ticket and group API.

Request bodies are validated here; responses are built from domain
entities, never from raw rows.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cityflow.config import GroupStatus, Priority, SLAStatus, TicketStatus
from cityflow.routing.application import AssignmentResponse


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["low", "normal", "high", "critical"]
TicketStatusStr = Literal["new", "assigned", "in_progress", "pending", "resolved", "closed"]


# ========== Request DTOs ==========

class TicketCreateDTO(BaseModel):
    """DTO for creating a ticket. Routing comes from issue type and city."""
    issue_type_id: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1, max_length=120)
    subject: str = Field(..., min_length=1, max_length=255)
    description: str = Field(default="", max_length=10000)
    supplier_name: Optional[str] = Field(None, max_length=255)
    supplier_id: Optional[str] = None
    priority: PriorityStr = "normal"

    @field_validator("city", "subject")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class StatusUpdateDTO(BaseModel):
    status: TicketStatusStr


class ResolveDTO(BaseModel):
    resolution_note: Optional[str] = Field(None, max_length=10000)
    close: bool = Field(default=False, description="Close instead of resolve")


class ReassignDTO(BaseModel):
    """Reassign to a team, a user, or both."""
    team_id: Optional[str] = None
    user_id: Optional[str] = None

    @model_validator(mode="after")
    def require_target(self) -> "ReassignDTO":
        if not self.team_id and not self.user_id:
            raise ValueError("team_id or user_id is required")
        return self


class EscalateDTO(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class CommentCreateDTO(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)
    is_internal: bool = False
    parent_id: Optional[str] = None

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment cannot be empty")
        return v


class BulkTicketsDTO(BaseModel):
    ticket_ids: List[str] = Field(..., min_length=1, max_length=500)


class BulkResolveDTO(BulkTicketsDTO):
    resolution_note: Optional[str] = Field(None, max_length=10000)


class BulkReassignDTO(BulkTicketsDTO, ReassignDTO):
    pass


class BulkEscalateDTO(BulkTicketsDTO):
    reason: Optional[str] = Field(None, max_length=2000)


class BulkReplyDTO(BulkTicketsDTO):
    content: str = Field(..., min_length=1, max_length=10000)
    is_internal: bool = False


class BulkGroupDTO(BulkTicketsDTO):
    """Add tickets to an existing group, or to a new one named group_name."""
    group_id: Optional[str] = None
    group_name: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def require_group(self) -> "BulkGroupDTO":
        if not self.group_id and not (self.group_name and self.group_name.strip()):
            raise ValueError("Group name is required")
        return self


class GroupCreateDTO(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    issue_type_id: Optional[str] = None
    city: Optional[str] = Field(None, max_length=120)
    assigned_to: Optional[str] = None
    ticket_ids: List[str] = Field(default_factory=list)


class GroupResolveDTO(BaseModel):
    """Resolve selected member tickets, or all open members when omitted."""
    ticket_ids: Optional[List[str]] = None
    resolution_note: Optional[str] = Field(None, max_length=10000)
    close: bool = False


# ========== Response DTOs ==========

class SLAReadingResponse(BaseModel):
    due_at: Optional[datetime] = None
    status: Optional[SLAStatus] = None
    label: str
    remaining_seconds: float
    completed: bool = False


class TicketResponse(BaseModel):
    """Ticket as shown in the inbox."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_number: str
    subject: str
    description: str = ""
    issue_type_id: str
    supplier_name: Optional[str] = None
    supplier_id: Optional[str] = None
    city: str
    region_id: str
    priority: Priority
    status: TicketStatus
    assigned_to: Optional[str] = None
    team_id: Optional[str] = None
    tier2_team_id: Optional[str] = None
    sla_due_at: Optional[datetime] = None
    sla_status: SLAStatus
    ticket_group_id: Optional[str] = None
    is_escalated: bool = False
    escalated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    closed_at: Optional[datetime] = None
    created_by: str
    created_at: datetime
    updated_at: datetime
    sla: Optional[SLAReadingResponse] = None


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    user_id: str
    user_name: Optional[str] = None
    content: str
    parent_id: Optional[str] = None
    is_internal: bool = False
    created_at: datetime


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    comment_id: Optional[str] = None
    file_name: str
    file_type: Optional[str] = None
    file_size: int = 0
    file_url: str
    uploaded_by: str
    created_at: datetime


class AttachmentErrorResponse(BaseModel):
    file_name: str
    error: str


class TicketDetailResponse(BaseModel):
    ticket: TicketResponse
    issue_type_name: Optional[str] = None
    assignee_name: str
    team_name: str
    tier2_team_name: Optional[str] = None
    region_name: Optional[str] = None
    manager_name: Optional[str] = None
    comments: List[CommentResponse] = Field(default_factory=list)
    attachments: List[AttachmentResponse] = Field(default_factory=list)


class TicketCreatedResponse(BaseModel):
    ticket: TicketResponse
    assignment: AssignmentResponse
    attachments: List[AttachmentResponse] = Field(default_factory=list)
    attachment_errors: List[AttachmentErrorResponse] = Field(default_factory=list)


class TicketListResponse(BaseModel):
    tickets: List[TicketResponse]
    total_count: int
    region_id: Optional[str] = Field(None, description="Region the list is scoped to")


class BulkActionResponse(BaseModel):
    action: str
    updated: int
    ticket_ids: List[str]
    missing: List[str] = Field(default_factory=list)
    group_id: Optional[str] = None


class GroupResponse(BaseModel):
    id: str
    name: str
    issue_type_id: Optional[str] = None
    city: Optional[str] = None
    assigned_to: Optional[str] = None
    sla_due_at: Optional[datetime] = None
    status: GroupStatus
    created_at: datetime
    resolved_at: Optional[datetime] = None
    ticket_count: int = 0
    open_count: int = 0
    sla: Optional[SLAReadingResponse] = None


class GroupDetailResponse(BaseModel):
    group: GroupResponse
    tickets: List[TicketResponse]
