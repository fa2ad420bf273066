"""
Ticket Domain Entities
=======================

Tickets, ticket groups, comments and attachments.

A ticket's routing and SLA due time are fixed when it is created; only the
SLA status moves afterwards, and only as a function of (sla_due_at, now,
status).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from cityflow.config import (
    COMPLETED_STATUSES,
    GroupStatus,
    Priority,
    SLAStatus,
    TicketStatus,
)
from cityflow.sla.domain import SLAClock, SLAReading


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_ticket_number(now: Optional[datetime] = None) -> str:
    """Human readable ticket number, e.g. TKT-250314-9F1C2A."""
    now = now or utc_now()
    return f"TKT-{now:%y%m%d}-{uuid4().hex[:6].upper()}"


@dataclass
class Ticket:
    """
    A supplier issue raised by staff.

    Tier-1 is (assigned_to, team_id); tier-2 is the region's city team.
    """
    id: str
    ticket_number: str
    subject: str
    issue_type_id: str
    city: str
    region_id: str
    created_by: str
    description: str = ""
    supplier_name: Optional[str] = None
    supplier_id: Optional[str] = None
    priority: Priority = Priority.NORMAL
    status: TicketStatus = TicketStatus.NEW
    assigned_to: Optional[str] = None
    team_id: Optional[str] = None
    tier2_team_id: Optional[str] = None
    sla_due_at: Optional[datetime] = None
    sla_status: SLAStatus = SLAStatus.ON_TRACK
    ticket_group_id: Optional[str] = None
    is_escalated: bool = False
    escalated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    closed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def is_completed(self) -> bool:
        return self.status in COMPLETED_STATUSES

    def sla_reading(self, now: datetime) -> Optional[SLAReading]:
        """Live SLA reading; "Completed" once resolved or closed."""
        return SLAClock.evaluate_optional(self.sla_due_at, now, self.status)

    def refresh_sla_status(self, now: datetime) -> bool:
        """
        Recompute sla_status for an open ticket.

        Completed tickets keep the status they had when they were completed.
        Returns True if the stored value changed.
        """
        if self.is_completed or self.sla_due_at is None:
            return False
        new_status = SLAClock.status_for(self.sla_due_at, now)
        if new_status == self.sla_status:
            return False
        self.sla_status = new_status
        return True

    def change_status(self, status: TicketStatus, user_id: str, now: datetime) -> None:
        """
        Move to a new status, keeping the completion timestamps consistent.

        Completing an open ticket freezes sla_status at the clock reading of
        that moment and stamps resolved_at/resolved_by; completed to completed
        moves keep both. Reopening clears resolved/closed stamps and restarts
        live SLA evaluation against the original due time.
        """
        if status in COMPLETED_STATUSES and not self.is_completed:
            if self.sla_due_at is not None:
                self.sla_status = SLAClock.status_for(self.sla_due_at, now)
            self.resolved_at = now
            self.resolved_by = user_id

        if status == TicketStatus.RESOLVED:
            self.closed_at = None
        elif status == TicketStatus.CLOSED:
            if self.closed_at is None:
                self.closed_at = now
            if self.resolved_at is None:
                self.resolved_at = now
                self.resolved_by = user_id
        else:
            self.resolved_at = None
            self.resolved_by = None
            self.closed_at = None

        self.status = status
        self.updated_at = now
        self.refresh_sla_status(now)

    def reassign(self, now: datetime, team_id: Optional[str] = None, user_id: Optional[str] = None) -> None:
        if team_id is not None:
            self.team_id = team_id
        if user_id is not None:
            self.assigned_to = user_id
            if self.status == TicketStatus.NEW:
                self.status = TicketStatus.ASSIGNED
        self.updated_at = now

    def escalate(self, now: datetime) -> bool:
        """Flag for tier-2 attention. Returns False if already escalated."""
        if self.is_escalated:
            return False
        self.is_escalated = True
        self.escalated_at = now
        self.updated_at = now
        return True


@dataclass
class TicketGroup:
    """Tickets bundled for bulk resolution, usually sharing issue type and city."""
    id: str
    name: str
    issue_type_id: Optional[str] = None
    city: Optional[str] = None
    assigned_to: Optional[str] = None
    sla_due_at: Optional[datetime] = None
    status: GroupStatus = GroupStatus.ACTIVE
    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    resolved_at: Optional[datetime] = None

    def sla_reading(self, now: datetime) -> Optional[SLAReading]:
        return SLAClock.evaluate_optional(self.sla_due_at, now, self.status)

    def resolve_if_done(self, members: List[Ticket], now: datetime) -> bool:
        """Mark resolved once no member ticket is open."""
        if self.status == GroupStatus.RESOLVED:
            return False
        if any(not t.is_completed for t in members):
            return False
        self.status = GroupStatus.RESOLVED
        self.resolved_at = now
        return True


@dataclass
class Comment:
    """Reply or internal note on a ticket; parent_id threads replies."""
    id: str
    ticket_id: str
    user_id: str
    content: str
    parent_id: Optional[str] = None
    is_internal: bool = False
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class Attachment:
    """Metadata for a file held in object storage."""
    id: str
    ticket_id: str
    file_name: str
    storage_path: str
    file_url: str
    uploaded_by: str
    file_type: Optional[str] = None
    file_size: int = 0
    comment_id: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class TicketFilter:
    """Inbox filters; None means "All"."""
    status: Optional[TicketStatus] = None
    priority: Optional[Priority] = None
    city: Optional[str] = None
    team_id: Optional[str] = None
    issue_type_id: Optional[str] = None
    region_id: Optional[str] = None
    ticket_group_id: Optional[str] = None
    search: Optional[str] = None
    limit: int = 200

    def matches_search(self, ticket: Ticket) -> bool:
        """Case-insensitive match on subject, ticket number or supplier name."""
        if not self.search:
            return True
        needle = self.search.lower()
        return any(
            needle in (value or "").lower()
            for value in (ticket.subject, ticket.ticket_number, ticket.supplier_name)
        )
