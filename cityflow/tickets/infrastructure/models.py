"""
Ticket Infrastructure Models
=============================

SQLAlchemy ORM models for tickets, groups, comments and attachments.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cityflow.config import GroupStatus, Priority, SLAStatus, TicketStatus
from cityflow.infrastructure.database import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TicketGroupModel(Base):
    """Maps to the 'ticket_groups' table."""
    __tablename__ = "ticket_groups"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    issue_type_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("issue_types.id"), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    assigned_to: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("profiles.id"), nullable=True)
    sla_due_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=GroupStatus.ACTIVE.value, index=True)
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("profiles.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class TicketModel(Base):
    """
    Maps to the 'tickets' table.

    Routing columns and sla_due_at are written once at creation.
    """
    __tablename__ = "tickets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticket_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)

    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    issue_type_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("issue_types.id"), nullable=False)
    supplier_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    supplier_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    city: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    region_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("regions.id"), nullable=False, index=True)

    priority: Mapped[str] = mapped_column(String(20), nullable=False, default=Priority.NORMAL.value)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TicketStatus.NEW.value, index=True)

    # Tier-1 / tier-2 routing
    assigned_to: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("profiles.id"), nullable=True)
    team_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("teams.id"), nullable=True)
    tier2_team_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("teams.id"), nullable=True)

    # SLA
    sla_due_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_status: Mapped[str] = mapped_column(String(20), nullable=False, default=SLAStatus.ON_TRACK.value)

    ticket_group_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("ticket_groups.id"), nullable=True, index=True)
    is_escalated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    escalated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_by: Mapped[UUID] = mapped_column(Uuid, ForeignKey("profiles.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("profiles.id"), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_tickets_open_due", "status", "sla_due_at"),
    )


class CommentModel(Base):
    """Maps to the 'comments' table."""
    __tablename__ = "comments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticket_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("profiles.id"), nullable=False)
    parent_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("comments.id"), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class AttachmentModel(Base):
    """Maps to the 'attachments' table."""
    __tablename__ = "attachments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticket_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    comment_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("comments.id"), nullable=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    storage_path: Mapped[str] = mapped_column(String(512), nullable=False)
    file_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    uploaded_by: Mapped[UUID] = mapped_column(Uuid, ForeignKey("profiles.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
