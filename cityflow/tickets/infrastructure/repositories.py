"""
Ticket Infrastructure Repositories
===================================

SQLAlchemy implementations of the ticket, group, comment and attachment
repository interfaces.
"""

from datetime import datetime
from typing import Iterable, List, Optional
from uuid import uuid4

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError

from cityflow.config import COMPLETED_STATUSES, GroupStatus, Priority, SLAStatus, TicketStatus
from cityflow.core import RepositoryException
from cityflow.shared.infrastructure.repository import SQLAlchemyRepository, from_uuid, to_uuid
from cityflow.tickets.application.services import (
    IAttachmentRepository,
    ICommentRepository,
    ITicketGroupRepository,
    ITicketRepository,
)
from cityflow.tickets.domain import Attachment, Comment, Ticket, TicketFilter, TicketGroup
from cityflow.tickets.infrastructure.models import (
    AttachmentModel,
    CommentModel,
    TicketGroupModel,
    TicketModel,
)

_COMPLETED = [s.value for s in COMPLETED_STATUSES]


# ========== Row <-> entity mapping ==========

def _ticket(m: TicketModel) -> Ticket:
    return Ticket(
        id=str(m.id),
        ticket_number=m.ticket_number,
        subject=m.subject,
        description=m.description or "",
        issue_type_id=str(m.issue_type_id),
        supplier_name=m.supplier_name,
        supplier_id=m.supplier_id,
        city=m.city,
        region_id=str(m.region_id),
        priority=Priority(m.priority),
        status=TicketStatus(m.status),
        assigned_to=from_uuid(m.assigned_to),
        team_id=from_uuid(m.team_id),
        tier2_team_id=from_uuid(m.tier2_team_id),
        sla_due_at=m.sla_due_at,
        sla_status=SLAStatus(m.sla_status),
        ticket_group_id=from_uuid(m.ticket_group_id),
        is_escalated=m.is_escalated,
        escalated_at=m.escalated_at,
        resolved_at=m.resolved_at,
        resolved_by=from_uuid(m.resolved_by),
        closed_at=m.closed_at,
        created_by=str(m.created_by),
        created_at=m.created_at,
        updated_at=m.updated_at
    )


def _ticket_values(t: Ticket) -> dict:
    return {
        "ticket_number": t.ticket_number,
        "subject": t.subject,
        "description": t.description,
        "issue_type_id": to_uuid(t.issue_type_id),
        "supplier_name": t.supplier_name,
        "supplier_id": t.supplier_id,
        "city": t.city,
        "region_id": to_uuid(t.region_id),
        "priority": t.priority.value,
        "status": t.status.value,
        "assigned_to": to_uuid(t.assigned_to),
        "team_id": to_uuid(t.team_id),
        "tier2_team_id": to_uuid(t.tier2_team_id),
        "sla_due_at": t.sla_due_at,
        "sla_status": t.sla_status.value,
        "ticket_group_id": to_uuid(t.ticket_group_id),
        "is_escalated": t.is_escalated,
        "escalated_at": t.escalated_at,
        "resolved_at": t.resolved_at,
        "resolved_by": to_uuid(t.resolved_by),
        "closed_at": t.closed_at,
        "created_by": to_uuid(t.created_by),
        "created_at": t.created_at,
        "updated_at": t.updated_at,
    }


def _group(m: TicketGroupModel) -> TicketGroup:
    return TicketGroup(
        id=str(m.id),
        name=m.name,
        issue_type_id=from_uuid(m.issue_type_id),
        city=m.city,
        assigned_to=from_uuid(m.assigned_to),
        sla_due_at=m.sla_due_at,
        status=GroupStatus(m.status),
        created_by=from_uuid(m.created_by),
        created_at=m.created_at,
        resolved_at=m.resolved_at
    )


def _comment(m: CommentModel) -> Comment:
    return Comment(
        id=str(m.id),
        ticket_id=str(m.ticket_id),
        user_id=str(m.user_id),
        content=m.content,
        parent_id=from_uuid(m.parent_id),
        is_internal=m.is_internal,
        created_at=m.created_at
    )


def _attachment(m: AttachmentModel) -> Attachment:
    return Attachment(
        id=str(m.id),
        ticket_id=str(m.ticket_id),
        comment_id=from_uuid(m.comment_id),
        file_name=m.file_name,
        file_type=m.file_type,
        file_size=m.file_size,
        storage_path=m.storage_path,
        file_url=m.file_url,
        uploaded_by=str(m.uploaded_by),
        created_at=m.created_at
    )


# ========== Repositories ==========

class SQLAlchemyTicketRepository(SQLAlchemyRepository, ITicketRepository):
    """Ticket persistence using async SQLAlchemy."""

    async def get(self, ticket_id: str) -> Optional[Ticket]:
        model = await self._get(TicketModel, ticket_id)
        return _ticket(model) if model else None

    async def get_many(self, ticket_ids: Iterable[str]) -> List[Ticket]:
        keys = [k for k in (to_uuid(i) for i in ticket_ids) if k is not None]
        if not keys:
            return []
        models = await self._all(select(TicketModel).where(TicketModel.id.in_(keys)))
        return [_ticket(m) for m in models]

    async def list(self, filters: TicketFilter) -> List[Ticket]:
        stmt = select(TicketModel).order_by(TicketModel.created_at.desc())

        if filters.status is not None:
            stmt = stmt.where(TicketModel.status == TicketStatus(filters.status).value)
        if filters.priority is not None:
            stmt = stmt.where(TicketModel.priority == Priority(filters.priority).value)
        if filters.city:
            stmt = stmt.where(TicketModel.city == filters.city)
        if filters.team_id:
            stmt = stmt.where(TicketModel.team_id == to_uuid(filters.team_id))
        if filters.issue_type_id:
            stmt = stmt.where(TicketModel.issue_type_id == to_uuid(filters.issue_type_id))
        if filters.region_id:
            stmt = stmt.where(TicketModel.region_id == to_uuid(filters.region_id))
        if filters.ticket_group_id:
            stmt = stmt.where(TicketModel.ticket_group_id == to_uuid(filters.ticket_group_id))
        if filters.search:
            pattern = f"%{filters.search}%"
            stmt = stmt.where(or_(
                TicketModel.subject.ilike(pattern),
                TicketModel.ticket_number.ilike(pattern),
                TicketModel.supplier_name.ilike(pattern),
            ))

        return [_ticket(m) for m in await self._all(stmt.limit(filters.limit))]

    async def list_open_with_due_date(self) -> List[Ticket]:
        stmt = select(TicketModel).where(
            TicketModel.status.not_in(_COMPLETED),
            TicketModel.sla_due_at.is_not(None),
        )
        return [_ticket(m) for m in await self._all(stmt)]

    async def list_by_group(self, group_id: str) -> List[Ticket]:
        key = to_uuid(group_id)
        if key is None:
            return []
        stmt = (
            select(TicketModel)
            .where(TicketModel.ticket_group_id == key)
            .order_by(TicketModel.created_at.desc())
        )
        return [_ticket(m) for m in await self._all(stmt)]

    async def list_created_since(
        self,
        since: Optional[datetime],
        region_id: Optional[str] = None
    ) -> List[Ticket]:
        stmt = select(TicketModel).order_by(TicketModel.created_at)
        if since is not None:
            stmt = stmt.where(TicketModel.created_at >= since)
        if region_id:
            stmt = stmt.where(TicketModel.region_id == to_uuid(region_id))
        return [_ticket(m) for m in await self._all(stmt)]

    async def save(self, ticket: Ticket) -> Ticket:
        return _ticket(await self._upsert(TicketModel, ticket.id, _ticket_values(ticket)))


class SQLAlchemyTicketGroupRepository(SQLAlchemyRepository, ITicketGroupRepository):
    """Ticket group persistence."""

    async def get(self, group_id: str) -> Optional[TicketGroup]:
        model = await self._get(TicketGroupModel, group_id)
        return _group(model) if model else None

    async def list(self, status: Optional[GroupStatus] = None) -> List[TicketGroup]:
        stmt = select(TicketGroupModel).order_by(TicketGroupModel.name)
        if status is not None:
            stmt = stmt.where(TicketGroupModel.status == GroupStatus(status).value)
        return [_group(m) for m in await self._all(stmt)]

    async def save(self, group: TicketGroup) -> TicketGroup:
        model = await self._upsert(TicketGroupModel, group.id, {
            "name": group.name,
            "issue_type_id": to_uuid(group.issue_type_id),
            "city": group.city,
            "assigned_to": to_uuid(group.assigned_to),
            "sla_due_at": group.sla_due_at,
            "status": group.status.value,
            "created_by": to_uuid(group.created_by),
            "created_at": group.created_at,
            "resolved_at": group.resolved_at,
        })
        return _group(model)


class SQLAlchemyCommentRepository(SQLAlchemyRepository, ICommentRepository):
    """Comment persistence."""

    async def get(self, comment_id: str) -> Optional[Comment]:
        model = await self._get(CommentModel, comment_id)
        return _comment(model) if model else None

    async def list_for_ticket(self, ticket_id: str) -> List[Comment]:
        key = to_uuid(ticket_id)
        if key is None:
            return []
        stmt = (
            select(CommentModel)
            .where(CommentModel.ticket_id == key)
            .order_by(CommentModel.created_at)
        )
        return [_comment(m) for m in await self._all(stmt)]

    async def save(self, comment: Comment) -> Comment:
        model = await self._upsert(CommentModel, comment.id, {
            "ticket_id": to_uuid(comment.ticket_id),
            "user_id": to_uuid(comment.user_id),
            "parent_id": to_uuid(comment.parent_id),
            "content": comment.content,
            "is_internal": comment.is_internal,
            "created_at": comment.created_at,
        })
        return _comment(model)


class SQLAlchemyAttachmentRepository(SQLAlchemyRepository, IAttachmentRepository):
    """
    Attachment metadata persistence.

    Inserts run inside a savepoint, so a failed insert rolls back only
    itself and the ticket written earlier in the request survives.
    """

    async def list_for_ticket(self, ticket_id: str) -> List[Attachment]:
        key = to_uuid(ticket_id)
        if key is None:
            return []
        stmt = (
            select(AttachmentModel)
            .where(AttachmentModel.ticket_id == key)
            .order_by(AttachmentModel.created_at)
        )
        return [_attachment(m) for m in await self._all(stmt)]

    async def save(self, attachment: Attachment) -> Attachment:
        model = AttachmentModel(
            id=uuid4(),
            ticket_id=to_uuid(attachment.ticket_id),
            comment_id=to_uuid(attachment.comment_id),
            file_name=attachment.file_name,
            file_type=attachment.file_type,
            file_size=attachment.file_size,
            storage_path=attachment.storage_path,
            file_url=attachment.file_url,
            uploaded_by=to_uuid(attachment.uploaded_by),
            created_at=attachment.created_at
        )
        try:
            async with self._session.begin_nested():
                self._session.add(model)
                await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException(
                f"Failed to save attachment metadata: {e}",
                {"storage_path": attachment.storage_path}
            )
        return _attachment(model)
