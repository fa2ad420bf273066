"""
Ticket Application Services
============================

Use cases for tickets, comments, attachments and ticket groups.

Failure handling follows one rule: a failure is local to the action that
triggered it. An unroutable city refuses the ticket before anything is
written; a failed attachment is reported next to the ticket it belongs to
and never undoes it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from cityflow.config import GroupStatus, Priority, TicketStatus, settings
from cityflow.core import (
    ApplicationException,
    ConfigurationException,
    RepositoryException,
    ResourceNotFoundException,
    ValidationException,
)
from cityflow.directory.application import IDirectoryRepository, NO_MANAGER
from cityflow.directory.domain import Profile
from cityflow.routing.application import AssignmentResponse, AssignmentService
from cityflow.routing.domain import AssignmentDecision, UNASSIGNED
from cityflow.shared.infrastructure.logging import get_logger
from cityflow.sla.domain import SLAClock, SLAReading
from cityflow.tickets.application.dto import (
    AttachmentErrorResponse,
    AttachmentResponse,
    BulkActionResponse,
    CommentCreateDTO,
    CommentResponse,
    GroupCreateDTO,
    GroupDetailResponse,
    GroupResolveDTO,
    GroupResponse,
    SLAReadingResponse,
    TicketCreateDTO,
    TicketCreatedResponse,
    TicketDetailResponse,
    TicketResponse,
)
from cityflow.tickets.domain import (
    Attachment,
    Comment,
    Ticket,
    TicketFilter,
    TicketGroup,
    generate_ticket_number,
    utc_now,
)

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket persistence."""

    @abstractmethod
    async def get(self, ticket_id: str) -> Optional[Ticket]:
        """Get a ticket by id."""

    @abstractmethod
    async def get_many(self, ticket_ids: Iterable[str]) -> List[Ticket]:
        """Get the tickets that exist among ticket_ids."""

    @abstractmethod
    async def list(self, filters: TicketFilter) -> List[Ticket]:
        """Tickets matching filters, newest first."""

    @abstractmethod
    async def list_open_with_due_date(self) -> List[Ticket]:
        """Open tickets that carry an SLA due time."""

    @abstractmethod
    async def list_by_group(self, group_id: str) -> List[Ticket]:
        """Member tickets of a group, newest first."""

    @abstractmethod
    async def list_created_since(
        self,
        since: Optional[datetime],
        region_id: Optional[str] = None
    ) -> List[Ticket]:
        """Tickets created at or after since (all when None), oldest first."""

    @abstractmethod
    async def save(self, ticket: Ticket) -> Ticket:
        """Insert (empty id) or update a ticket."""


class ITicketGroupRepository(ABC):
    """Interface for ticket group persistence."""

    @abstractmethod
    async def get(self, group_id: str) -> Optional[TicketGroup]:
        """Get a group by id."""

    @abstractmethod
    async def list(self, status: Optional[GroupStatus] = None) -> List[TicketGroup]:
        """Groups ordered by name, optionally by status."""

    @abstractmethod
    async def save(self, group: TicketGroup) -> TicketGroup:
        """Insert (empty id) or update a group."""


class ICommentRepository(ABC):
    """Interface for comment persistence."""

    @abstractmethod
    async def get(self, comment_id: str) -> Optional[Comment]:
        """Get a comment by id."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[Comment]:
        """Comments of a ticket, oldest first."""

    @abstractmethod
    async def save(self, comment: Comment) -> Comment:
        """Insert a comment."""


class IAttachmentRepository(ABC):
    """Interface for attachment metadata persistence."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[Attachment]:
        """Attachments of a ticket, oldest first."""

    @abstractmethod
    async def save(self, attachment: Attachment) -> Attachment:
        """
        Insert attachment metadata.

        Must not discard work already done in the surrounding transaction
        when it fails.
        """


class IObjectStorage(ABC):
    """Interface for binary attachment storage."""

    @abstractmethod
    async def upload(self, path: str, content: bytes, content_type: Optional[str] = None) -> None:
        """Store content at path. Raises ObjectStorageException."""

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Stable URL of a stored object."""


class IEscalationNotifier(ABC):
    """Interface for tier-2 escalation and SLA breach notifications."""

    @abstractmethod
    async def notify_escalation(
        self,
        ticket: Ticket,
        reason: Optional[str] = None,
        tier2_team_name: Optional[str] = None
    ) -> bool:
        """Notify about a manual escalation. Returns True if delivered."""

    @abstractmethod
    async def notify_breach(self, ticket: Ticket, reading: SLAReading) -> bool:
        """Notify that a ticket breached its SLA. Returns True if delivered."""


# ========== Application DTOs ==========

@dataclass
class AttachmentUpload:
    """A file received from the client, not yet stored."""
    file_name: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class EscalationNotice:
    """Escalation alert waiting for the request's changes to be committed."""
    ticket: Ticket
    reason: Optional[str] = None
    tier2_team_name: Optional[str] = None


@dataclass
class TicketCreationResult:
    """Outcome of creating a ticket together with its attachments."""
    ticket: Ticket
    assignment: AssignmentDecision
    attachments: List[Attachment] = field(default_factory=list)
    attachment_errors: List[Tuple[str, str]] = field(default_factory=list)


def sla_response(reading: Optional[SLAReading]) -> Optional[SLAReadingResponse]:
    if reading is None:
        return None
    return SLAReadingResponse.model_validate(reading, from_attributes=True)


def ticket_response(ticket: Ticket, now: datetime) -> TicketResponse:
    """Ticket DTO carrying its live SLA reading."""
    return TicketResponse.model_validate(ticket).model_copy(
        update={"sla": sla_response(ticket.sla_reading(now))}
    )


# ========== Application Service ==========

class TicketService:
    """
    Ticket, comment, attachment and group operations.

    Users with a region who are not super admins only see tickets of their
    own region.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        group_repository: ITicketGroupRepository,
        comment_repository: ICommentRepository,
        attachment_repository: IAttachmentRepository,
        directory_repository: IDirectoryRepository,
        storage: Optional[IObjectStorage] = None,
        notifier: Optional[IEscalationNotifier] = None,
        max_attachment_bytes: Optional[int] = None
    ):
        self._tickets = ticket_repository
        self._groups = group_repository
        self._comments = comment_repository
        self._attachments = attachment_repository
        self._directory = directory_repository
        self._storage = storage
        self._notifier = notifier
        self._outbox: List[EscalationNotice] = []
        self._assignment = AssignmentService(directory_repository)
        self._max_attachment_bytes = max_attachment_bytes or settings.max_attachment_bytes

    # ---------- Create ----------

    async def create_ticket(
        self,
        dto: TicketCreateDTO,
        user: Profile,
        uploads: Optional[List[AttachmentUpload]] = None,
        now: Optional[datetime] = None
    ) -> TicketCreationResult:
        """
        Route and persist a new ticket, then store its attachments.

        Raises:
            UnroutableTicketException: the city has no region; nothing written
            ResourceNotFoundException: unknown issue type
        """
        decision = await self._assignment.commit(dto.issue_type_id, dto.city, now)
        committed_at = decision.committed_at

        ticket = await self._tickets.save(
            Ticket(
                id="",
                ticket_number=generate_ticket_number(committed_at),
                subject=dto.subject,
                description=dto.description,
                issue_type_id=decision.issue_type_id,
                supplier_name=dto.supplier_name,
                supplier_id=dto.supplier_id,
                city=decision.city,
                region_id=decision.region_id,
                priority=Priority(dto.priority),
                status=TicketStatus.ASSIGNED if decision.assignee_id else TicketStatus.NEW,
                assigned_to=decision.assignee_id,
                team_id=decision.team_id,
                tier2_team_id=decision.tier2_team_id,
                sla_due_at=decision.sla_due_at,
                sla_status=SLAClock.status_for(decision.sla_due_at, committed_at),
                created_by=user.id,
                created_at=committed_at,
                updated_at=committed_at
            )
        )
        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.id,
                "ticket_number": ticket.ticket_number,
                "region_id": ticket.region_id,
                "status": ticket.status.value,
                "sla_due_at": ticket.sla_due_at.isoformat()
            }
        )

        result = TicketCreationResult(ticket=ticket, assignment=decision)
        for upload in uploads or []:
            try:
                attachment = await self.add_attachment(ticket.id, upload, user, now=committed_at)
            except ApplicationException as e:
                result.attachment_errors.append((upload.file_name, e.message))
                logger.warning(
                    "Attachment failed; ticket kept",
                    extra={"ticket_id": ticket.id, "file_name": upload.file_name, "error": e.message}
                )
            else:
                result.attachments.append(attachment)
        return result

    def creation_response(self, result: TicketCreationResult) -> TicketCreatedResponse:
        return TicketCreatedResponse(
            ticket=ticket_response(result.ticket, result.assignment.committed_at),
            assignment=AssignmentResponse.model_validate(result.assignment),
            attachments=[AttachmentResponse.model_validate(a) for a in result.attachments],
            attachment_errors=[
                AttachmentErrorResponse(file_name=name, error=error)
                for name, error in result.attachment_errors
            ]
        )

    # ---------- Read ----------

    async def get_ticket(self, ticket_id: str, user: Profile) -> Ticket:
        ticket = await self._tickets.get(ticket_id)
        if ticket is None or not self._can_see(user, ticket):
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def get_ticket_detail(
        self,
        ticket_id: str,
        user: Profile,
        now: Optional[datetime] = None
    ) -> TicketDetailResponse:
        """Ticket with live SLA reading, display names, comments and attachments."""
        now = now or utc_now()
        ticket = await self.get_ticket(ticket_id, user)

        issue_type = await self._directory.get_issue_type(ticket.issue_type_id)
        region = await self._directory.get_region(ticket.region_id)
        manager = (
            await self._directory.get_profile(region.manager_id)
            if region and region.manager_id else None
        )
        comments = await self._comments.list_for_ticket(ticket.id)
        attachments = await self._attachments.list_for_ticket(ticket.id)

        names = await self._profile_names(
            [ticket.assigned_to] + [c.user_id for c in comments]
        )
        team_names = await self._team_names([ticket.team_id, ticket.tier2_team_id])

        return TicketDetailResponse(
            ticket=ticket_response(ticket, now),
            issue_type_name=issue_type.name if issue_type else None,
            assignee_name=names.get(ticket.assigned_to, UNASSIGNED),
            team_name=team_names.get(ticket.team_id, UNASSIGNED),
            tier2_team_name=team_names.get(ticket.tier2_team_id),
            region_name=region.name if region else None,
            manager_name=manager.full_name if manager and manager.is_active else NO_MANAGER,
            comments=[
                CommentResponse.model_validate(c).model_copy(
                    update={"user_name": names.get(c.user_id)}
                )
                for c in comments
            ],
            attachments=[AttachmentResponse.model_validate(a) for a in attachments]
        )

    async def list_tickets(self, user: Profile, filters: TicketFilter) -> Tuple[List[Ticket], Optional[str]]:
        """
        Inbox listing, newest first.

        Returns the tickets and the region the listing was scoped to.
        """
        scope = self.region_scope(user)
        if scope is not None:
            filters.region_id = scope
        tickets = await self._tickets.list(filters)
        return [t for t in tickets if filters.matches_search(t)], scope

    @staticmethod
    def region_scope(user: Profile) -> Optional[str]:
        if user.is_super_admin or not user.region_id:
            return None
        return user.region_id

    def _can_see(self, user: Profile, ticket: Ticket) -> bool:
        scope = self.region_scope(user)
        return scope is None or ticket.region_id == scope

    # ---------- Single-ticket updates ----------

    async def change_status(
        self,
        ticket_id: str,
        status: TicketStatus,
        user: Profile,
        now: Optional[datetime] = None
    ) -> Ticket:
        now = now or utc_now()
        ticket = await self.get_ticket(ticket_id, user)
        previous = ticket.status

        ticket.change_status(TicketStatus(status), user.id, now)
        ticket = await self._tickets.save(ticket)
        logger.info(
            "Ticket status changed",
            extra={"ticket_id": ticket.id, "from": previous.value, "to": ticket.status.value}
        )
        if ticket.ticket_group_id:
            await self._sync_groups([ticket.ticket_group_id], now)
        return ticket

    async def resolve_ticket(
        self,
        ticket_id: str,
        user: Profile,
        resolution_note: Optional[str] = None,
        close: bool = False,
        now: Optional[datetime] = None
    ) -> Ticket:
        now = now or utc_now()
        target = TicketStatus.CLOSED if close else TicketStatus.RESOLVED
        ticket = await self.change_status(ticket_id, target, user, now)
        if resolution_note and resolution_note.strip():
            await self._comments.save(
                Comment(
                    id="",
                    ticket_id=ticket.id,
                    user_id=user.id,
                    content=resolution_note.strip(),
                    created_at=now
                )
            )
        return ticket

    async def reassign_ticket(
        self,
        ticket_id: str,
        user: Profile,
        team_id: Optional[str] = None,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Ticket:
        now = now or utc_now()
        await self._check_reassign_target(team_id, user_id)
        ticket = await self.get_ticket(ticket_id, user)
        ticket.reassign(now, team_id=team_id, user_id=user_id)
        ticket = await self._tickets.save(ticket)
        logger.info(
            "Ticket reassigned",
            extra={"ticket_id": ticket.id, "team_id": team_id, "assigned_to": user_id}
        )
        return ticket

    async def escalate_ticket(
        self,
        ticket_id: str,
        user: Profile,
        reason: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Ticket:
        """Flag the ticket and queue the alert for its tier-2 city team."""
        now = now or utc_now()
        ticket = await self.get_ticket(ticket_id, user)
        if not ticket.escalate(now):
            return ticket
        ticket = await self._tickets.save(ticket)
        logger.info(
            "Ticket escalated",
            extra={"ticket_id": ticket.id, "tier2_team_id": ticket.tier2_team_id}
        )
        await self._queue_escalation(ticket, reason)
        return ticket

    @property
    def pending_notifications(self) -> List[EscalationNotice]:
        return list(self._outbox)

    async def deliver_pending_notifications(self) -> int:
        """
        Send queued escalation alerts to the tier-2 channel.

        Call once the request's changes are committed. Returns the number
        delivered; a failing notification is logged and never undoes the
        escalation.
        """
        pending, self._outbox = self._outbox, []
        if self._notifier is None:
            return 0

        delivered = 0
        for notice in pending:
            try:
                sent = await self._notifier.notify_escalation(
                    notice.ticket, notice.reason, notice.tier2_team_name
                )
            except Exception as e:
                logger.error(
                    "Escalation notification failed",
                    extra={"ticket_id": notice.ticket.id, "error": str(e)}
                )
                continue
            if sent:
                delivered += 1
            else:
                logger.warning("Escalation notification not delivered", extra={"ticket_id": notice.ticket.id})
        return delivered

    # ---------- Comments ----------

    async def add_comment(
        self,
        ticket_id: str,
        dto: CommentCreateDTO,
        user: Profile,
        now: Optional[datetime] = None
    ) -> Comment:
        ticket = await self.get_ticket(ticket_id, user)
        if dto.parent_id:
            parent = await self._comments.get(dto.parent_id)
            if parent is None or parent.ticket_id != ticket.id:
                raise ResourceNotFoundException("Comment", dto.parent_id)

        return await self._comments.save(
            Comment(
                id="",
                ticket_id=ticket.id,
                user_id=user.id,
                content=dto.content,
                parent_id=dto.parent_id,
                is_internal=dto.is_internal,
                created_at=now or utc_now()
            )
        )

    # ---------- Attachments ----------

    async def add_attachment(
        self,
        ticket_id: str,
        upload: AttachmentUpload,
        user: Profile,
        comment_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Attachment:
        """
        Store a file, then record its metadata.

        The two steps are not atomic. When the metadata insert fails the
        uploaded object stays in storage; it is logged with its path for
        reconciliation.
        """
        if self._storage is None:
            raise ConfigurationException("Object storage is not configured")
        if not upload.file_name:
            raise ValidationException("File name is required")
        if upload.size == 0:
            raise ValidationException("File is empty", {"file_name": upload.file_name})
        if upload.size > self._max_attachment_bytes:
            raise ValidationException(
                "File is too large",
                {"file_name": upload.file_name, "max_bytes": self._max_attachment_bytes}
            )

        ticket = await self.get_ticket(ticket_id, user)
        path = f"{ticket.id}/{uuid4().hex}_{_safe_file_name(upload.file_name)}"

        await self._storage.upload(path, upload.content, upload.content_type)
        try:
            attachment = await self._attachments.save(
                Attachment(
                    id="",
                    ticket_id=ticket.id,
                    comment_id=comment_id,
                    file_name=upload.file_name,
                    file_type=upload.content_type,
                    file_size=upload.size,
                    storage_path=path,
                    file_url=self._storage.public_url(path),
                    uploaded_by=user.id,
                    created_at=now or utc_now()
                )
            )
        except RepositoryException:
            logger.error(
                "Attachment metadata insert failed; uploaded object is orphaned",
                extra={"ticket_id": ticket.id, "storage_path": path}
            )
            raise

        logger.info(
            "Attachment stored",
            extra={"ticket_id": ticket.id, "attachment_id": attachment.id, "file_size": attachment.file_size}
        )
        return attachment

    # ---------- Bulk actions ----------

    async def bulk_resolve(
        self,
        ticket_ids: List[str],
        user: Profile,
        resolution_note: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> BulkActionResponse:
        now = now or utc_now()
        tickets, missing = await self._load_visible(ticket_ids, user)
        updated = []
        for ticket in tickets:
            if ticket.is_completed:
                continue
            ticket.change_status(TicketStatus.RESOLVED, user.id, now)
            updated.append(await self._tickets.save(ticket))
            if resolution_note and resolution_note.strip():
                await self._comments.save(
                    Comment(id="", ticket_id=ticket.id, user_id=user.id,
                            content=resolution_note.strip(), created_at=now)
                )

        await self._sync_groups([t.ticket_group_id for t in updated if t.ticket_group_id], now)
        logger.info("Bulk resolve", extra={"updated": len(updated), "missing": len(missing)})
        return self._bulk_result("resolve", updated, missing)

    async def bulk_reassign(
        self,
        ticket_ids: List[str],
        user: Profile,
        team_id: Optional[str] = None,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> BulkActionResponse:
        now = now or utc_now()
        await self._check_reassign_target(team_id, user_id)
        tickets, missing = await self._load_visible(ticket_ids, user)
        updated = []
        for ticket in tickets:
            ticket.reassign(now, team_id=team_id, user_id=user_id)
            updated.append(await self._tickets.save(ticket))

        logger.info("Bulk reassign", extra={"updated": len(updated), "team_id": team_id, "assigned_to": user_id})
        return self._bulk_result("reassign", updated, missing)

    async def bulk_escalate(
        self,
        ticket_ids: List[str],
        user: Profile,
        reason: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> BulkActionResponse:
        now = now or utc_now()
        tickets, missing = await self._load_visible(ticket_ids, user)
        updated = []
        for ticket in tickets:
            if not ticket.escalate(now):
                continue
            updated.append(await self._tickets.save(ticket))

        for ticket in updated:
            await self._queue_escalation(ticket, reason)
        logger.info("Bulk escalate", extra={"updated": len(updated)})
        return self._bulk_result("escalate", updated, missing)

    async def bulk_reply(
        self,
        ticket_ids: List[str],
        user: Profile,
        content: str,
        is_internal: bool = False,
        now: Optional[datetime] = None
    ) -> BulkActionResponse:
        """Post the same reply (or internal note) on every ticket."""
        now = now or utc_now()
        content = content.strip()
        if not content:
            raise ValidationException("Reply cannot be empty")

        tickets, missing = await self._load_visible(ticket_ids, user)
        for ticket in tickets:
            await self._comments.save(
                Comment(id="", ticket_id=ticket.id, user_id=user.id, content=content,
                        is_internal=is_internal, created_at=now)
            )
        logger.info("Bulk reply", extra={"tickets": len(tickets), "is_internal": is_internal})
        return self._bulk_result("reply", tickets, missing)

    async def bulk_add_to_group(
        self,
        ticket_ids: List[str],
        user: Profile,
        group_id: Optional[str] = None,
        group_name: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> BulkActionResponse:
        """Attach tickets to an existing group, or to a new one."""
        now = now or utc_now()
        tickets, missing = await self._load_visible(ticket_ids, user)

        if group_id:
            group = await self._require_group(group_id)
            if group.status == GroupStatus.RESOLVED:
                raise ValidationException("Group is already resolved", {"group_id": group_id})
        else:
            if not group_name or not group_name.strip():
                raise ValidationException("Group name is required")
            group = await self._new_group(group_name.strip(), tickets, user, now)

        updated = []
        for ticket in tickets:
            ticket.ticket_group_id = group.id
            ticket.updated_at = now
            updated.append(await self._tickets.save(ticket))

        logger.info("Tickets grouped", extra={"group_id": group.id, "updated": len(updated)})
        result = self._bulk_result("group", updated, missing)
        result.group_id = group.id
        return result

    # ---------- Groups ----------

    async def create_group(
        self,
        dto: GroupCreateDTO,
        user: Profile,
        now: Optional[datetime] = None
    ) -> TicketGroup:
        """
        Create a group. The SLA due time comes from the issue type default.
        """
        now = now or utc_now()
        sla_due_at = None
        if dto.issue_type_id:
            defaults = await self._assignment.resolve_issue_type_defaults(dto.issue_type_id)
            sla_due_at = SLAClock.compute_due_at(now, defaults.sla_hours)
        if dto.assigned_to:
            await self._check_reassign_target(None, dto.assigned_to)

        group = await self._groups.save(
            TicketGroup(
                id="",
                name=dto.name.strip(),
                issue_type_id=dto.issue_type_id,
                city=" ".join(dto.city.split()) if dto.city else None,
                assigned_to=dto.assigned_to,
                sla_due_at=sla_due_at,
                created_by=user.id,
                created_at=now
            )
        )
        logger.info("Ticket group created", extra={"group_id": group.id, "group_name": group.name})

        if dto.ticket_ids:
            await self.bulk_add_to_group(dto.ticket_ids, user, group_id=group.id, now=now)
        return group

    async def list_groups(
        self,
        now: Optional[datetime] = None,
        include_resolved: bool = False
    ) -> List[GroupResponse]:
        now = now or utc_now()
        groups = await self._groups.list(None if include_resolved else GroupStatus.ACTIVE)
        return [
            self._group_response(group, await self._tickets.list_by_group(group.id), now)
            for group in groups
        ]

    async def get_group_detail(
        self,
        group_id: str,
        user: Profile,
        now: Optional[datetime] = None
    ) -> GroupDetailResponse:
        now = now or utc_now()
        group = await self._require_group(group_id)
        members = await self._tickets.list_by_group(group.id)
        return GroupDetailResponse(
            group=self._group_response(group, members, now),
            tickets=[ticket_response(t, now) for t in members if self._can_see(user, t)]
        )

    async def resolve_group(
        self,
        group_id: str,
        dto: GroupResolveDTO,
        user: Profile,
        now: Optional[datetime] = None
    ) -> BulkActionResponse:
        """
        Resolve (or close) selected member tickets, or every open member.

        The group itself is resolved once no open member remains.
        """
        now = now or utc_now()
        group = await self._require_group(group_id)
        members = {t.id: t for t in await self._tickets.list_by_group(group.id)}

        if dto.ticket_ids is None:
            selected = [t for t in members.values() if not t.is_completed]
            missing: List[str] = []
        else:
            selected = [members[i] for i in dto.ticket_ids if i in members]
            missing = [i for i in dto.ticket_ids if i not in members]

        target = TicketStatus.CLOSED if dto.close else TicketStatus.RESOLVED
        note = (dto.resolution_note or "").strip()
        updated = []
        for ticket in selected:
            if not self._can_see(user, ticket):
                missing.append(ticket.id)
                continue
            if ticket.is_completed and ticket.status == target:
                continue
            ticket.change_status(target, user.id, now)
            updated.append(await self._tickets.save(ticket))
            members[ticket.id] = ticket
            if note:
                await self._comments.save(
                    Comment(id="", ticket_id=ticket.id, user_id=user.id, content=note, created_at=now)
                )

        await self._sync_groups([group.id], now)
        return self._bulk_result("resolve", updated, missing, group_id=group.id)

    # ---------- Helpers ----------

    async def _load_visible(self, ticket_ids: List[str], user: Profile) -> Tuple[List[Ticket], List[str]]:
        """Tickets the user may act on, and the requested ids that were skipped."""
        wanted = list(dict.fromkeys(ticket_ids))
        found = {t.id: t for t in await self._tickets.get_many(wanted)}
        visible = [found[i] for i in wanted if i in found and self._can_see(user, found[i])]
        visible_ids = {t.id for t in visible}
        return visible, [i for i in wanted if i not in visible_ids]

    async def _sync_groups(self, group_ids: Iterable[str], now: datetime) -> None:
        for group_id in set(group_ids):
            group = await self._groups.get(group_id)
            if group is None:
                continue
            members = await self._tickets.list_by_group(group_id)
            if members and group.resolve_if_done(members, now):
                await self._groups.save(group)
                logger.info("Ticket group resolved", extra={"group_id": group_id})

    async def _new_group(self, name: str, tickets: List[Ticket], user: Profile, now: datetime) -> TicketGroup:
        issue_types = {t.issue_type_id for t in tickets}
        cities = {t.city for t in tickets}
        issue_type_id = issue_types.pop() if len(issue_types) == 1 else None
        return await self.create_group(
            GroupCreateDTO(
                name=name,
                issue_type_id=issue_type_id,
                city=cities.pop() if len(cities) == 1 else None
            ),
            user,
            now
        )

    async def _require_group(self, group_id: str) -> TicketGroup:
        group = await self._groups.get(group_id)
        if group is None:
            raise ResourceNotFoundException("TicketGroup", group_id)
        return group

    async def _check_reassign_target(self, team_id: Optional[str], user_id: Optional[str]) -> None:
        if not team_id and not user_id:
            raise ValidationException("team_id or user_id is required")
        if team_id:
            team = await self._directory.get_team(team_id)
            if team is None or not team.is_active:
                raise ResourceNotFoundException("Team", team_id)
        if user_id:
            profile = await self._directory.get_profile(user_id)
            if profile is None or not profile.is_active:
                raise ResourceNotFoundException("Profile", user_id)

    async def _queue_escalation(self, ticket: Ticket, reason: Optional[str]) -> None:
        tier2 = await self._directory.get_team(ticket.tier2_team_id) if ticket.tier2_team_id else None
        self._outbox.append(EscalationNotice(ticket, reason, tier2.name if tier2 else None))

    async def _profile_names(self, profile_ids: Iterable[Optional[str]]) -> Dict[str, str]:
        names = {}
        for profile_id in {p for p in profile_ids if p}:
            profile = await self._directory.get_profile(profile_id)
            if profile is not None:
                names[profile_id] = profile.full_name
        return names

    async def _team_names(self, team_ids: Iterable[Optional[str]]) -> Dict[str, str]:
        names = {}
        for team_id in {t for t in team_ids if t}:
            team = await self._directory.get_team(team_id)
            if team is not None:
                names[team_id] = team.name
        return names

    @staticmethod
    def _group_response(group: TicketGroup, members: List[Ticket], now: datetime) -> GroupResponse:
        return GroupResponse(
            id=group.id,
            name=group.name,
            issue_type_id=group.issue_type_id,
            city=group.city,
            assigned_to=group.assigned_to,
            sla_due_at=group.sla_due_at,
            status=group.status,
            created_at=group.created_at,
            resolved_at=group.resolved_at,
            ticket_count=len(members),
            open_count=sum(1 for t in members if not t.is_completed),
            sla=sla_response(group.sla_reading(now))
        )

    @staticmethod
    def _bulk_result(
        action: str,
        tickets: List[Ticket],
        missing: List[str],
        group_id: Optional[str] = None
    ) -> BulkActionResponse:
        return BulkActionResponse(
            action=action,
            updated=len(tickets),
            ticket_ids=[t.id for t in tickets],
            missing=missing,
            group_id=group_id
        )


def _safe_file_name(file_name: str) -> str:
    """Storage-safe version of a client file name."""
    base = file_name.replace("\\", "/").rsplit("/", 1)[-1]
    cleaned = "".join(c if c.isalnum() or c in "._-" else "_" for c in base)
    return cleaned.strip("._") or "file"
