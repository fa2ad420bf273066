"""
Ticket Controllers (API Routes)
================================

FastAPI routes for tickets and ticket groups.

Controllers are thin - they delegate to TicketService.
"""

import json
from typing import List, Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
    status,
)
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cityflow.core import RepositoryException

from cityflow.directory.domain import Profile
from cityflow.directory.interfaces.dependencies import get_current_user, get_directory_repository
from cityflow.infrastructure.database import get_session
from cityflow.tickets.application import (
    AttachmentResponse,
    AttachmentUpload,
    BulkActionResponse,
    BulkEscalateDTO,
    BulkGroupDTO,
    BulkReassignDTO,
    BulkReplyDTO,
    BulkResolveDTO,
    CommentCreateDTO,
    CommentResponse,
    EscalateDTO,
    GroupCreateDTO,
    GroupDetailResponse,
    GroupResolveDTO,
    GroupResponse,
    ReassignDTO,
    ResolveDTO,
    StatusUpdateDTO,
    TicketCreateDTO,
    TicketCreatedResponse,
    TicketDetailResponse,
    TicketListResponse,
    TicketResponse,
    TicketService,
    ticket_response,
)
from cityflow.tickets.application.dto import PriorityStr, TicketStatusStr
from cityflow.tickets.domain import TicketFilter, utc_now
from cityflow.tickets.infrastructure import (
    SQLAlchemyAttachmentRepository,
    SQLAlchemyCommentRepository,
    SQLAlchemyTicketGroupRepository,
    SQLAlchemyTicketRepository,
)

router = APIRouter(prefix="/tickets", tags=["Tickets"])
groups_router = APIRouter(prefix="/groups", tags=["Ticket Groups"])


# ========== Dependencies ==========

async def get_ticket_service(
    request: Request,
    session: AsyncSession = Depends(get_session),
    directory=Depends(get_directory_repository)
) -> TicketService:
    """Get ticket service instance; storage and notifier come from app state."""
    return TicketService(
        SQLAlchemyTicketRepository(session),
        SQLAlchemyTicketGroupRepository(session),
        SQLAlchemyCommentRepository(session),
        SQLAlchemyAttachmentRepository(session),
        directory,
        storage=getattr(request.app.state, "object_storage", None),
        notifier=getattr(request.app.state, "notifier", None)
    )


async def _commit_then_notify(
    session: AsyncSession,
    service: TicketService,
    background_tasks: BackgroundTasks
) -> None:
    """Commit the escalation, then send its alerts after the response."""
    try:
        await session.commit()
    except SQLAlchemyError as e:
        raise RepositoryException("Failed to save escalation", {"error": str(e)})
    background_tasks.add_task(service.deliver_pending_notifications)


async def _read_uploads(files: List[UploadFile]) -> List[AttachmentUpload]:
    return [
        AttachmentUpload(
            file_name=f.filename or "file",
            content=await f.read(),
            content_type=f.content_type
        )
        for f in files
    ]


# ========== Create / list ==========

@router.post(
    "",
    response_model=TicketCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a ticket",
    description="""
    Route the ticket from its issue type and city, freeze its SLA due time
    and persist it.

    **422** when the city is not mapped to a region; no ticket is created.
    """
)
async def create_ticket(
    dto: TicketCreateDTO,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    result = await service.create_ticket(dto, current_user)
    return service.creation_response(result)


@router.post(
    "/with-attachments",
    response_model=TicketCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a ticket with attachments",
    description="""
    Multipart variant of ticket creation: `payload` holds the ticket JSON,
    `files` the attachments. Attachment failures are listed in
    `attachment_errors` and never undo the ticket.
    """
)
async def create_ticket_with_attachments(
    payload: str = Form(...),
    files: List[UploadFile] = File(default=[]),
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    try:
        dto = TicketCreateDTO.model_validate(json.loads(payload))
    except (json.JSONDecodeError, ValidationError) as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    result = await service.create_ticket(dto, current_user, uploads=await _read_uploads(files))
    return service.creation_response(result)


@router.get(
    "",
    response_model=TicketListResponse,
    summary="List tickets",
    description="Inbox listing, newest first. Agents and admins with a region only see that region."
)
async def list_tickets(
    status_filter: Optional[TicketStatusStr] = Query(None, alias="status"),
    priority: Optional[PriorityStr] = Query(None),
    city: Optional[str] = Query(None),
    team_id: Optional[str] = Query(None),
    issue_type_id: Optional[str] = Query(None),
    group_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    limit: int = Query(200, ge=1, le=1000),
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    filters = TicketFilter(
        status=status_filter,
        priority=priority,
        city=city,
        team_id=team_id,
        issue_type_id=issue_type_id,
        ticket_group_id=group_id,
        search=search.strip() if search else None,
        limit=limit
    )
    tickets, scope = await service.list_tickets(current_user, filters)
    now = utc_now()
    return TicketListResponse(
        tickets=[ticket_response(t, now) for t in tickets],
        total_count=len(tickets),
        region_id=scope
    )


# ========== Bulk actions ==========

@router.post("/bulk/resolve", response_model=BulkActionResponse, summary="Resolve many tickets")
async def bulk_resolve(
    dto: BulkResolveDTO,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.bulk_resolve(dto.ticket_ids, current_user, dto.resolution_note)


@router.post("/bulk/reassign", response_model=BulkActionResponse, summary="Reassign many tickets")
async def bulk_reassign(
    dto: BulkReassignDTO,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.bulk_reassign(
        dto.ticket_ids, current_user, team_id=dto.team_id, user_id=dto.user_id
    )


@router.post("/bulk/escalate", response_model=BulkActionResponse, summary="Escalate many tickets")
async def bulk_escalate(
    dto: BulkEscalateDTO,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
    session: AsyncSession = Depends(get_session)
):
    result = await service.bulk_escalate(dto.ticket_ids, current_user, dto.reason)
    await _commit_then_notify(session, service, background_tasks)
    return result


@router.post("/bulk/reply", response_model=BulkActionResponse, summary="Reply on many tickets")
async def bulk_reply(
    dto: BulkReplyDTO,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.bulk_reply(dto.ticket_ids, current_user, dto.content, dto.is_internal)


@router.post("/bulk/group", response_model=BulkActionResponse, summary="Add tickets to a group")
async def bulk_group(
    dto: BulkGroupDTO,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.bulk_add_to_group(
        dto.ticket_ids, current_user, group_id=dto.group_id, group_name=dto.group_name
    )


# ========== Single ticket ==========

@router.get(
    "/{ticket_id}",
    response_model=TicketDetailResponse,
    summary="Get ticket detail",
    description="""
    Ticket with its live SLA reading, display names, comments and
    attachments. Resolved and closed tickets read "Completed".
    """
)
async def get_ticket(
    ticket_id: str,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.get_ticket_detail(ticket_id, current_user)


@router.patch("/{ticket_id}/status", response_model=TicketResponse, summary="Change ticket status")
async def update_status(
    ticket_id: str,
    dto: StatusUpdateDTO,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.change_status(ticket_id, dto.status, current_user)
    return ticket_response(ticket, utc_now())


@router.post("/{ticket_id}/resolve", response_model=TicketResponse, summary="Resolve a ticket")
async def resolve_ticket(
    ticket_id: str,
    dto: ResolveDTO,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.resolve_ticket(ticket_id, current_user, dto.resolution_note, dto.close)
    return ticket_response(ticket, utc_now())


@router.post("/{ticket_id}/reassign", response_model=TicketResponse, summary="Reassign a ticket")
async def reassign_ticket(
    ticket_id: str,
    dto: ReassignDTO,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.reassign_ticket(
        ticket_id, current_user, team_id=dto.team_id, user_id=dto.user_id
    )
    return ticket_response(ticket, utc_now())


@router.post("/{ticket_id}/escalate", response_model=TicketResponse, summary="Escalate to the city team")
async def escalate_ticket(
    ticket_id: str,
    dto: EscalateDTO,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
    session: AsyncSession = Depends(get_session)
):
    ticket = await service.escalate_ticket(ticket_id, current_user, dto.reason)
    await _commit_then_notify(session, service, background_tasks)
    return ticket_response(ticket, utc_now())


@router.post(
    "/{ticket_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Comment, reply or add an internal note"
)
async def add_comment(
    ticket_id: str,
    dto: CommentCreateDTO,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    comment = await service.add_comment(ticket_id, dto, current_user)
    return CommentResponse.model_validate(comment).model_copy(
        update={"user_name": current_user.full_name}
    )


@router.post(
    "/{ticket_id}/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload an attachment"
)
async def upload_attachment(
    ticket_id: str,
    file: UploadFile = File(...),
    comment_id: Optional[str] = Form(None),
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    upload = (await _read_uploads([file]))[0]
    attachment = await service.add_attachment(ticket_id, upload, current_user, comment_id=comment_id)
    return AttachmentResponse.model_validate(attachment)


# ========== Groups ==========

@groups_router.get("", response_model=List[GroupResponse], summary="List ticket groups")
async def list_groups(
    include_resolved: bool = Query(False),
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.list_groups(include_resolved=include_resolved)


@groups_router.post(
    "",
    response_model=GroupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a ticket group"
)
async def create_group(
    dto: GroupCreateDTO,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    group = await service.create_group(dto, current_user)
    detail = await service.get_group_detail(group.id, current_user)
    return detail.group


@groups_router.get("/{group_id}", response_model=GroupDetailResponse, summary="Get group detail")
async def get_group(
    group_id: str,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.get_group_detail(group_id, current_user)


@groups_router.post(
    "/{group_id}/resolve",
    response_model=BulkActionResponse,
    summary="Resolve group tickets",
    description="Resolve the selected member tickets (all open members when `ticket_ids` is omitted)."
)
async def resolve_group(
    group_id: str,
    dto: GroupResolveDTO,
    current_user: Profile = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.resolve_group(group_id, dto, current_user)


tickets_router = router
