"""
Tickets Application Layer
==========================

Contains:
- TicketService: ticket, comment, attachment, bulk and group use cases
- Repository and external service interfaces
- DTOs for the ticket and group API
"""

from cityflow.tickets.application.dto import (
    AttachmentResponse,
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
    SLAReadingResponse,
    StatusUpdateDTO,
    TicketCreateDTO,
    TicketCreatedResponse,
    TicketDetailResponse,
    TicketListResponse,
    TicketResponse,
)
from cityflow.tickets.application.services import (
    AttachmentUpload,
    EscalationNotice,
    IAttachmentRepository,
    ICommentRepository,
    IEscalationNotifier,
    IObjectStorage,
    ITicketGroupRepository,
    ITicketRepository,
    TicketCreationResult,
    TicketService,
    ticket_response,
)

__all__ = [
    # DTOs
    "AttachmentResponse",
    "BulkActionResponse",
    "BulkEscalateDTO",
    "BulkGroupDTO",
    "BulkReassignDTO",
    "BulkReplyDTO",
    "BulkResolveDTO",
    "CommentCreateDTO",
    "CommentResponse",
    "EscalateDTO",
    "GroupCreateDTO",
    "GroupDetailResponse",
    "GroupResolveDTO",
    "GroupResponse",
    "ReassignDTO",
    "ResolveDTO",
    "SLAReadingResponse",
    "StatusUpdateDTO",
    "TicketCreateDTO",
    "TicketCreatedResponse",
    "TicketDetailResponse",
    "TicketListResponse",
    "TicketResponse",
    # Services and interfaces
    "AttachmentUpload",
    "EscalationNotice",
    "IAttachmentRepository",
    "ICommentRepository",
    "IEscalationNotifier",
    "IObjectStorage",
    "ITicketGroupRepository",
    "ITicketRepository",
    "TicketCreationResult",
    "TicketService",
    "ticket_response",
]
