"""
Tickets Infrastructure Layer
=============================

- Models: SQLAlchemy ORM models
- Repositories: data access returning domain entities
- External: attachment object storage
"""

from cityflow.tickets.infrastructure.external import HTTPObjectStorage
from cityflow.tickets.infrastructure.models import (
    AttachmentModel,
    CommentModel,
    TicketGroupModel,
    TicketModel,
)
from cityflow.tickets.infrastructure.repositories import (
    SQLAlchemyAttachmentRepository,
    SQLAlchemyCommentRepository,
    SQLAlchemyTicketGroupRepository,
    SQLAlchemyTicketRepository,
)

__all__ = [
    "HTTPObjectStorage",
    "AttachmentModel",
    "CommentModel",
    "TicketGroupModel",
    "TicketModel",
    "SQLAlchemyAttachmentRepository",
    "SQLAlchemyCommentRepository",
    "SQLAlchemyTicketGroupRepository",
    "SQLAlchemyTicketRepository",
]
