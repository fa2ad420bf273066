"""
Tickets Domain Layer
====================

Contains:
- Ticket, TicketGroup, Comment, Attachment entities
- TicketFilter for inbox queries
- Ticket number generation

Pure Python; no infrastructure dependencies.
"""

from cityflow.tickets.domain.entities import (
    Attachment,
    Comment,
    Ticket,
    TicketFilter,
    TicketGroup,
    generate_ticket_number,
    utc_now,
)

__all__ = [
    "Attachment",
    "Comment",
    "Ticket",
    "TicketFilter",
    "TicketGroup",
    "generate_ticket_number",
    "utc_now",
]
