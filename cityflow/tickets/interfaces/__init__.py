"""
Tickets Interfaces Layer
========================

Contains:
- Controllers: FastAPI route handlers for tickets and groups
"""

from cityflow.tickets.interfaces.controllers import groups_router, tickets_router

__all__ = ["groups_router", "tickets_router"]
