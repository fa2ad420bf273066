"""
Routing Interfaces Layer
========================

Contains:
- Controllers: FastAPI route handlers
"""

from cityflow.routing.interfaces.controllers import routing_router

__all__ = ["routing_router"]
