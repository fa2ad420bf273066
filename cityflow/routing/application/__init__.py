"""
Routing Application Layer
==========================

Contains:
- AssignmentService: resolver composition, preview and commit
- DTOs: request/response models for the preview endpoint
"""

from cityflow.routing.application.dto import (
    AssignmentPreviewRequest,
    AssignmentPreviewResponse,
    AssignmentResponse,
)
from cityflow.routing.application.services import AssignmentService

__all__ = [
    "AssignmentPreviewRequest",
    "AssignmentPreviewResponse",
    "AssignmentResponse",
    "AssignmentService",
]
