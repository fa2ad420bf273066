"""
Routing Controllers (API Routes)
=================================

Assignment preview shown while a ticket is being filled in.
"""

from fastapi import APIRouter, Depends

from cityflow.directory.domain import Profile
from cityflow.directory.interfaces.dependencies import (
    get_current_user,
    get_directory_repository,
)
from cityflow.routing.application import (
    AssignmentPreviewRequest,
    AssignmentPreviewResponse,
    AssignmentResponse,
    AssignmentService,
)

router = APIRouter(prefix="/assignment", tags=["Routing"])

UNROUTABLE_MESSAGE = "This city needs to be mapped to a region first"


# ========== Dependencies ==========

async def get_assignment_service(repository=Depends(get_directory_repository)) -> AssignmentService:
    """Get assignment service instance."""
    return AssignmentService(repository)


# ========== Route Handlers ==========

@router.post(
    "/preview",
    response_model=AssignmentPreviewResponse,
    summary="Preview ticket routing",
    description="""
    Resolve tier-1 assignee/team, tier-2 city team, region, manager and SLA
    due time for an issue type and city. Nothing is written.

    An unmapped city returns `routable: false` and no preview.
    """
)
async def preview_assignment(
    request: AssignmentPreviewRequest,
    current_user: Profile = Depends(get_current_user),
    service: AssignmentService = Depends(get_assignment_service)
):
    preview = await service.preview(request.issue_type_id, request.city)
    if preview is None:
        return AssignmentPreviewResponse(routable=False, message=UNROUTABLE_MESSAGE)
    return AssignmentPreviewResponse(
        routable=True,
        preview=AssignmentResponse.model_validate(preview)
    )


routing_router = router
