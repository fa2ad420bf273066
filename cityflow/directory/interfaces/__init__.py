"""
Directory Interfaces Layer
==========================

Contains:
- Controllers: admin and session routes
- Dependencies: current-user resolution shared by every router
"""

from cityflow.directory.interfaces.controllers import admin_router, session_router
from cityflow.directory.interfaces.dependencies import (
    get_current_user,
    get_directory_repository,
    require_admin,
)

__all__ = [
    "admin_router",
    "session_router",
    "get_current_user",
    "get_directory_repository",
    "require_admin",
]
