"""
Directory Infrastructure Layer
===============================

- Models: SQLAlchemy ORM models for the reference tables
- Repositories: data access returning domain entities
"""

from cityflow.directory.infrastructure.models import (
    ProfileModel,
    RegionModel,
    CityMappingModel,
    TeamModel,
    IssueTypeModel,
    RoutingRuleModel,
    SLARuleModel,
)
from cityflow.directory.infrastructure.repositories import (
    SQLAlchemyDirectoryRepository,
    to_uuid,
    from_uuid,
)

__all__ = [
    "ProfileModel",
    "RegionModel",
    "CityMappingModel",
    "TeamModel",
    "IssueTypeModel",
    "RoutingRuleModel",
    "SLARuleModel",
    "SQLAlchemyDirectoryRepository",
    "to_uuid",
    "from_uuid",
]
