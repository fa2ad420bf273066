"""
Directory Infrastructure Models
================================

SQLAlchemy ORM models for the reference tables.
"""

from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from cityflow.config import Priority, TeamType, UserRole
from cityflow.infrastructure.database import Base


class ProfileModel(Base):
    """Maps to the 'profiles' table."""
    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default=UserRole.AGENT.value)
    region_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("regions.id", use_alter=True, name="fk_profiles_region"), nullable=True)
    team_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("teams.id", use_alter=True, name="fk_profiles_team"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class RegionModel(Base):
    """Maps to the 'regions' table."""
    __tablename__ = "regions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    manager_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("profiles.id", use_alter=True, name="fk_regions_manager"), nullable=True)


class CityMappingModel(Base):
    """
    Maps to the 'city_region_mapping' table.

    city_key holds the normalized city name and carries the uniqueness.
    """
    __tablename__ = "city_region_mapping"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    city_name: Mapped[str] = mapped_column(String(120), nullable=False)
    city_key: Mapped[str] = mapped_column(String(120), unique=True, index=True, nullable=False)
    region_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("regions.id"), nullable=False, index=True)


class TeamModel(Base):
    """Maps to the 'teams' table."""
    __tablename__ = "teams"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    team_type: Mapped[str] = mapped_column(String(50), nullable=False, default=TeamType.FUNCTIONAL.value)
    region_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("regions.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        # At most one active city team per region
        Index(
            "uq_teams_city_team_region",
            "region_id",
            unique=True,
            postgresql_where=text("team_type = 'city_team' AND is_active"),
            sqlite_where=text("team_type = 'city_team' AND is_active"),
        ),
    )


class IssueTypeModel(Base):
    """Maps to the 'issue_types' table."""
    __tablename__ = "issue_types"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    default_sla_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    default_team_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("teams.id"), nullable=True)
    default_assignee_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("profiles.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class RoutingRuleModel(Base):
    """Maps to the 'routing_rules' table."""
    __tablename__ = "routing_rules"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    issue_type_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("issue_types.id"), nullable=False)
    region_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("regions.id"), nullable=False)
    team_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("teams.id"), nullable=True)
    assignee_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("profiles.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class SLARuleModel(Base):
    """Maps to the 'sla_rules' table."""
    __tablename__ = "sla_rules"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    issue_type_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("issue_types.id"), nullable=False)
    priority: Mapped[str] = mapped_column(String(50), nullable=False, default=Priority.NORMAL.value)
    sla_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    escalation_threshold_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=80)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
