#!/usr/bin/env python3
"""
Seed Directory Data
===================

Loads staff profiles, regions, city mappings, teams and issue types from a
YAML file (settings.seed_path by default) into the database.

Records refer to each other by name (regions, teams) or email (staff), so
the file never carries database ids. Regions, cities, teams and issue types
go through DirectoryService and get the same checks as the admin API.

Usage:
    python scripts/seed_directory.py [path/to/seed.yaml]
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict
from uuid import UUID

import yaml

sys.path.insert(0, str(Path(__file__).parent.parent))

from cityflow.config import settings  # noqa: E402
from cityflow.directory.application import (  # noqa: E402
    CityMappingCreateDTO,
    DirectoryService,
    IssueTypeCreateDTO,
    RegionCreateDTO,
    TeamCreateDTO,
)
from cityflow.directory.infrastructure import ProfileModel, SQLAlchemyDirectoryRepository  # noqa: E402
from cityflow.infrastructure.database import (  # noqa: E402
    close_database,
    create_tables,
    get_session_context,
    init_database,
)
from cityflow.shared.infrastructure.logging import get_logger, setup_logging  # noqa: E402

logger = get_logger("seed_directory")


def load_seed(path: Path) -> Dict[str, Any]:
    """Read and sanity-check the seed file."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    for section in ("profiles", "regions", "teams", "issue_types"):
        if not isinstance(data.get(section, []), list):
            raise ValueError(f"{path}: '{section}' must be a list")
    return data


async def seed(data: Dict[str, Any]) -> Dict[str, int]:
    counts = {"profiles": 0, "regions": 0, "cities": 0, "teams": 0, "issue_types": 0}

    async with get_session_context() as session:
        service = DirectoryService(SQLAlchemyDirectoryRepository(session))

        staff: Dict[str, ProfileModel] = {}
        for entry in data.get("profiles", []):
            model = ProfileModel(
                full_name=entry["full_name"],
                email=entry["email"],
                role=entry.get("role", "agent"),
                is_active=entry.get("is_active", True)
            )
            session.add(model)
            staff[entry["email"]] = model
        await session.flush()
        counts["profiles"] = len(staff)

        def staff_id(email):
            return str(staff[email].id) if email in staff else None

        regions: Dict[str, str] = {}
        for entry in data.get("regions", []):
            region = await service.create_region(
                RegionCreateDTO(name=entry["name"], manager_id=staff_id(entry.get("manager")))
            )
            regions[region.name] = region.id
            counts["regions"] += 1
            for city in entry.get("cities", []):
                await service.map_city(CityMappingCreateDTO(city_name=city, region_id=region.id))
                counts["cities"] += 1

        teams: Dict[str, str] = {}
        for entry in data.get("teams", []):
            team = await service.create_team(TeamCreateDTO(
                name=entry["name"],
                team_type=entry.get("team_type", "functional"),
                region_id=regions.get(entry.get("region"))
            ))
            teams[team.name] = team.id
            counts["teams"] += 1

        # Staff placement needs the region and team ids created above
        for entry in data.get("profiles", []):
            model = staff[entry["email"]]
            if entry.get("region") in regions:
                model.region_id = UUID(regions[entry["region"]])
            if entry.get("team") in teams:
                model.team_id = UUID(teams[entry["team"]])

        for entry in data.get("issue_types", []):
            await service.create_issue_type(IssueTypeCreateDTO(
                name=entry["name"],
                icon=entry.get("icon"),
                default_sla_hours=entry["default_sla_hours"],
                default_team_id=teams.get(entry.get("default_team")),
                default_assignee_id=staff_id(entry.get("default_assignee"))
            ))
            counts["issue_types"] += 1

    return counts


async def main(path: Path) -> None:
    setup_logging(settings.log_level, settings.environment)
    init_database()
    try:
        await create_tables()
        counts = await seed(load_seed(path))
        logger.info("Directory seeded", extra={"seed_path": str(path), **counts})
    finally:
        await close_database()


if __name__ == "__main__":
    seed_path = Path(sys.argv[1]) if len(sys.argv) > 1 else settings.seed_path
    asyncio.run(main(seed_path))
