# tests/conftest.py

from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import uuid4

import pytest

from cityflow.config import GroupStatus, TeamType, UserRole
from cityflow.core import ObjectStorageException, RepositoryException
from cityflow.directory.application import IDirectoryRepository
from cityflow.directory.domain import (
    CityMapping,
    IssueType,
    Profile,
    Region,
    RoutingRule,
    SLARule,
    Team,
)
from cityflow.shared.session import session_context
from cityflow.tickets.application import (
    IAttachmentRepository,
    ICommentRepository,
    IEscalationNotifier,
    IObjectStorage,
    ITicketGroupRepository,
    ITicketRepository,
    TicketService,
)

NOW = datetime(2025, 3, 14, 9, 0, tzinfo=timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class InMemoryDirectoryRepository(IDirectoryRepository):

    def __init__(self):
        self.profiles: Dict[str, Profile] = {}
        self.regions: Dict[str, Region] = {}
        self.cities: Dict[str, CityMapping] = {}
        self.teams: Dict[str, Team] = {}
        self.issue_types: Dict[str, IssueType] = {}
        self.routing_rules: Dict[str, RoutingRule] = {}
        self.sla_rules: Dict[str, SLARule] = {}

    @staticmethod
    def _stored(store: dict, entity):
        if not entity.id:
            entity = replace(entity, id=_new_id())
        store[entity.id] = entity
        return entity

    async def get_profile(self, profile_id):
        return self.profiles.get(profile_id)

    async def list_profiles(self, active_only=True):
        return [p for p in self.profiles.values() if p.is_active or not active_only]

    def add_profile(self, profile: Profile) -> Profile:
        return self._stored(self.profiles, profile)

    async def get_region(self, region_id):
        return self.regions.get(region_id)

    async def get_region_by_name(self, name):
        return next((r for r in self.regions.values() if r.name.lower() == name.lower()), None)

    async def list_regions(self):
        return sorted(self.regions.values(), key=lambda r: r.name)

    async def save_region(self, region):
        return self._stored(self.regions, region)

    async def delete_region(self, region_id):
        return self.regions.pop(region_id, None) is not None

    async def get_city_mapping(self, city_name):
        key = CityMapping.normalize(city_name)
        return next((m for m in self.cities.values() if CityMapping.normalize(m.city_name) == key), None)

    async def get_city_mapping_by_id(self, mapping_id):
        return self.cities.get(mapping_id)

    async def list_city_mappings(self, region_id=None):
        return [m for m in self.cities.values() if region_id is None or m.region_id == region_id]

    async def save_city_mapping(self, mapping):
        return self._stored(self.cities, mapping)

    async def delete_city_mapping(self, mapping_id):
        return self.cities.pop(mapping_id, None) is not None

    async def get_team(self, team_id):
        return self.teams.get(team_id)

    async def list_teams(self, active_only=True):
        return [t for t in self.teams.values() if t.is_active or not active_only]

    async def find_city_teams(self, region_id):
        return [
            t for t in self.teams.values()
            if t.is_active and t.team_type == TeamType.CITY_TEAM and t.region_id == region_id
        ]

    async def save_team(self, team):
        return self._stored(self.teams, team)

    async def get_issue_type(self, issue_type_id):
        return self.issue_types.get(issue_type_id)

    async def list_issue_types(self, active_only=True):
        return [t for t in self.issue_types.values() if t.is_active or not active_only]

    async def save_issue_type(self, issue_type):
        return self._stored(self.issue_types, issue_type)

    async def list_routing_rules(self):
        return list(self.routing_rules.values())

    async def save_routing_rule(self, rule):
        return self._stored(self.routing_rules, rule)

    async def delete_routing_rule(self, rule_id):
        return self.routing_rules.pop(rule_id, None) is not None

    async def list_sla_rules(self):
        return list(self.sla_rules.values())

    async def save_sla_rule(self, rule):
        return self._stored(self.sla_rules, rule)

    async def delete_sla_rule(self, rule_id):
        return self.sla_rules.pop(rule_id, None) is not None


class InMemoryTicketRepository(ITicketRepository):

    def __init__(self):
        self.tickets: Dict[str, object] = {}
        self.saves = 0

    async def get(self, ticket_id):
        ticket = self.tickets.get(ticket_id)
        return replace(ticket) if ticket else None

    async def get_many(self, ticket_ids):
        return [replace(self.tickets[i]) for i in ticket_ids if i in self.tickets]

    async def list(self, filters):
        rows = [
            t for t in self.tickets.values()
            if (filters.status is None or t.status == filters.status)
            and (filters.priority is None or t.priority == filters.priority)
            and (not filters.city or t.city == filters.city)
            and (not filters.team_id or t.team_id == filters.team_id)
            and (not filters.issue_type_id or t.issue_type_id == filters.issue_type_id)
            and (not filters.region_id or t.region_id == filters.region_id)
            and (not filters.ticket_group_id or t.ticket_group_id == filters.ticket_group_id)
        ]
        rows.sort(key=lambda t: t.created_at, reverse=True)
        return [replace(t) for t in rows[:filters.limit]]

    async def list_open_with_due_date(self):
        return [replace(t) for t in self.tickets.values() if not t.is_completed and t.sla_due_at]

    async def list_by_group(self, group_id):
        rows = [t for t in self.tickets.values() if t.ticket_group_id == group_id]
        return [replace(t) for t in sorted(rows, key=lambda t: t.created_at, reverse=True)]

    async def list_created_since(self, since, region_id=None):
        rows = [
            t for t in self.tickets.values()
            if (since is None or t.created_at >= since)
            and (not region_id or t.region_id == region_id)
        ]
        return [replace(t) for t in sorted(rows, key=lambda t: t.created_at)]

    async def save(self, ticket):
        self.saves += 1
        if not ticket.id:
            ticket = replace(ticket, id=_new_id())
        self.tickets[ticket.id] = replace(ticket)
        return ticket


class InMemoryGroupRepository(ITicketGroupRepository):

    def __init__(self):
        self.groups = {}

    async def get(self, group_id):
        group = self.groups.get(group_id)
        return replace(group) if group else None

    async def list(self, status=None):
        rows = [g for g in self.groups.values() if status is None or g.status == GroupStatus(status)]
        return [replace(g) for g in sorted(rows, key=lambda g: g.name)]

    async def save(self, group):
        if not group.id:
            group = replace(group, id=_new_id())
        self.groups[group.id] = replace(group)
        return group


class InMemoryCommentRepository(ICommentRepository):

    def __init__(self):
        self.comments = {}

    async def get(self, comment_id):
        return self.comments.get(comment_id)

    async def list_for_ticket(self, ticket_id):
        rows = [c for c in self.comments.values() if c.ticket_id == ticket_id]
        return sorted(rows, key=lambda c: c.created_at)

    async def save(self, comment):
        if not comment.id:
            comment = replace(comment, id=_new_id())
        self.comments[comment.id] = comment
        return comment


class InMemoryAttachmentRepository(IAttachmentRepository):

    def __init__(self, fail_for: Optional[List[str]] = None):
        self.attachments = {}
        self.fail_for = set(fail_for or [])

    async def list_for_ticket(self, ticket_id):
        return [a for a in self.attachments.values() if a.ticket_id == ticket_id]

    async def save(self, attachment):
        if attachment.file_name in self.fail_for:
            raise RepositoryException("insert failed", {"storage_path": attachment.storage_path})
        attachment = replace(attachment, id=_new_id())
        self.attachments[attachment.id] = attachment
        return attachment


class FakeStorage(IObjectStorage):

    def __init__(self, fail_for: Optional[List[str]] = None):
        self.objects: Dict[str, bytes] = {}
        self.fail_for = set(fail_for or [])

    async def upload(self, path, content, content_type=None):
        if any(path.endswith(name) for name in self.fail_for):
            raise ObjectStorageException("upload rejected", {"path": path})
        self.objects[path] = content

    def public_url(self, path):
        return f"https://files.test/{path}"


class FakeNotifier(IEscalationNotifier):

    def __init__(self, delivered: bool = True):
        self.delivered = delivered
        self.escalations = []
        self.breaches = []

    async def notify_escalation(self, ticket, reason=None, tier2_team_name=None):
        self.escalations.append((ticket.id, reason, tier2_team_name))
        return self.delivered

    async def notify_breach(self, ticket, reading):
        self.breaches.append((ticket.id, reading.label if reading else None))
        return self.delivered


@pytest.fixture(autouse=True)
def clear_sessions():
    session_context.clear()
    yield
    session_context.clear()


@pytest.fixture
def directory():
    """
    Two regions. North has a manager, a city team and two cities; South has
    neither manager nor city team.
    """
    repo = InMemoryDirectoryRepository()
    repo.add_profile(Profile(id="u-admin", full_name="Dana Okafor", role=UserRole.SUPER_ADMIN))
    repo.add_profile(Profile(id="u-manager", full_name="Priya Raman", role=UserRole.ADMIN))
    repo.add_profile(Profile(id="u-sam", full_name="Sam Whitfield", region_id="r-north", team_id="t-desk"))
    repo.add_profile(Profile(id="u-lena", full_name="Lena Vogt", region_id="r-south"))
    repo.add_profile(Profile(id="u-gone", full_name="Former Agent", is_active=False))

    repo.regions["r-north"] = Region(id="r-north", name="North", manager_id="u-manager")
    repo.regions["r-south"] = Region(id="r-south", name="South")
    repo.cities["c-leeds"] = CityMapping(id="c-leeds", city_name="Leeds", region_id="r-north")
    repo.cities["c-york"] = CityMapping(id="c-york", city_name="York", region_id="r-north")
    repo.cities["c-brighton"] = CityMapping(id="c-brighton", city_name="Brighton", region_id="r-south")

    repo.teams["t-desk"] = Team(id="t-desk", name="Supplier Desk")
    repo.teams["t-finance"] = Team(id="t-finance", name="Finance Ops")
    repo.teams["t-north-city"] = Team(
        id="t-north-city", name="North City Team", team_type=TeamType.CITY_TEAM, region_id="r-north"
    )

    repo.issue_types["it-late"] = IssueType(
        id="it-late", name="Late delivery", default_sla_hours=4,
        default_team_id="t-desk", default_assignee_id="u-sam"
    )
    repo.issue_types["it-invoice"] = IssueType(
        id="it-invoice", name="Invoice dispute", default_sla_hours=24, default_team_id="t-finance"
    )
    repo.issue_types["it-damaged"] = IssueType(
        id="it-damaged", name="Damaged goods", default_sla_hours=8, default_assignee_id="u-gone"
    )
    return repo


@pytest.fixture
def super_admin(directory):
    return directory.profiles["u-admin"]


@pytest.fixture
def north_agent(directory):
    return directory.profiles["u-sam"]


@pytest.fixture
def south_agent(directory):
    return directory.profiles["u-lena"]


@pytest.fixture
def ticket_repo():
    return InMemoryTicketRepository()


@pytest.fixture
def group_repo():
    return InMemoryGroupRepository()


@pytest.fixture
def comment_repo():
    return InMemoryCommentRepository()


@pytest.fixture
def attachment_repo():
    return InMemoryAttachmentRepository()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def ticket_service(ticket_repo, group_repo, comment_repo, attachment_repo, directory, storage, notifier):
    return TicketService(
        ticket_repo,
        group_repo,
        comment_repo,
        attachment_repo,
        directory,
        storage=storage,
        notifier=notifier,
        max_attachment_bytes=1024
    )
