"""
Ticket Aggregations
===================

Pure functions turning a list of tickets into the numbers shown on the
dashboard and reports. Nothing is cached; callers pass a fresh list.

Percentages are whole numbers rounded half up. A zero denominator yields 0
rather than NaN.
"""

import math
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from cityflow.config import COMPLETED_STATUSES, SLAStatus
from cityflow.sla.domain import SLAClock
from cityflow.tickets.domain import Ticket

SLA_BUCKETS = (SLAStatus.ON_TRACK, SLAStatus.WARNING, SLAStatus.BREACHED)

PERIOD_DAYS = {"24h": 1, "7d": 7, "30d": 30, "90d": 90}


@dataclass(frozen=True)
class DailyCount:
    day: date
    created: int
    resolved: int


@dataclass(frozen=True)
class SLABucket:
    status: SLAStatus
    count: int
    percentage: int


@dataclass(frozen=True)
class TeamResolution:
    team_id: str
    team_name: str
    total: int
    resolved: int
    rate: int


@dataclass(frozen=True)
class IssueTypeCount:
    issue_type_id: str
    name: str
    count: int


@dataclass(frozen=True)
class DashboardStats:
    total: int
    open: int
    overdue: int
    resolved: int
    sla_compliance: int


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(part: int, total: int) -> int:
    """part/total as a whole percentage; 0 when total is 0."""
    if total <= 0:
        return 0
    return round_half_up(part * 100 / total)


def period_start(period: str, now: datetime) -> datetime:
    """Start of a report period ("24h", "7d", "30d", "90d")."""
    if period not in PERIOD_DAYS:
        raise ValueError(f"period must be one of {sorted(PERIOD_DAYS)}")
    return now - timedelta(days=PERIOD_DAYS[period])


def _is_resolved(ticket: Ticket) -> bool:
    return ticket.status in COMPLETED_STATUSES


def _utc_date(value: datetime) -> date:
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(timezone.utc).date()


def effective_sla_status(ticket: Ticket, now: datetime) -> SLAStatus:
    """
    Live status for open tickets, stored status for completed ones.
    """
    if _is_resolved(ticket) or ticket.sla_due_at is None:
        return ticket.sla_status
    return SLAClock.status_for(ticket.sla_due_at, now)


def tickets_over_time(tickets: Iterable[Ticket], days: int, today: date) -> List[DailyCount]:
    """
    Created vs resolved per day for the last `days` days, oldest first.

    Days without activity are included with zero counts.
    """
    if days < 1:
        raise ValueError("days must be at least 1")

    created = Counter()
    resolved = Counter()
    for ticket in tickets:
        created[_utc_date(ticket.created_at)] += 1
        if ticket.resolved_at is not None:
            resolved[_utc_date(ticket.resolved_at)] += 1

    window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    return [DailyCount(day=d, created=created[d], resolved=resolved[d]) for d in window]


def sla_breakdown(tickets: Iterable[Ticket], now: datetime) -> List[SLABucket]:
    """Count and share of tickets in each SLA bucket, in fixed bucket order."""
    counts = Counter(effective_sla_status(t, now) for t in tickets)
    total = sum(counts.values())
    return [
        SLABucket(status=bucket, count=counts[bucket], percentage=percentage(counts[bucket], total))
        for bucket in SLA_BUCKETS
    ]


def resolution_rate(tickets: Iterable[Ticket]) -> int:
    """(resolved + closed) / total as a whole percentage."""
    tickets = list(tickets)
    return percentage(sum(1 for t in tickets if _is_resolved(t)), len(tickets))


def resolution_rate_by_team(
    tickets: Iterable[Ticket],
    team_names: Dict[str, str]
) -> List[TeamResolution]:
    """
    Resolution rate per team, highest first, ties by team name.

    Every team in team_names is reported; a team with no tickets has rate 0.
    Tickets without a team are left out.
    """
    totals = Counter()
    resolved = Counter()
    for ticket in tickets:
        if not ticket.team_id:
            continue
        totals[ticket.team_id] += 1
        if _is_resolved(ticket):
            resolved[ticket.team_id] += 1

    rows = [
        TeamResolution(
            team_id=team_id,
            team_name=team_names.get(team_id, team_id),
            total=totals[team_id],
            resolved=resolved[team_id],
            rate=percentage(resolved[team_id], totals[team_id])
        )
        for team_id in set(team_names) | set(totals)
    ]
    return sorted(rows, key=lambda r: (-r.rate, r.team_name, r.team_id))


def top_issue_types(
    tickets: Iterable[Ticket],
    limit: int = 5,
    names: Optional[Dict[str, str]] = None
) -> List[IssueTypeCount]:
    """
    Most frequent issue types. Equal counts are ordered by name, then id.
    """
    names = names or {}
    counts = Counter(t.issue_type_id for t in tickets)
    rows = [
        IssueTypeCount(issue_type_id=type_id, name=names.get(type_id, type_id), count=count)
        for type_id, count in counts.items()
    ]
    rows.sort(key=lambda r: (-r.count, r.name, r.issue_type_id))
    return rows[:max(limit, 0)]


def dashboard_stats(tickets: Iterable[Ticket], now: datetime) -> DashboardStats:
    """
    Headline numbers. Compliance is the share of tickets not breached;
    with no tickets at all it is 100.
    """
    tickets = list(tickets)
    total = len(tickets)
    resolved = sum(1 for t in tickets if _is_resolved(t))
    overdue = sum(1 for t in tickets if effective_sla_status(t, now) == SLAStatus.BREACHED)
    compliance = percentage(total - overdue, total) if total else 100
    return DashboardStats(
        total=total,
        open=total - resolved,
        overdue=overdue,
        resolved=resolved,
        sla_compliance=compliance
    )
