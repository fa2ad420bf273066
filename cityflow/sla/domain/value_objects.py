"""
SLA Value Objects
==================

The SLA clock: due-time computation and the live reading derived from
(due time, now, ticket status).

Nothing here is stored as a running process. A reading is recomputed every
time a ticket or group is viewed.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from cityflow.config import COMPLETED_STATUSES, SLAStatus, TicketStatus, GroupStatus
from cityflow.core import ValidationException

# Fixed; SLARule.escalation_threshold_percent is not consulted.
WARNING_WINDOW = timedelta(hours=2)

COMPLETED_LABEL = "Completed"


@dataclass(frozen=True)
class SLAReading:
    """
    Immutable result of evaluating an SLA clock at one instant.

    For completed tickets status is None and label is "Completed".
    """
    due_at: Optional[datetime]
    evaluated_at: datetime
    status: Optional[SLAStatus]
    label: str
    remaining_seconds: float
    completed: bool = False

    @property
    def is_breached(self) -> bool:
        return self.status == SLAStatus.BREACHED

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "due_at": self.due_at.isoformat() if self.due_at else None,
            "status": self.status.value if self.status else None,
            "label": self.label,
            "remaining_seconds": self.remaining_seconds,
            "completed": self.completed,
        }


class SLAClock:
    """
    Pure functions for SLA calculations.

    Stateless utility class; every page that shows an SLA goes through here
    so the thresholds and the label format are the same everywhere.
    """

    @staticmethod
    def compute_due_at(anchor: datetime, sla_hours: float) -> datetime:
        """
        Calculate the SLA due time.

        Args:
            anchor: Commit time of the ticket (or group)
            sla_hours: SLA length in hours, zero or more

        Returns:
            anchor + sla_hours
        """
        if sla_hours < 0:
            raise ValidationException(
                "SLA hours cannot be negative",
                {"sla_hours": sla_hours}
            )
        return anchor + timedelta(hours=sla_hours)

    @staticmethod
    def status_for(due_at: datetime, now: datetime) -> SLAStatus:
        """
        Bucket the time left before due_at.

        breached  when now > due_at
        warning   when 0 <= due_at - now <= 2h (both ends inclusive)
        on-track  otherwise
        """
        remaining = due_at - now
        if remaining < timedelta(0):
            return SLAStatus.BREACHED
        if remaining <= WARNING_WINDOW:
            return SLAStatus.WARNING
        return SLAStatus.ON_TRACK

    @staticmethod
    def format_remaining(remaining: timedelta) -> str:
        """
        Canonical SLA label.

        Whole hours and minutes of |remaining|, e.g. "3h 5m remaining",
        "2h 0m overdue", "45m remaining". Hours are omitted when zero.
        """
        total_seconds = abs(remaining.total_seconds())
        hours = int(total_seconds // 3600)
        minutes = int((total_seconds % 3600) // 60)

        time_str = f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"
        suffix = "overdue" if remaining < timedelta(0) else "remaining"
        return f"{time_str} {suffix}"

    @staticmethod
    def is_completed(ticket_status) -> bool:
        """Resolved and closed tickets, and resolved groups, stop the clock."""
        if ticket_status is None:
            return False
        return ticket_status in COMPLETED_STATUSES or ticket_status == GroupStatus.RESOLVED

    @classmethod
    def evaluate(
        cls,
        due_at: datetime,
        now: datetime,
        ticket_status: Optional[TicketStatus] = None
    ) -> SLAReading:
        """
        Evaluate the clock at `now`.

        Args:
            due_at: Frozen SLA due time
            now: Evaluation instant
            ticket_status: Current ticket (or group) status; completed
                statuses suppress live evaluation

        Returns:
            SLAReading
        """
        remaining = due_at - now

        if cls.is_completed(ticket_status):
            return SLAReading(
                due_at=due_at,
                evaluated_at=now,
                status=None,
                label=COMPLETED_LABEL,
                remaining_seconds=remaining.total_seconds(),
                completed=True
            )

        return SLAReading(
            due_at=due_at,
            evaluated_at=now,
            status=cls.status_for(due_at, now),
            label=cls.format_remaining(remaining),
            remaining_seconds=remaining.total_seconds()
        )

    @classmethod
    def evaluate_optional(
        cls,
        due_at: Optional[datetime],
        now: datetime,
        ticket_status: Optional[TicketStatus] = None
    ) -> Optional[SLAReading]:
        """
        Same as evaluate(), for tickets that may lack a due time.

        Completed tickets always read "Completed"; open tickets without a
        due time have no reading.
        """
        if due_at is None:
            if cls.is_completed(ticket_status):
                return SLAReading(
                    due_at=None,
                    evaluated_at=now,
                    status=None,
                    label=COMPLETED_LABEL,
                    remaining_seconds=0.0,
                    completed=True
                )
            return None
        return cls.evaluate(due_at, now, ticket_status)
