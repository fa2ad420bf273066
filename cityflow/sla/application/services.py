"""
SLA Application Services
=========================

Keeps the stored sla_status of open tickets in step with the clock.

The stored value only feeds filters and reports; every page still evaluates
the live reading from sla_due_at itself.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from cityflow.config import SLAStatus
from cityflow.shared.infrastructure.logging import get_logger, log_latency
from cityflow.sla.domain import SLAReading
from cityflow.tickets.application.services import IEscalationNotifier, ITicketRepository
from cityflow.tickets.domain import Ticket, utc_now

logger = get_logger(__name__)


class SLAMonitorService:
    """
    Periodic SLA status refresh.

    Sends one breach notification per ticket, for the refresh where its
    stored status turns breached. Notifications are held back until
    notify_breaches() is called, after the refresh has been committed.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        notifier: Optional[IEscalationNotifier] = None
    ):
        self._tickets = ticket_repository
        self._notifier = notifier
        self._pending_breaches: List[Tuple[Ticket, Optional[SLAReading]]] = []

    async def refresh_open_tickets(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Re-evaluate every open ticket that has a due time.

        Returns:
            Counts of evaluated, updated and newly breached tickets.
        """
        now = now or utc_now()
        summary = {"evaluated": 0, "updated": 0, "breached": 0}

        with log_latency(logger, "sla_refresh"):
            tickets = await self._tickets.list_open_with_due_date()
            for ticket in tickets:
                summary["evaluated"] += 1
                previous = ticket.sla_status
                if not ticket.refresh_sla_status(now):
                    continue

                saved = await self._tickets.save(ticket)
                summary["updated"] += 1

                if ticket.sla_status == SLAStatus.BREACHED and previous != SLAStatus.BREACHED:
                    summary["breached"] += 1
                    self._pending_breaches.append((saved, saved.sla_reading(now)))

        logger.info("SLA statuses refreshed", extra=summary)
        return summary

    @property
    def pending_breaches(self) -> int:
        return len(self._pending_breaches)

    async def notify_breaches(self) -> int:
        """
        Send the breach alerts collected by refresh_open_tickets.

        Returns the number delivered. A failing notification is logged and
        does not stop the others.
        """
        pending, self._pending_breaches = self._pending_breaches, []
        if self._notifier is None:
            return 0

        delivered = 0
        for ticket, reading in pending:
            try:
                if await self._notifier.notify_breach(ticket, reading):
                    delivered += 1
            except Exception as e:
                logger.error(
                    "Breach notification failed",
                    extra={"ticket_id": ticket.id, "error": str(e)}
                )
        return delivered
