"""
SLA External Service Integrations
==================================

- Escalation webhook (Slack compatible) with circuit breaker and retries
- APScheduler wrapper for the periodic SLA refresh
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from cityflow.config import Settings, settings as default_settings
from cityflow.shared.infrastructure.logging import get_logger
from cityflow.sla.domain import SLAReading
from cityflow.tickets.application.services import IEscalationNotifier
from cityflow.tickets.domain import Ticket

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Stops calling a failing webhook for a while.

    States:
    - CLOSED: requests pass through
    - OPEN: after N failed deliveries, reject for recovery_timeout seconds
    - HALF_OPEN: after the timeout, let one request test the endpoint
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if self._clock() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._failure_count >= self.failure_threshold or self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class EscalationNotifier(IEscalationNotifier):
    """
    Webhook client for tier-2 escalations and SLA breaches.

    Posts Slack Block Kit messages. An unset webhook URL turns every
    notification into a no-op.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self._settings = config or default_settings
        self._http_client = http_client
        self._owns_client = http_client is None
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60
        )

    @property
    def enabled(self) -> bool:
        return bool(self._settings.escalation_webhook_url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._settings.escalation_timeout_seconds
            )
        return self._http_client

    def _ticket_link(self, ticket: Ticket) -> str:
        url = f"{self._settings.ticket_base_url.rstrip('/')}/{ticket.id}"
        return f"<{url}|{ticket.ticket_number}>"

    def build_escalation_message(
        self,
        ticket: Ticket,
        reason: Optional[str] = None,
        tier2_team_name: Optional[str] = None
    ) -> Dict[str, Any]:
        fields = [
            {"type": "mrkdwn", "text": f"*Ticket:*\n{self._ticket_link(ticket)}"},
            {"type": "mrkdwn", "text": f"*Priority:*\n{ticket.priority.value.title()}"},
            {"type": "mrkdwn", "text": f"*City:*\n{ticket.city}"},
            {"type": "mrkdwn", "text": f"*City Team:*\n{tier2_team_name or 'None'}"},
        ]
        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": "Ticket Escalated", "emoji": True}
            },
            {"type": "section", "text": {"type": "mrkdwn", "text": f"*{ticket.subject}*"}},
            {"type": "section", "fields": fields},
        ]
        if reason:
            blocks.append({
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"Reason: {reason}"}]
            })
        return {"channel": self._settings.escalation_channel, "blocks": blocks}

    def build_breach_message(self, ticket: Ticket, reading: Optional[SLAReading]) -> Dict[str, Any]:
        label = reading.label if reading else "overdue"
        due = ticket.sla_due_at.isoformat() if ticket.sla_due_at else "n/a"
        return {
            "channel": self._settings.escalation_channel,
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": "SLA Breach Alert", "emoji": True}
                },
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*Ticket:*\n{self._ticket_link(ticket)}"},
                        {"type": "mrkdwn", "text": f"*Priority:*\n{ticket.priority.value.title()}"},
                        {"type": "mrkdwn", "text": f"*City:*\n{ticket.city}"},
                        {"type": "mrkdwn", "text": f"*SLA:*\n{label}"},
                    ]
                },
                {
                    "type": "context",
                    "elements": [{"type": "mrkdwn", "text": f"Due: {due}"}]
                }
            ]
        }

    async def notify_escalation(
        self,
        ticket: Ticket,
        reason: Optional[str] = None,
        tier2_team_name: Optional[str] = None
    ) -> bool:
        message = self.build_escalation_message(ticket, reason, tier2_team_name)
        return await self._send(message, ticket.id, "escalation")

    async def notify_breach(self, ticket: Ticket, reading: Optional[SLAReading]) -> bool:
        return await self._send(self.build_breach_message(ticket, reading), ticket.id, "breach")

    async def _send(self, message: Dict[str, Any], ticket_id: str, alert_type: str) -> bool:
        """
        Post to the webhook with exponential back-off.

        Returns:
            True if delivered, False otherwise. Never raises.
        """
        if not self.enabled:
            logger.debug("Escalation webhook not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping notification",
                extra={"ticket_id": ticket_id, "alert_type": alert_type}
            )
            return False

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._settings.escalation_webhook_url, json=message)

                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Notification sent",
                        extra={"ticket_id": ticket_id, "alert_type": alert_type}
                    )
                    return True

                logger.warning(
                    "Webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )

            except httpx.HTTPError as e:
                logger.error(
                    "Notification failed",
                    extra={"error": str(e), "attempt": attempt + 1, "ticket_id": ticket_id}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff_base * 2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None


class SLAScheduler:
    """
    Wrapper for APScheduler running the SLA refresh job.
    """

    def __init__(self, interval_seconds: int = 300):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[Any]]) -> None:
        """Start the scheduler. An interval of 0 leaves it stopped."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return
        if self.interval_seconds <= 0:
            logger.info("SLA scheduler disabled")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="sla_refresh",
            name="SLA Status Refresh",
            misfire_grace_time=60,
            max_instances=1,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info("SLA scheduler started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        if not self._running:
            return
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
