# tests/test_sla_monitor.py

import json
from contextlib import asynccontextmanager
from datetime import timedelta

import httpx
import pytest

from cityflow import main
from cityflow.config import Settings, SLAStatus, TicketStatus
from cityflow.sla.application import SLAMonitorService
from cityflow.sla.infrastructure import CircuitBreaker, CircuitState, EscalationNotifier, SLAScheduler
from cityflow.tickets.domain import Ticket

from tests.conftest import NOW, FakeNotifier

WEBHOOK = "https://hooks.test/services/T000/B000"


def make_ticket(n: int, due_in: timedelta, **overrides) -> Ticket:
    values = dict(
        id=f"t-{n}",
        ticket_number=f"TKT-250314-00000{n}",
        subject=f"Ticket {n}",
        issue_type_id="it-late",
        city="Leeds",
        region_id="r-north",
        created_by="u-admin",
        sla_due_at=NOW + due_in,
        created_at=NOW - timedelta(hours=1),
        updated_at=NOW,
    )
    values.update(overrides)
    return Ticket(**values)


def webhook_settings(**overrides) -> Settings:
    return Settings(escalation_webhook_url=WEBHOOK, ticket_base_url="https://crm.test/tickets", **overrides)


@pytest.mark.unit
class TestSLAMonitor:

    async def test_refresh_updates_and_notifies_new_breaches(self, ticket_repo):
        for ticket in (
            make_ticket(1, timedelta(hours=5)),
            make_ticket(2, timedelta(hours=1)),
            make_ticket(3, -timedelta(minutes=10)),
            make_ticket(4, -timedelta(hours=3), sla_status=SLAStatus.BREACHED),
            make_ticket(5, -timedelta(hours=3), status=TicketStatus.RESOLVED),
        ):
            await ticket_repo.save(ticket)
        notifier = FakeNotifier()

        monitor = SLAMonitorService(ticket_repo, notifier)
        summary = await monitor.refresh_open_tickets(NOW)

        assert summary == {"evaluated": 4, "updated": 2, "breached": 1}
        assert notifier.breaches == []
        assert await monitor.notify_breaches() == 1
        assert ticket_repo.tickets["t-2"].sla_status == SLAStatus.WARNING
        assert ticket_repo.tickets["t-3"].sla_status == SLAStatus.BREACHED
        assert ticket_repo.tickets["t-5"].sla_status == SLAStatus.ON_TRACK
        assert notifier.breaches == [("t-3", "10m overdue")]

    async def test_second_refresh_is_a_no_op(self, ticket_repo):
        await ticket_repo.save(make_ticket(1, -timedelta(minutes=1)))
        notifier = FakeNotifier()
        monitor = SLAMonitorService(ticket_repo, notifier)

        await monitor.refresh_open_tickets(NOW)
        await monitor.notify_breaches()
        summary = await monitor.refresh_open_tickets(NOW)

        assert summary["updated"] == 0
        assert await monitor.notify_breaches() == 0
        assert len(notifier.breaches) == 1

    async def test_undelivered_breach_is_not_counted(self, ticket_repo):
        await ticket_repo.save(make_ticket(1, -timedelta(minutes=1)))
        monitor = SLAMonitorService(ticket_repo, FakeNotifier(delivered=False))
        summary = await monitor.refresh_open_tickets(NOW)
        assert summary["breached"] == 1
        assert await monitor.notify_breaches() == 0

    async def test_works_without_notifier(self, ticket_repo):
        await ticket_repo.save(make_ticket(1, -timedelta(minutes=1)))
        monitor = SLAMonitorService(ticket_repo)
        await monitor.refresh_open_tickets(NOW)
        assert monitor.pending_breaches == 1
        assert await monitor.notify_breaches() == 0
        assert monitor.pending_breaches == 0

    async def test_failing_breach_alert_keeps_stored_status(self, ticket_repo):
        class BrokenNotifier(FakeNotifier):
            async def notify_breach(self, ticket, reading):
                raise RuntimeError("webhook down")

        await ticket_repo.save(make_ticket(1, -timedelta(minutes=1)))
        await ticket_repo.save(make_ticket(2, -timedelta(minutes=2)))
        monitor = SLAMonitorService(ticket_repo, BrokenNotifier())
        await monitor.refresh_open_tickets(NOW)

        assert await monitor.notify_breaches() == 0
        assert ticket_repo.tickets["t-1"].sla_status == SLAStatus.BREACHED
        assert ticket_repo.tickets["t-2"].sla_status == SLAStatus.BREACHED


@pytest.mark.unit
class TestCircuitBreaker:

    def test_opens_after_threshold_and_recovers(self):
        clock = [100.0]
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=30, clock=lambda: clock[0])

        breaker.record_failure()
        assert breaker.allow_request()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert not breaker.allow_request()

        clock[0] += 30
        assert breaker.state == CircuitState.HALF_OPEN
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED

    def test_failure_while_half_open_reopens(self):
        clock = [0.0]
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=10, clock=lambda: clock[0])
        breaker.record_failure()
        clock[0] = 10
        assert breaker.state == CircuitState.HALF_OPEN
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN


@pytest.mark.unit
class TestEscalationNotifier:

    async def test_escalation_message_posted(self):
        sent = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append((str(request.url), json.loads(request.content)))
            return httpx.Response(200, text="ok")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        notifier = EscalationNotifier(webhook_settings(), http_client=client)
        ticket = make_ticket(1, timedelta(hours=2))

        assert await notifier.notify_escalation(ticket, "Supplier unreachable", "North City Team")

        url, body = sent[0]
        assert url == WEBHOOK
        text = json.dumps(body)
        assert "Ticket Escalated" in text
        assert "North City Team" in text
        assert "Reason: Supplier unreachable" in text
        assert "<https://crm.test/tickets/t-1|TKT-250314-000001>" in text
        await client.aclose()

    async def test_retries_then_gives_up(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        breaker = CircuitBreaker(failure_threshold=1)
        notifier = EscalationNotifier(
            webhook_settings(), http_client=client, max_retries=3, backoff_base=0, circuit_breaker=breaker
        )
        ticket = make_ticket(1, -timedelta(hours=1))

        assert await notifier.notify_breach(ticket, ticket.sla_reading(NOW)) is False
        assert len(calls) == 3
        assert breaker.state == CircuitState.OPEN

        assert await notifier.notify_breach(ticket, None) is False
        assert len(calls) == 3
        await client.aclose()

    async def test_transport_error_is_swallowed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        notifier = EscalationNotifier(webhook_settings(), http_client=client, max_retries=2, backoff_base=0)
        assert await notifier.notify_escalation(make_ticket(1, timedelta(hours=1))) is False
        await client.aclose()

    async def test_disabled_without_webhook(self):
        notifier = EscalationNotifier(Settings(escalation_webhook_url=None))
        assert not notifier.enabled
        assert await notifier.notify_escalation(make_ticket(1, timedelta(hours=1))) is False

    def test_breach_message_carries_label(self):
        notifier = EscalationNotifier(webhook_settings())
        ticket = make_ticket(1, -timedelta(hours=2, minutes=5))
        message = notifier.build_breach_message(ticket, ticket.sla_reading(NOW))
        assert "*SLA:*\n2h 5m overdue" in json.dumps(message, ensure_ascii=False).replace("\\n", "\n")


@pytest.mark.unit
class TestSLAScheduler:

    async def test_zero_interval_disables(self):
        scheduler = SLAScheduler(interval_seconds=0)

        async def job():
            return None

        await scheduler.start(job)
        assert not scheduler.is_running
        await scheduler.stop()

    async def test_start_and_stop(self):
        scheduler = SLAScheduler(interval_seconds=300)

        async def job():
            return None

        await scheduler.start(job)
        assert scheduler.is_running
        await scheduler.stop()
        assert not scheduler.is_running


class RecordingSession:
    """Stands in for the job's database session, logging commit order."""

    def __init__(self, events, fail_commit=False):
        self.events = events
        self.fail_commit = fail_commit

    @asynccontextmanager
    async def context(self):
        yield self
        if self.fail_commit:
            raise RuntimeError("commit failed")
        self.events.append("commit")


@pytest.mark.unit
class TestScheduledRefresh:

    @pytest.fixture
    def wired(self, monkeypatch, ticket_repo):
        events = []

        class OrderedNotifier(FakeNotifier):
            async def notify_breach(self, ticket, reading):
                events.append(f"breach:{ticket.id}")
                return await super().notify_breach(ticket, reading)

        monkeypatch.setattr(main, "SQLAlchemyTicketRepository", lambda session: ticket_repo)
        return events, OrderedNotifier()

    async def test_breach_alert_follows_commit(self, monkeypatch, wired, ticket_repo):
        events, notifier = wired
        monkeypatch.setattr(main, "get_session_context", RecordingSession(events).context)
        await ticket_repo.save(make_ticket(1, -timedelta(minutes=5)))

        summary = await main.run_sla_refresh(notifier)

        assert events == ["commit", "breach:t-1"]
        assert summary["notified"] == 1

    async def test_failed_commit_sends_nothing(self, monkeypatch, wired, ticket_repo):
        events, notifier = wired
        monkeypatch.setattr(main, "get_session_context", RecordingSession(events, fail_commit=True).context)
        await ticket_repo.save(make_ticket(1, -timedelta(minutes=5)))

        with pytest.raises(RuntimeError):
            await main.run_sla_refresh(notifier)
        assert events == []
        assert notifier.breaches == []
