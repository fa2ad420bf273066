# tests/test_sla_clock.py

from datetime import timedelta

import pytest

from cityflow.config import GroupStatus, SLAStatus, TicketStatus
from cityflow.core import ValidationException
from cityflow.reporting.domain import dashboard_stats
from cityflow.sla.domain import COMPLETED_LABEL, SLAClock
from cityflow.tickets.domain import Ticket, TicketGroup

from tests.conftest import NOW


def make_ticket(**overrides) -> Ticket:
    values = dict(
        id="t-1",
        ticket_number="TKT-250314-ABCDEF",
        subject="Pallets missing",
        issue_type_id="it-late",
        city="Leeds",
        region_id="r-north",
        created_by="u-sam",
        sla_due_at=NOW + timedelta(hours=4),
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(overrides)
    return Ticket(**values)


@pytest.mark.unit
class TestComputeDueAt:

    def test_due_is_anchor_plus_hours(self):
        assert SLAClock.compute_due_at(NOW, 4) == NOW + timedelta(hours=4)

    def test_due_minus_anchor_round_trips(self):
        for hours in (1, 8, 24, 72):
            due = SLAClock.compute_due_at(NOW, hours)
            assert due - NOW == timedelta(hours=hours)

    def test_zero_hours_is_due_immediately(self):
        assert SLAClock.compute_due_at(NOW, 0) == NOW

    def test_negative_hours_rejected(self):
        with pytest.raises(ValidationException):
            SLAClock.compute_due_at(NOW, -1)


@pytest.mark.unit
class TestStatusFor:

    def test_far_from_due_is_on_track(self):
        assert SLAClock.status_for(NOW + timedelta(hours=5), NOW) == SLAStatus.ON_TRACK

    def test_exactly_two_hours_left_is_warning(self):
        assert SLAClock.status_for(NOW + timedelta(hours=2), NOW) == SLAStatus.WARNING

    def test_just_over_two_hours_is_on_track(self):
        due = NOW + timedelta(hours=2, seconds=1)
        assert SLAClock.status_for(due, NOW) == SLAStatus.ON_TRACK

    def test_at_due_time_is_warning_not_breached(self):
        assert SLAClock.status_for(NOW, NOW) == SLAStatus.WARNING

    def test_past_due_is_breached(self):
        assert SLAClock.status_for(NOW - timedelta(seconds=1), NOW) == SLAStatus.BREACHED


@pytest.mark.unit
class TestLabels:

    def test_hours_and_minutes_remaining(self):
        assert SLAClock.format_remaining(timedelta(hours=3, minutes=5)) == "3h 5m remaining"

    def test_hours_omitted_when_zero(self):
        assert SLAClock.format_remaining(timedelta(minutes=45)) == "45m remaining"

    def test_overdue_uses_absolute_value(self):
        assert SLAClock.format_remaining(-timedelta(hours=2)) == "2h 0m overdue"

    def test_seconds_are_truncated(self):
        assert SLAClock.format_remaining(timedelta(minutes=1, seconds=59)) == "1m remaining"

    def test_evaluate_open_ticket(self):
        reading = SLAClock.evaluate(NOW + timedelta(hours=1, minutes=30), NOW, TicketStatus.IN_PROGRESS)
        assert reading.status == SLAStatus.WARNING
        assert reading.label == "1h 30m remaining"
        assert reading.remaining_seconds == 5400
        assert not reading.completed

    @pytest.mark.parametrize("status", [TicketStatus.RESOLVED, TicketStatus.CLOSED])
    def test_completed_ticket_reads_completed(self, status):
        reading = SLAClock.evaluate(NOW - timedelta(hours=10), NOW, status)
        assert reading.label == COMPLETED_LABEL
        assert reading.status is None
        assert reading.completed

    def test_resolved_group_reads_completed(self):
        reading = SLAClock.evaluate(NOW, NOW, GroupStatus.RESOLVED)
        assert reading.label == "Completed"

    def test_open_ticket_without_due_has_no_reading(self):
        assert SLAClock.evaluate_optional(None, NOW, TicketStatus.NEW) is None

    def test_completed_ticket_without_due_still_completed(self):
        reading = SLAClock.evaluate_optional(None, NOW, TicketStatus.CLOSED)
        assert reading.label == COMPLETED_LABEL


@pytest.mark.unit
class TestTicketSLA:

    def test_refresh_is_idempotent(self):
        ticket = make_ticket(sla_due_at=NOW - timedelta(minutes=1))
        assert ticket.refresh_sla_status(NOW) is True
        assert ticket.sla_status == SLAStatus.BREACHED
        assert ticket.refresh_sla_status(NOW) is False
        assert ticket.sla_status == SLAStatus.BREACHED

    def test_completed_ticket_keeps_stored_status(self):
        ticket = make_ticket(status=TicketStatus.RESOLVED, sla_status=SLAStatus.ON_TRACK,
                             sla_due_at=NOW - timedelta(days=1), resolved_at=NOW - timedelta(days=2))
        assert ticket.refresh_sla_status(NOW) is False
        assert ticket.sla_status == SLAStatus.ON_TRACK

    def test_resolve_stamps_and_reopen_clears(self):
        ticket = make_ticket()
        ticket.change_status(TicketStatus.RESOLVED, "u-sam", NOW)
        assert ticket.resolved_at == NOW
        assert ticket.resolved_by == "u-sam"
        assert ticket.sla_reading(NOW).label == "Completed"

        later = NOW + timedelta(hours=5)
        ticket.change_status(TicketStatus.IN_PROGRESS, "u-sam", later)
        assert ticket.resolved_at is None
        assert ticket.sla_status == SLAStatus.BREACHED
        assert ticket.sla_reading(later).label == "1h 0m overdue"

    def test_resolving_overdue_ticket_records_breach(self):
        ticket = make_ticket(sla_due_at=NOW - timedelta(hours=3), sla_status=SLAStatus.ON_TRACK)
        ticket.change_status(TicketStatus.RESOLVED, "u-sam", NOW)
        assert ticket.sla_status == SLAStatus.BREACHED

        stats = dashboard_stats([ticket], NOW + timedelta(days=1))
        assert (stats.overdue, stats.sla_compliance) == (1, 0)

    def test_closing_inside_warning_window_records_warning(self):
        ticket = make_ticket(sla_due_at=NOW + timedelta(hours=1))
        ticket.change_status(TicketStatus.CLOSED, "u-sam", NOW)
        assert ticket.sla_status == SLAStatus.WARNING

    def test_resolving_twice_keeps_first_stamp(self):
        ticket = make_ticket()
        ticket.change_status(TicketStatus.RESOLVED, "u-sam", NOW)
        ticket.change_status(TicketStatus.RESOLVED, "u-manager", NOW + timedelta(days=2))
        assert ticket.resolved_at == NOW
        assert ticket.resolved_by == "u-sam"
        assert ticket.sla_status == SLAStatus.ON_TRACK

    def test_close_keeps_earlier_resolution(self):
        ticket = make_ticket()
        ticket.change_status(TicketStatus.RESOLVED, "u-sam", NOW)
        ticket.change_status(TicketStatus.CLOSED, "u-manager", NOW + timedelta(hours=1))
        assert ticket.resolved_at == NOW
        assert ticket.resolved_by == "u-sam"
        assert ticket.closed_at == NOW + timedelta(hours=1)

    def test_reassign_to_user_moves_new_to_assigned(self):
        ticket = make_ticket()
        ticket.reassign(NOW, user_id="u-lena")
        assert ticket.status == TicketStatus.ASSIGNED
        assert ticket.assigned_to == "u-lena"

    def test_escalate_only_once(self):
        ticket = make_ticket()
        assert ticket.escalate(NOW) is True
        assert ticket.escalate(NOW + timedelta(minutes=5)) is False
        assert ticket.escalated_at == NOW

    def test_group_resolves_when_no_member_open(self):
        group = TicketGroup(id="g-1", name="Leeds outage")
        open_ticket = make_ticket()
        done = make_ticket(id="t-2", status=TicketStatus.CLOSED)
        assert group.resolve_if_done([open_ticket, done], NOW) is False
        open_ticket.change_status(TicketStatus.RESOLVED, "u-sam", NOW)
        assert group.resolve_if_done([open_ticket, done], NOW) is True
        assert group.status == GroupStatus.RESOLVED
