# tests/test_ticket_service.py

from datetime import timedelta

import pytest

from cityflow.config import GroupStatus, SLAStatus, TicketStatus
from cityflow.core import (
    ConfigurationException,
    RepositoryException,
    ResourceNotFoundException,
    UnroutableTicketException,
    ValidationException,
)
from cityflow.tickets.application import (
    AttachmentUpload,
    CommentCreateDTO,
    GroupCreateDTO,
    GroupResolveDTO,
    TicketCreateDTO,
    TicketService,
)
from cityflow.tickets.domain import TicketFilter

from tests.conftest import NOW, FakeNotifier, FakeStorage, InMemoryAttachmentRepository


def create_dto(**overrides) -> TicketCreateDTO:
    values = dict(
        issue_type_id="it-late",
        city="Leeds",
        subject="Pallets missing from delivery",
        supplier_name="Acme Logistics",
    )
    values.update(overrides)
    return TicketCreateDTO(**values)


async def create(service, user, now=NOW, **overrides):
    return (await service.create_ticket(create_dto(**overrides), user, now=now)).ticket


@pytest.mark.unit
class TestCreateTicket:

    async def test_routed_ticket_is_assigned(self, ticket_service, super_admin):
        result = await ticket_service.create_ticket(create_dto(), super_admin, now=NOW)
        ticket = result.ticket

        assert ticket.id
        assert ticket.ticket_number.startswith("TKT-250314-")
        assert ticket.status == TicketStatus.ASSIGNED
        assert ticket.assigned_to == "u-sam"
        assert ticket.team_id == "t-desk"
        assert ticket.tier2_team_id == "t-north-city"
        assert ticket.region_id == "r-north"
        assert ticket.sla_due_at == NOW + timedelta(hours=4)
        assert ticket.sla_status == SLAStatus.ON_TRACK
        assert ticket.created_by == "u-admin"

    async def test_without_default_assignee_ticket_is_new(self, ticket_service, super_admin):
        ticket = await create(ticket_service, super_admin, issue_type_id="it-invoice")
        assert ticket.status == TicketStatus.NEW
        assert ticket.assigned_to is None

    async def test_short_sla_starts_in_warning(self, ticket_service, directory, super_admin):
        directory.issue_types["it-late"].default_sla_hours = 1
        ticket = await create(ticket_service, super_admin)
        assert ticket.sla_status == SLAStatus.WARNING

    async def test_unroutable_city_writes_nothing(self, ticket_service, ticket_repo, super_admin):
        with pytest.raises(UnroutableTicketException):
            await ticket_service.create_ticket(create_dto(city="Atlantis"), super_admin, now=NOW)
        assert ticket_repo.tickets == {}
        assert ticket_repo.saves == 0

    async def test_unknown_issue_type(self, ticket_service, super_admin):
        with pytest.raises(ResourceNotFoundException):
            await ticket_service.create_ticket(create_dto(issue_type_id="it-nope"), super_admin, now=NOW)

    async def test_creation_response_carries_assignment(self, ticket_service, super_admin):
        result = await ticket_service.create_ticket(create_dto(), super_admin, now=NOW)
        response = ticket_service.creation_response(result)

        assert response.assignment.tier2_team_name == "North City Team"
        assert response.assignment.manager_name == "Priya Raman"
        assert response.ticket.sla.label == "4h 0m remaining"


@pytest.mark.unit
class TestAttachments:

    async def test_attachments_stored_with_ticket(self, ticket_service, storage, super_admin):
        uploads = [AttachmentUpload("photo.jpg", b"jpeg", "image/jpeg")]
        result = await ticket_service.create_ticket(create_dto(), super_admin, uploads=uploads, now=NOW)

        assert len(result.attachments) == 1
        attachment = result.attachments[0]
        assert attachment.storage_path.startswith(f"{result.ticket.id}/")
        assert attachment.storage_path.endswith("_photo.jpg")
        assert attachment.file_url == f"https://files.test/{attachment.storage_path}"
        assert storage.objects[attachment.storage_path] == b"jpeg"

    async def test_partial_failure_keeps_ticket(
        self, ticket_repo, group_repo, comment_repo, directory, notifier, super_admin
    ):
        storage = FakeStorage(fail_for=["broken.pdf"])
        attachments = InMemoryAttachmentRepository(fail_for=["orphan.txt"])
        service = TicketService(
            ticket_repo, group_repo, comment_repo, attachments, directory,
            storage=storage, notifier=notifier, max_attachment_bytes=1024
        )
        uploads = [
            AttachmentUpload("ok.png", b"png", "image/png"),
            AttachmentUpload("broken.pdf", b"pdf", "application/pdf"),
            AttachmentUpload("orphan.txt", b"txt", "text/plain"),
            AttachmentUpload("empty.csv", b"", "text/csv"),
            AttachmentUpload("huge.bin", b"x" * 2048, None),
        ]
        result = await service.create_ticket(create_dto(), super_admin, uploads=uploads, now=NOW)

        assert result.ticket.id in ticket_repo.tickets
        assert [a.file_name for a in result.attachments] == ["ok.png"]
        assert [name for name, _ in result.attachment_errors] == [
            "broken.pdf", "orphan.txt", "empty.csv", "huge.bin"
        ]
        # the failed metadata insert leaves its object behind
        assert any(path.endswith("_orphan.txt") for path in storage.objects)

    async def test_metadata_failure_reraises_from_add_attachment(
        self, ticket_repo, group_repo, comment_repo, directory, super_admin
    ):
        service = TicketService(
            ticket_repo, group_repo, comment_repo,
            InMemoryAttachmentRepository(fail_for=["a.txt"]), directory,
            storage=FakeStorage()
        )
        ticket = await create(service, super_admin)
        with pytest.raises(RepositoryException):
            await service.add_attachment(ticket.id, AttachmentUpload("a.txt", b"a"), super_admin)

    async def test_no_storage_configured(self, ticket_repo, group_repo, comment_repo, attachment_repo,
                                         directory, super_admin):
        service = TicketService(ticket_repo, group_repo, comment_repo, attachment_repo, directory)
        ticket = await create(service, super_admin)
        with pytest.raises(ConfigurationException):
            await service.add_attachment(ticket.id, AttachmentUpload("a.txt", b"a"), super_admin)

    async def test_unsafe_file_name_is_cleaned(self, ticket_service, super_admin):
        ticket = await create(ticket_service, super_admin)
        attachment = await ticket_service.add_attachment(
            ticket.id, AttachmentUpload("../../etc/pass wd", b"x"), super_admin
        )
        assert attachment.storage_path.endswith("_pass_wd")
        assert attachment.file_name == "../../etc/pass wd"


@pytest.mark.unit
class TestReadAndScope:

    async def test_overdue_ticket_reads_breached(self, ticket_service, ticket_repo, super_admin):
        ticket = await create(ticket_service, super_admin, now=NOW - timedelta(hours=6))
        detail = await ticket_service.get_ticket_detail(ticket.id, super_admin, now=NOW)

        assert detail.ticket.sla.status == SLAStatus.BREACHED
        assert detail.ticket.sla.label.endswith("overdue")
        assert detail.ticket.sla.label == "2h 0m overdue"

    async def test_resolved_ticket_reads_completed(self, ticket_service, super_admin):
        ticket = await create(ticket_service, super_admin, now=NOW - timedelta(days=2))
        await ticket_service.resolve_ticket(ticket.id, super_admin, now=NOW - timedelta(days=1))
        detail = await ticket_service.get_ticket_detail(ticket.id, super_admin, now=NOW)

        assert detail.ticket.sla.label == "Completed"
        assert detail.ticket.sla.status is None

    async def test_detail_names(self, ticket_service, super_admin):
        ticket = await create(ticket_service, super_admin)
        detail = await ticket_service.get_ticket_detail(ticket.id, super_admin, now=NOW)

        assert detail.issue_type_name == "Late delivery"
        assert detail.assignee_name == "Sam Whitfield"
        assert detail.team_name == "Supplier Desk"
        assert detail.tier2_team_name == "North City Team"
        assert detail.region_name == "North"
        assert detail.manager_name == "Priya Raman"

    async def test_inactive_manager_reads_no_manager(self, ticket_service, directory, super_admin):
        directory.regions["r-north"].manager_id = "u-gone"
        ticket = await create(ticket_service, super_admin)
        detail = await ticket_service.get_ticket_detail(ticket.id, super_admin, now=NOW)

        assert detail.manager_name == "No manager"

    async def test_agent_sees_only_own_region(self, ticket_service, super_admin, north_agent, south_agent):
        north = await create(ticket_service, super_admin)
        south = await create(ticket_service, super_admin, city="Brighton")

        tickets, scope = await ticket_service.list_tickets(north_agent, TicketFilter())
        assert scope == "r-north"
        assert [t.id for t in tickets] == [north.id]

        with pytest.raises(ResourceNotFoundException):
            await ticket_service.get_ticket(north.id, south_agent)
        assert (await ticket_service.get_ticket(south.id, south_agent)).id == south.id

    async def test_super_admin_sees_everything(self, ticket_service, super_admin):
        await create(ticket_service, super_admin)
        await create(ticket_service, super_admin, city="Brighton")
        tickets, scope = await ticket_service.list_tickets(super_admin, TicketFilter())
        assert scope is None
        assert len(tickets) == 2

    async def test_search_matches_supplier(self, ticket_service, super_admin):
        await create(ticket_service, super_admin, supplier_name="Northwind")
        await create(ticket_service, super_admin, supplier_name="Contoso")
        tickets, _ = await ticket_service.list_tickets(super_admin, TicketFilter(search="north"))
        assert [t.supplier_name for t in tickets] == ["Northwind"]


@pytest.mark.unit
class TestUpdates:

    async def test_resolve_with_note(self, ticket_service, comment_repo, super_admin):
        ticket = await create(ticket_service, super_admin)
        resolved = await ticket_service.resolve_ticket(ticket.id, super_admin, "Refund issued", now=NOW)

        assert resolved.status == TicketStatus.RESOLVED
        assert resolved.resolved_by == "u-admin"
        assert [c.content for c in comment_repo.comments.values()] == ["Refund issued"]

    async def test_reassign_to_inactive_user_rejected(self, ticket_service, super_admin):
        ticket = await create(ticket_service, super_admin)
        with pytest.raises(ResourceNotFoundException):
            await ticket_service.reassign_ticket(ticket.id, super_admin, user_id="u-gone")

    async def test_reassign_needs_target(self, ticket_service, super_admin):
        ticket = await create(ticket_service, super_admin)
        with pytest.raises(ValidationException):
            await ticket_service.reassign_ticket(ticket.id, super_admin)

    async def test_escalation_notifies_city_team_once(self, ticket_service, notifier, super_admin):
        ticket = await create(ticket_service, super_admin)
        await ticket_service.escalate_ticket(ticket.id, super_admin, "Supplier unreachable")
        await ticket_service.escalate_ticket(ticket.id, super_admin, "Again")
        assert notifier.escalations == []

        assert await ticket_service.deliver_pending_notifications() == 1
        assert notifier.escalations == [(ticket.id, "Supplier unreachable", "North City Team")]
        assert await ticket_service.deliver_pending_notifications() == 0

    async def test_failing_notifier_keeps_escalation(self, ticket_repo, group_repo, comment_repo,
                                                     attachment_repo, directory, super_admin):
        class BrokenNotifier(FakeNotifier):
            async def notify_escalation(self, ticket, reason=None, tier2_team_name=None):
                raise RuntimeError("webhook down")

        service = TicketService(ticket_repo, group_repo, comment_repo, attachment_repo, directory,
                                notifier=BrokenNotifier())
        ticket = await create(service, super_admin)
        await service.escalate_ticket(ticket.id, super_admin, "Supplier unreachable", now=NOW)

        assert await service.deliver_pending_notifications() == 0
        stored = ticket_repo.tickets[ticket.id]
        assert stored.is_escalated
        assert stored.escalated_at == NOW

    async def test_reply_parent_must_belong_to_ticket(self, ticket_service, super_admin):
        first = await create(ticket_service, super_admin)
        second = await create(ticket_service, super_admin)
        comment = await ticket_service.add_comment(first.id, CommentCreateDTO(content="Chasing"), super_admin)

        reply = await ticket_service.add_comment(
            first.id, CommentCreateDTO(content="Done", parent_id=comment.id), super_admin
        )
        assert reply.parent_id == comment.id
        with pytest.raises(ResourceNotFoundException):
            await ticket_service.add_comment(
                second.id, CommentCreateDTO(content="Wrong thread", parent_id=comment.id), super_admin
            )


@pytest.mark.unit
class TestBulkActions:

    async def test_bulk_resolve_skips_other_region(self, ticket_service, super_admin, north_agent):
        north = await create(ticket_service, super_admin)
        south = await create(ticket_service, super_admin, city="Brighton")

        result = await ticket_service.bulk_resolve([north.id, south.id, "t-missing"], north_agent, now=NOW)
        assert result.updated == 1
        assert result.ticket_ids == [north.id]
        assert result.missing == [south.id, "t-missing"]

    async def test_bulk_resolve_ignores_completed(self, ticket_service, super_admin):
        ticket = await create(ticket_service, super_admin)
        await ticket_service.resolve_ticket(ticket.id, super_admin)
        result = await ticket_service.bulk_resolve([ticket.id], super_admin)
        assert result.updated == 0

    async def test_bulk_reassign(self, ticket_service, super_admin):
        first = await create(ticket_service, super_admin, issue_type_id="it-invoice")
        second = await create(ticket_service, super_admin, issue_type_id="it-invoice")
        result = await ticket_service.bulk_reassign([first.id, second.id], super_admin, user_id="u-lena")

        assert result.updated == 2
        refreshed = await ticket_service.get_ticket(first.id, super_admin)
        assert refreshed.assigned_to == "u-lena"
        assert refreshed.status == TicketStatus.ASSIGNED

    async def test_bulk_escalate_notifies_each(self, ticket_service, notifier, super_admin):
        ids = [(await create(ticket_service, super_admin)).id for _ in range(3)]
        result = await ticket_service.bulk_escalate(ids, super_admin, "Outage")
        assert result.updated == 3
        assert len(ticket_service.pending_notifications) == 3
        assert notifier.escalations == []

        assert await ticket_service.deliver_pending_notifications() == 3
        assert {e[0] for e in notifier.escalations} == set(ids)

    async def test_bulk_reply_internal_note(self, ticket_service, comment_repo, super_admin):
        ids = [(await create(ticket_service, super_admin)).id for _ in range(2)]
        result = await ticket_service.bulk_reply(ids, super_admin, " Looking into it ", is_internal=True)
        assert result.updated == 2
        assert {c.content for c in comment_repo.comments.values()} == {"Looking into it"}
        assert all(c.is_internal for c in comment_repo.comments.values())

    async def test_bulk_reply_rejects_blank(self, ticket_service, super_admin):
        ticket = await create(ticket_service, super_admin)
        with pytest.raises(ValidationException):
            await ticket_service.bulk_reply([ticket.id], super_admin, "   ")


@pytest.mark.unit
class TestGroups:

    async def test_new_group_from_bulk_inherits_shared_fields(self, ticket_service, group_repo, super_admin):
        ids = [(await create(ticket_service, super_admin)).id for _ in range(2)]
        result = await ticket_service.bulk_add_to_group(ids, super_admin, group_name="Leeds depot", now=NOW)

        group = group_repo.groups[result.group_id]
        assert group.issue_type_id == "it-late"
        assert group.city == "Leeds"
        assert group.sla_due_at == NOW + timedelta(hours=4)
        assert result.updated == 2

    async def test_mixed_tickets_give_group_without_defaults(self, ticket_service, group_repo, super_admin):
        first = await create(ticket_service, super_admin)
        second = await create(ticket_service, super_admin, issue_type_id="it-invoice", city="York")
        result = await ticket_service.bulk_add_to_group([first.id, second.id], super_admin, group_name="Mixed")

        group = group_repo.groups[result.group_id]
        assert group.issue_type_id is None
        assert group.city is None
        assert group.sla_due_at is None

    async def test_resolving_all_members_resolves_group(self, ticket_service, super_admin):
        ids = [(await create(ticket_service, super_admin)).id for _ in range(2)]
        group = await ticket_service.create_group(
            GroupCreateDTO(name="Depot fire", issue_type_id="it-late", ticket_ids=ids), super_admin, now=NOW
        )

        result = await ticket_service.resolve_group(
            group.id, GroupResolveDTO(resolution_note="Depot reopened"), super_admin, now=NOW
        )
        assert result.updated == 2

        detail = await ticket_service.get_group_detail(group.id, super_admin, now=NOW)
        assert detail.group.status == GroupStatus.RESOLVED
        assert detail.group.open_count == 0
        assert detail.group.sla.label == "Completed"

    async def test_partial_group_resolution_keeps_group_active(self, ticket_service, super_admin):
        ids = [(await create(ticket_service, super_admin)).id for _ in range(2)]
        group = await ticket_service.create_group(GroupCreateDTO(name="Split", ticket_ids=ids), super_admin)

        await ticket_service.resolve_group(group.id, GroupResolveDTO(ticket_ids=[ids[0]]), super_admin)
        groups = await ticket_service.list_groups()
        assert [(g.name, g.open_count, g.status) for g in groups] == [("Split", 1, GroupStatus.ACTIVE)]

    async def test_resolving_last_member_individually_resolves_group(self, ticket_service, super_admin):
        ticket = await create(ticket_service, super_admin)
        group = await ticket_service.create_group(
            GroupCreateDTO(name="Single", ticket_ids=[ticket.id]), super_admin
        )
        await ticket_service.change_status(ticket.id, TicketStatus.CLOSED, super_admin)

        assert await ticket_service.list_groups() == []
        resolved = await ticket_service.list_groups(include_resolved=True)
        assert resolved[0].id == group.id

    async def test_cannot_add_to_resolved_group(self, ticket_service, group_repo, super_admin):
        ticket = await create(ticket_service, super_admin)
        group = await ticket_service.create_group(GroupCreateDTO(name="Closed out"), super_admin)
        stored = group_repo.groups[group.id]
        stored.status = GroupStatus.RESOLVED

        with pytest.raises(ValidationException):
            await ticket_service.bulk_add_to_group([ticket.id], super_admin, group_id=group.id)
