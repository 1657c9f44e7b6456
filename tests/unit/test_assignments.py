"""Tests for the assignment map: atomic replace, resolution and unassign."""

import asyncio

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from primehooks.assignments.models import AssignmentModel
from primehooks.assignments.service import AssignmentMap
from primehooks.common.exceptions import ConflictError, NotFoundError, ValidationError
from primehooks.organizations.service import OrganizationService
from primehooks.webhooks.service import WebhookRegistry


@pytest.fixture
def assignments():
    return AssignmentMap()


@pytest.fixture
async def webhooks(db, settings, organization_id):
    """Two active webhooks in the organization."""
    registry = WebhookRegistry(settings)
    async with db.get_session() as session:
        first = await registry.create(
            session, organization_id, name="First", endpoint_url="https://example.com/1",
        )
        second = await registry.create(
            session, organization_id, name="Second", endpoint_url="https://example.com/2",
        )
    return first, second


class TestAssign:
    async def test_creates_active_binding(self, db, assignments, organization_id, webhooks):
        async with db.get_session() as session:
            a = await assignments.assign(
                session, organization_id, "Chat", "input-right-addon", webhooks[0].id,
                button_data={"label": "Summarize"}, created_by="user-1",
            )
        assert a.is_active is True
        assert a.button_data == {"label": "Summarize"}
        assert a.created_by == "user-1"

    async def test_replaces_existing_binding(self, db, assignments, organization_id, webhooks):
        async with db.get_session() as session:
            old = await assignments.assign(session, organization_id, "Chat", "slot", webhooks[0].id)
        async with db.get_session() as session:
            new = await assignments.assign(session, organization_id, "Chat", "slot", webhooks[1].id)

        async with db.get_session() as session:
            active = await assignments.list_assignments(session, organization_id)
            assert [a.id for a in active] == [new.id]
            old_row = await session.get(AssignmentModel, old.id)
            assert old_row.is_active is False
            current = await assignments.get_assignment(session, organization_id, "Chat", "slot")
            assert current.webhook_id == webhooks[1].id

    async def test_other_positions_untouched(self, db, assignments, organization_id, webhooks):
        async with db.get_session() as session:
            await assignments.assign(session, organization_id, "Chat", "a", webhooks[0].id)
            await assignments.assign(session, organization_id, "Chat", "b", webhooks[0].id)
            await assignments.assign(session, organization_id, "Files", "a", webhooks[1].id)
        async with db.get_session() as session:
            assert len(await assignments.get_active_assignments(session, organization_id)) == 3

    async def test_webhook_from_other_organization(self, db, settings, assignments, organization_id):
        async with db.get_session() as session:
            other, _ = await OrganizationService().create_organization(
                session, name="Other", slug="other",
            )
            foreign = await WebhookRegistry(settings).create(
                session, other.id, name="Foreign", endpoint_url="https://example.com/f",
            )
        with pytest.raises(NotFoundError):
            async with db.get_session() as session:
                await assignments.assign(session, organization_id, "Chat", "slot", foreign.id)

    async def test_requires_page_and_position(self, db, assignments, organization_id, webhooks):
        with pytest.raises(ValidationError):
            async with db.get_session() as session:
                await assignments.assign(session, organization_id, "", "slot", webhooks[0].id)

    async def test_unique_index_rejects_second_active_row(
        self, db, assignments, organization_id, webhooks,
    ):
        async with db.get_session() as session:
            await assignments.assign(session, organization_id, "Chat", "slot", webhooks[0].id)
        # Bypass assign's deactivate step to simulate a racing writer.
        with pytest.raises(IntegrityError):
            async with db.get_session() as session:
                session.add(AssignmentModel(
                    organization_id=organization_id, feature_page="Chat",
                    position="slot", webhook_id=webhooks[1].id, is_active=True,
                ))
                await session.flush()


class TestResolve:
    async def test_both_active(self, db, assignments, organization_id, webhooks):
        async with db.get_session() as session:
            await assignments.assign(session, organization_id, "Chat", "slot", webhooks[0].id)
        async with db.get_session() as session:
            assignment, webhook = await assignments.resolve(session, organization_id, "Chat", "slot")
        assert webhook.id == webhooks[0].id
        assert assignment.position == "slot"

    async def test_inactive_webhook_is_unavailable(
        self, db, settings, assignments, organization_id, webhooks,
    ):
        async with db.get_session() as session:
            await assignments.assign(session, organization_id, "Chat", "slot", webhooks[0].id)
            await WebhookRegistry(settings).set_active(
                session, webhooks[0].id, organization_id, False,
            )
        async with db.get_session() as session:
            assert await assignments.resolve(session, organization_id, "Chat", "slot") is None
            # The assignment itself stays active.
            assert await assignments.get_assignment(session, organization_id, "Chat", "slot")

    async def test_nothing_assigned(self, db, assignments, organization_id):
        async with db.get_session() as session:
            assert await assignments.resolve(session, organization_id, "Chat", "slot") is None

    async def test_scoped_to_organization(self, db, assignments, organization_id, webhooks):
        async with db.get_session() as session:
            await assignments.assign(session, organization_id, "Chat", "slot", webhooks[0].id)
        async with db.get_session() as session:
            assert await assignments.resolve(session, "other-org", "Chat", "slot") is None


class TestUnassign:
    async def test_deactivates(self, db, assignments, organization_id, webhooks):
        async with db.get_session() as session:
            a = await assignments.assign(session, organization_id, "Chat", "slot", webhooks[0].id)
        async with db.get_session() as session:
            result = await assignments.unassign(session, organization_id, a.id)
        assert result.is_active is False
        async with db.get_session() as session:
            assert await assignments.get_assignment(session, organization_id, "Chat", "slot") is None
            listed = await assignments.list_assignments(
                session, organization_id, include_inactive=True,
            )
            assert [x.id for x in listed] == [a.id]

    async def test_unknown(self, db, assignments, organization_id):
        with pytest.raises(NotFoundError):
            async with db.get_session() as session:
                await assignments.unassign(session, organization_id, "missing")

    async def test_position_reusable_after_unassign(
        self, db, assignments, organization_id, webhooks,
    ):
        async with db.get_session() as session:
            a = await assignments.assign(session, organization_id, "Chat", "slot", webhooks[0].id)
        async with db.get_session() as session:
            await assignments.unassign(session, organization_id, a.id)
        async with db.get_session() as session:
            b = await assignments.assign(session, organization_id, "Chat", "slot", webhooks[1].id)
        assert b.is_active is True


class TestConflictSurface:
    async def test_integrity_error_becomes_conflict(
        self, db, assignments, organization_id, webhooks, monkeypatch,
    ):
        async with db.get_session() as session:
            await assignments.assign(session, organization_id, "Chat", "slot", webhooks[0].id)

        # Make the deactivate step a no-op so the insert collides with the live row.
        real_execute = AsyncSession.execute

        async def skip_update(self_, statement, *args, **kwargs):
            if getattr(statement, "is_update", False):
                return None
            return await real_execute(self_, statement, *args, **kwargs)

        monkeypatch.setattr(AsyncSession, "execute", skip_update)

        with pytest.raises(ConflictError):
            async with db.get_session() as session:
                await assignments.assign(session, organization_id, "Chat", "slot", webhooks[1].id)


class TestConcurrentAssign:
    async def test_one_active_row_per_position(self, file_db, settings, file_organization_id):
        registry = WebhookRegistry(settings)
        async with file_db.get_session() as session:
            first = await registry.create(
                session, file_organization_id, name="First", endpoint_url="https://example.com/1",
            )
            second = await registry.create(
                session, file_organization_id, name="Second", endpoint_url="https://example.com/2",
            )
        assignments = AssignmentMap()

        async def assign(webhook_id):
            async with file_db.get_session() as session:
                return await assignments.assign(
                    session, file_organization_id, "Chat", "slot", webhook_id,
                )

        results = await asyncio.gather(
            assign(first.id), assign(second.id), return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, BaseException)]
        assert all(isinstance(e, ConflictError) for e in errors)
        assert len(errors) < 2
        async with file_db.get_session() as session:
            active = await assignments.list_assignments(session, file_organization_id)
        assert len(active) == 1
        assert active[0].webhook_id in (first.id, second.id)
