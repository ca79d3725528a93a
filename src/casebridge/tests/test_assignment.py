"""
Tests for assigning and reassigning associates.
"""

import pytest

from casebridge.audit.recorder import AuditAction
from casebridge.db.orm import Assignment, Matter, MatterStatus
from casebridge.db.repositories import AssignmentRepository
from casebridge.db.session import UnitOfWork
from casebridge.errors import (
    AlreadyAssigned,
    Forbidden,
    InvalidSourceState,
    NoEligibleStaff,
    NotFound,
)
from casebridge.matters.assignment import AssignmentManager
from casebridge.notifications.dispatcher import EventType


async def assign(session_factory, ctx, matter_id, associate_id) -> Assignment:
    async with UnitOfWork(session_factory) as uow:
        return await AssignmentManager(uow).assign(ctx, matter_id, associate_id)


async def reassign(session_factory, ctx, matter_id, associate_id, reason=None) -> Assignment:
    async with UnitOfWork(session_factory) as uow:
        return await AssignmentManager(uow).reassign(ctx, matter_id, associate_id, reason)


class TestAssign:
    """Tests for first assignment."""

    @pytest.mark.asyncio
    async def test_assign_moves_matter_to_assigned(
        self, session_factory, seed, matter_factory, reload, audit_entries, notifications_for
    ):
        """Should record the assignment and the status change together."""
        matter = await matter_factory(MatterStatus.IN_REVIEW)

        assignment = await assign(session_factory, seed.ctx(seed.manager), matter.id, seed.associate.id)

        assert assignment.associate_id == seed.associate.id
        assert assignment.assigned_by == seed.manager.id
        assert assignment.is_active
        stored = await reload(Matter, matter.id)
        assert stored.status == MatterStatus.ASSIGNED

        actions = [e.action for e in await audit_entries(matter_id=matter.id)]
        assert actions == [AuditAction.CASE_ASSIGNED.value, AuditAction.CASE_STATUS_CHANGED.value]
        assert len(await notifications_for(seed.associate, EventType.CASE_ASSIGNED)) == 1
        client_notices = await notifications_for(seed.client, EventType.MATTER_STATUS_CHANGED)
        assert len(client_notices) == 1
        assert client_notices[0].matter_id == matter.id

    @pytest.mark.asyncio
    async def test_admin_can_assign(self, session_factory, seed, matter_factory, reload):
        """Should let an administrator staff a matter of their firm."""
        matter = await matter_factory(MatterStatus.IN_REVIEW)

        await assign(session_factory, seed.ctx(seed.admin), matter.id, seed.associate.id)

        assert (await reload(Matter, matter.id)).status == MatterStatus.ASSIGNED

    @pytest.mark.asyncio
    async def test_associate_cannot_assign(self, session_factory, seed, matter_factory):
        """Should reject assignment by an associate."""
        matter = await matter_factory(MatterStatus.IN_REVIEW)

        with pytest.raises(Forbidden):
            await assign(session_factory, seed.ctx(seed.associate), matter.id, seed.associate.id)

    @pytest.mark.asyncio
    async def test_other_firm_matter_is_not_found(self, session_factory, seed, matter_factory):
        """Should not reveal a matter of another firm."""
        matter = await matter_factory(MatterStatus.IN_REVIEW, firm=seed.other_firm)

        with pytest.raises(NotFound):
            await assign(session_factory, seed.ctx(seed.manager), matter.id, seed.associate.id)

    @pytest.mark.asyncio
    async def test_intake_matter_cannot_be_staffed(self, session_factory, seed, matter_factory):
        """Should require the matter to be claimed by the caller's firm."""
        matter = await matter_factory(MatterStatus.PENDING_REVIEW, firm=None)

        with pytest.raises(Forbidden):
            await assign(session_factory, seed.ctx(seed.manager), matter.id, seed.associate.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("who", ["manager", "other_associate", "client"])
    async def test_target_must_be_active_associate_of_firm(self, session_factory, seed, matter_factory, who):
        """Should reject targets that are not associates of the matter's firm."""
        matter = await matter_factory(MatterStatus.IN_REVIEW)

        with pytest.raises(NoEligibleStaff):
            await assign(session_factory, seed.ctx(seed.manager), matter.id, getattr(seed, who).id)

    @pytest.mark.asyncio
    async def test_second_assignment_is_rejected(self, session_factory, seed, matter_factory, audit_entries):
        """Should reject assigning a matter that already has an associate."""
        matter = await matter_factory(MatterStatus.IN_REVIEW)
        await assign(session_factory, seed.ctx(seed.manager), matter.id, seed.associate.id)

        with pytest.raises(AlreadyAssigned):
            await assign(session_factory, seed.ctx(seed.manager), matter.id, seed.associate2.id)

        assigned = await audit_entries(matter_id=matter.id, action=AuditAction.CASE_ASSIGNED)
        assert len(assigned) == 1

    @pytest.mark.asyncio
    async def test_wrong_source_state_leaves_nothing_behind(
        self, session_factory, seed, matter_factory, audit_entries
    ):
        """Should reject assignment outside in_review without writing anything."""
        matter = await matter_factory(MatterStatus.AWAITING_DOCUMENTS)

        with pytest.raises(InvalidSourceState):
            await assign(session_factory, seed.ctx(seed.manager), matter.id, seed.associate.id)

        async with session_factory() as session:
            assert await AssignmentRepository(session).history(matter.id) == []
        assert await audit_entries(matter_id=matter.id) == []

    @pytest.mark.asyncio
    async def test_eligible_associates(self, session_factory, seed):
        """Should list the active associates of the caller's firm."""
        async with UnitOfWork(session_factory) as uow:
            associates = await AssignmentManager(uow).eligible_associates(seed.ctx(seed.manager))

        assert {a.id for a in associates} == {seed.associate.id, seed.associate2.id}


class TestReassign:
    """Tests for replacing the active assignment."""

    @pytest.mark.asyncio
    async def test_reassign_supersedes_previous(
        self, session_factory, seed, matter_factory, reload, audit_entries, notifications_for
    ):
        """Should keep the old assignment as history and leave the status alone."""
        matter = await matter_factory(MatterStatus.IN_PROGRESS, assigned_to=seed.associate)

        new = await reassign(
            session_factory, seed.ctx(seed.manager), matter.id, seed.associate2.id, reason="Conflict of interest"
        )

        async with session_factory() as session:
            history = await AssignmentRepository(session).history(matter.id)
        assert len(history) == 2
        old = next(a for a in history if a.id != new.id)
        assert old.superseded_at is not None
        assert old.superseded_by == seed.manager.id
        assert old.supersede_reason == "Conflict of interest"
        assert new.is_active

        stored = await reload(Matter, matter.id)
        assert stored.status == MatterStatus.IN_PROGRESS

        entries = await audit_entries(matter_id=matter.id, action=AuditAction.CASE_REASSIGNED)
        assert len(entries) == 1
        assert entries[0].details["from_associate"] == str(seed.associate.id)
        assert entries[0].details["to_associate"] == str(seed.associate2.id)

        assert len(await notifications_for(seed.associate2, EventType.CASE_REASSIGNED)) == 1
        assert len(await notifications_for(seed.associate, EventType.CASE_REASSIGNED)) == 1

    @pytest.mark.asyncio
    async def test_previous_associate_loses_access(self, session_factory, seed, matter_factory):
        """Should move need-to-know access to the new associate."""
        matter = await matter_factory(MatterStatus.ON_HOLD, assigned_to=seed.associate)
        await reassign(session_factory, seed.ctx(seed.manager), matter.id, seed.associate2.id)

        async with UnitOfWork(session_factory) as uow:
            access = AssignmentManager(uow).access
            with pytest.raises(NotFound):
                await access.require_matter(seed.ctx(seed.associate), matter.id)
            assert (await access.require_matter(seed.ctx(seed.associate2), matter.id)).id == matter.id

    @pytest.mark.asyncio
    async def test_same_associate_is_rejected(self, session_factory, seed, matter_factory):
        """Should reject reassigning to the current associate."""
        matter = await matter_factory(MatterStatus.ASSIGNED, assigned_to=seed.associate)

        with pytest.raises(AlreadyAssigned):
            await reassign(session_factory, seed.ctx(seed.manager), matter.id, seed.associate.id)

    @pytest.mark.asyncio
    async def test_closed_matter_cannot_be_reassigned(self, session_factory, seed, matter_factory):
        """Should reject reassignment of a closed matter."""
        matter = await matter_factory(MatterStatus.CLOSED, assigned_to=seed.associate)

        with pytest.raises(InvalidSourceState):
            await reassign(session_factory, seed.ctx(seed.manager), matter.id, seed.associate2.id)
