"""
Documents, progress updates, case statements and tasks attached to a matter.

Closed and rejected matters are read-only.
"""

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from casebridge.audit.recorder import AuditAction, AuditRecorder
from casebridge.db.orm import (
    CaseStatement,
    Matter,
    MatterDocument,
    MatterTask,
    MatterUpdate,
    PrincipalRole,
    PrincipalStatus,
    TaskPriority,
    TaskStatus,
    utcnow,
)
from casebridge.db.repositories import AssignmentRepository, MatterRecordRepository, PrincipalRepository
from casebridge.db.session import UnitOfWork
from casebridge.errors import Conflict, InvalidSourceState, NotFound, ValidationFailed
from casebridge.matters.lifecycle import STATUS_LABELS
from casebridge.matters.visibility import filter_visible
from casebridge.notifications.dispatcher import EventType
from casebridge.security.access import MatterAccess, Permission, require, require_firm_scope
from casebridge.security.identity import AuthContext

logger = logging.getLogger(__name__)


class MatterRecords:
    def __init__(self, uow: UnitOfWork):
        session = uow.session
        self.notifications = uow.notifications
        self.access = MatterAccess(session)
        self.audit = AuditRecorder(session)
        self.records = MatterRecordRepository(session)
        self.assignments = AssignmentRepository(session)
        self.principals = PrincipalRepository(session)

    async def _writable_matter(self, ctx: AuthContext, matter_id: UUID) -> Matter:
        matter = await self.access.require_matter(ctx, matter_id)
        if matter.status.is_terminal:
            raise InvalidSourceState(f"Matter is {STATUS_LABELS[matter.status]} and read-only")
        if ctx.is_internal:
            # Staff can only write to matters their firm has claimed
            require_firm_scope(ctx, matter.firm_id)
        return matter

    def _emit(self, recipient_id: UUID, matter: Matter, event: EventType, title: str, message: str, link: str) -> None:
        self.notifications.emit(
            recipient_id,
            event,
            {"title": title, "message": message, "link": link},
            firm_id=matter.firm_id,
            matter_id=matter.id,
        )

    async def _notify_firm_side(self, matter: Matter, title: str, message: str) -> None:
        """Tell the assigned associate, or the firm's case managers if unassigned."""
        link = f"/workspace/matters/{matter.id}"
        assignment = await self.assignments.get_active(matter.id)
        if assignment is not None:
            self._emit(assignment.associate_id, matter, EventType.DOCUMENT_UPLOADED, title, message, link)
            return
        if matter.firm_id is None:
            return
        managers = await self.principals.list_for_firm(
            matter.firm_id, roles=[PrincipalRole.CASE_MANAGER], status=PrincipalStatus.ACTIVE
        )
        for manager in managers:
            self._emit(manager.id, matter, EventType.DOCUMENT_UPLOADED, title, message, link)

    async def add_document(
        self,
        ctx: AuthContext,
        matter_id: UUID,
        *,
        file_name: str,
        storage_key: str,
        client_visible: bool = False,
        content_type: Optional[str] = None,
    ) -> MatterDocument:
        """
        Attach an uploaded document reference to a matter.

        Client uploads are always visible to the client who made them.
        """
        require(ctx, Permission.DOCUMENT_UPLOAD)
        matter = await self._writable_matter(ctx, matter_id)
        if ctx.role == PrincipalRole.CLIENT:
            client_visible = True

        document = await self.records.add(MatterDocument(
            matter_id=matter.id,
            uploaded_by=ctx.principal_id,
            file_name=file_name,
            storage_key=storage_key,
            content_type=content_type,
            client_visible=client_visible,
        ))
        await self.audit.record(
            matter.firm_id, ctx.principal_id, AuditAction.DOCUMENT_UPLOADED,
            matter_id=matter.id,
            details={
                "document_id": document.id,
                "file_name": file_name,
                "client_visible": client_visible,
            },
        )

        message = f"{ctx.display_name} uploaded {file_name} to {matter.matter_number}"
        if ctx.role == PrincipalRole.CLIENT:
            await self._notify_firm_side(matter, "New client document", message)
        elif client_visible:
            self._emit(
                matter.client_id, matter, EventType.DOCUMENT_UPLOADED,
                "New document on your matter", message, f"/portal/matters/{matter.id}",
            )

        logger.info(f"Document {document.id} added to {matter.matter_number} by {ctx.principal_id}")
        return document

    async def set_document_visibility(
        self, ctx: AuthContext, document_id: UUID, client_visible: bool
    ) -> MatterDocument:
        require(ctx, Permission.DOCUMENT_MANAGE)
        document = await self.records.get_document(document_id)
        if document is None:
            raise NotFound("Document not found")
        matter = await self._writable_matter(ctx, document.matter_id)

        if document.client_visible != client_visible:
            document.client_visible = client_visible
            await self.audit.record(
                matter.firm_id, ctx.principal_id, AuditAction.DOCUMENT_VISIBILITY_CHANGED,
                matter_id=matter.id,
                details={"document_id": document.id, "client_visible": client_visible},
            )
        return document

    async def post_update(
        self,
        ctx: AuthContext,
        matter_id: UUID,
        content: str,
        client_visible: bool = False,
    ) -> MatterUpdate:
        """Post a progress note; client-visible notes notify the client."""
        require(ctx, Permission.UPDATE_POST)
        matter = await self._writable_matter(ctx, matter_id)

        update = await self.records.add(MatterUpdate(
            matter_id=matter.id,
            author_id=ctx.principal_id,
            content=content,
            client_visible=client_visible,
        ))
        await self.audit.record(
            matter.firm_id, ctx.principal_id, AuditAction.MATTER_UPDATE_POSTED,
            matter_id=matter.id,
            details={"update_id": update.id, "client_visible": client_visible},
        )
        if client_visible:
            self._emit(
                matter.client_id, matter, EventType.MATTER_UPDATE_POSTED,
                "Update on your matter",
                f"There is a new update on {matter.matter_number}",
                f"/portal/matters/{matter.id}",
            )
        return update

    async def save_statement(self, ctx: AuthContext, matter_id: UUID, content: str) -> CaseStatement:
        """Append a new version of the internal case statement."""
        require(ctx, Permission.STATEMENT_EDIT)
        matter = await self._writable_matter(ctx, matter_id)

        latest = await self.records.latest_statement(matter.id)
        version = latest.version + 1 if latest else 1
        try:
            statement = await self.records.add(CaseStatement(
                matter_id=matter.id,
                version=version,
                content=content,
                author_id=ctx.principal_id,
            ))
        except IntegrityError as e:
            raise Conflict("The statement was updated by someone else") from e

        await self.audit.record(
            matter.firm_id, ctx.principal_id, AuditAction.CASE_STATEMENT_UPDATED,
            matter_id=matter.id,
            details={"statement_id": statement.id, "version": version},
        )
        return statement

    async def _task_on_writable_matter(self, ctx: AuthContext, task_id: UUID) -> tuple[MatterTask, Matter]:
        task = await self.records.get_task(task_id)
        if task is None:
            raise NotFound("Task not found")
        return task, await self._writable_matter(ctx, task.matter_id)

    async def add_task(
        self,
        ctx: AuthContext,
        matter_id: UUID,
        *,
        title: str,
        description: Optional[str] = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        due_date: Optional[date] = None,
        client_visible: bool = False,
        assigned_to: Optional[UUID] = None,
    ) -> MatterTask:
        """
        Add a task to a matter.

        Raises:
            ValidationFailed: the assignee is not active staff of the matter's firm
        """
        require(ctx, Permission.TASK_MANAGE)
        matter = await self._writable_matter(ctx, matter_id)

        if assigned_to is not None:
            assignee = await self.principals.get(assigned_to)
            if (
                assignee is None
                or not assignee.role.is_internal
                or assignee.status != PrincipalStatus.ACTIVE
                or assignee.firm_id != matter.firm_id
            ):
                raise ValidationFailed("Tasks can only be assigned to active staff of the firm")

        task = await self.records.add(MatterTask(
            matter_id=matter.id,
            title=title,
            description=description,
            priority=TaskPriority(priority),
            due_date=due_date,
            client_visible=client_visible,
            assigned_to=assigned_to,
            created_by=ctx.principal_id,
            status=TaskStatus.PENDING,
        ))
        await self.audit.record(
            matter.firm_id, ctx.principal_id, AuditAction.TASK_CREATED,
            target_id=assigned_to,
            matter_id=matter.id,
            details={
                "task_id": task.id,
                "title": title,
                "priority": task.priority,
                "client_visible": client_visible,
            },
        )
        if assigned_to is not None and assigned_to != ctx.principal_id:
            self._emit(
                assigned_to, matter, EventType.TASK_ASSIGNED,
                "New task",
                f"{ctx.display_name} assigned you \"{title}\" on {matter.matter_number}",
                f"/workspace/matters/{matter.id}",
            )
        return task

    async def set_task_status(self, ctx: AuthContext, task_id: UUID, status: TaskStatus) -> MatterTask:
        """Move a task; completed_at follows the COMPLETED state."""
        require(ctx, Permission.TASK_UPDATE)
        status = TaskStatus(status)
        task, matter = await self._task_on_writable_matter(ctx, task_id)
        if task.status == status:
            return task

        previous = task.status
        task.status = status
        task.completed_at = utcnow() if status == TaskStatus.COMPLETED else None
        await self.audit.record(
            matter.firm_id, ctx.principal_id, AuditAction.TASK_STATUS_CHANGED,
            matter_id=matter.id,
            details={"task_id": task.id, "from": previous, "to": status},
        )
        if task.client_visible and status == TaskStatus.COMPLETED:
            self._emit(
                matter.client_id, matter, EventType.TASK_UPDATED,
                "Progress on your matter",
                f"\"{task.title}\" is done on {matter.matter_number}",
                f"/portal/matters/{matter.id}",
            )
        logger.info(f"Task {task.id} {previous.value} -> {status.value} by {ctx.principal_id}")
        return task

    async def set_task_visibility(self, ctx: AuthContext, task_id: UUID, client_visible: bool) -> MatterTask:
        require(ctx, Permission.TASK_MANAGE)
        task, matter = await self._task_on_writable_matter(ctx, task_id)

        if task.client_visible != client_visible:
            task.client_visible = client_visible
            await self.audit.record(
                matter.firm_id, ctx.principal_id, AuditAction.TASK_VISIBILITY_CHANGED,
                matter_id=matter.id,
                details={"task_id": task.id, "client_visible": client_visible},
            )
        return task

    async def list_tasks(self, ctx: AuthContext, matter_id: UUID) -> list[MatterTask]:
        """A matter's tasks; clients only get the ones flagged for them."""
        matter = await self.access.require_matter(ctx, matter_id)
        return filter_visible(await self.records.tasks(matter.id), ctx.role)

    async def list_my_tasks(self, ctx: AuthContext, include_completed: bool = False) -> list[MatterTask]:
        require(ctx, Permission.TASK_UPDATE)
        return await self.records.tasks_assigned_to(ctx.principal_id, open_only=not include_completed)
