from __future__ import annotations

from typing import Any

from ..enums import LOCKED_TASK_FIELDS, LOCKED_TASK_STATUSES, AllocationStatus, TaskStatus
from ..errors import NotFoundError, TaskLockedError
from ..extensions import db
from ..models import InventoryAllocation, JobCardTask
from ..services.concurrency import lock_for_update
from ..time_utils import utcnow


class TaskRepository:
    """Persistence for job card tasks."""

    def __init__(self, tenant_id: int, session=None):
        self.tenant_id = tenant_id
        self.session = session if session is not None else db.session

    def _query(self, include_deleted: bool = False):
        query = self.session.query(JobCardTask).filter(JobCardTask.tenant_id == self.tenant_id)
        if not include_deleted:
            query = query.filter(JobCardTask.deleted_at.is_(None))
        return query

    # --- Reads ----------------------------------------------------------------

    def find_by_id(self, task_id: str, *, for_update: bool = False) -> JobCardTask | None:
        query = self._query().filter(JobCardTask.id == task_id)
        if for_update:
            query = lock_for_update(query)
        return query.first()

    def get(self, task_id: str, *, for_update: bool = False) -> JobCardTask:
        task = self.find_by_id(task_id, for_update=for_update)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def find_by_jobcard_id(self, jobcard_id: str, *, include_deleted: bool = False) -> list[JobCardTask]:
        return (
            self._query(include_deleted=include_deleted)
            .filter(JobCardTask.jobcard_id == jobcard_id)
            .order_by(JobCardTask.created_at.asc(), JobCardTask.id.asc())
            .all()
        )

    def find_by_status(self, status: TaskStatus) -> list[JobCardTask]:
        return self._query().filter(JobCardTask.task_status == status).all()

    def find_by_inventory_item_id(self, item_id: str) -> list[JobCardTask]:
        return self._query().filter(JobCardTask.inventory_item_id == item_id).all()

    def find_with_reserved_inventory(self, jobcard_id: str) -> list[JobCardTask]:
        return (
            self._query()
            .join(InventoryAllocation, InventoryAllocation.id == JobCardTask.allocation_id)
            .filter(
                JobCardTask.jobcard_id == jobcard_id,
                InventoryAllocation.status == AllocationStatus.RESERVED,
            )
            .all()
        )

    # --- Writes ---------------------------------------------------------------

    def create(self, *, jobcard_id: str, task_name: str, created_by: int | None = None, **fields: Any) -> JobCardTask:
        task = JobCardTask(
            tenant_id=self.tenant_id,
            jobcard_id=jobcard_id,
            task_name=task_name,
            task_status=TaskStatus.DRAFT,
            created_by_user_id=created_by,
            **fields,
        )
        self.session.add(task)
        self.session.flush()
        return task

    def update(self, task_id: str, changes: dict[str, Any]) -> JobCardTask:
        """Apply field edits. Locked fields are refused on APPROVED/COMPLETED tasks."""
        task = self.get(task_id, for_update=True)

        if task.task_status in LOCKED_TASK_STATUSES:
            touched = LOCKED_TASK_FIELDS.intersection(
                key for key, value in changes.items() if getattr(task, key) != value
            )
            if touched:
                raise TaskLockedError(
                    f"Cannot modify {', '.join(sorted(touched))} on a {task.task_status.value} task",
                    task_status=task.task_status.value,
                    fields=touched,
                )

        for key, value in changes.items():
            setattr(task, key, value)
        self.session.flush()
        return task

    def update_status(self, task_id: str, status: TaskStatus, actor_id: int | None = None) -> JobCardTask:
        task = self.get(task_id)
        task.task_status = status
        now = utcnow()
        if status == TaskStatus.APPROVED:
            task.approved_by_user_id = actor_id
            task.approved_at = now
        elif status == TaskStatus.COMPLETED:
            task.completed_by_user_id = actor_id
            task.completed_at = now
        self.session.flush()
        return task

    def link_allocation(self, task_id: str, allocation_id: str) -> None:
        self.get(task_id).allocation_id = allocation_id
        self.session.flush()

    def unlink_allocation(self, task_id: str) -> None:
        self.get(task_id).allocation_id = None
        self.session.flush()

    def link_estimate_item(self, task_id: str, estimate_item_id: str) -> None:
        self.get(task_id).estimate_item_id = estimate_item_id
        self.session.flush()

    def unlink_estimate_item(self, task_id: str) -> None:
        task = self._query(include_deleted=True).filter(JobCardTask.id == task_id).first()
        if task is None:
            raise NotFoundError("Task", task_id)
        task.estimate_item_id = None
        self.session.flush()

    def soft_delete(self, task_id: str, deleted_by: int | None = None) -> None:
        task = self.get(task_id)
        if task.task_status == TaskStatus.COMPLETED:
            raise TaskLockedError("Cannot delete a completed task", task_status=task.task_status.value)
        task.deleted_at = utcnow()
        task.deleted_by_user_id = deleted_by
        self.session.flush()
