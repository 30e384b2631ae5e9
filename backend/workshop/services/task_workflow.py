"""
Task status workflow with inventory side effects.

STATE MACHINE (taskStatus):
    DRAFT        -> APPROVED | CANCELLED
    APPROVED     -> IN_PROGRESS | CANCELLED
    IN_PROGRESS  -> COMPLETED | APPROVED
    COMPLETED    -> (terminal)
    CANCELLED    -> DRAFT          (reactivation)

INVENTORY EFFECTS (only for actionType = REPLACED):
- DRAFT -> APPROVED: reserve task.qty on the item (guarded atomic update),
  create a `reserved` allocation and link it to the task.
- -> COMPLETED with a reserved allocation: allocation becomes `consumed`,
  stock_on_hand and stock_reserved both drop by the reserved quantity.
- -> CANCELLED with a reserved allocation: allocation becomes `released`,
  stock_reserved drops by the reserved quantity, task link is cleared.
- every other transition: no inventory effect. IN_PROGRESS -> APPROVED keeps
  the reservation made on first approval and does not re-check stock.

ATOMICITY: the side effect and the status write share one database
transaction. Any failure rolls both back, so a caller may retry the identical
request. A successful request replayed fails with InvalidTransitionError
because the task is no longer in its source state.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from flask import current_app

from ..enums import AllocationStatus, InventoryTransactionType, TaskStatus
from ..errors import InvalidTransitionError, NotFoundError, ValidationError, WorkshopError
from ..extensions import db
from ..models import InventoryAllocation, JobCardTask
from ..repositories import AllocationRepository, InventoryRepository, TaskRepository
from .concurrency import run_in_transaction
from .estimate_sync_service import notify_task_changed


ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.DRAFT: frozenset({TaskStatus.APPROVED, TaskStatus.CANCELLED}),
    TaskStatus.APPROVED: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.COMPLETED, TaskStatus.APPROVED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.CANCELLED: frozenset({TaskStatus.DRAFT}),
}


def parse_status(value) -> TaskStatus:
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(value)
    except ValueError:
        allowed = ", ".join(status.value for status in TaskStatus)
        raise ValidationError(f"taskStatus must be one of: {allowed}") from None


def allowed_transitions(status: TaskStatus) -> list[str]:
    """Allowed targets in declaration order, for error payloads."""
    targets = ALLOWED_TRANSITIONS[status]
    return [candidate.value for candidate in TaskStatus if candidate in targets]


def is_transition_allowed(current: TaskStatus, target: TaskStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


@dataclass
class TransitionResult:
    task: JobCardTask
    inventory_update: Optional[dict] = None

    def to_dict(self) -> dict:
        body = {"task": self.task.to_dict()}
        if self.inventory_update is not None:
            body["inventoryUpdate"] = self.inventory_update
        return body


def _notify_estimate_sync(tenant_id: int) -> Callable[[JobCardTask], None]:
    return lambda task: notify_task_changed(tenant_id, task)


class TaskStatusWorkflow:
    """Validates task status transitions and drives reserve/consume/release."""

    def __init__(
        self,
        tenant_id: int,
        *,
        task_repository: TaskRepository | None = None,
        inventory_repository: InventoryRepository | None = None,
        allocation_repository: AllocationRepository | None = None,
        on_committed: Callable[[JobCardTask], None] | None = None,
    ):
        self.tenant_id = tenant_id
        self.tasks = task_repository or TaskRepository(tenant_id)
        self.inventory = inventory_repository or InventoryRepository(tenant_id)
        self.allocations = allocation_repository or AllocationRepository(tenant_id)
        self.on_committed = on_committed or _notify_estimate_sync(tenant_id)

    def transition(
        self,
        task_id: str,
        target_status,
        actor_id: int | None,
        jobcard_id: str | None = None,
    ) -> TransitionResult:
        target = parse_status(target_status)

        def _op() -> TransitionResult:
            task = self.tasks.find_by_id(task_id, for_update=True)
            if task is None or (jobcard_id is not None and task.jobcard_id != jobcard_id):
                raise NotFoundError("Task", task_id)

            current = task.task_status
            if not is_transition_allowed(current, target):
                raise InvalidTransitionError(current.value, target.value, allowed_transitions(current))

            inventory_update = self._apply_inventory_effect(task, current, target, actor_id)
            self.tasks.update_status(task.id, target, actor_id)
            return TransitionResult(task=task, inventory_update=inventory_update)

        try:
            result = run_in_transaction(_op)
        except WorkshopError as exc:
            current_app.logger.warning(
                "Task %s transition to %s rolled back (tenant=%s): %s",
                task_id, target.value, self.tenant_id, exc.code,
            )
            raise

        current_app.logger.info(
            "Task %s moved to %s (tenant=%s, actor=%s, inventory=%s)",
            task_id, target.value, self.tenant_id, actor_id, result.inventory_update is not None,
        )
        self._notify(result.task)
        return result

    def release_for_task(self, task: JobCardTask, actor_id: int | None) -> Optional[dict]:
        """Release the task's reserved allocation inside the caller's transaction."""
        allocation = self._active_allocation(task)
        if allocation is None:
            return None
        return self._release(task, allocation, actor_id)

    # --- Side effects -----------------------------------------------------------

    def _apply_inventory_effect(
        self,
        task: JobCardTask,
        current: TaskStatus,
        target: TaskStatus,
        actor_id: int | None,
    ) -> Optional[dict]:
        if not task.is_replacement:
            return None

        if current == TaskStatus.DRAFT and target == TaskStatus.APPROVED:
            return self._reserve(task, actor_id)

        allocation = self._active_allocation(task)
        if allocation is None:
            return None
        if target == TaskStatus.COMPLETED:
            return self._consume(task, allocation, actor_id)
        if target == TaskStatus.CANCELLED:
            return self._release(task, allocation, actor_id)
        return None

    def _active_allocation(self, task: JobCardTask) -> InventoryAllocation | None:
        if not task.allocation_id:
            return None
        allocation = self.allocations.find_by_id(task.allocation_id, for_update=True)
        if allocation is None or allocation.status != AllocationStatus.RESERVED:
            return None
        return allocation

    def _reserve(self, task: JobCardTask, actor_id: int | None) -> dict:
        if not task.inventory_item_id or not task.qty:
            raise ValidationError("REPLACED task requires inventoryItemId and qty > 0")

        item = self.inventory.reserve_stock(task.inventory_item_id, task.qty)
        allocation = self.allocations.create(
            item_id=item.id,
            jobcard_id=task.jobcard_id,
            task_id=task.id,
            quantity=task.qty,
            created_by=actor_id,
        )
        self.inventory.record_transaction(
            item_id=item.id,
            transaction_type=InventoryTransactionType.RESERVE,
            quantity=task.qty,
            reference_id=task.jobcard_id,
            task_id=task.id,
            created_by=actor_id,
        )
        self.tasks.link_allocation(task.id, allocation.id)
        return item.stock_snapshot()

    def _consume(self, task: JobCardTask, allocation: InventoryAllocation, actor_id: int | None) -> dict:
        quantity = allocation.quantity_reserved
        self.allocations.mark_consumed(allocation.id, quantity)
        item = self.inventory.consume_reserved_stock(allocation.item_id, quantity)
        self.inventory.record_transaction(
            item_id=allocation.item_id,
            transaction_type=InventoryTransactionType.USAGE,
            quantity=quantity,
            reference_id=task.jobcard_id,
            task_id=task.id,
            created_by=actor_id,
        )
        return item.stock_snapshot()

    def _release(self, task: JobCardTask, allocation: InventoryAllocation, actor_id: int | None) -> dict:
        quantity = allocation.quantity_reserved
        self.allocations.mark_released(allocation.id)
        item = self.inventory.unreserve_stock(allocation.item_id, quantity)
        self.inventory.record_transaction(
            item_id=allocation.item_id,
            transaction_type=InventoryTransactionType.RELEASE,
            quantity=quantity,
            reference_id=task.jobcard_id,
            task_id=task.id,
            created_by=actor_id,
        )
        self.tasks.unlink_allocation(task.id)
        return item.stock_snapshot()

    def _notify(self, task: JobCardTask) -> None:
        try:
            self.on_committed(task)
        except Exception:
            db.session.rollback()
            current_app.logger.warning("Post-commit hook failed for task %s", task.id, exc_info=True)
