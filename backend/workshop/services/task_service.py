# Overview: Service-layer operations for job card tasks; field edits, creation and soft delete.

"""
Task CRUD around the status workflow.

RULES:
- actionType REPLACED <=> inventoryItemId set and qty > 0, checked on create
  and on the merged result of every edit
- COMPLETED tasks are read-only and cannot be deleted
- APPROVED tasks refuse edits to name, action, inventory link, qty and prices
- a task holding a reservation (IN_PROGRESS) refuses inventory link edits
- deleting a task releases its reservation in the same transaction
- stock is never reserved here; reservation happens on DRAFT -> APPROVED
"""
from __future__ import annotations

from flask import current_app

from ..enums import INVENTORY_LINK_FIELDS, JobStatus, TaskActionType, TaskStatus
from ..errors import NotFoundError, TaskLockedError, ValidationError
from ..extensions import db
from ..models import JobCard, JobCardTask
from ..repositories import InventoryRepository, TaskRepository
from ..validation import ModelValidationPolicy, enforce_rules_task, parse_uuid, validate_payload
from .concurrency import run_in_transaction
from .estimate_sync_service import notify_task_changed
from .task_workflow import TaskStatusWorkflow


_TASK_ALIASES = {
    "taskName": "task_name",
    "actionType": "action_type",
    "inventoryItemId": "inventory_item_id",
    "unitPriceSnapshotCents": "unit_price_snapshot_cents",
    "laborCostSnapshotCents": "labor_cost_snapshot_cents",
    "taxRateSnapshotBps": "tax_rate_snapshot_bps",
    "showInEstimate": "show_in_estimate",
}

TASK_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "taskName", "description", "actionType", "inventoryItemId", "qty",
        "unitPriceSnapshotCents", "laborCostSnapshotCents", "taxRateSnapshotBps",
        "showInEstimate",
    }),
    required_on_create=frozenset({"taskName", "actionType"}),
    aliases=_TASK_ALIASES,
)

TASK_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=TASK_CREATE_POLICY.writable_fields,
    aliases=_TASK_ALIASES,
)


def _clean(payload, policy: ModelValidationPolicy, *, partial: bool) -> dict:
    patch = validate_payload(model=JobCardTask, payload=payload, policy=policy, partial=partial)
    enforce_rules_task(patch)
    if patch.get("inventory_item_id") is not None:
        patch["inventory_item_id"] = parse_uuid(patch["inventory_item_id"])
    return patch


def check_action_invariant(action_type: TaskActionType, inventory_item_id: str | None, qty: int | None) -> None:
    """REPLACED requires a part and a quantity; other actions must not carry either."""
    if action_type == TaskActionType.REPLACED:
        if not inventory_item_id or not qty or qty <= 0:
            raise ValidationError("REPLACED action requires inventoryItemId and qty > 0")
    elif inventory_item_id is not None or qty is not None:
        raise ValidationError(f"{action_type.value} action cannot carry inventoryItemId or qty")


def get_jobcard(tenant_id: int, jobcard_id: str) -> JobCard:
    job = (
        db.session.query(JobCard)
        .filter(JobCard.tenant_id == tenant_id, JobCard.id == jobcard_id)
        .first()
    )
    if job is None:
        raise NotFoundError("Job", jobcard_id)
    return job


def list_tasks(tenant_id: int, jobcard_id: str) -> list[JobCardTask]:
    get_jobcard(tenant_id, jobcard_id)
    return TaskRepository(tenant_id).find_by_jobcard_id(jobcard_id)


def get_task(tenant_id: int, jobcard_id: str, task_id: str, *, for_update: bool = False) -> JobCardTask:
    """A task that exists but belongs to another job is reported as missing."""
    task = TaskRepository(tenant_id).find_by_id(task_id, for_update=for_update)
    if task is None or task.jobcard_id != jobcard_id:
        raise NotFoundError("Task", task_id)
    return task


def create_task(tenant_id: int, jobcard_id: str, payload, actor_id: int | None) -> JobCardTask:
    patch = _clean(payload, TASK_CREATE_POLICY, partial=False)

    def _op() -> JobCardTask:
        job = get_jobcard(tenant_id, jobcard_id)
        if job.status == JobStatus.COMPLETED:
            raise ValidationError("Cannot add tasks to a completed job")

        check_action_invariant(patch["action_type"], patch.get("inventory_item_id"), patch.get("qty"))

        if patch.get("inventory_item_id"):
            item = InventoryRepository(tenant_id).get(patch["inventory_item_id"])
            if patch.get("unit_price_snapshot_cents") is None:
                patch["unit_price_snapshot_cents"] = item.sell_price_cents
            if patch["qty"] > item.stock_available:
                current_app.logger.warning(
                    "Low stock for item %s: task requests %s, %s available",
                    item.id, patch["qty"], item.stock_available,
                )

        fields = {k: v for k, v in patch.items() if v is not None}
        return TaskRepository(tenant_id).create(
            jobcard_id=jobcard_id,
            created_by=actor_id,
            **fields,
        )

    task = run_in_transaction(_op)
    notify_task_changed(tenant_id, task)
    return task


def update_task(tenant_id: int, jobcard_id: str, task_id: str, payload, actor_id: int | None) -> JobCardTask:
    patch = _clean(payload, TASK_UPDATE_POLICY, partial=True)

    def _op() -> JobCardTask:
        task = get_task(tenant_id, jobcard_id, task_id, for_update=True)

        if task.task_status == TaskStatus.COMPLETED:
            raise TaskLockedError(
                "Cannot modify a completed task",
                task_status=task.task_status.value,
                fields=patch.keys(),
            )

        changed = {key for key, value in patch.items() if getattr(task, key) != value}
        if task.allocation_id and changed & INVENTORY_LINK_FIELDS:
            raise TaskLockedError(
                "Cannot change the inventory link of a task holding a reservation",
                task_status=task.task_status.value,
                fields=changed & INVENTORY_LINK_FIELDS,
            )

        action_type = patch.get("action_type", task.action_type)
        inventory_item_id = patch["inventory_item_id"] if "inventory_item_id" in patch else task.inventory_item_id
        qty = patch["qty"] if "qty" in patch else task.qty
        check_action_invariant(action_type, inventory_item_id, qty)

        if inventory_item_id and inventory_item_id != task.inventory_item_id:
            item = InventoryRepository(tenant_id).get(inventory_item_id)
            if "unit_price_snapshot_cents" not in patch:
                patch["unit_price_snapshot_cents"] = item.sell_price_cents

        return TaskRepository(tenant_id).update(task.id, patch)

    task = run_in_transaction(_op)
    notify_task_changed(tenant_id, task)
    return task


def delete_task(tenant_id: int, jobcard_id: str, task_id: str, actor_id: int | None) -> None:
    def _op() -> JobCardTask:
        task = get_task(tenant_id, jobcard_id, task_id, for_update=True)
        if task.task_status == TaskStatus.COMPLETED:
            raise TaskLockedError("Cannot delete a completed task", task_status=task.task_status.value)

        TaskStatusWorkflow(tenant_id).release_for_task(task, actor_id)
        TaskRepository(tenant_id).soft_delete(task.id, actor_id)
        return task

    task = run_in_transaction(_op)
    current_app.logger.info("Task %s deleted (tenant=%s, actor=%s)", task_id, tenant_id, actor_id)
    notify_task_changed(tenant_id, task)
