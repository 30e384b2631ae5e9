"""
Task -> estimate synchronisation.

Keeps the customer-facing estimate of a job card in step with its tasks so
the customer sees the planned work before it starts.

RULES:
- tasks with show_in_estimate=False, or soft-deleted tasks, have no line
- REPLACED tasks: part line (inventory item name, qty, unit price) plus labor
- other tasks: qty 1, unit price 0, labor only
- estimate totals are recomputed from all of its lines after every change

Sync runs after the task mutation has committed, in its own transaction.
notify_task_changed is the error boundary: sync failures are logged and never
reach the caller.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Estimate, EstimateItem, InventoryItem, JobCardTask
from ..repositories import TaskRepository


@dataclass(frozen=True)
class EstimateLine:
    part_id: str | None
    custom_name: str
    description: str | None
    qty: int
    unit_price_cents: int
    labor_cost_cents: int


class TaskEstimateSyncService:

    def __init__(self, tenant_id: int, task_repository: TaskRepository | None = None):
        self.tenant_id = tenant_id
        self.tasks = task_repository or TaskRepository(tenant_id)

    def sync_task_to_estimate(self, task: JobCardTask) -> str | None:
        """Create or update the estimate line for a task. Returns the line id."""
        if task.deleted_at is not None or not task.show_in_estimate:
            if task.estimate_item_id:
                self._remove_line(task)
                db.session.commit()
            return None

        estimate = self._latest_estimate(task.jobcard_id)
        if estimate is None:
            current_app.logger.warning("No estimate found for job %s", task.jobcard_id)
            return None

        line = self._build_line(task)
        existing = self._find_line(task.estimate_item_id) if task.estimate_item_id else None

        if existing is not None:
            self._apply_line(existing, line, task.id)
            line_id = existing.id
            self._recalculate_totals(existing.estimate_id)
        else:
            created = EstimateItem(tenant_id=self.tenant_id, estimate_id=estimate.id)
            self._apply_line(created, line, task.id)
            db.session.add(created)
            db.session.flush()
            self.tasks.link_estimate_item(task.id, created.id)
            line_id = created.id
            self._recalculate_totals(estimate.id)

        db.session.commit()
        return line_id

    def remove_estimate_item_for_task(self, task: JobCardTask) -> None:
        if not task.estimate_item_id:
            return
        self._remove_line(task)
        db.session.commit()

    def sync_all_tasks_for_job(self, jobcard_id: str) -> None:
        for task in self.tasks.find_by_jobcard_id(jobcard_id):
            self.sync_task_to_estimate(task)

    # --- Helpers ----------------------------------------------------------------

    def _latest_estimate(self, jobcard_id: str) -> Estimate | None:
        return (
            db.session.query(Estimate)
            .filter(Estimate.tenant_id == self.tenant_id, Estimate.jobcard_id == jobcard_id)
            .order_by(Estimate.created_at.desc(), Estimate.id.desc())
            .first()
        )

    def _find_line(self, line_id: str) -> EstimateItem | None:
        return (
            db.session.query(EstimateItem)
            .filter(EstimateItem.tenant_id == self.tenant_id, EstimateItem.id == line_id)
            .first()
        )

    def _build_line(self, task: JobCardTask) -> EstimateLine:
        labor = task.labor_cost_snapshot_cents or 0
        if not task.is_replacement:
            return EstimateLine(
                part_id=None,
                custom_name=task.task_name,
                description=task.description or "Repair service",
                qty=1,
                unit_price_cents=0,
                labor_cost_cents=labor,
            )

        item_name = None
        if task.inventory_item_id:
            item = (
                db.session.query(InventoryItem)
                .filter(InventoryItem.tenant_id == self.tenant_id, InventoryItem.id == task.inventory_item_id)
                .first()
            )
            item_name = item.name if item else None

        return EstimateLine(
            part_id=task.inventory_item_id,
            custom_name=item_name or task.task_name,
            description=task.description or "Part replacement",
            qty=task.qty or 1,
            unit_price_cents=task.unit_price_snapshot_cents or 0,
            labor_cost_cents=labor,
        )

    @staticmethod
    def _apply_line(row: EstimateItem, line: EstimateLine, task_id: str) -> None:
        row.task_id = task_id
        row.part_id = line.part_id
        row.custom_name = line.custom_name
        row.description = line.description
        row.qty = line.qty
        row.unit_price_cents = line.unit_price_cents
        row.labor_cost_cents = line.labor_cost_cents

    def _remove_line(self, task: JobCardTask) -> None:
        line = self._find_line(task.estimate_item_id)
        if line is not None:
            estimate_id = line.estimate_id
            db.session.delete(line)
            db.session.flush()
            self._recalculate_totals(estimate_id)
        self.tasks.unlink_estimate_item(task.id)

    def _recalculate_totals(self, estimate_id: str) -> None:
        estimate = (
            db.session.query(Estimate)
            .filter(Estimate.tenant_id == self.tenant_id, Estimate.id == estimate_id)
            .first()
        )
        if estimate is None:
            return

        lines = db.session.query(EstimateItem).filter(EstimateItem.estimate_id == estimate_id).all()
        parts_total = sum((line.qty or 0) * (line.unit_price_cents or 0) for line in lines)
        labor_total = sum(line.labor_cost_cents or 0 for line in lines)

        estimate.parts_total_cents = parts_total
        estimate.labor_total_cents = labor_total
        estimate.subtotal_cents = parts_total + labor_total
        # Tax is applied at invoicing
        estimate.total_amount_cents = parts_total + labor_total
        db.session.flush()


def notify_task_changed(tenant_id: int, task: JobCardTask) -> None:
    """Post-commit hook. Never raises."""
    try:
        TaskEstimateSyncService(tenant_id).sync_task_to_estimate(task)
    except Exception:
        db.session.rollback()
        current_app.logger.warning("Failed to sync task %s to estimate", task.id, exc_info=True)
