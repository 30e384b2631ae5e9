from __future__ import annotations

from ..enums import JobStatus, TaskActionType, TaskStatus
from ..extensions import db
from ..time_utils import to_utc_z
from .types import enum_column, new_uuid


class JobCard(db.Model):
    """
    A workshop job (one vehicle visit). Owns tasks, allocations and estimates.

    Job cards are created upstream (intake); this service only reads them to
    scope tasks and to refuse new tasks on completed jobs.
    """
    __tablename__ = "jobcards"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "job_number", name="uq_jobcards_tenant_number"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    job_number = db.Column(db.String(32), nullable=False)
    status = enum_column(JobStatus, nullable=False, default=JobStatus.PENDING)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<JobCard id={self.id} job_number={self.job_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "jobNumber": self.job_number,
            "status": self.status.value,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class JobCardTask(db.Model):
    """
    One unit of work on a job card, optionally tied to a part replacement.

    INVARIANTS:
    - action_type == REPLACED  <=>  inventory_item_id set and qty > 0
    - allocation_id set only while a reservation is held (reserved or consumed)
    - price snapshots are frozen once the task is APPROVED
    - never hard-deleted; deleted_at marks removal

    version_id enables optimistic locking so two concurrent transitions on the
    same task cannot both commit.
    """
    __tablename__ = "job_card_tasks"
    __table_args__ = (
        db.CheckConstraint("qty IS NULL OR qty > 0", name="ck_tasks_qty_positive"),
        db.Index("ix_tasks_tenant_jobcard", "tenant_id", "jobcard_id"),
        db.Index("ix_tasks_tenant_status", "tenant_id", "task_status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    jobcard_id = db.Column(db.String(36), db.ForeignKey("jobcards.id"), nullable=False)

    task_name = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)

    action_type = enum_column(TaskActionType, nullable=False, default=TaskActionType.NO_CHANGE)
    inventory_item_id = db.Column(db.String(36), db.ForeignKey("inventory_items.id"), nullable=True, index=True)
    qty = db.Column(db.Integer, nullable=True)

    # Authoritative storage in cents / basis points
    unit_price_snapshot_cents = db.Column(db.Integer, nullable=True)
    labor_cost_snapshot_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate_snapshot_bps = db.Column(db.Integer, nullable=False, default=0)

    task_status = enum_column(TaskStatus, nullable=False, default=TaskStatus.DRAFT)

    # Plain column: inventory_allocations.task_id already references this table
    allocation_id = db.Column(db.String(36), nullable=True)
    estimate_item_id = db.Column(db.String(36), nullable=True)
    show_in_estimate = db.Column(db.Boolean, nullable=False, default=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    jobcard = db.relationship("JobCard", backref=db.backref("tasks", lazy=True))
    inventory_item = db.relationship("InventoryItem", foreign_keys=[inventory_item_id])

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<JobCardTask id={self.id} status={self.task_status} action={self.action_type}>"

    @property
    def is_replacement(self) -> bool:
        return self.action_type == TaskActionType.REPLACED

    @property
    def parts_total_cents(self) -> int:
        if not self.is_replacement or not self.unit_price_snapshot_cents or not self.qty:
            return 0
        return self.unit_price_snapshot_cents * self.qty

    @property
    def tax_cents(self) -> int:
        # Half-up rounding to the nearest cent
        return (self.parts_total_cents * (self.tax_rate_snapshot_bps or 0) + 5000) // 10000

    @property
    def total_cents(self) -> int:
        return self.parts_total_cents + self.tax_cents + (self.labor_cost_snapshot_cents or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "jobcardId": self.jobcard_id,
            "taskName": self.task_name,
            "description": self.description,
            "actionType": self.action_type.value,
            "inventoryItemId": self.inventory_item_id,
            "qty": self.qty,
            "unitPriceSnapshotCents": self.unit_price_snapshot_cents,
            "laborCostSnapshotCents": self.labor_cost_snapshot_cents,
            "taxRateSnapshotBps": self.tax_rate_snapshot_bps,
            "taskStatus": self.task_status.value,
            "allocationId": self.allocation_id,
            "estimateItemId": self.estimate_item_id,
            "showInEstimate": self.show_in_estimate,
            "partsTotalCents": self.parts_total_cents,
            "taxCents": self.tax_cents,
            "laborTotalCents": self.labor_cost_snapshot_cents or 0,
            "totalCents": self.total_cents,
            "createdBy": self.created_by_user_id,
            "approvedBy": self.approved_by_user_id,
            "approvedAt": to_utc_z(self.approved_at),
            "completedBy": self.completed_by_user_id,
            "completedAt": to_utc_z(self.completed_at),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
