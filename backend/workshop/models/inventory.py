from __future__ import annotations

from ..enums import AllocationStatus, InventoryTransactionType
from ..extensions import db
from ..time_utils import to_utc_z
from .types import enum_column, new_uuid


class InventoryItem(db.Model):
    """
    A stockable part.

    STOCK FIELDS:
    - stock_on_hand: physical units in the workshop
    - stock_reserved: units earmarked by active (reserved) allocations
    - stock_available = stock_on_hand - stock_reserved (derived, never stored)

    Both stock counters are shared mutable state. They are only changed through
    InventoryRepository.reserve_stock / unreserve_stock / consume_reserved_stock,
    which issue guarded single-statement UPDATEs. The check constraints below
    are the last line that keeps 0 <= stock_reserved <= stock_on_hand.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("stock_on_hand >= 0", name="ck_items_on_hand_non_negative"),
        db.CheckConstraint("stock_reserved >= 0", name="ck_items_reserved_non_negative"),
        db.CheckConstraint("stock_reserved <= stock_on_hand", name="ck_items_reserved_within_on_hand"),
        db.Index("ix_items_tenant_sku", "tenant_id", "sku"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    sell_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_on_hand = db.Column(db.Integer, nullable=False, default=0)
    stock_reserved = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=0)

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryItem id={self.id} on_hand={self.stock_on_hand} "
            f"reserved={self.stock_reserved}>"
        )

    @property
    def stock_available(self) -> int:
        return self.stock_on_hand - (self.stock_reserved or 0)

    def stock_snapshot(self) -> dict:
        return {
            "id": self.id,
            "stockOnHand": self.stock_on_hand,
            "stockReserved": self.stock_reserved,
            "stockAvailable": self.stock_available,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "unitCostCents": self.unit_cost_cents,
            "sellPriceCents": self.sell_price_cents,
            "stockOnHand": self.stock_on_hand,
            "stockReserved": self.stock_reserved,
            "stockAvailable": self.stock_available,
            "reorderLevel": self.reorder_level,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class InventoryAllocation(db.Model):
    """
    A reservation of stock against exactly one task.

    LIFECYCLE: reserved -> consumed | released. Both targets are terminal;
    an allocation is never reused and quantity_reserved never changes.
    """
    __tablename__ = "inventory_allocations"
    __table_args__ = (
        db.CheckConstraint("quantity_reserved > 0", name="ck_allocations_quantity_positive"),
        db.Index("ix_allocations_tenant_jobcard", "tenant_id", "jobcard_id"),
        db.Index("ix_allocations_item_status", "item_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    item_id = db.Column(db.String(36), db.ForeignKey("inventory_items.id"), nullable=False)
    jobcard_id = db.Column(db.String(36), db.ForeignKey("jobcards.id"), nullable=False)
    task_id = db.Column(db.String(36), db.ForeignKey("job_card_tasks.id"), nullable=False, index=True)

    quantity_reserved = db.Column(db.Integer, nullable=False)
    quantity_consumed = db.Column(db.Integer, nullable=False, default=0)
    status = enum_column(AllocationStatus, nullable=False, default=AllocationStatus.RESERVED)

    reserved_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    consumed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    released_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    item = db.relationship("InventoryItem", backref=db.backref("allocations", lazy=True))

    def __repr__(self) -> str:
        return f"<InventoryAllocation id={self.id} task_id={self.task_id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "itemId": self.item_id,
            "jobcardId": self.jobcard_id,
            "taskId": self.task_id,
            "quantityReserved": self.quantity_reserved,
            "quantityConsumed": self.quantity_consumed,
            "status": self.status.value,
            "reservedAt": to_utc_z(self.reserved_at),
            "consumedAt": to_utc_z(self.consumed_at),
            "releasedAt": to_utc_z(self.released_at),
            "createdBy": self.created_by_user_id,
        }


class InventoryTransaction(db.Model):
    """Append-only log of stock movements (never updated or deleted)."""
    __tablename__ = "inventory_transactions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    item_id = db.Column(db.String(36), db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    transaction_type = enum_column(InventoryTransactionType, nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(36), nullable=True, index=True)
    task_id = db.Column(db.String(36), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "itemId": self.item_id,
            "transactionType": self.transaction_type.value,
            "quantity": self.quantity,
            "referenceType": self.reference_type,
            "referenceId": self.reference_id,
            "taskId": self.task_id,
            "notes": self.notes,
            "createdBy": self.created_by_user_id,
            "createdAt": to_utc_z(self.created_at),
        }
