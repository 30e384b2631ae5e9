from __future__ import annotations

from ..enums import AllocationStatus
from ..errors import AllocationStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryAllocation
from ..services.concurrency import lock_for_update
from ..time_utils import utcnow


class AllocationRepository:
    """Persistence for stock reservations. Allocations move reserved -> consumed | released, once."""

    def __init__(self, tenant_id: int, session=None):
        self.tenant_id = tenant_id
        self.session = session if session is not None else db.session

    def _query(self):
        return self.session.query(InventoryAllocation).filter(
            InventoryAllocation.tenant_id == self.tenant_id
        )

    def find_by_id(self, allocation_id: str, *, for_update: bool = False) -> InventoryAllocation | None:
        query = self._query().filter(InventoryAllocation.id == allocation_id)
        if for_update:
            query = lock_for_update(query)
        return query.first()

    def find_by_task_id(self, task_id: str) -> list[InventoryAllocation]:
        return (
            self._query()
            .filter(InventoryAllocation.task_id == task_id)
            .order_by(InventoryAllocation.reserved_at.asc())
            .all()
        )

    def find_by_jobcard_id(self, jobcard_id: str) -> list[InventoryAllocation]:
        return (
            self._query()
            .filter(InventoryAllocation.jobcard_id == jobcard_id)
            .order_by(InventoryAllocation.reserved_at.asc())
            .all()
        )

    def find_reserved_by_item(self, item_id: str) -> list[InventoryAllocation]:
        return (
            self._query()
            .filter(
                InventoryAllocation.item_id == item_id,
                InventoryAllocation.status == AllocationStatus.RESERVED,
            )
            .all()
        )

    def create(
        self,
        *,
        item_id: str,
        jobcard_id: str,
        task_id: str,
        quantity: int,
        created_by: int | None = None,
    ) -> InventoryAllocation:
        if quantity <= 0:
            raise ValidationError("quantity_reserved must be > 0")
        allocation = InventoryAllocation(
            tenant_id=self.tenant_id,
            item_id=item_id,
            jobcard_id=jobcard_id,
            task_id=task_id,
            quantity_reserved=quantity,
            quantity_consumed=0,
            status=AllocationStatus.RESERVED,
            reserved_at=utcnow(),
            created_by_user_id=created_by,
        )
        self.session.add(allocation)
        self.session.flush()
        return allocation

    def _get_reserved(self, allocation_id: str, operation: str) -> InventoryAllocation:
        allocation = self.find_by_id(allocation_id, for_update=True)
        if allocation is None:
            raise NotFoundError("Allocation", allocation_id)
        if allocation.status != AllocationStatus.RESERVED:
            raise AllocationStateError(allocation_id, allocation.status.value, operation)
        return allocation

    def mark_consumed(self, allocation_id: str, quantity: int) -> InventoryAllocation:
        allocation = self._get_reserved(allocation_id, "consume")
        if quantity <= 0 or quantity > allocation.quantity_reserved:
            raise ValidationError(
                f"Consumed quantity must be between 1 and {allocation.quantity_reserved}"
            )
        allocation.status = AllocationStatus.CONSUMED
        allocation.quantity_consumed = quantity
        allocation.consumed_at = utcnow()
        self.session.flush()
        return allocation

    def mark_released(self, allocation_id: str) -> InventoryAllocation:
        allocation = self._get_reserved(allocation_id, "release")
        allocation.status = AllocationStatus.RELEASED
        allocation.released_at = utcnow()
        self.session.flush()
        return allocation
