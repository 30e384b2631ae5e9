# Overview: Pytest coverage for tenant-scoped repositories and guarded stock updates.

"""
Repository Tests

SECURITY TESTS: every repository is constructed with a tenant and must
never see rows of another tenant, even when handed a valid foreign id.

STOCK TESTS: the guarded UPDATEs keep 0 <= stock_reserved <= stock_on_hand.
"""

import pytest

from workshop.enums import AllocationStatus, TaskStatus
from workshop.errors import (
    AllocationStateError,
    InsufficientStockError,
    NotFoundError,
    PersistenceFailure,
    TaskLockedError,
    ValidationError,
)
from workshop.extensions import db
from workshop.repositories import AllocationRepository, InventoryRepository, TaskRepository


class TestTenantIsolation:

    def test_task_invisible_to_other_tenant(self, tenant_a, tenant_b, job_a, replacement_task):
        assert TaskRepository(tenant_b.id).find_by_id(replacement_task.id) is None
        assert TaskRepository(tenant_b.id).find_by_jobcard_id(job_a.id) == []
        with pytest.raises(NotFoundError):
            TaskRepository(tenant_b.id).get(replacement_task.id)

    def test_item_invisible_to_other_tenant(self, tenant_b, item_a):
        assert InventoryRepository(tenant_b.id).find_by_id(item_a.id) is None
        assert InventoryRepository(tenant_b.id).find_all() == []

    def test_reserve_on_foreign_item_is_not_found(self, tenant_a, tenant_b, item_a):
        with pytest.raises(NotFoundError):
            InventoryRepository(tenant_b.id).reserve_stock(item_a.id, 1)
        db.session.rollback()

        assert InventoryRepository(tenant_a.id).get(item_a.id, refresh=True).stock_reserved == 0

    def test_allocations_invisible_to_other_tenant(self, tenant_a, tenant_b, user_a, job_a, replacement_task):
        from workshop.services.task_workflow import TaskStatusWorkflow

        TaskStatusWorkflow(tenant_a.id).transition(replacement_task.id, "APPROVED", user_a.id)

        assert len(AllocationRepository(tenant_a.id).find_by_jobcard_id(job_a.id)) == 1
        assert AllocationRepository(tenant_b.id).find_by_jobcard_id(job_a.id) == []
        assert AllocationRepository(tenant_b.id).find_by_task_id(replacement_task.id) == []


class TestStockUpdates:

    def test_reserve_within_availability(self, tenant_a, item_a):
        item = InventoryRepository(tenant_a.id).reserve_stock(item_a.id, 10)
        assert item.stock_reserved == 10
        assert item.stock_available == 0

    def test_reserve_beyond_availability_reports_current_stock(self, tenant_a, item_a):
        repo = InventoryRepository(tenant_a.id)
        repo.reserve_stock(item_a.id, 7)

        with pytest.raises(InsufficientStockError) as exc_info:
            repo.reserve_stock(item_a.id, 4)

        assert exc_info.value.available == 3
        assert exc_info.value.requested == 4
        assert repo.get(item_a.id, refresh=True).stock_reserved == 7

    @pytest.mark.parametrize("quantity", [0, -3, True])
    def test_non_positive_quantity_is_rejected(self, tenant_a, item_a, quantity):
        with pytest.raises(ValidationError):
            InventoryRepository(tenant_a.id).reserve_stock(item_a.id, quantity)

    def test_unreserve_floors_at_zero(self, tenant_a, item_a):
        repo = InventoryRepository(tenant_a.id)
        repo.reserve_stock(item_a.id, 2)

        item = repo.unreserve_stock(item_a.id, 5)

        assert item.stock_reserved == 0
        assert item.stock_on_hand == 10

    def test_consume_moves_both_counters(self, tenant_a, item_a):
        repo = InventoryRepository(tenant_a.id)
        repo.reserve_stock(item_a.id, 4)

        item = repo.consume_reserved_stock(item_a.id, 4)

        assert (item.stock_on_hand, item.stock_reserved) == (6, 0)

    def test_consume_more_than_reserved_fails(self, tenant_a, item_a):
        repo = InventoryRepository(tenant_a.id)
        repo.reserve_stock(item_a.id, 1)

        with pytest.raises(PersistenceFailure):
            repo.consume_reserved_stock(item_a.id, 2)


class TestTaskRepository:

    def test_find_with_reserved_inventory(self, tenant_a, user_a, job_a, replacement_task, make_task):
        from workshop.services.task_workflow import TaskStatusWorkflow

        make_task(taskName="Wash")
        TaskStatusWorkflow(tenant_a.id).transition(replacement_task.id, "APPROVED", user_a.id)

        reserved = TaskRepository(tenant_a.id).find_with_reserved_inventory(job_a.id)
        assert [t.id for t in reserved] == [replacement_task.id]

    def test_find_by_status_and_item(self, tenant_a, item_a, replacement_task, make_task):
        make_task(taskName="Wash")
        repo = TaskRepository(tenant_a.id)

        assert len(repo.find_by_status(TaskStatus.DRAFT)) == 2
        assert [t.id for t in repo.find_by_inventory_item_id(item_a.id)] == [replacement_task.id]

    def test_update_status_stamps_actor(self, tenant_a, user_a, make_task):
        task = make_task()
        repo = TaskRepository(tenant_a.id)

        repo.update_status(task.id, TaskStatus.APPROVED, user_a.id)
        db.session.commit()

        assert repo.get(task.id).approved_by_user_id == user_a.id

    def test_soft_delete_rejects_completed_task(self, tenant_a, make_task):
        task = make_task()
        repo = TaskRepository(tenant_a.id)
        repo.update_status(task.id, TaskStatus.COMPLETED)
        db.session.commit()

        with pytest.raises(TaskLockedError):
            repo.soft_delete(task.id)
        assert repo.get(task.id).deleted_at is None


class TestAllocationRepository:

    def test_release_is_one_way(self, tenant_a, job_a, item_a, replacement_task):
        repo = AllocationRepository(tenant_a.id)
        allocation = repo.create(
            item_id=item_a.id, jobcard_id=job_a.id, task_id=replacement_task.id, quantity=2,
        )

        repo.mark_released(allocation.id)

        with pytest.raises(AllocationStateError):
            repo.mark_released(allocation.id)
        with pytest.raises(AllocationStateError):
            repo.mark_consumed(allocation.id, 2)

    def test_consume_records_quantity(self, tenant_a, job_a, item_a, replacement_task):
        repo = AllocationRepository(tenant_a.id)
        allocation = repo.create(
            item_id=item_a.id, jobcard_id=job_a.id, task_id=replacement_task.id, quantity=3,
        )

        consumed = repo.mark_consumed(allocation.id, 3)

        assert consumed.status == AllocationStatus.CONSUMED
        assert consumed.quantity_consumed == 3

    def test_reserved_by_item(self, tenant_a, job_a, item_a, replacement_task):
        repo = AllocationRepository(tenant_a.id)
        kept = repo.create(item_id=item_a.id, jobcard_id=job_a.id, task_id=replacement_task.id, quantity=1)
        released = repo.create(item_id=item_a.id, jobcard_id=job_a.id, task_id=replacement_task.id, quantity=1)
        repo.mark_released(released.id)

        assert [a.id for a in repo.find_reserved_by_item(item_a.id)] == [kept.id]

    def test_missing_allocation_is_not_found(self, tenant_a):
        with pytest.raises(NotFoundError):
            AllocationRepository(tenant_a.id).mark_released("00000000-0000-0000-0000-000000000000")

    def test_zero_quantity_is_rejected(self, tenant_a, job_a, item_a, replacement_task):
        with pytest.raises(ValidationError):
            AllocationRepository(tenant_a.id).create(
                item_id=item_a.id, jobcard_id=job_a.id, task_id=replacement_task.id, quantity=0,
            )
