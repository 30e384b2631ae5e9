# Overview: Pytest coverage for the task status workflow and its stock side effects.

"""
Task Status Workflow Tests

Walks tasks through the status graph and checks the stock reservation
lifecycle that rides on it:
- DRAFT -> APPROVED reserves stock for REPLACED tasks
- -> COMPLETED consumes the reservation
- -> CANCELLED releases it
- every disallowed pair is refused with no side effects
- a failing side effect leaves the task exactly where it was
"""

import itertools

import pytest
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from conftest import make_job
from workshop.enums import AllocationStatus, InventoryTransactionType, TaskStatus
from workshop.errors import (
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceFailure,
    TaskLockedError,
    ValidationError,
)
from workshop.extensions import db
from workshop.models import InventoryItem
from workshop.repositories import AllocationRepository, InventoryRepository, TaskRepository
from workshop.services.estimate_sync_service import TaskEstimateSyncService
from workshop.services.task_service import update_task
from workshop.services.task_workflow import (
    ALLOWED_TRANSITIONS,
    TaskStatusWorkflow,
    allowed_transitions,
    parse_status,
)


ALLOWED_PAIRS = [(current, target) for current, targets in ALLOWED_TRANSITIONS.items() for target in targets]
DISALLOWED_PAIRS = [
    (current, target)
    for current, target in itertools.product(TaskStatus, TaskStatus)
    if target not in ALLOWED_TRANSITIONS[current]
]


def _stock(tenant_id, item_id):
    item = InventoryRepository(tenant_id).get(item_id, refresh=True)
    return item.stock_on_hand, item.stock_reserved


def _force_status(task, status):
    task.task_status = status
    db.session.commit()


class TestTransitionTable:
    """The graph itself, independent of inventory."""

    def test_every_pair_is_classified(self):
        assert len(ALLOWED_PAIRS) + len(DISALLOWED_PAIRS) == 25
        assert len(ALLOWED_PAIRS) == 7

    def test_completed_is_terminal(self):
        assert ALLOWED_TRANSITIONS[TaskStatus.COMPLETED] == frozenset()

    def test_allowed_transitions_keep_declaration_order(self):
        assert allowed_transitions(TaskStatus.DRAFT) == ["APPROVED", "CANCELLED"]
        assert allowed_transitions(TaskStatus.IN_PROGRESS) == ["APPROVED", "COMPLETED"]

    def test_parse_status_rejects_unknown_value(self):
        with pytest.raises(ValidationError):
            parse_status("DONE")

    @pytest.mark.parametrize("current,target", ALLOWED_PAIRS)
    def test_allowed_pair_succeeds_without_inventory(self, tenant_a, user_a, job_a, make_task, current, target):
        task = make_task()
        _force_status(task, current)

        result = TaskStatusWorkflow(tenant_a.id).transition(task.id, target, user_a.id, jobcard_id=job_a.id)

        assert result.task.task_status == target
        assert result.inventory_update is None

    @pytest.mark.parametrize("current,target", DISALLOWED_PAIRS)
    def test_disallowed_pair_changes_nothing(self, tenant_a, user_a, job_a, item_a, replacement_task, current, target):
        _force_status(replacement_task, current)

        with pytest.raises(InvalidTransitionError) as exc_info:
            TaskStatusWorkflow(tenant_a.id).transition(replacement_task.id, target, user_a.id)

        assert exc_info.value.details["allowedTransitions"] == allowed_transitions(current)
        assert TaskRepository(tenant_a.id).get(replacement_task.id).task_status == current
        assert _stock(tenant_a.id, item_a.id) == (10, 0)
        assert AllocationRepository(tenant_a.id).find_by_task_id(replacement_task.id) == []


class TestReservationLifecycle:
    """Reserve on approval, consume on completion, release on cancellation."""

    def test_approve_reserves_stock(self, tenant_a, user_a, job_a, item_a, replacement_task):
        result = TaskStatusWorkflow(tenant_a.id).transition(
            replacement_task.id, "APPROVED", user_a.id, jobcard_id=job_a.id
        )

        assert result.inventory_update == {
            "id": item_a.id,
            "stockOnHand": 10,
            "stockReserved": 5,
            "stockAvailable": 5,
        }
        assert _stock(tenant_a.id, item_a.id) == (10, 5)

        allocations = AllocationRepository(tenant_a.id).find_by_task_id(replacement_task.id)
        assert len(allocations) == 1
        assert allocations[0].status == AllocationStatus.RESERVED
        assert allocations[0].quantity_reserved == 5

        task = TaskRepository(tenant_a.id).get(replacement_task.id)
        assert task.task_status == TaskStatus.APPROVED
        assert task.allocation_id == allocations[0].id
        assert task.approved_by_user_id == user_a.id
        assert task.approved_at is not None

        tx_types = [tx.transaction_type for tx in InventoryRepository(tenant_a.id).find_transactions(item_a.id)]
        assert tx_types == [InventoryTransactionType.PURCHASE, InventoryTransactionType.RESERVE]

    def test_second_reservation_beyond_availability_is_refused(self, tenant_a, user_a, item_a, replacement_task, make_task):
        workflow = TaskStatusWorkflow(tenant_a.id)
        workflow.transition(replacement_task.id, "APPROVED", user_a.id)
        greedy = make_task(taskName="Replace rear pads", actionType="REPLACED", inventoryItemId=item_a.id, qty=6)

        with pytest.raises(InsufficientStockError) as exc_info:
            workflow.transition(greedy.id, "APPROVED", user_a.id)

        assert exc_info.value.status == 409
        body = exc_info.value.to_dict()
        assert body["error"] == "INSUFFICIENT_STOCK"
        assert body["stockAvailable"] == 5
        assert body["stockRequested"] == 6
        assert _stock(tenant_a.id, item_a.id) == (10, 5)
        assert TaskRepository(tenant_a.id).get(greedy.id).task_status == TaskStatus.DRAFT
        assert AllocationRepository(tenant_a.id).find_by_task_id(greedy.id) == []

    def test_complete_consumes_reservation(self, tenant_a, user_a, item_a, replacement_task):
        workflow = TaskStatusWorkflow(tenant_a.id)
        workflow.transition(replacement_task.id, "APPROVED", user_a.id)
        workflow.transition(replacement_task.id, "IN_PROGRESS", user_a.id)
        result = workflow.transition(replacement_task.id, "COMPLETED", user_a.id)

        assert result.inventory_update["stockOnHand"] == 5
        assert result.inventory_update["stockReserved"] == 0
        assert _stock(tenant_a.id, item_a.id) == (5, 0)

        allocation = AllocationRepository(tenant_a.id).find_by_task_id(replacement_task.id)[0]
        assert allocation.status == AllocationStatus.CONSUMED
        assert allocation.quantity_consumed == 5
        assert allocation.consumed_at is not None

        task = TaskRepository(tenant_a.id).get(replacement_task.id)
        assert task.completed_by_user_id == user_a.id
        assert task.allocation_id == allocation.id

    def test_repair_task_approval_touches_no_stock(self, tenant_a, user_a, item_a, make_task):
        task = make_task(taskName="Bleed brakes", actionType="REPAIRED")

        result = TaskStatusWorkflow(tenant_a.id).transition(task.id, "APPROVED", user_a.id)

        assert result.inventory_update is None
        assert "inventoryUpdate" not in result.to_dict()
        assert _stock(tenant_a.id, item_a.id) == (10, 0)
        assert AllocationRepository(tenant_a.id).find_by_task_id(task.id) == []

    def test_cancel_releases_reservation(self, tenant_a, user_a, item_a, replacement_task):
        workflow = TaskStatusWorkflow(tenant_a.id)
        workflow.transition(replacement_task.id, "APPROVED", user_a.id)

        result = workflow.transition(replacement_task.id, "CANCELLED", user_a.id)

        assert result.inventory_update["stockReserved"] == 0
        assert _stock(tenant_a.id, item_a.id) == (10, 0)
        allocation = AllocationRepository(tenant_a.id).find_by_task_id(replacement_task.id)[0]
        assert allocation.status == AllocationStatus.RELEASED
        assert allocation.released_at is not None
        assert TaskRepository(tenant_a.id).get(replacement_task.id).allocation_id is None

    def test_back_to_approved_keeps_existing_reservation(self, tenant_a, user_a, item_a, replacement_task):
        workflow = TaskStatusWorkflow(tenant_a.id)
        workflow.transition(replacement_task.id, "APPROVED", user_a.id)
        workflow.transition(replacement_task.id, "IN_PROGRESS", user_a.id)

        result = workflow.transition(replacement_task.id, "APPROVED", user_a.id)

        assert result.inventory_update is None
        assert _stock(tenant_a.id, item_a.id) == (10, 5)
        assert len(AllocationRepository(tenant_a.id).find_by_task_id(replacement_task.id)) == 1

    def test_reactivated_task_reserves_again(self, tenant_a, user_a, item_a, replacement_task):
        workflow = TaskStatusWorkflow(tenant_a.id)
        workflow.transition(replacement_task.id, "APPROVED", user_a.id)
        workflow.transition(replacement_task.id, "CANCELLED", user_a.id)
        workflow.transition(replacement_task.id, "DRAFT", user_a.id)
        workflow.transition(replacement_task.id, "APPROVED", user_a.id)

        statuses = sorted(a.status.value for a in AllocationRepository(tenant_a.id).find_by_task_id(replacement_task.id))
        assert statuses == ["released", "reserved"]
        assert _stock(tenant_a.id, item_a.id) == (10, 5)

    def test_completed_task_rejects_quantity_edit(self, tenant_a, user_a, job_a, replacement_task):
        workflow = TaskStatusWorkflow(tenant_a.id)
        for status in ("APPROVED", "IN_PROGRESS", "COMPLETED"):
            workflow.transition(replacement_task.id, status, user_a.id)

        with pytest.raises(TaskLockedError):
            update_task(tenant_a.id, job_a.id, replacement_task.id, {"qty": 3}, user_a.id)
        assert TaskRepository(tenant_a.id).get(replacement_task.id).qty == 5


class TestAtomicity:
    """Side effect and status write commit together or not at all."""

    def test_failed_consumption_rolls_back_status(self, monkeypatch, tenant_a, user_a, item_a, replacement_task):
        workflow = TaskStatusWorkflow(tenant_a.id)
        workflow.transition(replacement_task.id, "APPROVED", user_a.id)
        workflow.transition(replacement_task.id, "IN_PROGRESS", user_a.id)

        def failing_consume(self, item_id, quantity):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(InventoryRepository, "consume_reserved_stock", failing_consume)

        with pytest.raises(PersistenceFailure):
            workflow.transition(replacement_task.id, "COMPLETED", user_a.id)

        task = TaskRepository(tenant_a.id).get(replacement_task.id)
        assert task.task_status == TaskStatus.IN_PROGRESS
        assert task.completed_at is None
        allocation = AllocationRepository(tenant_a.id).find_by_task_id(replacement_task.id)[0]
        assert allocation.status == AllocationStatus.RESERVED
        assert _stock(tenant_a.id, item_a.id) == (10, 5)

    def test_failed_reservation_bookkeeping_rolls_back_stock(self, monkeypatch, tenant_a, user_a, item_a, replacement_task):
        def failing_create(self, **kwargs):
            raise SQLAlchemyError("constraint failed")

        monkeypatch.setattr(AllocationRepository, "create", failing_create)

        with pytest.raises(PersistenceFailure):
            TaskStatusWorkflow(tenant_a.id).transition(replacement_task.id, "APPROVED", user_a.id)

        assert TaskRepository(tenant_a.id).get(replacement_task.id).task_status == TaskStatus.DRAFT
        assert _stock(tenant_a.id, item_a.id) == (10, 0)

    def test_retry_after_failure_succeeds(self, monkeypatch, tenant_a, user_a, item_a, replacement_task):
        workflow = TaskStatusWorkflow(tenant_a.id)
        original = InventoryRepository.reserve_stock
        calls = {"count": 0}

        def flaky_reserve(self, item_id, quantity):
            calls["count"] += 1
            if calls["count"] == 1:
                raise SQLAlchemyError("connection reset")
            return original(self, item_id, quantity)

        monkeypatch.setattr(InventoryRepository, "reserve_stock", flaky_reserve)

        with pytest.raises(PersistenceFailure):
            workflow.transition(replacement_task.id, "APPROVED", user_a.id)
        workflow.transition(replacement_task.id, "APPROVED", user_a.id)

        assert _stock(tenant_a.id, item_a.id) == (10, 5)
        assert len(AllocationRepository(tenant_a.id).find_by_task_id(replacement_task.id)) == 1

    def test_replayed_transition_fails_without_second_reservation(self, tenant_a, user_a, item_a, replacement_task):
        workflow = TaskStatusWorkflow(tenant_a.id)
        workflow.transition(replacement_task.id, "APPROVED", user_a.id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            workflow.transition(replacement_task.id, "APPROVED", user_a.id)

        assert exc_info.value.details["currentStatus"] == "APPROVED"
        assert exc_info.value.details["allowedTransitions"] == ["IN_PROGRESS", "CANCELLED"]
        assert _stock(tenant_a.id, item_a.id) == (10, 5)
        assert len(AllocationRepository(tenant_a.id).find_by_task_id(replacement_task.id)) == 1

    def test_reservation_guard_reads_database_not_loaded_row(self, tenant_a, user_a, item_a, replacement_task):
        loaded = db.session.get(InventoryItem, item_a.id)
        assert loaded.stock_reserved == 0

        # A concurrent writer reserves 8 units behind the loaded object's back
        db.session.execute(
            sa.update(InventoryItem)
            .where(InventoryItem.id == item_a.id)
            .values(stock_reserved=8)
            .execution_options(synchronize_session=False)
        )
        assert loaded.stock_reserved == 0

        with pytest.raises(InsufficientStockError) as exc_info:
            TaskStatusWorkflow(tenant_a.id).transition(replacement_task.id, "APPROVED", user_a.id)

        assert exc_info.value.available == 2
        assert TaskRepository(tenant_a.id).get(replacement_task.id).task_status == TaskStatus.DRAFT


class TestScoping:
    """Tasks are addressed by tenant and job; anything else is missing."""

    def test_task_under_other_job_is_not_found(self, db_session, tenant_a, user_a, replacement_task):
        other_job = make_job(db_session, tenant_a.id, "JC-1002")

        with pytest.raises(NotFoundError):
            TaskStatusWorkflow(tenant_a.id).transition(
                replacement_task.id, "APPROVED", user_a.id, jobcard_id=other_job.id
            )
        assert TaskRepository(tenant_a.id).get(replacement_task.id).task_status == TaskStatus.DRAFT

    def test_task_of_other_tenant_is_not_found(self, tenant_b, user_b, replacement_task):
        with pytest.raises(NotFoundError):
            TaskStatusWorkflow(tenant_b.id).transition(replacement_task.id, "APPROVED", user_b.id)

    def test_unknown_status_is_rejected_before_lookup(self, tenant_a, user_a):
        with pytest.raises(ValidationError):
            TaskStatusWorkflow(tenant_a.id).transition("missing", "FINISHED", user_a.id)


class TestPostCommitNotification:
    """Estimate sync runs after commit and can never undo a transition."""

    def test_failing_hook_is_swallowed(self, tenant_a, user_a, item_a, replacement_task):
        def exploding_hook(task):
            raise RuntimeError("estimate service down")

        workflow = TaskStatusWorkflow(tenant_a.id, on_committed=exploding_hook)
        result = workflow.transition(replacement_task.id, "APPROVED", user_a.id)

        assert result.task.task_status == TaskStatus.APPROVED
        assert TaskRepository(tenant_a.id).get(replacement_task.id).task_status == TaskStatus.APPROVED
        assert _stock(tenant_a.id, item_a.id) == (10, 5)

    def test_default_hook_failure_does_not_fail_transition(self, monkeypatch, tenant_a, user_a, replacement_task):
        def failing_sync(self, task):
            raise SQLAlchemyError("estimate table locked")

        monkeypatch.setattr(TaskEstimateSyncService, "sync_task_to_estimate", failing_sync)

        result = TaskStatusWorkflow(tenant_a.id).transition(replacement_task.id, "APPROVED", user_a.id)

        assert result.task.task_status == TaskStatus.APPROVED

    def test_default_hook_syncs_estimate(self, monkeypatch, tenant_a, user_a, replacement_task):
        synced = []
        monkeypatch.setattr(
            TaskEstimateSyncService, "sync_task_to_estimate", lambda self, task: synced.append((self.tenant_id, task.id))
        )

        TaskStatusWorkflow(tenant_a.id).transition(replacement_task.id, "APPROVED", user_a.id)

        assert synced == [(tenant_a.id, replacement_task.id)]

    def test_hook_receives_committed_task(self, tenant_a, user_a, replacement_task):
        seen = []
        workflow = TaskStatusWorkflow(tenant_a.id, on_committed=lambda task: seen.append(task.task_status))

        workflow.transition(replacement_task.id, "CANCELLED", user_a.id)

        assert seen == [TaskStatus.CANCELLED]
