# Overview: Service-layer operations for stock items; creation, lookup and reservation visibility.

"""
Stock items are created with an opening stock_on_hand. After that the stock
counters change only through the reservation workflow (reserve, release,
consume); there is deliberately no endpoint that edits them directly.
"""
from __future__ import annotations

from ..enums import InventoryTransactionType
from ..models import InventoryAllocation, InventoryItem, InventoryTransaction
from ..repositories import AllocationRepository, InventoryRepository
from ..validation import ModelValidationPolicy, enforce_rules_inventory_item, validate_payload
from .concurrency import run_in_transaction


ITEM_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "sku", "name", "description", "unitCostCents", "sellPriceCents", "stockOnHand", "reorderLevel",
    }),
    required_on_create=frozenset({"name"}),
    aliases={
        "unitCostCents": "unit_cost_cents",
        "sellPriceCents": "sell_price_cents",
        "stockOnHand": "stock_on_hand",
        "reorderLevel": "reorder_level",
    },
)


def create_item(tenant_id: int, payload, actor_id: int | None = None) -> InventoryItem:
    patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_CREATE_POLICY, partial=False)
    enforce_rules_inventory_item(patch)

    def _op() -> InventoryItem:
        repo = InventoryRepository(tenant_id)
        item = repo.create(**{k: v for k, v in patch.items() if v is not None})
        if item.stock_on_hand:
            repo.record_transaction(
                item_id=item.id,
                transaction_type=InventoryTransactionType.PURCHASE,
                quantity=item.stock_on_hand,
                reference_type=None,
                created_by=actor_id,
                notes="Opening stock",
            )
        return item

    return run_in_transaction(_op)


def get_item(tenant_id: int, item_id: str) -> InventoryItem:
    return InventoryRepository(tenant_id).get(item_id)


def list_items(tenant_id: int) -> list[InventoryItem]:
    return InventoryRepository(tenant_id).find_all()


def get_availability(tenant_id: int, item_id: str) -> dict:
    """Stock snapshot plus every active reservation holding it."""
    item = InventoryRepository(tenant_id).get(item_id, refresh=True)
    reservations = AllocationRepository(tenant_id).find_reserved_by_item(item_id)
    return {
        "itemId": item.id,
        "name": item.name,
        "stockOnHand": item.stock_on_hand,
        "stockReserved": item.stock_reserved,
        "stockAvailable": item.stock_available,
        "reservations": [
            {
                "allocationId": allocation.id,
                "jobcardId": allocation.jobcard_id,
                "taskId": allocation.task_id,
                "quantity": allocation.quantity_reserved,
                "status": allocation.status.value,
            }
            for allocation in reservations
        ],
    }


def list_transactions(tenant_id: int, item_id: str) -> list[InventoryTransaction]:
    """Stock ledger for one item, oldest movement first."""
    repo = InventoryRepository(tenant_id)
    repo.get(item_id)
    return repo.find_transactions(item_id)


def list_allocations_for_job(tenant_id: int, jobcard_id: str) -> list[InventoryAllocation]:
    return AllocationRepository(tenant_id).find_by_jobcard_id(jobcard_id)
