"""
Closed value sets for tasks, allocations and stock movements.

Values are persisted as their string form (see ``enum_column`` in models).
"""
from __future__ import annotations

from enum import Enum


class TaskStatus(str, Enum):
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskActionType(str, Enum):
    NO_CHANGE = "NO_CHANGE"
    REPAIRED = "REPAIRED"
    REPLACED = "REPLACED"


class AllocationStatus(str, Enum):
    RESERVED = "reserved"
    CONSUMED = "consumed"
    RELEASED = "released"


class InventoryTransactionType(str, Enum):
    PURCHASE = "purchase"
    RESERVE = "reserve"
    RELEASE = "release"
    USAGE = "usage"


class JobStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Task fields that become immutable once a task is approved or completed
LOCKED_TASK_FIELDS = frozenset({
    "task_name",
    "action_type",
    "inventory_item_id",
    "qty",
    "unit_price_snapshot_cents",
    "labor_cost_snapshot_cents",
    "tax_rate_snapshot_bps",
})

LOCKED_TASK_STATUSES = frozenset({TaskStatus.APPROVED, TaskStatus.COMPLETED})

# Fields that would desync a held reservation
INVENTORY_LINK_FIELDS = frozenset({"action_type", "inventory_item_id", "qty"})
