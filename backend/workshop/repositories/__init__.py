"""
Tenant-scoped persistence adapters.

Every repository is constructed with an explicit tenant_id and filters every
query by it; rows owned by another tenant behave exactly like missing rows.
Writers flush but never commit: the caller owns the transaction.
"""
from .task_repository import TaskRepository
from .inventory_repository import InventoryRepository
from .allocation_repository import AllocationRepository

__all__ = ["TaskRepository", "InventoryRepository", "AllocationRepository"]
