from __future__ import annotations

from typing import Any

import sqlalchemy as sa

from ..enums import InventoryTransactionType
from ..errors import InsufficientStockError, NotFoundError, PersistenceFailure, ValidationError
from ..extensions import db
from ..models import InventoryItem, InventoryTransaction


def _require_positive(quantity: int) -> None:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")


class InventoryRepository:
    """
    Persistence for stock items.

    CONCURRENCY: stock counters are changed with single guarded UPDATE
    statements, so the availability check and the increment are one atomic
    unit in the database. Two concurrent reservations against the same item
    can never both succeed when their sum exceeds stock_on_hand: the second
    UPDATE matches zero rows.
    """

    def __init__(self, tenant_id: int, session=None):
        self.tenant_id = tenant_id
        self.session = session if session is not None else db.session

    def _scope(self, item_id: str):
        return (
            InventoryItem.id == item_id,
            InventoryItem.tenant_id == self.tenant_id,
            InventoryItem.deleted_at.is_(None),
        )

    # --- Reads ----------------------------------------------------------------

    def find_by_id(self, item_id: str, *, refresh: bool = False) -> InventoryItem | None:
        query = self.session.query(InventoryItem).filter(*self._scope(item_id))
        if refresh:
            # Stock counters are written with Core UPDATEs; reload the row
            query = query.populate_existing()
        return query.first()

    def get(self, item_id: str, *, refresh: bool = False) -> InventoryItem:
        item = self.find_by_id(item_id, refresh=refresh)
        if item is None:
            raise NotFoundError("Inventory item", item_id)
        return item

    def find_all(self) -> list[InventoryItem]:
        return (
            self.session.query(InventoryItem)
            .filter(InventoryItem.tenant_id == self.tenant_id, InventoryItem.deleted_at.is_(None))
            .order_by(InventoryItem.name.asc())
            .all()
        )

    def snapshot(self, item_id: str) -> dict:
        return self.get(item_id, refresh=True).stock_snapshot()

    # --- Writes ---------------------------------------------------------------

    def create(self, *, name: str, **fields: Any) -> InventoryItem:
        item = InventoryItem(tenant_id=self.tenant_id, name=name, stock_reserved=0, **fields)
        self.session.add(item)
        self.session.flush()
        return item

    def _execute(self, statement) -> int:
        result = self.session.execute(statement.execution_options(synchronize_session=False))
        return result.rowcount

    def reserve_stock(self, item_id: str, quantity: int) -> InventoryItem:
        """stock_reserved += quantity, only if the result stays within stock_on_hand."""
        _require_positive(quantity)
        matched = self._execute(
            sa.update(InventoryItem)
            .where(
                *self._scope(item_id),
                InventoryItem.stock_reserved + quantity <= InventoryItem.stock_on_hand,
            )
            .values(stock_reserved=InventoryItem.stock_reserved + quantity)
        )
        item = self.find_by_id(item_id, refresh=True)
        if item is None:
            raise NotFoundError("Inventory item", item_id)
        if matched != 1:
            raise InsufficientStockError(item_id, quantity, item.stock_available)
        return item

    def unreserve_stock(self, item_id: str, quantity: int) -> InventoryItem:
        """stock_reserved -= quantity, floored at zero."""
        _require_positive(quantity)
        remaining = InventoryItem.stock_reserved - quantity
        matched = self._execute(
            sa.update(InventoryItem)
            .where(*self._scope(item_id))
            .values(stock_reserved=sa.case((remaining < 0, 0), else_=remaining))
        )
        if matched != 1:
            raise NotFoundError("Inventory item", item_id)
        return self.get(item_id, refresh=True)

    def consume_reserved_stock(self, item_id: str, quantity: int) -> InventoryItem:
        """stock_on_hand -= quantity and stock_reserved -= quantity, together."""
        _require_positive(quantity)
        matched = self._execute(
            sa.update(InventoryItem)
            .where(
                *self._scope(item_id),
                InventoryItem.stock_reserved >= quantity,
                InventoryItem.stock_on_hand >= quantity,
            )
            .values(
                stock_on_hand=InventoryItem.stock_on_hand - quantity,
                stock_reserved=InventoryItem.stock_reserved - quantity,
            )
        )
        item = self.find_by_id(item_id, refresh=True)
        if item is None:
            raise NotFoundError("Inventory item", item_id)
        if matched != 1:
            raise PersistenceFailure(
                f"Reserved stock for item {item_id} is below {quantity} "
                f"(reserved={item.stock_reserved}, on_hand={item.stock_on_hand})"
            )
        return item

    def record_transaction(
        self,
        *,
        item_id: str,
        transaction_type: InventoryTransactionType,
        quantity: int,
        reference_id: str | None = None,
        reference_type: str | None = "jobcard",
        task_id: str | None = None,
        created_by: int | None = None,
        notes: str | None = None,
    ) -> InventoryTransaction:
        tx = InventoryTransaction(
            tenant_id=self.tenant_id,
            item_id=item_id,
            transaction_type=transaction_type,
            quantity=quantity,
            reference_type=reference_type if reference_id else None,
            reference_id=reference_id,
            task_id=task_id,
            created_by_user_id=created_by,
            notes=notes,
        )
        self.session.add(tx)
        self.session.flush()
        return tx

    def find_transactions(self, item_id: str) -> list[InventoryTransaction]:
        return (
            self.session.query(InventoryTransaction)
            .filter(
                InventoryTransaction.tenant_id == self.tenant_id,
                InventoryTransaction.item_id == item_id,
            )
            .order_by(InventoryTransaction.id.asc())
            .all()
        )
