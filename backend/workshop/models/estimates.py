from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .types import new_uuid


class Estimate(db.Model):
    """Customer-facing quote for a job card. Totals are derived from its items."""
    __tablename__ = "estimates"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    jobcard_id = db.Column(db.String(36), db.ForeignKey("jobcards.id"), nullable=False, index=True)

    parts_total_cents = db.Column(db.Integer, nullable=False, default=0)
    labor_total_cents = db.Column(db.Integer, nullable=False, default=0)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship("EstimateItem", backref="estimate", lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "jobcardId": self.jobcard_id,
            "partsTotalCents": self.parts_total_cents,
            "laborTotalCents": self.labor_total_cents,
            "subtotalCents": self.subtotal_cents,
            "totalAmountCents": self.total_amount_cents,
            "items": [item.to_dict() for item in self.items],
            "createdAt": to_utc_z(self.created_at),
        }


class EstimateItem(db.Model):
    __tablename__ = "estimate_items"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    estimate_id = db.Column(db.String(36), db.ForeignKey("estimates.id"), nullable=False, index=True)
    task_id = db.Column(db.String(36), nullable=True, index=True)

    part_id = db.Column(db.String(36), nullable=True)
    custom_name = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)
    qty = db.Column(db.Integer, nullable=False, default=1)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    labor_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "estimateId": self.estimate_id,
            "taskId": self.task_id,
            "partId": self.part_id,
            "customName": self.custom_name,
            "description": self.description,
            "qty": self.qty,
            "unitPriceCents": self.unit_price_cents,
            "laborCostCents": self.labor_cost_cents,
        }
