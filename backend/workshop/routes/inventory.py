# backend/workshop/routes/inventory.py
"""
Inventory item routes.

SECURITY: All routes require authentication.

Stock counters are read-only here: stock_reserved moves only through the
task status workflow, stock_on_hand only through consumption.
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import rate_limit, require_auth
from ..errors import WorkshopError
from ..services import inventory_service
from . import error_response, internal_error, parse_ids


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/items")
@require_auth
@rate_limit("inventory", kind="READ")
def list_items_route():
    try:
        items = inventory_service.list_items(g.tenant_id)
        return jsonify({"items": [item.to_dict() for item in items]}), 200
    except WorkshopError as e:
        return error_response(e, "list inventory items")
    except Exception:
        return internal_error("list inventory items")


@inventory_bp.post("/items")
@require_auth
@rate_limit("inventory")
def create_item_route():
    payload = request.get_json(silent=True) or {}

    try:
        item = inventory_service.create_item(g.tenant_id, payload, g.current_user.id)
        return jsonify({"item": item.to_dict()}), 201
    except WorkshopError as e:
        return error_response(e, "create inventory item")
    except Exception:
        return internal_error("create inventory item")


@inventory_bp.get("/items/<item_id>")
@require_auth
@rate_limit("inventory", kind="READ")
def get_item_route(item_id):
    try:
        (item_id,) = parse_ids(item_id)
        item = inventory_service.get_item(g.tenant_id, item_id)
        return jsonify({"item": item.to_dict()}), 200
    except WorkshopError as e:
        return error_response(e, "get inventory item")
    except Exception:
        return internal_error("get inventory item")


@inventory_bp.get("/items/<item_id>/availability")
@require_auth
@rate_limit("inventory", kind="READ")
def item_availability_route(item_id):
    try:
        (item_id,) = parse_ids(item_id)
        return jsonify(inventory_service.get_availability(g.tenant_id, item_id)), 200
    except WorkshopError as e:
        return error_response(e, "get item availability")
    except Exception:
        return internal_error("get item availability")


@inventory_bp.get("/items/<item_id>/transactions")
@require_auth
@rate_limit("inventory", kind="READ")
def item_transactions_route(item_id):
    try:
        (item_id,) = parse_ids(item_id)
        transactions = inventory_service.list_transactions(g.tenant_id, item_id)
        return jsonify({"transactions": [tx.to_dict() for tx in transactions]}), 200
    except WorkshopError as e:
        return error_response(e, "list item transactions")
    except Exception:
        return internal_error("list item transactions")
