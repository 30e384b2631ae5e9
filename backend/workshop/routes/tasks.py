# backend/workshop/routes/tasks.py
"""
Job card task routes.

SECURITY: All routes require authentication; the tenant comes from the
session, never from the request.
- Reads are throttled with the READ limit, writes with the WRITE limit.

Status changes go through PATCH .../status only. Field edits through
PATCH .../<taskId> never move taskStatus.
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import rate_limit, require_auth
from ..errors import ValidationError, WorkshopError
from ..services import inventory_service, task_service
from ..services.task_workflow import TaskStatusWorkflow
from . import error_response, internal_error, parse_ids


jobs_bp = Blueprint("jobs", __name__, url_prefix="/api/jobs")


@jobs_bp.patch("/<job_id>/tasks/<task_id>/status")
@require_auth
@rate_limit("task-status")
def update_task_status_route(job_id, task_id):
    """
    Move a task through its status workflow.

    Body: {"taskStatus": "DRAFT" | "APPROVED" | "IN_PROGRESS" | "COMPLETED" | "CANCELLED"}

    Returns 200 {task, inventoryUpdate?}, 400 on malformed ids, unknown
    status or an illegal transition (with allowedTransitions), 404 when the
    task is missing or belongs to another job, 409 when stock is short.
    """
    payload = request.get_json(silent=True) or {}

    try:
        job_id, task_id = parse_ids(job_id, task_id)
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        if "taskStatus" not in payload:
            raise ValidationError("taskStatus is required")

        workflow = TaskStatusWorkflow(g.tenant_id)
        result = workflow.transition(
            task_id,
            payload["taskStatus"],
            actor_id=g.current_user.id,
            jobcard_id=job_id,
        )
        return jsonify(result.to_dict()), 200

    except WorkshopError as e:
        return error_response(e, "update task status")
    except Exception:
        return internal_error("update task status")


@jobs_bp.get("/<job_id>/tasks")
@require_auth
@rate_limit("tasks", kind="READ")
def list_tasks_route(job_id):
    try:
        (job_id,) = parse_ids(job_id)
        tasks = task_service.list_tasks(g.tenant_id, job_id)
        return jsonify({"tasks": [task.to_dict() for task in tasks]}), 200
    except WorkshopError as e:
        return error_response(e, "list tasks")
    except Exception:
        return internal_error("list tasks")


@jobs_bp.post("/<job_id>/tasks")
@require_auth
@rate_limit("tasks")
def create_task_route(job_id):
    """New tasks start in DRAFT; no stock is reserved until approval."""
    payload = request.get_json(silent=True) or {}

    try:
        (job_id,) = parse_ids(job_id)
        task = task_service.create_task(g.tenant_id, job_id, payload, g.current_user.id)
        return jsonify({"task": task.to_dict()}), 201
    except WorkshopError as e:
        return error_response(e, "create task")
    except Exception:
        return internal_error("create task")


@jobs_bp.get("/<job_id>/tasks/<task_id>")
@require_auth
@rate_limit("tasks", kind="READ")
def get_task_route(job_id, task_id):
    try:
        job_id, task_id = parse_ids(job_id, task_id)
        task = task_service.get_task(g.tenant_id, job_id, task_id)
        return jsonify({"task": task.to_dict()}), 200
    except WorkshopError as e:
        return error_response(e, "get task")
    except Exception:
        return internal_error("get task")


@jobs_bp.patch("/<job_id>/tasks/<task_id>")
@require_auth
@rate_limit("tasks")
def update_task_route(job_id, task_id):
    """Edit task fields. Completed tasks are locked; approved tasks lock pricing and parts."""
    payload = request.get_json(silent=True) or {}

    try:
        job_id, task_id = parse_ids(job_id, task_id)
        if isinstance(payload, dict) and "taskStatus" in payload:
            raise ValidationError("Use the status endpoint to change taskStatus")
        task = task_service.update_task(g.tenant_id, job_id, task_id, payload, g.current_user.id)
        return jsonify({"task": task.to_dict()}), 200
    except WorkshopError as e:
        return error_response(e, "update task")
    except Exception:
        return internal_error("update task")


@jobs_bp.delete("/<job_id>/tasks/<task_id>")
@require_auth
@rate_limit("tasks")
def delete_task_route(job_id, task_id):
    try:
        job_id, task_id = parse_ids(job_id, task_id)
        task_service.delete_task(g.tenant_id, job_id, task_id, g.current_user.id)
        return jsonify({"deleted": True, "taskId": task_id}), 200
    except WorkshopError as e:
        return error_response(e, "delete task")
    except Exception:
        return internal_error("delete task")


@jobs_bp.get("/<job_id>/allocations")
@require_auth
@rate_limit("allocations", kind="READ")
def list_allocations_route(job_id):
    try:
        (job_id,) = parse_ids(job_id)
        task_service.get_jobcard(g.tenant_id, job_id)
        allocations = inventory_service.list_allocations_for_job(g.tenant_id, job_id)
        return jsonify({"allocations": [a.to_dict() for a in allocations]}), 200
    except WorkshopError as e:
        return error_response(e, "list allocations")
    except Exception:
        return internal_error("list allocations")
