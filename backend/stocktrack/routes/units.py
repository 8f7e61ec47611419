# Overview: Flask API routes for units; parses input and returns JSON responses.

"""
Unit API routes

- GET  /api/units                 list (filters: status, kind, region_id, assigned_team_id, assigned_user_id, batch_number)
- POST /api/units                 create one unit or {"units": [...]} (privileged)
- GET  /api/units/stats           counts per status and kind
- GET  /api/units/lookup?code=    find by smartcard or serial number
- GET  /api/units/<id>            unit with its sale and assignment
- POST /api/units/<id>/intent     privileged: apply now; otherwise queue for approval
- POST /api/units/bulk/status     (privileged)
- POST /api/units/bulk/assign     (privileged)
- POST /api/units/bulk/delete     (privileged, requires "confirm": true)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError, ValidationError
from ..services import approval_service, assignment_service, bulk_service, inventory_service, sales_service, transition_service
from ..services.intents import UNSET, ChangeIntent
from ..decorators import require_actor, require_privileged


units_bp = Blueprint("units", __name__, url_prefix="/api/units")


def _parse_unit_ids(data: dict) -> list[int]:
    raw = data.get("unit_ids")
    if not isinstance(raw, list) or not raw:
        raise ValidationError("unit_ids must be a non-empty list")
    if any(isinstance(x, bool) for x in raw):
        raise ValidationError("unit_ids must be integers")
    try:
        return [int(x) for x in raw]
    except (TypeError, ValueError):
        raise ValidationError("unit_ids must be integers")


def _parse_limit(default: int = 500) -> int:
    try:
        limit = int(request.args.get("limit", default))
    except ValueError:
        raise ValidationError("limit must be an integer")
    return max(1, min(limit, 1000))


@units_bp.get("")
@require_actor
def list_units_route():
    try:
        filters = {
            key: request.args[key]
            for key in inventory_service.LIST_FILTERS
            if request.args.get(key)
        }
        units = inventory_service.list_units(filters, limit=_parse_limit())
        return jsonify({"units": [u.to_dict() for u in units], "count": len(units)}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list units")
        return jsonify({"error": "Internal server error"}), 500


@units_bp.post("")
@require_actor
@require_privileged
def create_units_route():
    """
    Create units from validated rows.

    Body: a single unit object, or {"units": [ ... ]} for a batch
    (all-or-nothing).
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")

        if "units" in data:
            rows = data["units"]
            if not isinstance(rows, list):
                raise ValidationError("units must be a list")
            units = inventory_service.create_units(rows)
            return jsonify({"units": [u.to_dict() for u in units], "count": len(units)}), 201

        unit = inventory_service.create_units([data])[0]
        return jsonify({"unit": unit.to_dict()}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create units")
        return jsonify({"error": "Internal server error"}), 500


@units_bp.get("/stats")
@require_actor
def unit_stats_route():
    try:
        return jsonify({"stats": inventory_service.inventory_stats()}), 200
    except Exception:
        current_app.logger.exception("Failed to compute unit stats")
        return jsonify({"error": "Internal server error"}), 500


@units_bp.get("/lookup")
@require_actor
def lookup_unit_route():
    try:
        unit = inventory_service.find_unit(request.args.get("code", ""))
        if unit is None:
            return jsonify({"error": "Unit not found", "code": "not_found", "details": {}}), 404
        return jsonify({"unit": unit.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to look up unit")
        return jsonify({"error": "Internal server error"}), 500


@units_bp.get("/<int:unit_id>")
@require_actor
def get_unit_route(unit_id: int):
    try:
        unit = inventory_service.get_unit(unit_id)
        sale = sales_service.sale_for_unit(unit_id)
        assignment = assignment_service.get_assignment(unit_id)
        return jsonify({
            "unit": unit.to_dict(),
            "sale": sale.to_dict() if sale else None,
            "assignment": assignment.to_dict() if assignment else None,
        }), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load unit")
        return jsonify({"error": "Internal server error"}), 500


@units_bp.post("/<int:unit_id>/intent")
@require_actor
def unit_intent_route(unit_id: int):
    """
    Request a change to one unit.

    Privileged actors: the intent is applied now -> 200 {"applied": ...}
    Everyone else: the intent is queued -> 202 {"pending_update": ...}

    A privileged sale without sold_by_user_id is attributed to the actor.
    """
    try:
        intent = ChangeIntent.from_dict(request.get_json(silent=True), unit_id=unit_id)

        if g.is_privileged:
            if intent.sells and not intent.sold_by_user_id:
                intent.sold_by_user_id = g.actor_id
            applied = transition_service.apply_intent(intent)
            return jsonify({"applied": applied.to_dict()}), 200

        pending = approval_service.submit(
            unit_id,
            intent,
            g.actor_id,
            requested_by_name=g.actor_name,
        )
        return jsonify({"pending_update": pending.to_dict()}), 202
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to apply unit intent")
        return jsonify({"error": "Internal server error"}), 500


@units_bp.post("/bulk/status")
@require_actor
@require_privileged
def bulk_status_route():
    try:
        data = request.get_json(silent=True) or {}
        unit_ids = _parse_unit_ids(data)
        status = data.get("status")
        if not status:
            raise ValidationError("status is required")

        results = bulk_service.bulk_set_status(
            unit_ids,
            status,
            sold_by_user_id=data.get("sold_by_user_id") or (g.actor_id if status == "sold" else None),
            payment_status=data.get("payment_status"),
        )
        return jsonify(bulk_service.summarize(results)), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to bulk update unit status")
        return jsonify({"error": "Internal server error"}), 500


@units_bp.post("/bulk/assign")
@require_actor
@require_privileged
def bulk_assign_route():
    """
    Body: {"unit_ids": [...], "team_id"?, "team_name"?, "user_id"?, "user_name"?}

    A key sent as null clears that side of the assignment; an omitted key
    leaves it alone.
    """
    try:
        data = request.get_json(silent=True) or {}
        unit_ids = _parse_unit_ids(data)
        assignment = {
            key: data[key] if key in data else UNSET
            for key in ("team_id", "team_name", "user_id", "user_name")
        }
        results = bulk_service.bulk_assign(unit_ids, **assignment)
        return jsonify(bulk_service.summarize(results)), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to bulk assign units")
        return jsonify({"error": "Internal server error"}), 500


@units_bp.post("/bulk/delete")
@require_actor
@require_privileged
def bulk_delete_route():
    """
    Hard delete for data-entry correction. Irreversible.

    Requires "confirm": true in the body.
    """
    try:
        data = request.get_json(silent=True) or {}
        unit_ids = _parse_unit_ids(data)
        if data.get("confirm") is not True:
            raise ValidationError("Deletion must be confirmed with \"confirm\": true")

        deleted = bulk_service.delete_many(unit_ids)
        current_app.logger.warning("Actor %s deleted %d units", g.actor_id, deleted)
        return jsonify({"deleted": deleted}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete units")
        return jsonify({"error": "Internal server error"}), 500
