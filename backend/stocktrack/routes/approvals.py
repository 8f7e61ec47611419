# backend/stocktrack/routes/approvals.py
"""
Approval queue API routes

- POST /api/approvals                  submit a change request for a unit
- GET  /api/approvals/pending          pending requests (?search=)
- GET  /api/approvals/decided          recent approved/rejected (?limit=)
- POST /api/approvals/:id/approve      replay the request's intent (privileged)
- POST /api/approvals/:id/reject       reject without side effects (privileged)

approver_id / requested_by come from the asserted actor headers, NOT from
the request body.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError, ValidationError
from ..services import approval_service
from ..services.intents import ChangeIntent
from ..decorators import require_actor, require_privileged


approvals_bp = Blueprint("approvals", __name__, url_prefix="/api/approvals")


@approvals_bp.post("")
@require_actor
def submit_route():
    """
    Body: {"unit_id": 1, "intent": {...ChangeIntent fields...}}

    Any actor may submit, privileged ones included (e.g. to get a second
    pair of eyes). Response 201 with the pending update.
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")
        unit_id = data.get("unit_id")
        if unit_id is None:
            raise ValidationError("unit_id is required")

        intent = ChangeIntent.from_dict(data.get("intent") or {}, unit_id=unit_id)
        pending = approval_service.submit(
            intent.unit_id,
            intent,
            g.actor_id,
            requested_by_name=g.actor_name,
        )
        return jsonify({"pending_update": pending.to_dict()}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to submit pending update")
        return jsonify({"error": "Internal server error"}), 500


@approvals_bp.get("/pending")
@require_actor
@require_privileged
def list_pending_route():
    try:
        pending = approval_service.list_pending(search=request.args.get("search"))
        return jsonify({"pending_updates": [p.to_dict() for p in pending], "count": len(pending)}), 200
    except Exception:
        current_app.logger.exception("Failed to list pending updates")
        return jsonify({"error": "Internal server error"}), 500


@approvals_bp.get("/decided")
@require_actor
@require_privileged
def list_decided_route():
    try:
        limit = request.args.get("limit")
        if limit is not None:
            try:
                limit = max(1, min(int(limit), 200))
            except ValueError:
                raise ValidationError("limit must be an integer")

        decided = approval_service.list_decided(limit)
        return jsonify({"pending_updates": [p.to_dict() for p in decided], "count": len(decided)}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list decided updates")
        return jsonify({"error": "Internal server error"}), 500


@approvals_bp.post("/<int:pending_update_id>/approve")
@require_actor
@require_privileged
def approve_route(pending_update_id: int):
    """
    Approve: replays the stored intent against the live unit.

    Error responses:
        404: request or unit not found
        409: already decided / unit already sold / invalid transition
             (the request stays pending in the last two cases)
    """
    try:
        applied = approval_service.approve(pending_update_id, g.actor_id)
        pending = approval_service.get_pending_update(pending_update_id)
        return jsonify({
            "applied": applied.to_dict(),
            "pending_update": pending.to_dict(),
        }), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve pending update")
        return jsonify({"error": "Internal server error"}), 500


@approvals_bp.post("/<int:pending_update_id>/reject")
@require_actor
@require_privileged
def reject_route(pending_update_id: int):
    try:
        data = request.get_json(silent=True) or {}
        pending = approval_service.reject(pending_update_id, g.actor_id, note=data.get("note"))
        return jsonify({"pending_update": pending.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reject pending update")
        return jsonify({"error": "Internal server error"}), 500
