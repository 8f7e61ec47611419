# Overview: Flask API routes for the sale ledger; parses input and returns JSON responses.

# backend/stocktrack/routes/sales.py
"""Sale ledger API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import EngineError, ValidationError
from ..services import sales_service
from ..decorators import require_actor, require_privileged


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_actor
def list_sales_route():
    """
    List sales newest-first.

    Query: is_paid=true|false, sold_by_user_id
    """
    try:
        is_paid = request.args.get("is_paid")
        if is_paid is not None:
            if is_paid.lower() not in ("true", "false"):
                raise ValidationError("is_paid must be true or false")
            is_paid = is_paid.lower() == "true"

        sales = sales_service.list_sales(
            is_paid=is_paid,
            sold_by_user_id=request.args.get("sold_by_user_id") or None,
        )
        return jsonify({"sales": [s.to_dict(include_unit=True) for s in sales], "count": len(sales)}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/unpaid")
@require_actor
def list_unpaid_route():
    """Unpaid sales with days_unpaid, oldest debt first."""
    try:
        sales = sales_service.list_unpaid_sales()
        return jsonify({"sales": sales, "count": len(sales)}), 200
    except Exception:
        current_app.logger.exception("Failed to list unpaid sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_actor
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict(include_unit=True)}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/mark-paid")
@require_actor
@require_privileged
def mark_paid_route(sale_id: int):
    """Mark a sale paid. Already-paid sales are returned unchanged."""
    try:
        sale = sales_service.mark_paid(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to mark sale paid")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.patch("/<int:sale_id>")
@require_actor
@require_privileged
def update_sale_route(sale_id: int):
    """
    Edit customer_phone and/or package_choice.

    Payment fields are not accepted here; use /mark-paid.
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")

        sale = sales_service.update_sale_details(
            sale_id,
            customer_phone=data.get("customer_phone"),
            package_choice=data.get("package_choice"),
            fields_present=set(data.keys()),
        )
        return jsonify({"sale": sale.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500
