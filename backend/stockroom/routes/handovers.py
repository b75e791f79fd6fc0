# Overview: Flask API routes for handovers; parses input and returns JSON responses.

# backend/stockroom/routes/handovers.py
"""
Handover API routes.

Managers/admins (MANAGE_PRODUCTS) issue items directly, approve or reject
employee requests, mark records returned and delete them. Employees
(REQUEST_HANDOVER / RETURN_HANDOVER) request items and return their own.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import DomainError
from ..permissions import MANAGE_PRODUCTS, REQUEST_HANDOVER, RETURN_HANDOVER, VIEW_PRODUCTS
from ..services import handover_queries, handover_service
from ..validation import coerce_int, json_object, parse_pagination
from ..decorators import require_auth, require_capability


handovers_bp = Blueprint("handovers", __name__, url_prefix="/api/handovers")


def _optional_int_arg(name: str) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return coerce_int(raw, name)


def _domain_error(e: DomainError):
    db.session.rollback()
    return jsonify({"error": str(e)}), e.status_code


def _unexpected(action: str):
    db.session.rollback()
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


@handovers_bp.get("")
@require_auth
@require_capability(VIEW_PRODUCTS)
def list_handovers_route():
    """
    Query params:
    - status: pending | handed_over | returned | rejected
    - employee_id, product_id: int
    - page (default 1), limit (default HANDOVER_PAGE_LIMIT_DEFAULT, max PAGE_LIMIT_MAX)

    Newest first.
    """
    try:
        page, limit = parse_pagination(
            request.args.get("page"),
            request.args.get("limit"),
            default_limit=current_app.config["HANDOVER_PAGE_LIMIT_DEFAULT"],
            max_limit=current_app.config["PAGE_LIMIT_MAX"],
        )
        result = handover_queries.list_handovers(
            status=request.args.get("status") or None,
            employee_id=_optional_int_arg("employee_id"),
            product_id=_optional_int_arg("product_id"),
            page=page,
            limit=limit,
            max_limit=current_app.config["PAGE_LIMIT_MAX"],
        )
        return jsonify({
            "handovers": [h.to_dict() for h in result["handovers"]],
            "pagination": result["pagination"],
        }), 200
    except DomainError as e:
        return _domain_error(e)


@handovers_bp.get("/stats")
@require_auth
@require_capability(VIEW_PRODUCTS)
def handover_stats_route():
    return jsonify(handover_queries.handover_stats()), 200


@handovers_bp.get("/pending")
@require_auth
@require_capability(MANAGE_PRODUCTS)
def pending_handovers_route():
    handovers = handover_queries.list_pending_handovers()
    return jsonify({"handovers": [h.to_dict() for h in handovers]}), 200


@handovers_bp.get("/my-handovers")
@require_auth
@require_capability(RETURN_HANDOVER)
def my_handovers_route():
    """The caller's own handovers; optional ?status= filter."""
    try:
        handovers = handover_queries.list_employee_handovers(
            g.current_user.id,
            status=request.args.get("status") or None,
        )
        return jsonify({"handovers": [h.to_dict() for h in handovers]}), 200
    except DomainError as e:
        return _domain_error(e)


@handovers_bp.get("/<int:handover_id>")
@require_auth
@require_capability(VIEW_PRODUCTS)
def get_handover_route(handover_id: int):
    try:
        return jsonify(handover_service.get_handover(handover_id).to_dict()), 200
    except DomainError as e:
        return _domain_error(e)


@handovers_bp.post("")
@require_auth
@require_capability(MANAGE_PRODUCTS)
def create_handover_route():
    """
    Direct handover (no approval step).

    Request body:
    {
        "product_id": int,
        "employee_id": int,
        "quantity": int (>= 1),
        "purpose": str (optional, <= 200),
        "notes": str (optional, <= 500),
        "expected_return_date": ISO-8601 (optional)
    }

    Returns:
        201: Items handed over
        400: Invalid input or insufficient stock
        404: Product or employee not found
    """
    try:
        data = json_object(request.get_json(silent=True))
        handover = handover_service.create_direct_handover(
            product_id=data.get("product_id"),
            employee_id=data.get("employee_id"),
            quantity=data.get("quantity"),
            issuer_id=g.current_user.id,
            purpose=data.get("purpose"),
            notes=data.get("notes"),
            expected_return_date=data.get("expected_return_date"),
        )
        return jsonify({"message": "Item handed over successfully", "handover": handover.to_dict()}), 201
    except DomainError as e:
        return _domain_error(e)
    except Exception:
        return _unexpected("create handover")


@handovers_bp.post("/request")
@require_auth
@require_capability(REQUEST_HANDOVER)
def request_handover_route():
    """
    Request body:
    {
        "product_id": int,
        "quantity": int (>= 1),
        "reason": str (required, <= 200)
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        handover = handover_service.create_handover_request(
            product_id=data.get("product_id"),
            employee_id=g.current_user.id,
            quantity=data.get("quantity"),
            reason=data.get("reason"),
        )
        return jsonify({
            "message": "Handover request created successfully",
            "handover": handover.to_dict(),
        }), 201
    except DomainError as e:
        return _domain_error(e)
    except Exception:
        return _unexpected("create handover request")


@handovers_bp.post("/<int:handover_id>/approve")
@require_auth
@require_capability(MANAGE_PRODUCTS)
def approve_handover_route(handover_id: int):
    try:
        data = json_object(request.get_json(silent=True))
        handover = handover_service.approve_handover(
            handover_id=handover_id,
            approver_id=g.current_user.id,
            approval_notes=data.get("approval_notes"),
        )
        return jsonify({
            "message": "Handover request approved successfully",
            "handover": handover.to_dict(),
        }), 200
    except DomainError as e:
        return _domain_error(e)
    except Exception:
        return _unexpected("approve handover")


@handovers_bp.post("/<int:handover_id>/reject")
@require_auth
@require_capability(MANAGE_PRODUCTS)
def reject_handover_route(handover_id: int):
    try:
        data = json_object(request.get_json(silent=True))
        handover = handover_service.reject_handover(
            handover_id=handover_id,
            rejector_id=g.current_user.id,
            rejection_reason=data.get("rejection_reason"),
        )
        return jsonify({
            "message": "Handover request rejected successfully",
            "handover": handover.to_dict(),
        }), 200
    except DomainError as e:
        return _domain_error(e)
    except Exception:
        return _unexpected("reject handover")


@handovers_bp.put("/<int:handover_id>/return")
@require_auth
@require_capability(MANAGE_PRODUCTS)
def mark_returned_route(handover_id: int):
    """Manager marks everything outstanding as returned."""
    try:
        data = json_object(request.get_json(silent=True))
        handover = handover_service.mark_returned_by_manager(
            handover_id=handover_id,
            manager_id=g.current_user.id,
            return_notes=data.get("return_notes"),
        )
        return jsonify({"message": "Item returned successfully", "handover": handover.to_dict()}), 200
    except DomainError as e:
        return _domain_error(e)
    except Exception:
        return _unexpected("mark handover returned")


@handovers_bp.post("/<int:handover_id>/return")
@require_auth
@require_capability(RETURN_HANDOVER)
def return_handover_route(handover_id: int):
    """
    Borrower returns some or all outstanding items.

    Request body:
    {
        "return_quantity": int (1..outstanding),
        "return_notes": str (optional, <= 500)
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        handover = handover_service.return_handover(
            handover_id=handover_id,
            returner_id=g.current_user.id,
            return_quantity=data.get("return_quantity"),
            return_notes=data.get("return_notes"),
        )
        return jsonify({"message": "Handover returned successfully", "handover": handover.to_dict()}), 200
    except DomainError as e:
        return _domain_error(e)
    except Exception:
        return _unexpected("return handover")


@handovers_bp.delete("/<int:handover_id>")
@require_auth
@require_capability(MANAGE_PRODUCTS)
def delete_handover_route(handover_id: int):
    """A handed_over record gives its outstanding items back to stock."""
    try:
        handover_service.delete_handover(handover_id=handover_id, actor_id=g.current_user.id)
        return jsonify({"message": "Handover deleted successfully"}), 200
    except DomainError as e:
        return _domain_error(e)
    except Exception:
        return _unexpected("delete handover")
