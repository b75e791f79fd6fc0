# Overview: Flask API routes for products; parses input and returns JSON responses.

# backend/stockroom/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Reads require VIEW_PRODUCTS
- Create requires ADD_PRODUCTS, edit EDIT_PRODUCTS, delete DELETE_PRODUCTS
- Stock add/subtract requires MANAGE_PRODUCTS
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import DomainError
from ..permissions import ADD_PRODUCTS, DELETE_PRODUCTS, EDIT_PRODUCTS, MANAGE_PRODUCTS, VIEW_PRODUCTS
from ..services import products_service
from ..services.stock_service import adjust_stock
from ..validation import coerce_int, json_object, parse_pagination
from ..decorators import require_auth, require_capability


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_capability(VIEW_PRODUCTS)
def list_products_route():
    """
    Query params:
    - search: str (optional) - name/description substring, or exact product number
    - status: active | inactive | discontinued (optional)
    - page: int (default 1)
    - limit: int (default 10, capped at PAGE_LIMIT_MAX)
    """
    try:
        page, limit = parse_pagination(
            request.args.get("page"),
            request.args.get("limit"),
            default_limit=products_service.DEFAULT_PRODUCT_PAGE_LIMIT,
            max_limit=current_app.config["PAGE_LIMIT_MAX"],
        )
        result = products_service.list_products(
            search=request.args.get("search"),
            status=request.args.get("status") or None,
            page=page,
            limit=limit,
        )
        return jsonify(result), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code


@products_bp.get("/all")
@require_auth
@require_capability(VIEW_PRODUCTS)
def list_all_products_route():
    """Active products without pagination (pickers)."""
    products = products_service.list_active_products()
    return jsonify({"products": products, "total": len(products)}), 200


@products_bp.get("/<int:product_id>")
@require_auth
@require_capability(VIEW_PRODUCTS)
def get_product_route(product_id: int):
    try:
        return jsonify(products_service.get_product(product_id).to_dict()), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code


@products_bp.post("")
@require_auth
@require_capability(ADD_PRODUCTS)
def create_product_route():
    """
    Create a product. Prices are integer minor units (cost_price_cents,
    selling_price_cents). The product number is assigned by the server.
    """
    try:
        created = products_service.create_product(
            payload=json_object(request.get_json(silent=True)),
            actor_user_id=g.current_user.id,
        )
        return jsonify({"message": "Product created successfully", "product": created}), 201
    except DomainError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_capability(EDIT_PRODUCTS)
def update_product_route(product_id: int):
    try:
        updated = products_service.update_product(
            product_id=product_id,
            payload=json_object(request.get_json(silent=True)),
            actor_user_id=g.current_user.id,
        )
        return jsonify({"message": "Product updated successfully", "product": updated}), 200
    except DomainError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_capability(DELETE_PRODUCTS)
def delete_product_route(product_id: int):
    """Delete a product; the remaining product numbers are compacted to 1..N."""
    try:
        deleted = products_service.delete_product(
            product_id=product_id,
            actor_user_id=g.current_user.id,
        )
        return jsonify({"message": "Product deleted successfully", "deleted_product": deleted}), 200
    except DomainError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>/stock")
@require_auth
@require_capability(MANAGE_PRODUCTS)
def update_stock_route(product_id: int):
    """
    Request body:
    {
        "operation": "add" | "subtract",
        "quantity": int (> 0)
    }

    Returns:
        200: stock changed
        400: bad input or insufficient stock
        404: product not found
    """
    try:
        data = json_object(request.get_json(silent=True))
        quantity = data.get("quantity")
        quantity = coerce_int(quantity, "quantity") if quantity is not None else None
        operation = data.get("operation")
        product = adjust_stock(
            product_id=product_id,
            operation=operation,
            quantity=quantity,
            actor_user_id=g.current_user.id,
        )
        return jsonify({
            "message": f"Stock {operation}ed successfully",
            "product": product.to_dict(),
            "stock_change": {
                "operation": operation,
                "quantity": quantity,
                "new_stock": product.stock_quantity,
            },
        }), 200
    except DomainError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update stock")
        return jsonify({"error": "Internal server error"}), 500
