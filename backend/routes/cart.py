from flask import Blueprint, request, jsonify
from routes.auth import require_user
from services.cart import CartService, CartError, cart_clear_deadline

cart_bp = Blueprint("cart", __name__)


def _serialize(line):
    return {**{k: v for k, v in line.items() if k != "pricing"}, **line["pricing"].to_dict()}


def _quantity(data, default=None):
    value = data.get("quantity", default)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


@cart_bp.route("/cart", methods=["GET"])
@require_user
def get_cart(user, db):
    """
    Returns the user's cart with per-line resolved pricing and the order summary.
    ---
    Output (200):
        - items (list): cart lines with unit, discounted and line totals
        - summary (dict): original/discount/shipping/tax/final amounts and free-shipping progress
        - auto_clear (dict): next nightly clear time and seconds remaining
    """
    service = CartService(db, user.id)
    lines = service.lines()
    return jsonify({
        "items": [_serialize(l) for l in lines],
        "summary": service.summary(lines),
        "auto_clear": cart_clear_deadline(),
    }), 200


@cart_bp.route("/cart/count", methods=["GET"])
@require_user
def cart_count(user, db):
    return jsonify({"count": CartService(db, user.id).total_quantity()}), 200


@cart_bp.route("/cart", methods=["POST"])
@require_user
def add_to_cart(user, db):
    """
    Adds a product variant to the cart.
    ---
    Input (JSON):
        - product_id (int)
        - product_variant_id (int)
        - quantity (int, optional): Defaults to 1
    Output (201 new line / 200 merged):
        - cart_item_id (int), quantity (int)
    Errors:
        - 400: Missing ids or quantity below 1
        - 404: Product or variant not found
        - 409: Not enough stock
    """
    data = request.get_json() or {}
    product_id = data.get("product_id")
    variant_id = data.get("product_variant_id")
    quantity = _quantity(data, 1)

    if not product_id or not variant_id:
        return jsonify({"error": "product_id and product_variant_id are required"}), 400
    if quantity is None:
        return jsonify({"error": "quantity must be an integer"}), 400

    try:
        item, created = CartService(db, user.id).add(product_id, variant_id, quantity)
    except CartError as e:
        return jsonify({"error": str(e)}), e.status_code

    db.commit()
    return jsonify({"cart_item_id": item.id, "quantity": item.quantity}), 201 if created else 200


@cart_bp.route("/cart/<int:cart_item_id>", methods=["PATCH"])
@require_user
def update_cart_item(user, db, cart_item_id):
    quantity = _quantity(request.get_json() or {})
    if quantity is None:
        return jsonify({"error": "quantity is required"}), 400

    try:
        item = CartService(db, user.id).update_quantity(cart_item_id, quantity)
    except CartError as e:
        return jsonify({"error": str(e)}), e.status_code

    db.commit()
    return jsonify({"cart_item_id": item.id, "quantity": item.quantity}), 200


@cart_bp.route("/cart/<int:cart_item_id>", methods=["DELETE"])
@require_user
def delete_cart_item(user, db, cart_item_id):
    try:
        CartService(db, user.id).remove(cart_item_id)
    except CartError as e:
        return jsonify({"error": str(e)}), e.status_code

    db.commit()
    return jsonify({"message": "Item removed"}), 200


@cart_bp.route("/cart/<int:cart_item_id>/move-to-wishlist", methods=["POST"])
@require_user
def move_to_wishlist(user, db, cart_item_id):
    try:
        added = CartService(db, user.id).move_to_wishlist(cart_item_id)
    except CartError as e:
        return jsonify({"error": str(e)}), e.status_code

    db.commit()
    return jsonify({"message": "Moved to wishlist", "added": added}), 200
