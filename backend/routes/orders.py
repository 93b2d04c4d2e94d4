import logging
from flask import Blueprint, request, jsonify
from pydantic import ValidationError
from db import get_db
from schema import Order, User, UserAddress
from forms import AddressForm, CheckoutForm, validation_errors
from constants import ORDER_STATUSES, ROLES
from routes.auth import require_role, require_user, parse_token, _bearer_token
from services.cart import CartService, CartError
from services.orders import place_order, order_receipt, EmptyCartError
from services.promocodes import apply_promo_code, PromoCodeError
from utils import utcnow, write_status_history, get_page_args, paginate

logger = logging.getLogger(__name__)

orders_bp = Blueprint("orders", __name__)


@orders_bp.route("/checkout/promocode", methods=["POST"])
@require_user
def preview_promocode(user, db):
    """
    Previews a promo code against the current cart without placing an order.
    ---
    Input (JSON):
        - code (str)
    Output (200):
        - code (str), discount (float), summary (dict)
    Errors:
        - 400: Unknown code, or nothing in the cart it applies to
    """
    data = request.get_json() or {}
    cart = CartService(db, user.id)
    lines = cart.lines()
    try:
        promo, amount = apply_promo_code(db, data.get("code"), lines)
    except PromoCodeError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "code": promo.code,
        "discount": amount,
        "summary": cart.summary(lines, amount),
    }), 200


@orders_bp.route("/checkout", methods=["POST"])
@require_user
def checkout(user, db):
    """
    Places an order from the user's cart.
    ---
    Input (JSON):
        - address_id (int)
        - payment_method (str): cod | card | upi | netbanking
        - promocode (str, optional)
    Output (201):
        - order_id (str): public order UUID
        - final_amount (float)
    Errors:
        - 400: Validation failure, empty cart (type "cartempty"), invalid promo code
        - 404: Address not found
        - 409: Insufficient stock
    """
    try:
        form = CheckoutForm.model_validate(request.get_json() or {})
    except ValidationError as e:
        return jsonify({"error": "Invalid checkout details", "details": validation_errors(e)}), 400

    try:
        order = place_order(db, user.id, form.address_id, form.payment_method, form.promocode)
    except EmptyCartError as e:
        return jsonify({"success": False, "type": "cartempty", "error": str(e)}), 400
    except CartError as e:
        db.rollback()
        return jsonify({"error": str(e)}), e.status_code
    except PromoCodeError as e:
        db.rollback()
        return jsonify({"error": str(e)}), 400

    db.commit()

    return jsonify({
        "success": True,
        "order_id": order.order_uuid,
        "final_amount": order.final_amount,
        "message": "Order placed successfully.",
    }), 201


@orders_bp.route("/orders", methods=["GET"])
@require_user
def list_orders(user, db):
    query = db.query(Order).filter(Order.user_id == user.id)
    status = request.args.get("status")
    if status:
        query = query.filter(Order.status == status)
    orders = query.order_by(Order.created_at.desc()).all()
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.route("/orders/<order_uuid>", methods=["GET"])
@require_user
def get_order(user, db, order_uuid):
    order = db.query(Order).filter_by(order_uuid=order_uuid, user_id=user.id).first()
    if not order:
        return jsonify({"error": "Order not found"}), 404
    return jsonify(order_receipt(db, order)), 200


@orders_bp.route("/admin/orders", methods=["GET"])
@require_role("admin")
def admin_list_orders():
    """
    Paginated order table for the dashboard.
    ---
    Input (Query Params):
        - status (str, optional)
        - page, per_page (int, optional)
    """
    db = next(get_db())
    try:
        query = db.query(Order, User.name).join(User, Order.user_id == User.id)
        status = request.args.get("status")
        if status:
            query = query.filter(Order.status == status)
        page, per_page = get_page_args(request.args, default_per_page=20)
        rows, pagination = paginate(query.order_by(Order.created_at.desc()), page, per_page)
        return jsonify({
            "orders": [{**o.to_dict(), "customer": name} for o, name in rows],
            "pagination": pagination,
        }), 200
    finally:
        db.close()


@orders_bp.route("/admin/orders/<order_uuid>/status", methods=["PATCH"])
@require_role("admin")
def update_order_status(order_uuid):
    data = request.get_json() or {}
    status = data.get("status")
    if status not in ORDER_STATUSES:
        return jsonify({"error": f"status must be one of {list(ORDER_STATUSES)}"}), 400

    _, admin_id = parse_token(_bearer_token())
    db = next(get_db())
    try:
        order = db.query(Order).filter_by(order_uuid=order_uuid).first()
        if not order:
            return jsonify({"error": "Order not found"}), 404
        if order.status == status:
            return jsonify({"error": f"Order already {status}"}), 409

        order.status = status
        order.updated_at = utcnow()
        write_status_history(db, order.id, status, reason=data.get("reason"), updated_by=admin_id)
        db.commit()
        logger.info(f"Order {order_uuid} moved to {status} by {admin_id}")

        return jsonify({"order_id": order_uuid, "status": status}), 200
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _clear_other_defaults(db, user_id, keep_id):
    others = db.query(UserAddress).filter(UserAddress.user_id == user_id, UserAddress.id != keep_id)
    others.update({"is_default": False}, synchronize_session=False)


@orders_bp.route("/account/addresses", methods=["GET"])
@require_user
def list_addresses(user, db):
    addresses = (
        db.query(UserAddress)
        .filter_by(user_id=user.id)
        .order_by(UserAddress.is_default.desc(), UserAddress.id.asc())
        .all()
    )
    return jsonify({"addresses": [a.to_dict() for a in addresses]}), 200


@orders_bp.route("/account/addresses", methods=["POST"])
@require_user
def save_address(user, db):
    """
    Creates an address (``id`` 0 or absent) or updates one of the user's addresses.

    Marking an address default clears the flag on the user's other addresses.
    """
    try:
        form = AddressForm.model_validate(request.get_json() or {})
    except ValidationError as e:
        return jsonify({"error": "Invalid address", "details": validation_errors(e)}), 400

    if form.id:
        address = db.query(UserAddress).filter_by(id=form.id, user_id=user.id).first()
        if not address:
            return jsonify({"error": "Address not found"}), 404
        status = 200
    else:
        address = UserAddress(user_id=user.id)
        status = 201

    address.name = f"{form.first_name} {form.last_name}".strip()
    address.address = f"{form.address1}, {form.address2}" if form.address2 else form.address1
    address.city = form.city
    address.state = form.state
    address.country = form.country
    address.pincode = form.pincode
    address.phone = form.phone
    address.is_default = form.is_default
    db.add(address)
    db.flush()

    if form.is_default:
        _clear_other_defaults(db, user.id, address.id)
    db.commit()

    return jsonify(address.to_dict()), status


@orders_bp.route("/account/addresses/<int:address_id>/default", methods=["POST"])
@require_user
def set_default_address(user, db, address_id):
    address = db.query(UserAddress).filter_by(id=address_id, user_id=user.id).first()
    if not address:
        return jsonify({"error": "Address not found"}), 404

    address.is_default = True
    _clear_other_defaults(db, user.id, address.id)
    db.commit()
    return jsonify({"success": True}), 200


@orders_bp.route("/admin/users", methods=["GET"])
@require_role("admin")
def admin_list_users():
    role = request.args.get("role", "customer")
    if role not in ROLES:
        return jsonify({"error": f"role must be one of {list(ROLES)}"}), 400

    db = next(get_db())
    try:
        users = db.query(User).filter_by(role=role).order_by(User.created_at.desc()).all()
        order_counts = {}
        for o in db.query(Order.user_id).filter(Order.user_id.in_([u.id for u in users])).all():
            order_counts[o.user_id] = order_counts.get(o.user_id, 0) + 1
        return jsonify({"users": [
            {**u.to_dict(), "orders": order_counts.get(u.id, 0)} for u in users
        ]}), 200
    finally:
        db.close()
