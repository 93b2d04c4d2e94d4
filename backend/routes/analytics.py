import logging
from flask import Blueprint, jsonify, request
from db import get_db
from routes.auth import require_role
from services.analytics import recent_orders, monthwise_revenue, top_data, order_status_counts
from utils import utcnow

logger = logging.getLogger(__name__)

analytics_bp = Blueprint("analytics", __name__)


@analytics_bp.route("/admin/analytics/overview", methods=["GET"])
@require_role("admin")
def get_overview():
    """
    Returns every dashboard widget in one payload.
    ---
    Output (200):
        - recent_orders (list): latest orders with customer name and amount
        - monthwise (list): five months of revenue and order counts
        - top_data (list): current and previous month totals
        - status_counts (dict): pending, cancelled, completed and shipped counts
    """
    db = next(get_db())
    try:
        today = utcnow().date()
        return jsonify({
            "recent_orders": recent_orders(db),
            "monthwise": monthwise_revenue(db, today),
            "top_data": top_data(db, today),
            "status_counts": order_status_counts(db),
        }), 200
    finally:
        db.close()


@analytics_bp.route("/admin/analytics/recent-orders", methods=["GET"])
@require_role("admin")
def get_recent_orders():
    try:
        limit = min(max(int(request.args.get("limit", 5)), 1), 50)
    except ValueError:
        return jsonify({"error": "limit must be an integer"}), 400

    db = next(get_db())
    try:
        return jsonify({"orders": recent_orders(db, limit)}), 200
    finally:
        db.close()


@analytics_bp.route("/admin/analytics/monthwise", methods=["GET"])
@require_role("admin")
def get_monthwise():
    db = next(get_db())
    try:
        return jsonify({"months": monthwise_revenue(db, utcnow().date())}), 200
    finally:
        db.close()


@analytics_bp.route("/admin/analytics/top", methods=["GET"])
@require_role("admin")
def get_top_data():
    db = next(get_db())
    try:
        return jsonify({"months": top_data(db, utcnow().date())}), 200
    finally:
        db.close()


@analytics_bp.route("/admin/analytics/status", methods=["GET"])
@require_role("admin")
def get_status_counts():
    db = next(get_db())
    try:
        return jsonify(order_status_counts(db)), 200
    except Exception as e:
        logger.error(f"Failed to fetch order status counts: {e}")
        raise
    finally:
        db.close()
