import logging
from functools import wraps
from flask import Blueprint, jsonify, request
import constants
from db import get_db
from schema import CronJob, CronJobLog
from routes.auth import require_role
from services.jobs import JOBS, ensure_job, run_job, clear_all_carts, advance_order_statuses, place_bot_orders

logger = logging.getLogger(__name__)

cronjobs_bp = Blueprint("cronjobs", __name__)


def require_cron_key(f):
    """
    Rejects scheduler calls whose ``key`` query parameter does not match CRON_SECRET.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        if request.args.get("key") != constants.CRON_SECRET:
            logger.warning(f"Rejected cron call to {request.path} with a bad key")
            return jsonify({"success": False, "error": "Invalid cron key"}), 401
        return f(*args, **kwargs)
    return decorated


def _run_type():
    return request.args.get("type") or "auto"


@cronjobs_bp.route("/cronjobs/clearcart", methods=["GET"])
@require_cron_key
def clear_cart_job():
    db = next(get_db())
    try:
        ok, result = run_job(db, "clearcart", clear_all_carts, _run_type())
        if not ok:
            return jsonify({"success": False, "message": "Failed to clear cart"}), 500
        return jsonify(result), 200
    finally:
        db.close()


@cronjobs_bp.route("/cronjobs/updateorderstatus", methods=["GET"])
@require_cron_key
def update_order_status_job():
    """
    Advances order fulfilment for the scheduler.
    ---
    Input (Query Params):
        - key (str): shared cron secret
        - type (str, optional): auto | manual. Defaults to auto.
    Output (200):
        - cancelled_count, shipped_count, delivered_count (int)
    Errors:
        - 401: Bad key
        - 500: The update failed; the failure is still logged
    """
    db = next(get_db())
    try:
        ok, result = run_job(db, "updateorderstatus", advance_order_statuses, _run_type())
        if not ok:
            return jsonify({"success": False, "message": "Failed to update orders"}), 500
        return jsonify(result), 200
    finally:
        db.close()


@cronjobs_bp.route("/cronjobs/placeorders", methods=["GET"])
@require_cron_key
def place_orders_job():
    """
    Places one simulated order per userbot account.
    ---
    Output (200):
        - orders_placed, skipped_count (int)
    Errors:
        - 401: Bad key
        - 500: Placing orders failed; nothing is kept but the failure log
    """
    db = next(get_db())
    try:
        ok, result = run_job(db, "placeorders", place_bot_orders, _run_type())
        if not ok:
            return jsonify({"success": False, "message": "Failed to place orders"}), 500
        return jsonify(result), 200
    finally:
        db.close()


@cronjobs_bp.route("/admin/cronjobs", methods=["GET"])
@require_role("admin")
def list_cronjobs():
    db = next(get_db())
    try:
        for name in JOBS:
            ensure_job(db, name)
        db.commit()

        jobs = db.query(CronJob).order_by(CronJob.id.asc()).all()
        logs = (
            db.query(CronJobLog)
            .order_by(CronJobLog.created_at.desc(), CronJobLog.id.desc())
            .all()
        )
        by_job = {}
        for log in logs:
            by_job.setdefault(log.job_id, []).append(log.to_dict())

        return jsonify({"jobs": [
            {**job.to_dict(), "logs": by_job.get(job.id, [])} for job in jobs
        ]}), 200
    finally:
        db.close()
