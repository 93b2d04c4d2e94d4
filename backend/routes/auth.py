import uuid
import logging
from flask import Blueprint, request, jsonify
from functools import wraps
from pydantic import ValidationError
from db import get_db
from schema import User
from forms import SignupForm, validation_errors
from utils import utcnow

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)

TOKEN_PREFIX = "mock-jwt-"


def issue_token(user):
    return f"{TOKEN_PREFIX}{user.role}-{user.id}"


def parse_token(token):
    """
    Splits a synthetic bearer token into its role and user id.

    Returns:
        A ``(role, user_id)`` tuple, or ``(None, None)`` when malformed.
    """
    if not token or not token.startswith(TOKEN_PREFIX):
        return None, None
    role, _, user_id = token[len(TOKEN_PREFIX):].partition("-")
    if not role or not user_id:
        return None, None
    return role, user_id


def _bearer_token():
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


@auth_bp.route("/auth/signup", methods=["POST"])
def signup():
    """
    Registers a new customer account.

    Returns:
        201 with the user id, role and token; 400 on invalid input; 409 when
        the email is already registered.
    """
    try:
        form = SignupForm.model_validate(request.get_json() or {})
    except ValidationError as e:
        return jsonify({"error": "Invalid signup details", "details": validation_errors(e)}), 400

    db = next(get_db())
    try:
        email = form.email.lower()
        if db.query(User).filter_by(email=email).first():
            return jsonify({"error": "Email already registered"}), 409

        user = User(id=str(uuid.uuid4()), name=form.name, email=email, role="customer", created_at=utcnow())
        db.add(user)
        db.commit()
        logger.info(f"Registered customer {user.id}")

        return jsonify({"userId": user.id, "role": user.role, "token": issue_token(user)}), 201
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@auth_bp.route("/auth/login", methods=["POST"])
def login():
    """
    Authenticates a user by email and issues a synthetic authorization token.

    Returns:
        A tuple containing the JSON response and HTTP status code.
        Success returns user metadata and a synthetic token.
    """
    data = request.get_json() or {}
    email = (data.get("email") or "").strip().lower()

    if not email:
        return jsonify({"error": "Email is required"}), 400

    db = next(get_db())
    try:
        user = db.query(User).filter_by(email=email).first()
        if not user:
            return jsonify({"error": "User not found"}), 401

        # Generate a structured synthetic token to facilitate role-based access control (RBAC).
        return jsonify({
            "userId": user.id,
            "name": user.name,
            "role": user.role,
            "token": issue_token(user),
        }), 200
    finally:
        db.close()


def require_role(role_required):
    """
    Access control decorator for standardizing role-based authorization.

    Args:
        role_required: The role string ('customer' or 'admin') required for access.

    Returns:
        A specialized decorator function for route protection.
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            token = _bearer_token()
            if not token:
                return jsonify({"error": "Missing or invalid Authorization header"}), 401

            role, _ = parse_token(token)
            if role != role_required:
                return jsonify({"error": "Insufficient permissions"}), 403

            return f(*args, **kwargs)
        return decorated
    return decorator


def require_user(f):
    """
    Decorator that resolves the bearer token to a User row.

    Passes initialized 'user' and 'db' objects to the wrapped function and
    closes the database session afterwards.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        _, user_id = parse_token(_bearer_token())
        if not user_id:
            return jsonify({"error": "Missing or invalid Authorization header"}), 401
        db = next(get_db())
        user = db.get(User, user_id)
        if not user:
            db.close()
            return jsonify({"error": "User not found"}), 401
        try:
            return f(*args, user=user, db=db, **kwargs)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
    return decorated
