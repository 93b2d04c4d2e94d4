import re
from datetime import datetime, timezone
from base import Base
from db import engine
from schema import OrderStatusHistory
from constants import PRODUCTS_PER_PAGE, MAX_PER_PAGE


def utcnow():
    return datetime.now(timezone.utc)


def write_status_history(db, order_id, status, reason=None, updated_by=None):
    """
    Appends a new record to an order's status history.

    Args:
        db: SQLAlchemy database session.
        order_id: Internal integer id of the order.
        status: The status the order moved into.
        reason: Optional free-text explanation (e.g. cancellation reason).
        updated_by: Who made the change ('system', 'cron', or an admin id).

    Returns:
        The newly created OrderStatusHistory instance.
    """
    entry = OrderStatusHistory(
        order_id=order_id,
        status=status,
        created_at=utcnow(),
        reason=reason,
        updated_by=updated_by,
    )
    db.add(entry)
    return entry


def slugify(text):
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def get_page_args(args, default_per_page=PRODUCTS_PER_PAGE):
    """
    Reads ``page``/``per_page`` query parameters, clamping to sane bounds.
    """
    try:
        page = max(int(args.get("page", 1)), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        per_page = int(args.get("per_page", default_per_page))
    except (TypeError, ValueError):
        per_page = default_per_page
    per_page = min(max(per_page, 1), MAX_PER_PAGE)
    return page, per_page


def paginate(query, page, per_page):
    total = query.count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    return items, {
        "page": page,
        "per_page": per_page,
        "total": total,
        "pages": (total + per_page - 1) // per_page,
    }


def clear_database():
    """
    Wipes all data from the storefront database and recreates the schema.
    """
    import schema  # Ensure all models are registered with Base
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
