from datetime import datetime
from sqlalchemy import case, func
from schema import Order, OrderItem, User

MONTHS_SHOWN = 5


def _shift_month(year, month, delta):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _month_bounds(year, month):
    next_year, next_month = _shift_month(year, month, 1)
    return datetime(year, month, 1), datetime(next_year, next_month, 1)


def _month_totals(db, start, end):
    orders, revenue = (
        db.query(func.count(Order.id), func.coalesce(func.sum(Order.final_amount), 0))
        .filter(Order.created_at >= start, Order.created_at < end)
        .one()
    )
    return int(orders), round(float(revenue), 2)


def recent_orders(db, limit=5):
    rows = (
        db.query(Order, User.name)
        .join(User, Order.user_id == User.id)
        .order_by(Order.created_at.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": order.order_uuid,
            "customer": name,
            "amount": order.final_amount,
            "status": order.status,
            "date": order.created_at.isoformat(),
        }
        for order, name in rows
    ]


def monthwise_revenue(db, today):
    """
    Revenue and order count for the last five months, oldest first.

    Months without orders are reported as zero so the chart always has
    five points ending with the month of ``today``.
    """
    results = []
    for delta in range(-(MONTHS_SHOWN - 1), 1):
        year, month = _shift_month(today.year, today.month, delta)
        start, end = _month_bounds(year, month)
        orders, revenue = _month_totals(db, start, end)
        results.append({
            "month": start.strftime("%b"),
            "month_number": month,
            "year": year,
            "revenue": revenue,
            "orders": orders,
        })
    return results


def top_data(db, today):
    """
    Headline numbers for the current and previous month, current first.
    """
    results = []
    for delta in (0, -1):
        year, month = _shift_month(today.year, today.month, delta)
        start, end = _month_bounds(year, month)
        orders, revenue = _month_totals(db, start, end)
        quantity = (
            db.query(func.coalesce(func.sum(OrderItem.quantity), 0))
            .join(Order, OrderItem.order_id == Order.id)
            .filter(Order.created_at >= start, Order.created_at < end)
            .scalar()
        )
        results.append({
            "month_name": start.strftime("%b %Y"),
            "total_orders": orders,
            "total_revenue": revenue,
            "total_quantity": int(quantity),
        })
    return results


def order_status_counts(db):
    def _count(status):
        return func.coalesce(func.sum(case((Order.status == status, 1), else_=0)), 0)

    pending, cancelled, completed, shipped = db.query(
        _count("pending"), _count("cancelled"), _count("delivered"), _count("shipped"),
    ).one()
    return {
        "pending": int(pending),
        "cancelled": int(cancelled),
        "completed": int(completed),
        "shipped": int(shipped),
    }
