import json
import time
import random
import logging
from datetime import timedelta
from schema import (
    CartItem, CronJob, CronJobLog, Order, OrderShipment, Product, ProductVariant,
    User, UserAddress,
)
from constants import DEFAULT_CARRIER
from services.cart import CartService, CartError
from services.orders import place_order
from utils import utcnow, write_status_history

logger = logging.getLogger(__name__)

# Registered jobs, keyed by name: (path, description, schedule)
JOBS = {
    "clearcart": ("/api/v1/cronjobs/clearcart", "Empties every cart at store midnight", "0 0 * * *"),
    "updateorderstatus": (
        "/api/v1/cronjobs/updateorderstatus",
        "Ships pending orders and delivers shipped ones",
        "0 */6 * * *",
    ),
    "placeorders": (
        "/api/v1/cronjobs/placeorders",
        "Fills each userbot cart with random stock and places an order",
        "30 */6 * * *",
    ),
}

BOT_CANCELLATIONS = 2
BOT_MAX_PRODUCTS = 3
BOT_MAX_QUANTITY = 5
BOT_PAYMENT_METHOD = "cod"
DELIVERY_DAYS = 5


def ensure_job(db, job_name):
    """
    Returns the CronJob row for ``job_name``, registering it on first use.
    """
    job = db.query(CronJob).filter_by(job_name=job_name).first()
    if job:
        return job
    job_url, description, schedule = JOBS[job_name]
    job = CronJob(job_name=job_name, job_url=job_url, description=description, schedule=schedule)
    db.add(job)
    db.flush()
    return job


def run_job(db, job_name, fn, run_type="auto"):
    """
    Runs ``fn(db)`` as a logged job execution.

    The job's own writes are committed on success and rolled back on
    failure. Either way a CronJobLog with the outcome and duration is
    written.

    Returns:
        A ``(succeeded, result_or_message)`` tuple.
    """
    start = time.perf_counter()
    try:
        result = fn(db)
        status, response_text = "success", json.dumps(result)
    except Exception as e:
        db.rollback()
        logger.error(f"Job {job_name} failed: {e}")
        result, status, response_text = str(e), "error", str(e)

    duration_ms = int((time.perf_counter() - start) * 1000)
    job = ensure_job(db, job_name)
    db.add(CronJobLog(
        job_id=job.id,
        status=status,
        response_text=response_text,
        duration_ms=duration_ms,
        type=run_type,
        created_at=utcnow(),
    ))
    db.commit()
    logger.info(f"Job {job_name} ({run_type}) finished with {status} in {duration_ms}ms")
    return status == "success", result


def clear_all_carts(db):
    count = db.query(CartItem).delete(synchronize_session=False)
    return {"success": True, "cleared_count": count}


def _bot_address(db, user_id):
    return (
        db.query(UserAddress)
        .filter_by(user_id=user_id)
        .order_by(UserAddress.is_default.desc(), UserAddress.id.asc())
        .first()
    )


def place_bot_orders(db, rng=None):
    """
    Simulates storefront traffic from ``userbot`` accounts.

    Each bot adds between one and three random in-stock products (one
    random variant each, up to five units) to its cart and checks out
    once, paying cash on delivery to its default address. Bots without
    an address are skipped.

    Args:
        db: Active database session.
        rng: Optional ``random.Random`` for the product, variant and quantity picks.

    Returns:
        Counts of orders placed and bots skipped.
    """
    rng = rng or random.Random()
    placed = skipped = 0

    variants_by_product = {}
    rows = (
        db.query(ProductVariant)
        .join(Product, ProductVariant.product_id == Product.id)
        .filter(Product.is_active.is_(True), ProductVariant.quantity > 0)
        .order_by(ProductVariant.id.asc())
        .all()
    )
    for variant in rows:
        variants_by_product.setdefault(variant.product_id, []).append(variant)
    product_ids = sorted(variants_by_product)

    bots = db.query(User).filter(User.role == "userbot").order_by(User.id.asc()).all()
    for bot in bots:
        address = _bot_address(db, bot.id)
        if address is None or not product_ids:
            skipped += 1
            continue

        cart = CartService(db, bot.id)
        count = rng.randint(1, BOT_MAX_PRODUCTS)
        added = False
        for product_id in rng.sample(product_ids, min(count, len(product_ids))):
            variant = rng.choice(variants_by_product[product_id])
            if variant.quantity <= 0:
                continue
            quantity = rng.randint(1, min(variant.quantity, BOT_MAX_QUANTITY))
            try:
                cart.add(product_id, variant.id, quantity)
            except CartError as e:
                logger.warning(f"Bot {bot.id} could not add variant {variant.id}: {e}")
                continue
            added = True

        if not added:
            skipped += 1
            continue
        order = place_order(db, bot.id, address.id, BOT_PAYMENT_METHOD)
        logger.info(f"Bot {bot.id} placed order {order.order_uuid}")
        placed += 1

    return {"orders_placed": placed, "skipped_count": skipped}


def _tracking_number(db, rng):
    while True:
        number = str(rng.randint(10000000, 99999999))
        if not db.query(OrderShipment).filter_by(tracking_number=number).first():
            return number


def _move(db, order, status, now):
    order.status = status
    order.updated_at = now
    write_status_history(db, order.id, status, updated_by="cron")


def _ship(db, order, now, rng):
    _move(db, order, "shipped", now)
    shipment = (
        db.query(OrderShipment).filter_by(order_id=order.id).order_by(OrderShipment.id.desc()).first()
    )
    if shipment is None:
        shipment = OrderShipment(order_id=order.id, created_at=now)
        db.add(shipment)
    shipment.status = "shipped"
    shipment.carrier = DEFAULT_CARRIER
    shipment.tracking_number = _tracking_number(db, rng)
    shipment.shipped_at = now
    shipment.estimated_delivery = now + timedelta(days=DELIVERY_DAYS)
    shipment.updated_at = now
    db.flush()


def advance_order_statuses(db, rng=None):
    """
    Moves orders one step through fulfilment.

    Shipped orders become delivered. Pending orders are shipped, except
    that two randomly chosen orders placed by ``userbot`` accounts are
    cancelled instead, so simulated traffic produces some cancellations.

    Args:
        db: Active database session.
        rng: Optional ``random.Random`` used for the cancellation pick and
            tracking numbers.

    Returns:
        Counts of cancelled, shipped and delivered orders.
    """
    rng = rng or random.Random()
    now = utcnow()
    cancelled = shipped = delivered = 0

    for order in db.query(Order).filter(Order.status == "shipped").all():
        _move(db, order, "delivered", now)
        for shipment in db.query(OrderShipment).filter_by(order_id=order.id).all():
            shipment.status = "delivered"
            shipment.actual_delivery = now
            shipment.updated_at = now
        delivered += 1

    pending = (
        db.query(Order, User.role)
        .outerjoin(User, Order.user_id == User.id)
        .filter(Order.status == "pending")
        .order_by(Order.id.asc())
        .all()
    )
    bot_orders = [o for o, role in pending if role == "userbot"]
    other_orders = [o for o, role in pending if role != "userbot"]

    to_cancel = rng.sample(bot_orders, min(BOT_CANCELLATIONS, len(bot_orders)))
    for order in to_cancel:
        _move(db, order, "cancelled", now)
        cancelled += 1

    cancelled_ids = {o.id for o in to_cancel}
    for order in [o for o in bot_orders if o.id not in cancelled_ids] + other_orders:
        _ship(db, order, now, rng)
        shipped += 1

    return {
        "cancelled_count": cancelled,
        "shipped_count": shipped,
        "delivered_count": delivered,
    }
