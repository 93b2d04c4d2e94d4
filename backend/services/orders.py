import uuid
import logging
from schema import (
    Order, OrderItem, OrderPayment, OrderShipment, OrderStatusHistory,
    ProductVariant, UserAddress,
)
from services.cart import CartService, CartError, NotFoundError, OutOfStockError
from services.promocodes import apply_promo_code
from utils import utcnow, write_status_history

logger = logging.getLogger(__name__)


class EmptyCartError(CartError):
    pass


def place_order(db, user_id, address_id, payment_method, promocode=None):
    """
    Turns the user's cart into an order.

    Writes the order, its items, the initial status history, a pending
    shipment and a pending payment, decrements stock and empties the cart.
    The caller owns the transaction and commits on success.

    Raises:
        EmptyCartError: the cart has no items.
        NotFoundError: the address does not belong to the user.
        OutOfStockError: a line asks for more than is in stock.
        PromoCodeError: the promo code cannot be applied.
    """
    cart = CartService(db, user_id)
    lines = cart.lines()
    if not lines:
        raise EmptyCartError("Cart is empty.")

    address = db.query(UserAddress).filter_by(id=address_id, user_id=user_id).first()
    if not address:
        raise NotFoundError("Address not found")

    promo, promo_amount = (None, 0.0)
    if promocode:
        promo, promo_amount = apply_promo_code(db, promocode, lines)

    variants = {}
    for line in lines:
        variant = db.get(ProductVariant, line["product_variant_id"])
        if variant.quantity < line["pricing"].quantity:
            raise OutOfStockError(f"{line['name']} ({line['size_name']}) has only {variant.quantity} left")
        variants[line["product_variant_id"]] = variant

    amounts = cart.summary(lines, promo_amount)
    now = utcnow()

    order = Order(
        order_uuid=str(uuid.uuid4()),
        user_id=user_id,
        original_amount=amounts["original_amount"],
        total_amount=amounts["total_amount"],
        discount_amount=amounts["discount_amount"],
        promo_code=promo.code if promo else None,
        promo_amount=amounts["promo_amount"],
        shipping_amount=amounts["shipping_amount"],
        tax_percentage=amounts["tax_percentage"],
        tax_amount=amounts["tax_amount"],
        final_amount=amounts["final_amount"],
        status="pending",
        address_id=address.id,
        created_at=now,
        updated_at=now,
    )
    db.add(order)
    db.flush()

    for line in lines:
        pricing = line["pricing"]
        db.add(OrderItem(
            order_id=order.id,
            product_id=line["product_id"],
            product_variant_id=line["product_variant_id"],
            quantity=pricing.quantity,
            original_price=pricing.unit_price,
            discounted_price=pricing.discounted_unit_price,
            final_price=pricing.discounted_total,
            discount_text=pricing.discounted_text,
        ))
        variants[line["product_variant_id"]].quantity -= pricing.quantity

    write_status_history(db, order.id, "pending", updated_by="system")
    db.add(OrderShipment(order_id=order.id, status="pending", created_at=now, updated_at=now))
    db.add(OrderPayment(
        order_id=order.id,
        status="pending",
        amount=order.final_amount,
        payment_method=payment_method,
        created_at=now,
        updated_at=now,
    ))

    cart.clear()
    logger.info(f"Placed order {order.order_uuid} for user {user_id}: {order.final_amount}")
    return order


def order_receipt(db, order):
    """
    Assembles the receipt view of an order.
    """
    items = db.query(OrderItem).filter_by(order_id=order.id).order_by(OrderItem.id.asc()).all()
    history = (
        db.query(OrderStatusHistory)
        .filter_by(order_id=order.id)
        .order_by(OrderStatusHistory.created_at.asc(), OrderStatusHistory.id.asc())
        .all()
    )
    shipment = db.query(OrderShipment).filter_by(order_id=order.id).order_by(OrderShipment.id.desc()).first()
    payment = db.query(OrderPayment).filter_by(order_id=order.id).order_by(OrderPayment.id.desc()).first()
    address = db.get(UserAddress, order.address_id)

    return {
        **order.to_dict(),
        "items": [i.to_dict() for i in items],
        "status_history": [h.to_dict() for h in history],
        "shipment": shipment.to_dict() if shipment else None,
        "payment": payment.to_dict() if payment else None,
        "address": address.to_dict() if address else None,
    }
