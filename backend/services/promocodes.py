from sqlalchemy import func
from schema import PromoCode
from services.pricing import money


class PromoCodeError(Exception):
    """Raised when a promo code cannot be applied to the current cart."""


def apply_promo_code(db, code, lines):
    """
    Works out how much a promo code takes off the cart.

    A product-scoped code only counts lines of that product; a code with no
    product applies to the whole cart. Percentage codes take their value off
    the matching discounted subtotal, amount codes take a flat value capped
    at that subtotal.

    Args:
        db: Active database session.
        code: Code entered by the customer (case-insensitive).
        lines: Cart lines as produced by CartService.lines().

    Returns:
        A ``(PromoCode, amount)`` tuple.

    Raises:
        PromoCodeError: empty or unknown code, or no cart line it applies to.
    """
    code = (code or "").strip().upper()
    if not code:
        raise PromoCodeError("Promo code is required")

    promo = db.query(PromoCode).filter(func.upper(PromoCode.code) == code).first()
    if not promo:
        raise PromoCodeError("Invalid promo code")

    matching = [
        l for l in lines
        if promo.product_id is None or l["product_id"] == promo.product_id
    ]
    if not matching:
        raise PromoCodeError("Promo code does not apply to any item in your cart")

    eligible = sum(l["pricing"].discounted_total for l in matching)
    if promo.type == "percentage":
        amount = eligible * promo.value / 100
    else:
        amount = min(promo.value, eligible)

    return promo, money(amount)
