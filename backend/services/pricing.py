import os
import logging
from collections.abc import Mapping
from dataclasses import dataclass, asdict
from typing import Any, Iterable, List, Optional

from constants import FREE_SHIPPING_LIMIT, SHIPPING_CHARGES, TAX_PERCENTAGE

logger = logging.getLogger(__name__)

DIRECT = "direct"
QUANTITY = "quantity"
DISCOUNT_TYPES = (DIRECT, QUANTITY)

DIRECT_FIRST = "direct_first"
LOWEST_PRICE = "lowest_price"
POLICIES = (DIRECT_FIRST, LOWEST_PRICE)


class InvalidDiscountError(ValueError):
    """Raised in strict mode when a price, quantity or discount record is malformed."""


@dataclass(frozen=True)
class DiscountResult:
    """
    Outcome of resolving a set of candidate discounts against a unit price.
    """
    discounted_price: float
    discounted_text: str
    discount: Any = None

    def to_dict(self):
        return {
            "discounted_price": self.discounted_price,
            "discounted_text": self.discounted_text,
        }


@dataclass(frozen=True)
class LinePricing:
    unit_price: float
    quantity: int
    discounted_unit_price: float
    original_total: float
    discounted_total: float
    savings: float
    discounted_text: str
    discount_percent: float

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class OrderAmounts:
    original_amount: float
    total_amount: float
    discount_amount: float
    promo_amount: float
    shipping_amount: float
    tax_percentage: float
    tax_amount: float
    final_amount: float
    total_items: int

    def to_dict(self):
        return asdict(self)


def _field(discount, name):
    # ORM rows expose snake_case attributes, client payloads may use camelCase
    if isinstance(discount, Mapping):
        if name in discount:
            return discount[name]
        if name == "min_quantity":
            return discount.get("minQuantity")
        return None
    return getattr(discount, name, None)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() == "true"


def money(value: float) -> float:
    return round(value, 2)


def format_number(value) -> str:
    """
    Renders a label number the way badges show it: 20 rather than 20.0.
    """
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return str(value)


def _validate(discounts, price, quantity) -> None:
    if not _is_number(price) or price < 0:
        raise InvalidDiscountError(f"price must be a non-negative number, got {price!r}")
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise InvalidDiscountError(f"quantity must be a positive integer, got {quantity!r}")

    for d in discounts:
        d_type = _field(d, "type")
        value = _field(d, "value")
        if d_type not in DISCOUNT_TYPES:
            raise InvalidDiscountError(f"unknown discount type {d_type!r}")
        if not _is_number(value) or value < 0:
            raise InvalidDiscountError(f"discount value must be a non-negative number, got {value!r}")
        if d_type == QUANTITY:
            min_quantity = _field(d, "min_quantity")
            if not _is_number(min_quantity) or min_quantity < 0:
                raise InvalidDiscountError(
                    f"quantity discount requires a non-negative min_quantity, got {min_quantity!r}"
                )


def _apply(discount, price: float) -> float:
    return max(price * (1 - _field(discount, "value") / 100), 0)


def discount_label(discount) -> str:
    if discount is None:
        return ""
    value = format_number(_field(discount, "value"))
    if _field(discount, "type") == DIRECT:
        return f"{value}% OFF"
    return f"Buy {format_number(_field(discount, 'min_quantity'))}+ for {value}% OFF"


def _best_quantity_discount(discounts: List[Any], quantity: int):
    eligible = [
        d for d in discounts
        if _field(d, "type") == QUANTITY and quantity >= _field(d, "min_quantity")
    ]
    # sorted() is stable, so equal thresholds keep their original order
    eligible = sorted(eligible, key=lambda d: _field(d, "min_quantity"), reverse=True)
    return eligible[0] if eligible else None


def resolve_discount(
    discounts: Optional[Iterable[Any]],
    price: float,
    quantity: Optional[int] = 1,
    strict: Optional[bool] = None,
    policy: Optional[str] = None,
) -> DiscountResult:
    """
    Picks the single discount that applies to a unit price and computes the
    discounted price and its badge text.

    Quantity discounts qualify when ``quantity >= min_quantity``; the one with
    the highest satisfied threshold is the quantity candidate. Under the
    default ``direct_first`` policy the first direct discount, when present,
    always wins. Under ``lowest_price`` the candidate producing the lower
    unit price wins, with direct winning exact ties. Discounts never stack.

    Args:
        discounts: Candidate discount records (ORM rows or mappings).
        price: Unit price before discount.
        quantity: Units being purchased. Defaults to 1.
        strict: Raise InvalidDiscountError on malformed input instead of
            falling back to no discount. Defaults to PRICING_STRICT_MODE.
        policy: Tie-break policy. Defaults to DISCOUNT_POLICY.

    Returns:
        A DiscountResult; ``discounted_text`` is empty when nothing applies.
    """
    if strict is None:
        strict = _env_flag("PRICING_STRICT_MODE")
    if policy is None:
        policy = os.environ.get("DISCOUNT_POLICY", DIRECT_FIRST)
    if policy not in POLICIES:
        if strict:
            raise ValueError(f"DISCOUNT_POLICY must be one of {POLICIES}, got {policy!r}")
        logger.warning(f"Unknown DISCOUNT_POLICY {policy!r}, using {DIRECT_FIRST}")
        policy = DIRECT_FIRST
    if quantity is None:
        quantity = 1

    candidates = list(discounts or [])

    try:
        _validate(candidates, price, quantity)
    except InvalidDiscountError as e:
        if strict:
            raise
        logger.warning(f"Ignoring discounts for malformed pricing input: {e}")
        return DiscountResult(discounted_price=price, discounted_text="")

    if not candidates:
        return DiscountResult(discounted_price=price, discounted_text="")

    quantity_discount = _best_quantity_discount(candidates, quantity)
    direct_discount = next((d for d in candidates if _field(d, "type") == DIRECT), None)

    if policy == LOWEST_PRICE and direct_discount is not None and quantity_discount is not None:
        if _apply(quantity_discount, price) < _apply(direct_discount, price):
            chosen = quantity_discount
        else:
            chosen = direct_discount
    else:
        chosen = direct_discount if direct_discount is not None else quantity_discount

    if chosen is None:
        return DiscountResult(discounted_price=price, discounted_text="")

    return DiscountResult(
        discounted_price=_apply(chosen, price),
        discounted_text=discount_label(chosen),
        discount=chosen,
    )


def line_pricing(discounts, price: float, quantity: int = 1, **kwargs) -> LinePricing:
    """
    Prices a single cart or order line through the shared resolver.
    """
    result = resolve_discount(discounts, price, quantity, **kwargs)
    discounted_unit = money(result.discounted_price)
    original_total = money(price * quantity)
    discounted_total = money(discounted_unit * quantity)
    percent = float(_field(result.discount, "value")) if result.discount is not None else 0.0

    return LinePricing(
        unit_price=price,
        quantity=quantity,
        discounted_unit_price=discounted_unit,
        original_total=original_total,
        discounted_total=discounted_total,
        savings=money(original_total - discounted_total),
        discounted_text=result.discounted_text,
        discount_percent=percent,
    )


def shipping_for(subtotal: float) -> float:
    return 0.0 if subtotal >= FREE_SHIPPING_LIMIT else float(SHIPPING_CHARGES)


def calculate_order_amounts(lines: Iterable[LinePricing], promo_amount: float = 0.0) -> OrderAmounts:
    """
    Aggregates priced lines into the amounts stored on an order and shown in
    the order summary.

    Args:
        lines: LinePricing values produced by line_pricing().
        promo_amount: Promo code reduction, taken off the discounted subtotal.

    Returns:
        An OrderAmounts with every monetary field rounded to 2 decimals.
    """
    lines = list(lines)
    original = sum(line.original_total for line in lines)
    subtotal = sum(line.discounted_total for line in lines)
    promo_amount = min(max(promo_amount, 0.0), subtotal)

    after_promo = subtotal - promo_amount
    shipping = shipping_for(subtotal) if lines else 0.0
    taxable = after_promo + shipping
    tax = taxable * TAX_PERCENTAGE / 100

    return OrderAmounts(
        original_amount=money(original),
        total_amount=money(subtotal),
        discount_amount=money(original - subtotal),
        promo_amount=money(promo_amount),
        shipping_amount=money(shipping),
        tax_percentage=TAX_PERCENTAGE,
        tax_amount=money(tax),
        final_amount=money(taxable + tax),
        total_items=sum(line.quantity for line in lines),
    )


def free_shipping_progress(subtotal: float) -> dict:
    progress = min(subtotal / FREE_SHIPPING_LIMIT * 100, 100) if FREE_SHIPPING_LIMIT else 100
    return {
        "eligible": subtotal >= FREE_SHIPPING_LIMIT,
        "progress": round(progress, 1),
        "remaining": money(max(0.0, FREE_SHIPPING_LIMIT - subtotal)),
        "limit": FREE_SHIPPING_LIMIT,
    }
