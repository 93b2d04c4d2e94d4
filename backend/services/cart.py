import logging
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo
from sqlalchemy import func
from schema import CartItem, Color, Product, ProductVariant, Size, WishlistItem
from services.catalog import CatalogService
from services.pricing import line_pricing, calculate_order_amounts, free_shipping_progress
from constants import STORE_TIMEZONE, CART_URGENT_HOURS, CURRENCY_SYMBOL
from utils import utcnow

logger = logging.getLogger(__name__)


class CartError(Exception):
    status_code = 400


class NotFoundError(CartError):
    status_code = 404


class OutOfStockError(CartError):
    status_code = 409


def cart_clear_deadline(now=None, tz_name=STORE_TIMEZONE):
    """
    Computes when the nightly cart clear runs: the next local midnight.

    Args:
        now: Aware datetime to measure from. Defaults to the current UTC time.
        tz_name: IANA zone the store's midnight is defined in.

    Returns:
        A dict with the ISO deadline, whole seconds remaining, and whether
        fewer than CART_URGENT_HOURS remain.
    """
    now = now or utcnow()
    local_now = now.astimezone(ZoneInfo(tz_name))
    midnight = datetime.combine(local_now.date() + timedelta(days=1), datetime.min.time(), tzinfo=local_now.tzinfo)
    # same-zone subtraction ignores a DST shift, so measure in UTC
    remaining = int((midnight.astimezone(timezone.utc) - now.astimezone(timezone.utc)).total_seconds())
    return {
        "clears_at": midnight.isoformat(),
        "seconds_remaining": remaining,
        "urgent": remaining < CART_URGENT_HOURS * 3600,
    }


class CartService:
    """
    Cart reads and writes for a single user.

    Every line is priced through the shared discount resolver so the cart,
    the order summary and the placed order agree on prices.
    """
    def __init__(self, db, user_id):
        self.db = db
        self.user_id = user_id
        self.catalog = CatalogService(db)

    def _rows(self):
        return (
            self.db.query(CartItem, Product, ProductVariant, Color, Size)
            .join(Product, CartItem.product_id == Product.id)
            .join(ProductVariant, CartItem.product_variant_id == ProductVariant.id)
            .join(Color, ProductVariant.color_id == Color.id)
            .join(Size, ProductVariant.size_id == Size.id)
            .filter(CartItem.user_id == self.user_id)
            .order_by(CartItem.id.asc())
            .all()
        )

    def lines(self):
        rows = self._rows()
        product_ids = [product.id for _, product, _, _, _ in rows]
        discounts = self.catalog.discounts_by_product(product_ids)
        images = self.catalog.images_by_product(product_ids)

        lines = []
        for item, product, variant, color, size in rows:
            pricing = line_pricing(discounts[product.id], product.price, item.quantity)
            lines.append({
                "cart_item_id": item.id,
                "product_id": product.id,
                "product_variant_id": variant.id,
                "name": product.name,
                "image_url": self.catalog.image_for(images[product.id], color.id),
                "color_id": color.id,
                "color_name": color.name,
                "size_id": size.id,
                "size_name": size.name,
                "available_quantity": variant.quantity,
                "in_stock": variant.quantity >= item.quantity,
                "created_at": item.created_at.isoformat() if item.created_at else None,
                "pricing": pricing,
            })
        return lines

    def summary(self, lines=None, promo_amount=0.0):
        lines = self.lines() if lines is None else lines
        amounts = calculate_order_amounts([l["pricing"] for l in lines], promo_amount)
        return {
            **amounts.to_dict(),
            "currency": CURRENCY_SYMBOL,
            "free_shipping": free_shipping_progress(amounts.total_amount),
        }

    def total_quantity(self):
        total = (
            self.db.query(func.coalesce(func.sum(CartItem.quantity), 0))
            .filter(CartItem.user_id == self.user_id)
            .scalar()
        )
        return int(total)

    def _variant(self, product_id, variant_id):
        product = self.catalog.active_product(product_id)
        variant = self.db.get(ProductVariant, variant_id)
        if not product or not variant or variant.product_id != product_id:
            raise NotFoundError("Product variant not found")
        return variant

    def add(self, product_id, variant_id, quantity=1):
        """
        Adds a variant to the cart, merging with an existing line for the same variant.

        Raises:
            CartError: quantity below 1.
            NotFoundError: unknown or inactive product, or mismatched variant.
            OutOfStockError: resulting quantity exceeds stock.
        """
        if quantity < 1:
            raise CartError("Quantity must be at least 1")
        variant = self._variant(product_id, variant_id)

        item = (
            self.db.query(CartItem)
            .filter_by(user_id=self.user_id, product_id=product_id, product_variant_id=variant_id)
            .first()
        )
        new_quantity = quantity + (item.quantity if item else 0)
        if new_quantity > variant.quantity:
            raise OutOfStockError(f"Only {variant.quantity} left in stock")

        if item:
            item.quantity = new_quantity
            created = False
        else:
            item = CartItem(
                user_id=self.user_id,
                product_id=product_id,
                product_variant_id=variant_id,
                quantity=quantity,
                created_at=utcnow(),
            )
            self.db.add(item)
            created = True
        self.db.flush()
        return item, created

    def _own_item(self, cart_item_id):
        item = self.db.query(CartItem).filter_by(id=cart_item_id, user_id=self.user_id).first()
        if not item:
            raise NotFoundError("Cart item not found")
        return item

    def update_quantity(self, cart_item_id, quantity):
        if quantity < 1:
            raise CartError("Quantity must be at least 1")
        item = self._own_item(cart_item_id)
        variant = self.db.get(ProductVariant, item.product_variant_id)
        if variant is None or quantity > variant.quantity:
            raise OutOfStockError(f"Only {variant.quantity if variant else 0} left in stock")
        item.quantity = quantity
        return item

    def remove(self, cart_item_id):
        item = self._own_item(cart_item_id)
        self.db.delete(item)
        return item

    def move_to_wishlist(self, cart_item_id):
        item = self._own_item(cart_item_id)
        exists = (
            self.db.query(WishlistItem)
            .filter_by(user_id=self.user_id, product_id=item.product_id, product_variant_id=item.product_variant_id)
            .first()
        )
        if not exists:
            self.db.add(WishlistItem(
                user_id=self.user_id,
                product_id=item.product_id,
                product_variant_id=item.product_variant_id,
                created_at=utcnow(),
            ))
        self.db.delete(item)
        return not exists

    def clear(self):
        return self.db.query(CartItem).filter_by(user_id=self.user_id).delete(synchronize_session=False)
