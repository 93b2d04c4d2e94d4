from flask import Blueprint, request, jsonify
from schema import Color, Product, ProductVariant, Size, WishlistItem
from routes.auth import require_user
from services.catalog import CatalogService
from services.pricing import resolve_discount
from utils import utcnow

wishlist_bp = Blueprint("wishlist", __name__)


@wishlist_bp.route("/wishlist", methods=["GET"])
@require_user
def get_wishlist(user, db):
    """
    Returns wishlist items with stock and single-unit resolved pricing.
    """
    rows = (
        db.query(WishlistItem, Product, ProductVariant, Color, Size)
        .join(Product, WishlistItem.product_id == Product.id)
        .join(ProductVariant, WishlistItem.product_variant_id == ProductVariant.id)
        .join(Color, ProductVariant.color_id == Color.id)
        .join(Size, ProductVariant.size_id == Size.id)
        .filter(WishlistItem.user_id == user.id)
        .order_by(WishlistItem.created_at.desc())
        .all()
    )
    catalog = CatalogService(db)
    product_ids = [product.id for _, product, _, _, _ in rows]
    discounts = catalog.discounts_by_product(product_ids)
    images = catalog.images_by_product(product_ids)

    items = []
    for item, product, variant, color, size in rows:
        result = resolve_discount(discounts[product.id], product.price)
        items.append({
            "wishlist_item_id": item.id,
            "product_id": product.id,
            "product_variant_id": variant.id,
            "name": product.name,
            "price": product.price,
            "discounted_price": round(result.discounted_price, 2),
            "discounted_text": result.discounted_text,
            "image_url": catalog.image_for(images[product.id], color.id),
            "available_quantity": variant.quantity,
            "color_name": color.name,
            "size_name": size.name,
            "created_at": item.created_at.isoformat() if item.created_at else None,
        })
    return jsonify({"items": items}), 200


@wishlist_bp.route("/wishlist", methods=["POST"])
@require_user
def add_to_wishlist(user, db):
    data = request.get_json() or {}
    product_id = data.get("product_id")
    variant_id = data.get("product_variant_id")
    if not product_id or not variant_id:
        return jsonify({"error": "product_id and product_variant_id are required"}), 400

    variant = db.get(ProductVariant, variant_id)
    if not variant or variant.product_id != product_id:
        return jsonify({"error": "Product variant not found"}), 404

    exists = (
        db.query(WishlistItem)
        .filter_by(user_id=user.id, product_id=product_id, product_variant_id=variant_id)
        .first()
    )
    if exists:
        return jsonify({"error": "Item already in wishlist"}), 409

    item = WishlistItem(user_id=user.id, product_id=product_id, product_variant_id=variant_id, created_at=utcnow())
    db.add(item)
    db.commit()
    return jsonify({"wishlist_item_id": item.id}), 201


@wishlist_bp.route("/wishlist/<int:wishlist_item_id>", methods=["DELETE"])
@require_user
def remove_from_wishlist(user, db, wishlist_item_id):
    item = db.query(WishlistItem).filter_by(id=wishlist_item_id, user_id=user.id).first()
    if not item:
        return jsonify({"error": "Item not found in wishlist"}), 404
    db.delete(item)
    db.commit()
    return jsonify({"message": "Item removed from wishlist"}), 200
