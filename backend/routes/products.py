import logging
from flask import Blueprint, request, jsonify
from pydantic import ValidationError
from sqlalchemy import func
from db import get_db
from schema import (
    CartItem, Category, Discount, DiscountProduct, Product, ProductImage, ProductReview,
    ProductTag, ProductVariant, PromoCode, Subcategory, User, WishlistItem,
)
from forms import ProductForm, ReviewForm, validation_errors
from services.catalog import CatalogService
from routes.auth import require_role, require_user
from utils import utcnow, get_page_args, paginate

logger = logging.getLogger(__name__)

products_bp = Blueprint("products", __name__)

SORTS = {
    "price_asc": Product.price.asc(),
    "price_desc": Product.price.desc(),
    "newest": Product.id.desc(),
}


def _float_arg(name):
    value = request.args.get(name)
    if value in (None, ""):
        return None
    try:
        return float(value)
    except ValueError:
        return None


@products_bp.route("/products", methods=["GET"])
def list_products():
    """
    Lists active products for the storefront with filters and pagination.
    ---
    Input (Query Params):
        - category_id, subcategory_id (int, optional)
        - q (str, optional): case-insensitive name search
        - min_price, max_price (float, optional)
        - sort (str, optional): price_asc | price_desc | newest
        - page, per_page (int, optional)
    Output (200):
        - products (list): product cards with resolved pricing
        - pagination (dict)
    """
    db = next(get_db())
    try:
        query = db.query(Product).filter(Product.is_active == True)

        category_id = request.args.get("category_id", type=int)
        subcategory_id = request.args.get("subcategory_id", type=int)
        search = (request.args.get("q") or "").strip()
        min_price = _float_arg("min_price")
        max_price = _float_arg("max_price")

        if category_id:
            query = query.filter(Product.category_id == category_id)
        if subcategory_id:
            query = query.filter(Product.subcategory_id == subcategory_id)
        if search:
            query = query.filter(Product.name.ilike(f"%{search}%"))
        if min_price is not None:
            query = query.filter(Product.price >= min_price)
        if max_price is not None:
            query = query.filter(Product.price <= max_price)

        sort = request.args.get("sort", "newest")
        query = query.order_by(SORTS.get(sort, SORTS["newest"]))

        page, per_page = get_page_args(request.args)
        products, pagination = paginate(query, page, per_page)

        return jsonify({
            "products": CatalogService(db).product_cards(products),
            "pagination": pagination,
        }), 200
    finally:
        db.close()


@products_bp.route("/products/trending", methods=["GET"])
def trending_products():
    db = next(get_db())
    try:
        products = (
            db.query(Product)
            .filter(Product.is_active == True)
            .order_by(func.random())
            .limit(10)
            .all()
        )
        return jsonify({"products": CatalogService(db).product_cards(products)}), 200
    finally:
        db.close()


@products_bp.route("/products/<int:product_id>", methods=["GET"])
def get_product(product_id):
    """
    Returns the product detail page payload.
    ---
    Input (Query Params):
        - quantity (int, optional): quantity to price the product at. Defaults to 1.
    Output (200):
        - product detail with images, inventory, available offers and pricing
    Errors:
        - 400: quantity below 1
        - 404: Product not found or inactive
    """
    quantity = request.args.get("quantity", 1, type=int)
    if quantity < 1:
        return jsonify({"error": "quantity must be at least 1"}), 400

    db = next(get_db())
    try:
        catalog = CatalogService(db)
        product = catalog.active_product(product_id)
        if not product:
            return jsonify({"error": "Product not found"}), 404

        return jsonify(catalog.product_detail(product, quantity)), 200
    finally:
        db.close()


@products_bp.route("/products/<int:product_id>/reviews", methods=["POST"])
@require_user
def add_review(user, db, product_id):
    try:
        form = ReviewForm.model_validate(request.get_json() or {})
    except ValidationError as e:
        return jsonify({"error": "Invalid review", "details": validation_errors(e)}), 400

    if not CatalogService(db).active_product(product_id):
        return jsonify({"error": "Product not found"}), 404

    now = utcnow()
    review = ProductReview(
        product_id=product_id,
        user_id=user.id,
        rating=form.rating,
        comment=form.comment,
        created_at=now,
        updated_at=now,
    )
    db.add(review)
    db.commit()

    return jsonify({"review_id": review.id, "created_at": now.isoformat()}), 201


@products_bp.route("/admin/products", methods=["GET"])
@require_role("admin")
def admin_list_products():
    """
    Dashboard product table: title, price, category names and total stock.
    """
    db = next(get_db())
    try:
        stock = (
            db.query(ProductVariant.product_id, func.coalesce(func.sum(ProductVariant.quantity), 0).label("total"))
            .group_by(ProductVariant.product_id)
            .subquery()
        )
        rows = (
            db.query(Product, Category.name, Subcategory.name, func.coalesce(stock.c.total, 0))
            .outerjoin(Category, Product.category_id == Category.id)
            .outerjoin(Subcategory, Product.subcategory_id == Subcategory.id)
            .outerjoin(stock, stock.c.product_id == Product.id)
            .order_by(Product.id.asc())
            .all()
        )
        return jsonify({"products": [
            {
                "id": p.id,
                "title": p.name,
                "price": p.price,
                "category": category_name or "",
                "subcategory": subcategory_name or "",
                "total_quantity": int(total),
                "is_active": p.is_active,
            }
            for p, category_name, subcategory_name, total in rows
        ]}), 200
    finally:
        db.close()


@products_bp.route("/admin/products/<int:product_id>", methods=["GET"])
@require_role("admin")
def admin_get_product(product_id):
    db = next(get_db())
    try:
        product = db.get(Product, product_id)
        if not product:
            return jsonify({"error": "Product not found"}), 404
        return jsonify(CatalogService(db).product_for_edit(product)), 200
    finally:
        db.close()


def _delete_own_discounts(db, product_id):
    owned = [d.id for d in CatalogService(db).own_discounts(product_id)]
    if owned:
        db.query(DiscountProduct).filter(DiscountProduct.discount_id.in_(owned)).delete(synchronize_session=False)
        db.query(Discount).filter(Discount.id.in_(owned)).delete(synchronize_session=False)


def _replace_children(db, product_id):
    _delete_own_discounts(db, product_id)
    for model in (ProductImage, ProductVariant, ProductTag, PromoCode):
        db.query(model).filter(model.product_id == product_id).delete(synchronize_session=False)


@products_bp.route("/admin/products", methods=["POST"])
@require_role("admin")
def save_product():
    """
    Creates a product, or updates it when ``id`` is supplied.

    On update, images, variants, tags, discounts and promo codes are
    replaced wholesale by what the form carries.
    ---
    Output (201 create / 200 update):
        - product_id (int)
    Errors:
        - 400: Validation failure or unknown category/subcategory
        - 404: Product id not found
        - 409: Promo code already used by another product
    """
    try:
        form = ProductForm.model_validate(request.get_json() or {})
    except ValidationError as e:
        return jsonify({"error": "Invalid product", "details": validation_errors(e)}), 400

    db = next(get_db())
    try:
        if not db.get(Category, form.category_id) or not db.get(Subcategory, form.subcategory_id):
            return jsonify({"error": "Unknown category or subcategory"}), 400

        codes = [p.code for p in form.promocodes]
        if codes:
            clash = db.query(PromoCode).filter(PromoCode.code.in_(codes))
            if form.id:
                clash = clash.filter((PromoCode.product_id != form.id) | (PromoCode.product_id == None))
            if clash.first():
                return jsonify({"error": "Promo code already exists"}), 409

        if form.id:
            product = db.get(Product, form.id)
            if not product:
                return jsonify({"error": "Product not found"}), 404
            _replace_children(db, product.id)
            status = 200
        else:
            product = Product(created_at=utcnow())
            db.add(product)
            status = 201

        product.name = form.title
        product.description = form.description
        product.price = form.price
        product.is_active = form.is_active
        product.category_id = form.category_id
        product.subcategory_id = form.subcategory_id
        db.flush()

        for url in form.images:
            db.add(ProductImage(product_id=product.id, url=url))
        for tag in form.tags:
            db.add(ProductTag(product_id=product.id, tag=tag))
        for color in form.inventory:
            for size in color.sizes:
                db.add(ProductVariant(
                    product_id=product.id,
                    color_id=color.color_id,
                    size_id=size.size_id,
                    quantity=size.quantity,
                ))
        for d in form.discounts:
            discount = Discount(apply_to="products", name=d.name, type=d.type, value=d.value, min_quantity=d.min_quantity)
            db.add(discount)
            db.flush()
            db.add(DiscountProduct(discount_id=discount.id, product_id=product.id))
        for p in form.promocodes:
            db.add(PromoCode(product_id=product.id, code=p.code, type=p.type, value=p.value))

        db.commit()
        logger.info(f"Saved product {product.id} ({'created' if status == 201 else 'updated'})")

        return jsonify({"product_id": product.id}), status
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@products_bp.route("/admin/products/<int:product_id>", methods=["DELETE"])
@require_role("admin")
def delete_product(product_id):
    db = next(get_db())
    try:
        product = db.get(Product, product_id)
        if not product:
            return jsonify({"error": "Product not found"}), 404
        for model in (CartItem, WishlistItem, ProductReview):
            db.query(model).filter(model.product_id == product_id).delete(synchronize_session=False)
        _replace_children(db, product_id)
        # shared discounts stay, minus their link to this product
        db.query(DiscountProduct).filter_by(product_id=product_id).delete(synchronize_session=False)
        db.delete(product)
        db.commit()
        return jsonify({"message": "Product deleted"}), 200
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@products_bp.route("/admin/reviews", methods=["GET"])
@require_role("admin")
def admin_list_reviews():
    db = next(get_db())
    try:
        rows = (
            db.query(ProductReview, Product.name, User.name)
            .join(Product, ProductReview.product_id == Product.id)
            .join(User, ProductReview.user_id == User.id)
            .order_by(ProductReview.created_at.desc())
            .all()
        )
        return jsonify({"reviews": [
            {**r.to_dict(), "product_name": product_name, "user_name": user_name}
            for r, product_name, user_name in rows
        ]}), 200
    finally:
        db.close()
