import logging
from flask import Blueprint, request, jsonify
from pydantic import ValidationError
from sqlalchemy import func
from db import get_db
from schema import (
    Category, Discount, DiscountCategory, DiscountProduct, DiscountSubcategory,
    Product, PromoCode, Subcategory,
)
from forms import DiscountForm, PromoCodeForm, validation_errors
from constants import DISCOUNT_SCOPES
from routes.auth import require_role

logger = logging.getLogger(__name__)

discounts_bp = Blueprint("discounts", __name__)

# apply_to -> (link model, link column name, target model)
SCOPE_LINKS = {
    "categories": (DiscountCategory, "category_id", Category),
    "subcategories": (DiscountSubcategory, "subcategory_id", Subcategory),
    "products": (DiscountProduct, "product_id", Product),
}


def _product_names(db, product_ids):
    ids = {pid for pid in product_ids if pid is not None}
    if not ids:
        return {}
    return {p.id: p.name for p in db.query(Product.id, Product.name).filter(Product.id.in_(ids)).all()}


def _targets_by_discount(db, discounts):
    """
    Maps each discount id to the ``{id, name}`` targets its scope links to.
    """
    targets = {d.id: [] for d in discounts}
    ids = list(targets)
    for link, column_name, model in SCOPE_LINKS.values():
        column = getattr(link, column_name)
        rows = (
            db.query(link.discount_id, model.id, model.name)
            .join(model, column == model.id)
            .filter(link.discount_id.in_(ids))
            .order_by(model.id.asc())
            .all()
        )
        for discount_id, target_id, name in rows:
            targets[discount_id].append({"id": target_id, "name": name})
    return targets


def _clear_links(db, discount_id):
    for link, _, _ in SCOPE_LINKS.values():
        db.query(link).filter(link.discount_id == discount_id).delete(synchronize_session=False)


@discounts_bp.route("/admin/discounts", methods=["GET"])
@require_role("admin")
def list_discounts():
    """
    Lists discounts with the categories, subcategories or products they apply to.
    ---
    Input (Query Params):
        - apply_to (str, optional): all | categories | subcategories | products
    """
    apply_to = request.args.get("apply_to")
    if apply_to and apply_to not in DISCOUNT_SCOPES:
        return jsonify({"error": f"apply_to must be one of {list(DISCOUNT_SCOPES)}"}), 400

    db = next(get_db())
    try:
        query = db.query(Discount)
        if apply_to:
            query = query.filter(Discount.apply_to == apply_to)
        discounts = query.order_by(Discount.id.desc()).all()
        targets = _targets_by_discount(db, discounts)
        return jsonify({"discounts": [
            {**d.to_dict(), "targets": targets[d.id]} for d in discounts
        ]}), 200
    finally:
        db.close()


@discounts_bp.route("/admin/discounts", methods=["POST"])
@require_role("admin")
def save_discount():
    """
    Creates a discount, or updates one when ``id`` is given.

    On update the discount's scope links are replaced by the ones submitted.
    ---
    Input (JSON):
        - name (str, optional)
        - type (str): direct | quantity
        - value (float): percentage in (0, 100]
        - min_quantity (int): required for quantity discounts
        - apply_to (str): all | categories | subcategories | products
        - category_ids / subcategory_ids / product_ids (list[int]): targets for the chosen scope
    Errors:
        - 400: Validation failure
        - 404: Unknown discount or target
    """
    try:
        form = DiscountForm.model_validate(request.get_json() or {})
    except ValidationError as e:
        return jsonify({"error": "Invalid discount", "details": validation_errors(e)}), 400

    db = next(get_db())
    try:
        target_ids = set(form.target_ids)
        if form.apply_to != "all":
            link, column_name, model = SCOPE_LINKS[form.apply_to]
            found = {row.id for row in db.query(model.id).filter(model.id.in_(target_ids)).all()}
            missing = sorted(target_ids - found)
            if missing:
                return jsonify({"error": f"Unknown {form.apply_to}: {missing}"}), 404

        if form.id:
            discount = db.get(Discount, form.id)
            if not discount:
                return jsonify({"error": "Discount not found"}), 404
            _clear_links(db, discount.id)
            status = 200
        else:
            discount = Discount()
            db.add(discount)
            status = 201

        discount.apply_to = form.apply_to
        discount.name = form.name
        discount.type = form.type
        discount.value = form.value
        discount.min_quantity = form.min_quantity
        db.flush()

        if form.apply_to != "all":
            for target_id in sorted(target_ids):
                db.add(link(discount_id=discount.id, **{column_name: target_id}))
        db.commit()
        logger.info(f"Saved {discount.type} discount {discount.id} for {discount.apply_to} {sorted(target_ids)}")

        return jsonify({**discount.to_dict(), "targets": _targets_by_discount(db, [discount])[discount.id]}), status
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@discounts_bp.route("/admin/discounts/<int:discount_id>", methods=["DELETE"])
@require_role("admin")
def delete_discount(discount_id):
    db = next(get_db())
    try:
        discount = db.get(Discount, discount_id)
        if not discount:
            return jsonify({"error": "Discount not found"}), 404
        _clear_links(db, discount.id)
        db.delete(discount)
        db.commit()
        return jsonify({"message": "Discount deleted"}), 200
    finally:
        db.close()


@discounts_bp.route("/admin/promocodes", methods=["GET"])
@require_role("admin")
def list_promocodes():
    db = next(get_db())
    try:
        promos = db.query(PromoCode).order_by(PromoCode.code.asc()).all()
        names = _product_names(db, [p.product_id for p in promos])
        return jsonify({"promocodes": [
            {**p.to_dict(), "product_name": names.get(p.product_id)} for p in promos
        ]}), 200
    finally:
        db.close()


@discounts_bp.route("/admin/promocodes", methods=["POST"])
@require_role("admin")
def save_promocode():
    """
    Upserts a promo code by its (case-insensitive) code.

    Updating by ``id`` to a code another record already uses is a conflict.
    """
    try:
        form = PromoCodeForm.model_validate(request.get_json() or {})
    except ValidationError as e:
        return jsonify({"error": "Invalid promo code", "details": validation_errors(e)}), 400

    db = next(get_db())
    try:
        if form.product_id is not None and not db.get(Product, form.product_id):
            return jsonify({"error": "Product not found"}), 404

        existing = db.query(PromoCode).filter(func.upper(PromoCode.code) == form.code).first()
        if form.id:
            promo = db.get(PromoCode, form.id)
            if not promo:
                return jsonify({"error": "Promo code not found"}), 404
            if existing and existing.id != promo.id:
                return jsonify({"error": f"Promo code {form.code} already exists"}), 409
            status = 200
        elif existing:
            promo = existing
            status = 200
        else:
            promo = PromoCode()
            db.add(promo)
            status = 201

        promo.product_id = form.product_id
        promo.code = form.code
        promo.type = form.type
        promo.value = form.value
        db.commit()

        return jsonify(promo.to_dict()), status
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@discounts_bp.route("/admin/promocodes/<int:promo_id>", methods=["DELETE"])
@require_role("admin")
def delete_promocode(promo_id):
    db = next(get_db())
    try:
        promo = db.get(PromoCode, promo_id)
        if not promo:
            return jsonify({"error": "Promo code not found"}), 404
        db.delete(promo)
        db.commit()
        return jsonify({"message": "Promo code deleted"}), 200
    finally:
        db.close()
