from flask import Blueprint, request, jsonify
from pydantic import ValidationError
from db import get_db
from schema import Category, CategorySubcategory, Color, Size, Subcategory
from forms import CategoryForm, ColorForm, SizeForm, SubcategoryForm, validation_errors
from routes.auth import require_role
from utils import slugify

categories_bp = Blueprint("categories", __name__)


@categories_bp.route("/categories", methods=["GET"])
def list_categories():
    """
    Returns categories with their linked subcategories.
    ---
    Input (Query Params):
        - active_only (bool, optional): Defaults to true.
    """
    active_only = request.args.get("active_only", "true").lower() == "true"
    db = next(get_db())
    try:
        query = db.query(Category).order_by(Category.id.asc())
        if active_only:
            query = query.filter(Category.is_active == True)
        categories = query.all()

        links = (
            db.query(CategorySubcategory.category_id, Subcategory)
            .join(Subcategory, CategorySubcategory.subcategory_id == Subcategory.id)
            .order_by(Subcategory.id.asc())
            .all()
        )
        by_category = {}
        for category_id, sub in links:
            if active_only and not sub.is_active:
                continue
            by_category.setdefault(category_id, []).append({"id": sub.id, "name": sub.name, "is_active": sub.is_active})

        return jsonify({"categories": [
            {**c.to_dict(), "subcategories": by_category.get(c.id, [])}
            for c in categories
        ]}), 200
    finally:
        db.close()


@categories_bp.route("/admin/categories", methods=["POST"])
@require_role("admin")
def save_category():
    try:
        form = CategoryForm.model_validate(request.get_json() or {})
    except ValidationError as e:
        return jsonify({"error": "Invalid category", "details": validation_errors(e)}), 400

    db = next(get_db())
    try:
        if form.id:
            category = db.get(Category, form.id)
            if not category:
                return jsonify({"error": "Category not found"}), 404
            status = 200
        else:
            category = Category()
            db.add(category)
            status = 201

        category.name = form.name
        category.slug = slugify(form.name)
        category.description = form.description
        category.is_active = form.is_active
        db.commit()

        return jsonify(category.to_dict()), status
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@categories_bp.route("/admin/subcategories", methods=["POST"])
@require_role("admin")
def save_subcategory():
    """
    Creates or updates a subcategory and re-links it to the given categories.
    """
    try:
        form = SubcategoryForm.model_validate(request.get_json() or {})
    except ValidationError as e:
        return jsonify({"error": "Invalid subcategory", "details": validation_errors(e)}), 400

    db = next(get_db())
    try:
        if form.id:
            sub = db.get(Subcategory, form.id)
            if not sub:
                return jsonify({"error": "Subcategory not found"}), 404
            db.query(CategorySubcategory).filter_by(subcategory_id=sub.id).delete(synchronize_session=False)
            status = 200
        else:
            sub = Subcategory()
            db.add(sub)
            status = 201

        sub.name = form.name
        sub.is_active = form.is_active
        db.flush()

        for category_id in set(form.category_ids):
            if not db.get(Category, category_id):
                db.rollback()
                return jsonify({"error": f"Category {category_id} not found"}), 400
            db.add(CategorySubcategory(category_id=category_id, subcategory_id=sub.id))

        db.commit()
        return jsonify({**sub.to_dict(), "category_ids": sorted(set(form.category_ids))}), status
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@categories_bp.route("/sizes", methods=["GET"])
def list_sizes():
    db = next(get_db())
    try:
        query = db.query(Size)
        category_id = request.args.get("category_id", type=int)
        size_type = request.args.get("type")
        if category_id:
            query = query.filter(Size.category_id == category_id)
        if size_type:
            query = query.filter(Size.type == size_type)
        sizes = query.order_by(Size.size_number.asc(), Size.id.asc()).all()
        return jsonify({"sizes": [s.to_dict() for s in sizes]}), 200
    finally:
        db.close()


@categories_bp.route("/admin/sizes", methods=["POST"])
@require_role("admin")
def create_size():
    try:
        form = SizeForm.model_validate(request.get_json() or {})
    except ValidationError as e:
        return jsonify({"error": "Invalid size", "details": validation_errors(e)}), 400

    db = next(get_db())
    try:
        size = Size(**form.model_dump())
        db.add(size)
        db.commit()
        return jsonify(size.to_dict()), 201
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@categories_bp.route("/colors", methods=["GET"])
def list_colors():
    db = next(get_db())
    try:
        colors = db.query(Color).filter(Color.is_active == True).order_by(Color.id.asc()).all()
        return jsonify({"colors": [c.to_dict() for c in colors]}), 200
    finally:
        db.close()


@categories_bp.route("/admin/colors", methods=["POST"])
@require_role("admin")
def create_color():
    try:
        form = ColorForm.model_validate(request.get_json() or {})
    except ValidationError as e:
        return jsonify({"error": "Invalid color", "details": validation_errors(e)}), 400

    db = next(get_db())
    try:
        clash = db.query(Color).filter((Color.name == form.name) | (Color.color_code == form.color_code.upper())).first()
        if clash:
            return jsonify({"error": "Color already exists"}), 409
        color = Color(name=form.name, color_code=form.color_code.upper())
        db.add(color)
        db.commit()
        return jsonify(color.to_dict()), 201
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
