import pytest
from datetime import datetime
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError
import schema
from helpers import seed_user, seed_catalog, seed_product

def test_all_tables_exist(engine):
    tables = inspect(engine).get_table_names()
    required = [
        'users', 'user_addresses', 'categories', 'subcategories', 'category_subcategories',
        'sizes', 'colors', 'products', 'product_images', 'product_variants', 'product_tags',
        'discounts', 'discount_categories', 'discount_subcategories', 'discount_products',
        'promocodes', 'cart_items', 'wishlist_items', 'orders', 'order_items',
        'order_status_history', 'order_shipments', 'order_payments', 'product_reviews',
        'cron_jobs', 'cron_job_logs',
    ]
    for t in required:
        assert t in tables, f"Missing table {t}"

def test_cart_item_unique_per_variant(db_session):
    seed_user(db_session)
    catalog = seed_catalog(db_session)
    product, variant = seed_product(db_session, catalog)
    for _ in range(2):
        db_session.add(schema.CartItem(user_id="cust-1", product_id=product.id, product_variant_id=variant.id, quantity=1))
    with pytest.raises(IntegrityError):
        db_session.commit()

def test_user_email_unique(db_session):
    seed_user(db_session)
    db_session.add(schema.User(id="cust-9", name="Dup", email="cust-1@example.com", role="customer"))
    with pytest.raises(IntegrityError):
        db_session.commit()

def test_to_dict_serializes_datetimes(db_session):
    user = seed_user(db_session)
    data = user.to_dict()
    assert set(data) == {"id", "name", "email", "role", "created_at"}
    assert isinstance(data["created_at"], str)
    datetime.fromisoformat(data["created_at"])

def test_schema_models_share_base():
    from base import Base
    assert schema.Order.__table__.metadata is Base.metadata
    assert "promo_amount" in schema.Order.__table__.columns
    assert "min_quantity" in schema.Discount.__table__.columns
    assert "apply_to" in schema.Discount.__table__.columns
