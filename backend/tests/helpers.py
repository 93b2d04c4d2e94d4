import uuid
import schema
from datetime import datetime, timezone

ADMIN_ID = "admin-1"
CUSTOMER_ID = "cust-1"

def auth(user_id=CUSTOMER_ID, role="customer"):
    return {"Authorization": f"Bearer mock-jwt-{role}-{user_id}"}

def admin_auth():
    return auth(ADMIN_ID, "admin")

def seed_user(db, user_id=CUSTOMER_ID, role="customer", name="Asha Rao", email=None):
    user = schema.User(
        id=user_id,
        name=name,
        email=email or f"{user_id}@example.com",
        role=role,
        created_at=datetime.now(timezone.utc),
    )
    db.add(user)
    db.commit()
    return user

def seed_catalog(db):
    """Seeds one category/subcategory pair with two sizes and two colors."""
    category = schema.Category(name="Men", slug="men", description="Menswear")
    sub = schema.Subcategory(name="Shirts")
    db.add_all([category, sub])
    db.flush()
    db.add(schema.CategorySubcategory(category_id=category.id, subcategory_id=sub.id))
    small = schema.Size(name="S", size_number=38, type="top", category_id=category.id)
    medium = schema.Size(name="M", size_number=40, type="top", category_id=category.id)
    navy = schema.Color(name="Navy", color_code="#000080")
    white = schema.Color(name="White", color_code="#FFFFFF")
    db.add_all([small, medium, navy, white])
    db.commit()
    return {"category": category, "subcategory": sub, "sizes": [small, medium], "colors": [navy, white]}

def seed_product(db, catalog, name="Linen Shirt", price=500.0, stock=5, discounts=(), is_active=True, image="https://img.test/shirt.jpg"):
    """
    Seeds a product with a single Navy/S variant.

    ``discounts`` is a sequence of dicts with type, value and optional min_quantity.
    """
    product = schema.Product(
        name=name,
        description=f"{name} description",
        price=price,
        is_active=is_active,
        category_id=catalog["category"].id,
        subcategory_id=catalog["subcategory"].id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(product)
    db.flush()
    variant = schema.ProductVariant(
        product_id=product.id,
        size_id=catalog["sizes"][0].id,
        color_id=catalog["colors"][0].id,
        quantity=stock,
    )
    db.add(variant)
    if image:
        db.add(schema.ProductImage(product_id=product.id, url=image, color_id=catalog["colors"][0].id))
    for d in discounts:
        seed_discount(db, d, product_ids=[product.id])
    db.commit()
    return product, variant

def seed_discount(db, d, apply_to="products", product_ids=(), category_ids=(), subcategory_ids=()):
    """Seeds a discount from a dict of type, value and optional min_quantity/name, plus its scope links."""
    discount = schema.Discount(
        apply_to=apply_to,
        name=d.get("name", ""),
        type=d["type"],
        value=d["value"],
        min_quantity=d.get("min_quantity"),
    )
    db.add(discount)
    db.flush()
    for pid in product_ids:
        db.add(schema.DiscountProduct(discount_id=discount.id, product_id=pid))
    for cid in category_ids:
        db.add(schema.DiscountCategory(discount_id=discount.id, category_id=cid))
    for sid in subcategory_ids:
        db.add(schema.DiscountSubcategory(discount_id=discount.id, subcategory_id=sid))
    db.commit()
    return discount

def seed_address(db, user_id=CUSTOMER_ID, is_default=True):
    address = schema.UserAddress(
        user_id=user_id,
        name="Asha Rao",
        address="12 MG Road",
        city="Bengaluru",
        state="Karnataka",
        country="India",
        pincode="560001",
        phone="9876543210",
        is_default=is_default,
    )
    db.add(address)
    db.commit()
    return address

def seed_order(db, user_id=CUSTOMER_ID, status="pending", final_amount=100.0, created_at=None, quantity=1, address_id=None):
    """Seeds an order with one item directly, bypassing checkout."""
    created_at = created_at or datetime.now(timezone.utc)
    if address_id is None:
        address_id = seed_address(db, user_id, is_default=False).id
    order = schema.Order(
        order_uuid=str(uuid.uuid4()),
        user_id=user_id,
        original_amount=final_amount,
        total_amount=final_amount,
        final_amount=final_amount,
        status=status,
        address_id=address_id,
        created_at=created_at,
        updated_at=created_at,
    )
    db.add(order)
    db.flush()
    db.add(schema.OrderItem(
        order_id=order.id,
        product_id=1,
        product_variant_id=1,
        quantity=quantity,
        original_price=final_amount,
        discounted_price=final_amount,
        final_price=final_amount,
    ))
    db.add(schema.OrderShipment(order_id=order.id, status="pending", created_at=created_at, updated_at=created_at))
    db.commit()
    return order

def add_to_cart(client, product_id, variant_id, quantity=1, user_id=CUSTOMER_ID):
    return client.post(
        "/api/v1/cart",
        json={"product_id": product_id, "product_variant_id": variant_id, "quantity": quantity},
        headers=auth(user_id),
    )
