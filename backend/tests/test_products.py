import schema
from services.catalog import CatalogService
from helpers import seed_catalog, seed_product, seed_discount, seed_user, add_to_cart, admin_auth, auth

def _product_payload(catalog, **overrides):
    payload = {
        "title": "Oxford Shirt",
        "description": "Cotton oxford",
        "price": 1200,
        "category_id": catalog["category"].id,
        "subcategory_id": catalog["subcategory"].id,
        "tags": ["cotton", "formal"],
        "images": ["https://img.test/oxford.jpg"],
        "discounts": [{"type": "quantity", "value": 10, "min_quantity": 2, "name": "Pair deal"}],
        "promocodes": [{"code": "oxford10", "type": "percentage", "value": 10}],
        "inventory": [{
            "color_id": catalog["colors"][0].id,
            "sizes": [
                {"size_id": catalog["sizes"][0].id, "quantity": 4},
                {"size_id": catalog["sizes"][1].id, "quantity": 6},
            ],
        }],
    }
    payload.update(overrides)
    return payload

def test_listing_carries_resolved_pricing(client, db_session):
    catalog = seed_catalog(db_session)
    seed_product(db_session, catalog, name="Linen Shirt", price=500.0, discounts=[{"type": "direct", "value": 20}])
    seed_product(db_session, catalog, name="Polo", price=300.0, discounts=[{"type": "quantity", "value": 15, "min_quantity": 3}])

    r = client.get("/api/v1/products?sort=price_asc")
    assert r.status_code == 200
    products = r.get_json()["products"]
    assert [p["name"] for p in products] == ["Polo", "Linen Shirt"]
    assert products[0]["discounted_price"] == 300.0
    assert products[0]["discounted_text"] == ""
    assert products[1]["discounted_price"] == 400.0
    assert products[1]["discounted_text"] == "20% OFF"
    assert products[1]["image"] == "https://img.test/shirt.jpg"

def test_listing_filters_and_paginates(client, db_session):
    catalog = seed_catalog(db_session)
    for i in range(5):
        seed_product(db_session, catalog, name=f"Tee {i}", price=100.0 + i * 100)
    seed_product(db_session, catalog, name="Hidden Tee", price=150.0, is_active=False)

    r = client.get("/api/v1/products?q=tee&min_price=200&max_price=400&per_page=2&page=1")
    data = r.get_json()
    assert data["pagination"]["total"] == 3
    assert data["pagination"]["pages"] == 2
    assert len(data["products"]) == 2
    assert all("Hidden" not in p["name"] for p in data["products"])

def test_trending_limited_to_active_products(client, db_session):
    catalog = seed_catalog(db_session)
    for i in range(12):
        seed_product(db_session, catalog, name=f"Item {i}")
    r = client.get("/api/v1/products/trending")
    assert len(r.get_json()["products"]) == 10

def test_detail_prices_requested_quantity(client, db_session):
    catalog = seed_catalog(db_session)
    product, variant = seed_product(
        db_session, catalog, price=200.0,
        discounts=[{"type": "quantity", "value": 15, "min_quantity": 3, "name": "Bulk"}],
    )

    single = client.get(f"/api/v1/products/{product.id}").get_json()
    assert single["pricing"]["discounted_text"] == ""
    assert single["offers"][0]["name"] == "Bulk"
    assert single["inventory"][0]["sizes"][0]["variant_id"] == variant.id

    bulk = client.get(f"/api/v1/products/{product.id}?quantity=3").get_json()
    assert bulk["pricing"]["discounted_price"] == 170.0
    assert bulk["pricing"]["discounted_text"] == "Buy 3+ for 15% OFF"
    assert bulk["pricing"]["total"] == 510.0

def test_detail_errors(client, db_session):
    catalog = seed_catalog(db_session)
    product, _ = seed_product(db_session, catalog, is_active=False)
    assert client.get(f"/api/v1/products/{product.id}").status_code == 404
    assert client.get("/api/v1/products/999").status_code == 404
    assert client.get(f"/api/v1/products/{product.id}?quantity=0").status_code == 400

def test_admin_creates_and_updates_product(client, db_session):
    catalog = seed_catalog(db_session)
    r = client.post("/api/v1/admin/products", json=_product_payload(catalog), headers=admin_auth())
    assert r.status_code == 201
    product_id = r.get_json()["product_id"]

    edit = client.get(f"/api/v1/admin/products/{product_id}", headers=admin_auth()).get_json()
    assert edit["title"] == "Oxford Shirt"
    assert edit["promocodes"] == [{"code": "OXFORD10", "type": "percentage", "value": 10.0}]
    assert len(edit["inventory"][0]["sizes"]) == 2

    edit["title"] = "Oxford Shirt Slim"
    edit["discounts"] = [{"type": "direct", "value": 5}]
    r = client.post("/api/v1/admin/products", json=edit, headers=admin_auth())
    assert r.status_code == 200

    db_session.expire_all()
    own = CatalogService(db_session).own_discounts(product_id)
    assert [(d.type, d.value, d.apply_to) for d in own] == [("direct", 5.0, "products")]
    assert db_session.query(schema.Discount).count() == 1
    assert db_session.query(schema.ProductVariant).filter_by(product_id=product_id).count() == 2
    assert db_session.get(schema.Product, product_id).name == "Oxford Shirt Slim"

    listing = client.get("/api/v1/admin/products", headers=admin_auth()).get_json()["products"]
    assert listing[0]["total_quantity"] == 10
    assert listing[0]["category"] == "Men"

def test_admin_product_validation(client, db_session):
    catalog = seed_catalog(db_session)
    bad_discount = _product_payload(catalog, discounts=[{"type": "quantity", "value": 10}])
    assert client.post("/api/v1/admin/products", json=bad_discount, headers=admin_auth()).status_code == 400

    no_inventory = _product_payload(catalog, inventory=[])
    assert client.post("/api/v1/admin/products", json=no_inventory, headers=admin_auth()).status_code == 400

    unknown_category = _product_payload(catalog, category_id=999)
    assert client.post("/api/v1/admin/products", json=unknown_category, headers=admin_auth()).status_code == 400

    missing = _product_payload(catalog, id=999)
    assert client.post("/api/v1/admin/products", json=missing, headers=admin_auth()).status_code == 404

def test_promo_code_clash_between_products(client, db_session):
    catalog = seed_catalog(db_session)
    client.post("/api/v1/admin/products", json=_product_payload(catalog), headers=admin_auth())
    r = client.post("/api/v1/admin/products", json=_product_payload(catalog, title="Second Shirt"), headers=admin_auth())
    assert r.status_code == 409

def test_admin_deletes_product(client, db_session):
    seed_user(db_session)
    catalog = seed_catalog(db_session)
    product, variant = seed_product(db_session, catalog, discounts=[{"type": "direct", "value": 10}])
    other, _ = seed_product(db_session, catalog, name="Oxford Shirt")
    shared = seed_discount(db_session, {"type": "direct", "value": 5}, product_ids=[product.id, other.id])
    product_id, shared_id = product.id, shared.id

    add_to_cart(client, product_id, variant.id, 1)
    client.post("/api/v1/wishlist", json={"product_id": product_id, "product_variant_id": variant.id}, headers=auth())

    r = client.delete(f"/api/v1/admin/products/{product_id}", headers=admin_auth())
    assert r.status_code == 200

    db_session.expire_all()
    assert [d.id for d in db_session.query(schema.Discount).all()] == [shared_id]
    assert db_session.query(schema.DiscountProduct).filter_by(product_id=product_id).count() == 0
    assert db_session.query(schema.CartItem).count() == 0
    assert db_session.query(schema.WishlistItem).count() == 0
    assert client.delete(f"/api/v1/admin/products/{product_id}", headers=admin_auth()).status_code == 404

def test_reviews(client, db_session):
    catalog = seed_catalog(db_session)
    seed_user(db_session)
    product, _ = seed_product(db_session, catalog)

    assert client.post(f"/api/v1/products/{product.id}/reviews", json={"rating": 6}, headers=auth()).status_code == 400
    r = client.post(f"/api/v1/products/{product.id}/reviews", json={"rating": 4, "comment": "Fits well"}, headers=auth())
    assert r.status_code == 201

    reviews = client.get("/api/v1/admin/reviews", headers=admin_auth()).get_json()["reviews"]
    assert reviews[0]["rating"] == 4
    assert reviews[0]["product_name"] == "Linen Shirt"
    assert reviews[0]["user_name"] == "Asha Rao"

def test_listing_survives_unknown_discount_policy(client, db_session, monkeypatch):
    monkeypatch.setenv("DISCOUNT_POLICY", "cheapest")
    catalog = seed_catalog(db_session)
    seed_product(db_session, catalog, price=500.0, discounts=[{"type": "direct", "value": 20}])
    r = client.get("/api/v1/products")
    assert r.status_code == 200
    assert r.get_json()["products"][0]["discounted_price"] == 400.0
