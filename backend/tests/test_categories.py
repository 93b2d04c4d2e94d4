from helpers import seed_catalog, admin_auth, auth

def test_categories_list_with_subcategories(client, db_session):
    seed_catalog(db_session)
    r = client.get("/api/v1/categories")
    assert r.status_code == 200
    categories = r.get_json()["categories"]
    assert categories[0]["name"] == "Men"
    assert categories[0]["subcategories"][0]["name"] == "Shirts"

def test_admin_category_create_and_deactivate(client):
    r = client.post("/api/v1/admin/categories", json={"name": "Kids Wear"}, headers=admin_auth())
    assert r.status_code == 201
    category = r.get_json()
    assert category["slug"] == "kids-wear"

    r = client.post(
        "/api/v1/admin/categories",
        json={"id": category["id"], "name": "Kids Wear", "is_active": False},
        headers=admin_auth(),
    )
    assert r.status_code == 200
    assert client.get("/api/v1/categories").get_json()["categories"] == []
    assert len(client.get("/api/v1/categories?active_only=false").get_json()["categories"]) == 1

def test_category_admin_requires_admin(client):
    assert client.post("/api/v1/admin/categories", json={"name": "X"}, headers=auth()).status_code == 403

def test_subcategory_links_to_categories(client, db_session):
    catalog = seed_catalog(db_session)
    category_id = catalog["category"].id
    r = client.post(
        "/api/v1/admin/subcategories",
        json={"name": "Trousers", "category_ids": [category_id]},
        headers=admin_auth(),
    )
    assert r.status_code == 201
    assert r.get_json()["category_ids"] == [category_id]

    names = [s["name"] for s in client.get("/api/v1/categories").get_json()["categories"][0]["subcategories"]]
    assert names == ["Shirts", "Trousers"]

    bad = client.post(
        "/api/v1/admin/subcategories",
        json={"name": "Socks", "category_ids": [999]},
        headers=admin_auth(),
    )
    assert bad.status_code == 400

def test_sizes_filter_by_category_and_type(client, db_session):
    catalog = seed_catalog(db_session)
    r = client.post(
        "/api/v1/admin/sizes",
        json={"name": "32", "size_number": 32, "type": "bottom", "category_id": catalog["category"].id},
        headers=admin_auth(),
    )
    assert r.status_code == 201

    tops = client.get(f"/api/v1/sizes?category_id={catalog['category'].id}&type=top").get_json()["sizes"]
    assert [s["name"] for s in tops] == ["S", "M"]
    bottoms = client.get("/api/v1/sizes?type=bottom").get_json()["sizes"]
    assert [s["name"] for s in bottoms] == ["32"]

def test_colors_create_and_conflict(client, db_session):
    seed_catalog(db_session)
    r = client.post("/api/v1/admin/colors", json={"name": "Olive", "color_code": "#808000"}, headers=admin_auth())
    assert r.status_code == 201
    assert client.post("/api/v1/admin/colors", json={"name": "Olive 2", "color_code": "#808000"}, headers=admin_auth()).status_code == 409
    assert client.post("/api/v1/admin/colors", json={"name": "White 2", "color_code": "#ffffff"}, headers=admin_auth()).status_code == 409
    assert client.post("/api/v1/admin/colors", json={"name": "Bad", "color_code": "olive"}, headers=admin_auth()).status_code == 400

    names = [c["name"] for c in client.get("/api/v1/colors").get_json()["colors"]]
    assert names == ["Navy", "White", "Olive"]
