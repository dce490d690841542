import pytest
from bson import ObjectId

import products
from conftest import login
from database import ensure_indexes


def product_body(catalog, **overrides):
    body = {
        "name": "Amber Nights Eau de Parfum",
        "description": "Warm amber with vanilla.",
        "brand": "Aroma",
        "category": str(catalog["beauty"]),
        "subCategories": [str(catalog["skincare"])],
        "sku": "AMB-50",
        "color": {"color": "amber"},
        "images": [{"url": "https://img.example/amber.jpg", "public_id": "products/amber"}],
        "sizes": [
            {"size": "50ml", "qty": 10, "price": 100},
            {"size": "100ml", "qty": 0, "price": 180},
        ],
        "discount": 10,
        "details": [{"name": "Notes", "value": "Amber, vanilla"}],
    }
    body.update(overrides)
    return body


def update_body(**overrides):
    body = {
        "name": "Amber Nights Eau de Parfum",
        "description": "Warm amber with vanilla.",
        "sku": "AMB-50",
        "color": "gold",
        "sizes": [{"size": "50ml", "qty": 8, "price": 110}],
        "discount": 0,
    }
    body.update(overrides)
    return body


@pytest.fixture
def product(vendor_client, db, catalog, cache_calls):
    resp = vendor_client.post("/api/vendor/products", json=product_body(catalog))
    assert resp.status_code == 201, resp.text
    cache_calls.clear()
    return db["products"].find_one({"_id": ObjectId(resp.json()["id"])})


def test_create_product(vendor_client, db, vendor, catalog, cache_calls):
    resp = vendor_client.post("/api/vendor/products", json=product_body(catalog))
    assert resp.status_code == 201
    assert resp.json()["message"] == "Product created successfully."

    stored = db["products"].find_one({"_id": ObjectId(resp.json()["id"])})
    assert stored["slug"] == "amber-nights-eau-de-parfum"
    assert stored["vendor"]["_id"] == vendor["_id"]
    assert stored["category"] == catalog["beauty"]
    assert stored["subCategories"] == [catalog["skincare"]]
    assert len(stored["subProducts"]) == 1
    sub = stored["subProducts"][0]
    assert isinstance(sub["_id"], ObjectId)
    assert sub["sku"] == "AMB-50"
    assert sub["sizes"][0] == {"size": "50ml", "qty": 10, "price": 100.0, "sold": 0}
    assert cache_calls == ["new_arrival_products", "products"]


def test_create_requires_name_without_parent(vendor_client, db, catalog, cache_calls):
    resp = vendor_client.post("/api/vendor/products", json=product_body(catalog, name=None))
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert "Missing required fields: name" in body["message"]
    assert db["products"].count_documents({}) == 0
    assert cache_calls == []


def test_invalid_update_body_uses_error_envelope(vendor_client, db, product, cache_calls):
    resp = vendor_client.put(f"/api/vendor/products/{product['_id']}", json=update_body(sizes=[]))
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert resp.json()["message"].startswith("sizes")
    assert db["products"].find_one({"_id": product["_id"]})["subProducts"] == product["subProducts"]


def test_slug_collision_is_reported_as_conflict(vendor_client, db, catalog, product, cache_calls, monkeypatch):
    ensure_indexes(db)
    monkeypatch.setattr(products, "unique_slug", lambda *args, **kwargs: product["slug"])

    resp = vendor_client.post("/api/vendor/products", json=product_body(catalog))
    assert resp.status_code == 409
    assert resp.json()["success"] is False
    assert db["products"].count_documents({}) == 1
    assert cache_calls == []


def test_subcategories_must_belong_to_category(vendor_client, db, catalog, cache_calls):
    resp = vendor_client.post("/api/vendor/products",
                              json=product_body(catalog, subCategories=[str(catalog["shoes"])]))
    assert resp.status_code == 400
    assert db["products"].count_documents({}) == 0


def test_same_name_gets_numbered_slug(vendor_client, db, catalog, product, cache_calls):
    resp = vendor_client.post("/api/vendor/products", json=product_body(catalog))
    stored = db["products"].find_one({"_id": ObjectId(resp.json()["id"])})
    assert stored["slug"] == "amber-nights-eau-de-parfum-1"


def test_append_sub_product_to_parent(vendor_client, db, catalog, product, cache_calls):
    body = {"parent": str(product["_id"]), "sku": "AMB-100", "sizes": [{"size": "100ml", "qty": 3, "price": 170}]}
    resp = vendor_client.post("/api/vendor/products", json=body)
    assert resp.status_code == 201
    assert resp.json() == {"success": True, "message": "Sub-product added successfully."}

    stored = db["products"].find_one({"_id": product["_id"]})
    assert [s["sku"] for s in stored["subProducts"]] == ["AMB-50", "AMB-100"]
    assert db["products"].count_documents({}) == 1
    assert "products" in cache_calls


def test_append_to_other_vendors_parent(client, db, other_vendor, product, cache_calls):
    login(client, other_vendor)
    body = {"parent": str(product["_id"]), "sku": "X", "sizes": [{"size": "S", "qty": 1, "price": 1}]}
    resp = client.post("/api/vendor/products", json=body)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Parent not found!"
    assert len(db["products"].find_one({"_id": product["_id"]})["subProducts"]) == 1


def test_update_product(vendor_client, db, product, cache_calls):
    subs = product["subProducts"]
    subs[0]["sizes"][0]["sold"] = 4
    db["products"].update_one({"_id": product["_id"]}, {"$set": {"subProducts": subs}})

    resp = vendor_client.put(f"/api/vendor/products/{product['_id']}",
                             json=update_body(name="Amber Nights Extrait", discount=15))
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["message"] == "Product updated successfully"

    stored = db["products"].find_one({"_id": product["_id"]})
    assert stored["name"] == "Amber Nights Extrait"
    assert stored["slug"] == "amber-nights-extrait"
    sub = stored["subProducts"][0]
    assert sub["color"]["color"] == "gold"
    assert sub["discount"] == 15
    assert sub["sizes"] == [{"size": "50ml", "qty": 8, "price": 110.0, "sold": 4}]
    # created moments ago, so it still counts as a new arrival
    assert cache_calls == ["new_arrival_products", "products", "product"]


def test_update_keeps_slug_when_name_unchanged(vendor_client, db, product, cache_calls):
    vendor_client.put(f"/api/vendor/products/{product['_id']}", json=update_body())
    assert db["products"].find_one({"_id": product["_id"]})["slug"] == product["slug"]


def test_update_other_vendors_product(client, db, other_vendor, product, cache_calls):
    login(client, other_vendor)
    resp = client.put(f"/api/vendor/products/{product['_id']}", json=update_body(name="Hijacked"))
    assert resp.status_code == 404
    assert db["products"].find_one({"_id": product["_id"]})["name"] == product["name"]
    assert cache_calls == []


def test_price_view(vendor_client, product):
    resp = vendor_client.get(f"/api/vendor/products/{product['_id']}/view")
    assert resp.status_code == 200
    view = resp.json()
    assert view["priceBefore"] == 100
    assert view["price"] == 90.0
    assert view["discount"] == 10
    assert view["size"] == "50ml"
    assert view["quantity"] == 10
    assert view["sku"] == "AMB-50"

    second = vendor_client.get(f"/api/vendor/products/{product['_id']}/view", params={"size": 1}).json()
    assert second["price"] == 162.0


def test_price_view_out_of_range(vendor_client, product):
    url = f"/api/vendor/products/{product['_id']}/view"
    assert vendor_client.get(url, params={"style": 3}).status_code == 400
    assert vendor_client.get(url, params={"size": 9}).status_code == 400


def test_get_entire_product(vendor_client, product):
    resp = vendor_client.get(f"/api/vendor/products/{product['_id']}")
    assert resp.json()["product"]["name"] == product["name"]
    assert vendor_client.get(f"/api/vendor/products/{ObjectId()}").status_code == 404


def test_vendor_products_are_scoped_and_populated(vendor_client, db, other_vendor, catalog, product, cache_calls):
    login(vendor_client, other_vendor)
    vendor_client.post("/api/vendor/products", json=product_body(catalog, name="Rival Musk"))

    products = vendor_client.get("/api/vendor/products").json()["products"]
    assert [p["name"] for p in products] == ["Rival Musk"]
    assert products[0]["category"]["name"] == "Beauty"


def test_parents_and_categories(vendor_client, product, catalog):
    body = vendor_client.get("/api/vendor/products/parents").json()
    assert [p["name"] for p in body["parents"]] == [product["name"]]
    assert "description" not in body["parents"][0]
    assert {c["name"] for c in body["categories"]} == {"Beauty", "Fashion"}


def test_delete_product(vendor_client, db, product, images, cache_calls):
    subs = product["subProducts"]
    subs[0]["sold"] = 3
    db["products"].update_one({"_id": product["_id"]}, {"$set": {"featured": True, "subProducts": subs}})

    resp = vendor_client.delete(f"/api/vendor/products/{product['_id']}")
    assert resp.json() == {"success": True, "message": "Product Successfully deleted!"}
    assert db["products"].count_documents({}) == 0
    assert images["destroyed"] == ["products/amber"]
    assert cache_calls == ["featured_products", "top_selling_products", "new_arrival_products", "products"]


def test_delete_other_vendors_product(client, db, other_vendor, product, images, cache_calls):
    login(client, other_vendor)
    assert client.delete(f"/api/vendor/products/{product['_id']}").status_code == 404
    assert db["products"].count_documents({}) == 1


def test_upload_product_images(vendor_client, images):
    files = [
        ("files", ("front.jpg", b"front", "image/jpeg")),
        ("files", ("back.jpg", b"back", "image/jpeg")),
    ]
    resp = vendor_client.post("/api/vendor/uploads/images", files=files)
    assert resp.status_code == 201
    assert [i["public_id"] for i in resp.json()["images"]] == images["uploaded"]
    assert len(images["uploaded"]) == 2
