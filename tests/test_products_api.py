import pytest

from storepos.models.shop_models import Brand, Category


@pytest.fixture
def labels(db):
    wood, tiles = Category(name="Wood"), Category(name="Tiles")
    acme, timberline = Brand(name="Acme"), Brand(name="Timberline")
    db.add_all([wood, tiles, acme, timberline])
    db.commit()
    return {"wood": wood.id, "tiles": tiles.id, "acme": acme.id, "timberline": timberline.id}


def test_admin_manages_catalog(client, admin_auth, labels):
    r = client.post("/products", json={
        "name": "Floor Tile",
        "price": 35.5,
        "discountPrice": 30,
        "stock": 20,
        "categoryId": labels["tiles"],
        "brandId": labels["acme"],
    }, headers=admin_auth)
    assert r.status_code == 201, r.text
    product = r.json()["data"]["product"]
    assert product["sold"] == 0
    assert product["category"] == "Tiles"
    assert product["brand"] == "Acme"

    r = client.put(f"/products/{product['id']}", json={"price": 32, "discountPrice": None}, headers=admin_auth)
    assert r.json()["data"]["product"]["price"] == 32
    assert r.json()["data"]["product"]["discountPrice"] is None
    assert r.json()["data"]["product"]["name"] == "Floor Tile"

    assert client.delete(f"/products/{product['id']}", headers=admin_auth).status_code == 200
    assert client.get(f"/products/{product['id']}", headers=admin_auth).status_code == 404


def test_discount_price_cannot_exceed_price(client, admin_auth, make_product):
    r = client.post("/products", json={"name": "Tile", "price": 10, "discountPrice": 12}, headers=admin_auth)
    assert r.status_code == 422

    p = make_product(price=10.0)
    r = client.put(f"/products/{p.id}", json={"discountPrice": 11}, headers=admin_auth)
    assert r.status_code == 400


def test_unknown_label_is_rejected(client, admin_auth):
    r = client.post("/products", json={"name": "Tile", "price": 10, "brandId": "nope"}, headers=admin_auth)
    assert r.status_code == 400
    assert r.json()["message"] == "Brand not found"


def test_cashier_cannot_edit_catalog(client, user_auth, make_product):
    p = make_product()
    assert client.post("/products", json={"name": "X", "price": 1}, headers=user_auth).status_code == 403
    assert client.delete(f"/products/{p.id}", headers=user_auth).status_code == 403


def test_list_filters(client, user_auth, make_product, labels):
    make_product(name="Oak Plank", category_id=labels["wood"], brand_id=labels["acme"])
    make_product(name="Pine Plank", category_id=labels["wood"], brand_id=labels["timberline"], stock=0)
    make_product(name="Grout", category_id=labels["tiles"], brand_id=labels["acme"])

    def names(**params):
        r = client.get("/products", params=params, headers=user_auth)
        return [p["name"] for p in r.json()["data"]["products"]]

    assert names() == ["Grout", "Oak Plank", "Pine Plank"]
    assert names(categoryId=labels["wood"]) == ["Oak Plank", "Pine Plank"]
    assert names(brandId=labels["acme"]) == ["Grout", "Oak Plank"]
    assert names(inStock="true") == ["Grout", "Oak Plank"]
    assert names(inStock="false") == ["Pine Plank"]
    assert names(search="plank") == ["Oak Plank", "Pine Plank"]
    assert names(search="_") == []


def test_list_requires_login(client):
    assert client.get("/products").status_code == 401
