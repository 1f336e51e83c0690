import threading
from datetime import timedelta

from fastapi import HTTPException

from conftest import run_together
from storepos.core.security import utcnow
from storepos.models.auth_models import User
from storepos.models.shop_models import Product, PromoCode, Sale
from storepos.models.shop_schemas import SaleCreate
from storepos.services import promo_engine, sales_service


def test_sale_prices_cart_and_updates_stock(client, user_auth, make_product, db):
    tile = make_product(name="Wall Tile", price=50.0, stock=10)
    grout = make_product(name="Grout", price=12.5, stock=4)

    r = client.post("/sales", json={
        "items": [
            {"productId": tile.id, "quantity": 2},
            {"productId": grout.id, "quantity": 4},
        ],
        "paymentMethod": "cash",
    }, headers=user_auth)
    assert r.status_code == 201, r.text
    sale = r.json()["data"]["sale"]
    assert sale["subtotal"] == 150.0
    assert sale["tax"] == 18.0
    assert sale["discount"] == 0
    assert sale["total"] == 168.0

    db.expire_all()
    assert db.get(Product, tile.id).stock == 8
    assert db.get(Product, tile.id).sold == 2
    assert db.get(Product, grout.id).stock == 0


def test_sale_redeems_promo(client, user_auth, make_product, make_promo, db):
    p = make_product(price=200.0)
    make_promo(code="SAVE20", usage_limit=1)

    r = client.post("/sales", json={
        "items": [{"productId": p.id, "quantity": 1}],
        "paymentMethod": "gcash",
        "promoCode": "save20",
    }, headers=user_auth)
    assert r.status_code == 201, r.text
    sale = r.json()["data"]["sale"]
    assert sale["discount"] == 40.0
    assert sale["promoCode"] == "SAVE20"
    assert sale["total"] == 184.0

    db.expire_all()
    assert db.query(PromoCode).filter_by(code="SAVE20").one().used_count == 1


def test_rejected_promo_aborts_sale(client, user_auth, make_product, make_promo, db):
    p = make_product(stock=5)
    make_promo(code="DONE", usage_limit=1, used_count=1)

    r = client.post("/sales", json={
        "items": [{"productId": p.id, "quantity": 1}],
        "paymentMethod": "cash",
        "promoCode": "DONE",
    }, headers=user_auth)
    assert r.status_code == 400
    assert r.json()["reason"] == "exhausted"

    db.expire_all()
    assert db.get(Product, p.id).stock == 5
    assert db.query(Sale).count() == 0


def test_insufficient_stock(client, user_auth, make_product, make_promo, db):
    p = make_product(stock=1)
    make_promo(code="ONCE", usage_limit=1)

    r = client.post("/sales", json={
        "items": [{"productId": p.id, "quantity": 2}],
        "paymentMethod": "cash",
        "promoCode": "ONCE",
    }, headers=user_auth)
    assert r.status_code == 400

    db.expire_all()
    assert db.query(PromoCode).filter_by(code="ONCE").one().used_count == 0


def test_unknown_product(client, user_auth):
    r = client.post("/sales", json={
        "items": [{"productId": "nope", "quantity": 1}],
        "paymentMethod": "cash",
    }, headers=user_auth)
    assert r.status_code == 404


def test_sales_are_scoped_to_cashier(client, user_auth, admin_auth, make_product):
    p = make_product(stock=10)
    client.post("/sales", json={"items": [{"productId": p.id, "quantity": 1}], "paymentMethod": "cash"},
                headers=user_auth)
    client.post("/sales", json={"items": [{"productId": p.id, "quantity": 1}], "paymentMethod": "maya"},
                headers=admin_auth)

    assert client.get("/sales", headers=user_auth).json()["data"]["total"] == 1
    assert client.get("/sales", headers=admin_auth).json()["data"]["total"] == 2

    summary = client.get("/sales/today/summary", headers=admin_auth).json()["data"]
    assert summary["count"] == 2
    assert summary["revenue"] == 224.0


def test_get_sale_hides_other_cashiers(client, user_auth, admin_auth, make_product):
    p = make_product()
    r = client.post("/sales", json={"items": [{"productId": p.id, "quantity": 1}], "paymentMethod": "cash"},
                    headers=admin_auth)
    sale_id = r.json()["data"]["sale"]["id"]

    assert client.get(f"/sales/{sale_id}", headers=admin_auth).status_code == 200
    assert client.get(f"/sales/{sale_id}", headers=user_auth).status_code == 404


def test_discount_price_is_charged(client, user_auth, make_product):
    p = make_product(price=100.0, discount_price=80.0)

    r = client.post("/sales", json={"items": [{"productId": p.id, "quantity": 2}], "paymentMethod": "cash"},
                    headers=user_auth)
    sale = r.json()["data"]["sale"]
    assert sale["items"][0]["price"] == 80.0
    assert sale["subtotal"] == 160.0


def test_concurrent_checkouts_cannot_oversell(file_sessions, monkeypatch):
    now = utcnow()
    setup = file_sessions()
    cashier = User(email="cashier@example.com", name="cashier")
    product = Product(name="Last Tile", price=10.0, stock=1)
    setup.add_all([
        cashier,
        product,
        PromoCode(code="ANY", discount_type="fixed", discount_value=1, is_active=True,
                  start_date=now - timedelta(days=1), end_date=now + timedelta(days=1), used_count=0),
    ])
    setup.commit()
    cashier_id, product_id = cashier.id, product.id
    setup.close()

    # both checkouts have passed the stock read before either writes
    barrier = threading.Barrier(2, timeout=5)
    real_redeem = promo_engine.redeem

    def redeem_together(db, code, now=None):
        barrier.wait()
        return real_redeem(db, code, now)

    monkeypatch.setattr(promo_engine, "redeem", redeem_together)

    outcomes = []

    def checkout():
        db = file_sessions()
        try:
            body = SaleCreate(items=[{"productId": product_id, "quantity": 1}], paymentMethod="cash", promoCode="ANY")
            sales_service.create_sale(db, body, db.get(User, cashier_id))
            outcomes.append("sold")
        except HTTPException as e:
            outcomes.append(e.status_code)
        finally:
            db.close()

    run_together(checkout, checkout)

    assert sorted(outcomes, key=str) == [400, "sold"]

    check = file_sessions()
    assert check.query(Sale).count() == 1
    stocked = check.get(Product, product_id)
    assert (stocked.stock, stocked.sold) == (0, 1)
    assert check.query(PromoCode).filter_by(code="ANY").one().used_count == 1
    check.close()
