"""Categories, shops and suppliers."""
from models.product import Product


# ---- categories ----

def test_category_crud(client, admin_headers):
    res = client.post("/categories", json={"name": "Snacks"}, headers=admin_headers)
    assert res.status_code == 201
    category_id = res.json()["data"]["id"]

    res = client.put(f"/categories/{category_id}", json={"name": "Salty snacks"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["name"] == "Salty snacks"

    res = client.get(f"/categories/{category_id}", headers=admin_headers)
    assert res.json()["data"]["productCount"] == 0

    assert client.delete(f"/categories/{category_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/categories/{category_id}", headers=admin_headers).status_code == 404


def test_category_name_conflict(client, admin_headers, category):
    res = client.post("/categories", json={"name": "Beverages"}, headers=admin_headers)

    assert res.status_code == 409


def test_category_list_with_counts(client, customer_headers, category, make_product):
    make_product("Water", category=category)
    make_product("Juice", category=category)

    res = client.get("/categories", params={"includeCount": "true"}, headers=customer_headers)

    assert res.status_code == 200
    rows = res.json()["data"]["data"]
    assert rows[0]["name"] == "Beverages"
    assert rows[0]["productCount"] == 2

    plain = client.get("/categories", headers=customer_headers).json()["data"]["data"]
    assert plain[0]["productCount"] is None


def test_deleting_category_keeps_products(client, db_session, admin_headers, category, make_product):
    product = make_product("Water", category=category)

    res = client.delete(f"/categories/{category.id}", headers=admin_headers)

    assert res.status_code == 200
    db_session.expire_all()
    assert db_session.get(Product, product.id).category_id is None


def test_customer_cannot_create_category(client, customer_headers):
    assert client.post("/categories", json={"name": "Nope"}, headers=customer_headers).status_code == 403


# ---- shops ----

def test_shop_crud(client, admin_headers):
    res = client.post("/shops", json={"name": "Airport"}, headers=admin_headers)
    assert res.status_code == 201
    shop_id = res.json()["data"]["id"]

    res = client.patch(f"/shops/{shop_id}", json={"name": "Airport T2"}, headers=admin_headers)
    assert res.json()["data"]["name"] == "Airport T2"

    res = client.get("/shops", params={"search": "t2"}, headers=admin_headers)
    assert [s["id"] for s in res.json()["data"]["data"]] == [shop_id]

    assert client.delete(f"/shops/{shop_id}", headers=admin_headers).status_code == 200


def test_shop_update_rejects_null_name(client, admin_headers, shop):
    res = client.put(f"/shops/{shop.id}", json={"name": None}, headers=admin_headers)

    assert res.status_code == 400


def test_shop_with_orders_cannot_be_deleted(client, admin_headers, shop, seller, stocked_product, place_order):
    product, _ = stocked_product
    place_order(shop, [(product, 1)], created_by=seller)

    res = client.delete(f"/shops/{shop.id}", headers=admin_headers)

    assert res.status_code == 400


def test_seller_reads_shops(client, seller_headers, shop):
    assert client.get(f"/shops/{shop.id}", headers=seller_headers).status_code == 200
    assert client.post("/shops", json={"name": "Nope"}, headers=seller_headers).status_code == 403


# ---- suppliers ----

def test_supplier_crud(client, admin_headers):
    payload = {"name": "FreshFoods Ltd", "email": "sales@freshfoods.example", "phone": "+1 555 0101"}
    res = client.post("/suppliers", json=payload, headers=admin_headers)
    assert res.status_code == 201
    supplier_id = res.json()["data"]["id"]

    res = client.patch(f"/suppliers/{supplier_id}", json={"address": "1 Market St"}, headers=admin_headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["address"] == "1 Market St"
    assert data["email"] == "sales@freshfoods.example"

    assert client.delete(f"/suppliers/{supplier_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/suppliers/{supplier_id}", headers=admin_headers).status_code == 404


def test_supplier_invalid_email(client, admin_headers):
    res = client.post("/suppliers", json={"name": "Bad", "email": "not-an-email"}, headers=admin_headers)

    assert res.status_code == 400
    assert res.json()["error"]["details"][0]["field"] == "email"


def test_supplier_search_by_phone(client, admin_headers, supplier):
    res = client.get("/suppliers", params={"search": "0100"}, headers=admin_headers)

    assert [s["name"] for s in res.json()["data"]["data"]] == ["Acme Wholesale"]


def test_supplier_with_stock_entries_cannot_be_deleted(client, admin_headers, supplier, stocked_product):
    res = client.delete(f"/suppliers/{supplier.id}", headers=admin_headers)

    assert res.status_code == 400
