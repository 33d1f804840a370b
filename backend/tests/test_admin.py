from datetime import date, timedelta

from models.users import User


def test_list_users_filters_by_role(client, admin_headers, seller, other_seller, customer):
    res = client.get("/users", params={"role": "sales", "sortBy": "email", "sortOrder": "asc"}, headers=admin_headers)

    assert res.status_code == 200
    data = res.json()["data"]
    assert [u["email"] for u in data["data"]] == ["sally@example.com", "sam@example.com"]
    assert data["pagination"]["total"] == 2


def test_list_users_search(client, admin_headers, seller, customer):
    res = client.get("/users", params={"search": "UMA"}, headers=admin_headers)

    assert [u["name"] for u in res.json()["data"]["data"]] == ["Uma User"]


def test_non_admin_cannot_list_users(client, seller_headers):
    assert client.get("/users", headers=seller_headers).status_code == 403


def test_set_role(client, db_session, admin_headers, customer):
    res = client.put(f"/users/{customer.id}/role", json={"role": "sales"}, headers=admin_headers)

    assert res.status_code == 200
    assert res.json()["data"]["role"] == "sales"
    db_session.expire_all()
    assert customer.role == "sales"


def test_set_role_rejects_unknown_role(client, admin_headers, customer):
    res = client.put(f"/users/{customer.id}/role", json={"role": "superuser"}, headers=admin_headers)

    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


def test_admin_cannot_change_own_role(client, admin, admin_headers):
    res = client.put(f"/users/{admin.id}/role", json={"role": "user"}, headers=admin_headers)

    assert res.status_code == 400


def test_ban_and_unban(client, admin_headers, customer):
    res = client.put(f"/users/{customer.id}/ban", headers=admin_headers)
    assert res.json()["data"]["banned"] is True

    res = client.put(f"/users/{customer.id}/unban", headers=admin_headers)
    assert res.json()["data"]["banned"] is False


def test_unknown_user(client, admin_headers):
    assert client.put("/users/999/ban", headers=admin_headers).status_code == 404


def test_delete_user(client, db_session, admin_headers, customer):
    customer_id = customer.id

    res = client.delete(f"/users/{customer_id}", headers=admin_headers)

    assert res.status_code == 200
    db_session.expire_all()
    assert db_session.get(User, customer_id) is None


def test_delete_user_with_orders_rejected(client, admin_headers, seller, shop, stocked_product, place_order):
    product, _ = stocked_product
    place_order(shop, [(product, 1)], created_by=seller)

    res = client.delete(f"/users/{seller.id}", headers=admin_headers)

    assert res.status_code == 400


def test_logs_filters(client, admin, admin_headers, customer):
    client.put(f"/users/{customer.id}/ban", headers=admin_headers)
    client.put(f"/users/{customer.id}/unban", headers=admin_headers)

    res = client.get("/logs", params={"resource": "users"}, headers=admin_headers)
    entries = res.json()["data"]["data"]
    # Newest first
    assert [e["action"] for e in entries] == ["USER_UNBAN", "USER_BAN"]
    assert entries[0]["meta"] == {"id": customer.id}
    assert res.json()["data"]["pagination"]["limit"] == 20

    tomorrow = (date.today() + timedelta(days=2)).isoformat()
    res = client.get("/logs", params={"dateFrom": tomorrow}, headers=admin_headers)
    assert res.json()["data"]["data"] == []


def test_logs_require_permission(client, seller_headers):
    assert client.get("/logs", headers=seller_headers).status_code == 403
