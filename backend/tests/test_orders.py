import pytest

from models.order import Order, OrderItemStockEntry, OrderStatus
from utils.permissions import ROLE_PERMISSIONS, RoleAccessControl


def _accept_payload(order_json, lot_id):
    return {
        "items": [
            {"orderItemId": item["id"], "allocations": [{"stockEntryId": lot_id, "quantity": item["quantity"]}]}
            for item in order_json["items"]
        ]
    }


def _create(client, headers, shop, product, quantity=10, **extra):
    line = {"productId": product.id, "quantity": quantity, **extra}
    return client.post("/orders", json={"shopId": shop.id, "items": [line]}, headers=headers)


def test_create_order_reserves_stock(client, db_session, seller, seller_headers, shop, stocked_product):
    product, _ = stocked_product

    res = _create(client, seller_headers, shop, product)

    assert res.status_code == 201
    body = res.json()
    assert body["error"] is None
    order = body["data"]
    assert order["status"] == "PENDING"
    assert order["totalAmount"] == 8000
    assert order["createdBy"] == seller.id
    assert order["shop"] == {"id": shop.id, "name": "Downtown"}
    assert order["items"][0]["price"] == 800
    assert order["items"][0]["totalCost"] is None

    db_session.expire_all()
    assert product.stock == 90
    assert product.reserved_stock == 10


def test_create_order_price_override(client, seller_headers, shop, stocked_product):
    product, _ = stocked_product

    res = _create(client, seller_headers, shop, product, quantity=2, price=750)

    assert res.status_code == 201
    assert res.json()["data"]["totalAmount"] == 1500


def test_create_order_insufficient_stock(client, db_session, seller_headers, shop, stocked_product):
    product, _ = stocked_product

    res = _create(client, seller_headers, shop, product, quantity=101)

    assert res.status_code == 400
    assert res.json()["error"]["code"] == "BAD_REQUEST"
    db_session.expire_all()
    assert product.stock == 100
    assert product.reserved_stock == 0
    assert db_session.query(Order).count() == 0


def test_create_order_checks_combined_quantity_per_product(client, seller_headers, shop, stocked_product):
    product, _ = stocked_product
    lines = [{"productId": product.id, "quantity": 60}, {"productId": product.id, "quantity": 60}]

    res = client.post("/orders", json={"shopId": shop.id, "items": lines}, headers=seller_headers)

    assert res.status_code == 400


def test_create_order_unknown_shop_or_product(client, seller_headers, shop, stocked_product):
    product, _ = stocked_product

    res = client.post(
        "/orders", json={"shopId": 999, "items": [{"productId": product.id, "quantity": 1}]}, headers=seller_headers
    )
    assert res.status_code == 404

    res = client.post("/orders", json={"shopId": shop.id, "items": [{"productId": 999, "quantity": 1}]}, headers=seller_headers)
    assert res.status_code == 404


def test_create_order_validation(client, seller_headers, shop, stocked_product):
    product, _ = stocked_product

    res = client.post("/orders", json={"shopId": shop.id, "items": []}, headers=seller_headers)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"

    res = _create(client, seller_headers, shop, product, quantity=0)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


def test_customer_cannot_create_orders(client, customer_headers, shop, stocked_product):
    product, _ = stocked_product

    res = _create(client, customer_headers, shop, product)

    assert res.status_code == 403
    assert res.json()["error"]["code"] == "FORBIDDEN"


def test_accept_computes_margins(client, db_session, seller_headers, admin_headers, shop, stocked_product):
    product, lot = stocked_product
    order = _create(client, seller_headers, shop, product).json()["data"]

    res = client.put(f"/orders/{order['id']}/accept", json=_accept_payload(order, lot.id), headers=admin_headers)

    assert res.status_code == 200
    accepted = res.json()["data"]
    assert accepted["status"] == "PROCESSING"
    item = accepted["items"][0]
    assert item["totalCost"] == 5000
    assert item["totalMargin"] == 3000
    assert item["avgMarginRate"] == 37.5
    allocation = item["allocations"][0]
    assert allocation["stockEntryId"] == lot.id
    assert allocation["unitCost"] == 500
    assert allocation["unitPrice"] == 800
    assert allocation["marginAmount"] == 3000
    assert allocation["marginRate"] == 37.5

    db_session.expire_all()
    assert product.stock == 90
    assert product.reserved_stock == 0
    assert lot.remaining_qty == 90


def test_accept_weighted_average_over_two_lots(
    client, db_session, seller_headers, admin_headers, shop, make_product, add_lot
):
    product = make_product("Chocolate Bar", price=1000)
    cheap = add_lot(product, 10, 500)
    dear = add_lot(product, 10, 900)
    order = _create(client, seller_headers, shop, product, quantity=4).json()["data"]
    payload = {
        "items": [
            {
                "orderItemId": order["items"][0]["id"],
                "allocations": [{"stockEntryId": cheap.id, "quantity": 3}, {"stockEntryId": dear.id, "quantity": 1}],
            }
        ]
    }

    res = client.put(f"/orders/{order['id']}/accept", json=payload, headers=admin_headers)

    assert res.status_code == 200
    item = res.json()["data"]["items"][0]
    assert item["totalCost"] == 3 * 500 + 900
    assert item["totalMargin"] == 3 * 500 + 100
    # (50% * 3 + 10% * 1) / 4
    assert item["avgMarginRate"] == pytest.approx(40.0)


def test_accept_rejects_wrong_allocation_totals(client, db_session, seller_headers, admin_headers, shop, stocked_product):
    product, lot = stocked_product
    order = _create(client, seller_headers, shop, product).json()["data"]
    item_id = order["items"][0]["id"]

    for quantity in (9, 11):
        payload = {"items": [{"orderItemId": item_id, "allocations": [{"stockEntryId": lot.id, "quantity": quantity}]}]}
        res = client.put(f"/orders/{order['id']}/accept", json=payload, headers=admin_headers)
        assert res.status_code == 400
        assert res.json()["error"]["code"] == "BAD_REQUEST"

    db_session.expire_all()
    assert db_session.get(Order, order["id"]).status == OrderStatus.PENDING
    assert lot.remaining_qty == 100
    assert db_session.query(OrderItemStockEntry).count() == 0


def test_accept_rejects_lot_of_another_product(
    client, seller_headers, admin_headers, shop, stocked_product, make_product, add_lot
):
    product, _ = stocked_product
    other = make_product("Mineral Water", price=300)
    foreign_lot = add_lot(other, 50, 100)
    order = _create(client, seller_headers, shop, product).json()["data"]

    res = client.put(f"/orders/{order['id']}/accept", json=_accept_payload(order, foreign_lot.id), headers=admin_headers)

    assert res.status_code == 400


def test_accept_rejects_lot_without_enough_units(
    client, seller_headers, admin_headers, shop, make_product, add_lot
):
    product = make_product("Paper Towels", price=1500)
    small = add_lot(product, 5, 1000)
    add_lot(product, 20, 1000)
    order = _create(client, seller_headers, shop, product, quantity=8).json()["data"]

    res = client.put(f"/orders/{order['id']}/accept", json=_accept_payload(order, small.id), headers=admin_headers)

    assert res.status_code == 400


def test_accept_only_pending(client, seller_headers, admin_headers, shop, stocked_product):
    product, lot = stocked_product
    order = _create(client, seller_headers, shop, product).json()["data"]
    payload = _accept_payload(order, lot.id)
    assert client.put(f"/orders/{order['id']}/accept", json=payload, headers=admin_headers).status_code == 200

    res = client.put(f"/orders/{order['id']}/accept", json=payload, headers=admin_headers)

    assert res.status_code == 400


def test_cancel_pending_releases_reservation(client, db_session, seller_headers, admin_headers, shop, stocked_product):
    product, lot = stocked_product
    order = _create(client, seller_headers, shop, product).json()["data"]

    res = client.put(f"/orders/{order['id']}/cancel", headers=admin_headers)

    assert res.status_code == 200
    assert res.json()["data"]["status"] == "CANCELLED"
    db_session.expire_all()
    assert product.stock == 100
    assert product.reserved_stock == 0
    assert lot.remaining_qty == 100


def test_cancel_processing_restores_stock_and_lots(
    client, db_session, seller_headers, admin_headers, shop, stocked_product
):
    product, lot = stocked_product
    order = _create(client, seller_headers, shop, product).json()["data"]
    client.put(f"/orders/{order['id']}/accept", json=_accept_payload(order, lot.id), headers=admin_headers)

    res = client.put(f"/orders/{order['id']}/cancel", headers=admin_headers)

    assert res.status_code == 200
    cancelled = res.json()["data"]
    assert cancelled["status"] == "CANCELLED"
    # Allocation history survives cancellation
    assert len(cancelled["items"][0]["allocations"]) == 1
    db_session.expire_all()
    assert product.stock == 100
    assert product.reserved_stock == 0
    assert lot.remaining_qty == 100


def test_complete_and_terminal_states(client, seller_headers, admin_headers, shop, stocked_product):
    product, lot = stocked_product
    order = _create(client, seller_headers, shop, product).json()["data"]

    # PENDING cannot jump straight to COMPLETED
    assert client.put(f"/orders/{order['id']}/complete", headers=admin_headers).status_code == 400

    client.put(f"/orders/{order['id']}/accept", json=_accept_payload(order, lot.id), headers=admin_headers)
    res = client.put(f"/orders/{order['id']}/complete", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "COMPLETED"

    assert client.put(f"/orders/{order['id']}/cancel", headers=admin_headers).status_code == 400
    assert client.put(f"/orders/{order['id']}/complete", headers=admin_headers).status_code == 400


def test_transition_unknown_order(client, admin_headers):
    assert client.put("/orders/999/cancel", headers=admin_headers).status_code == 404
    assert client.put("/orders/999/complete", headers=admin_headers).status_code == 404
    payload = {"items": [{"orderItemId": 1, "allocations": [{"stockEntryId": 1, "quantity": 1}]}]}
    assert client.put("/orders/999/accept", json=payload, headers=admin_headers).status_code == 404


def test_seller_cannot_change_status(client, seller_headers, shop, stocked_product):
    product, _ = stocked_product
    order = _create(client, seller_headers, shop, product).json()["data"]

    res = client.put(f"/orders/{order['id']}/cancel", headers=seller_headers)

    assert res.status_code == 403


def test_delete_pending_restores_stock(client, db_session, seller_headers, admin_headers, shop, stocked_product):
    product, _ = stocked_product
    order = _create(client, seller_headers, shop, product).json()["data"]

    res = client.delete(f"/orders/{order['id']}", headers=admin_headers)

    assert res.status_code == 200
    assert res.json()["data"] is None
    db_session.expire_all()
    assert db_session.get(Order, order["id"]) is None
    assert product.stock == 100
    assert product.reserved_stock == 0


def test_delete_cancelled_does_not_restore_twice(
    client, db_session, seller_headers, admin_headers, shop, stocked_product
):
    product, lot = stocked_product
    order = _create(client, seller_headers, shop, product).json()["data"]
    client.put(f"/orders/{order['id']}/accept", json=_accept_payload(order, lot.id), headers=admin_headers)
    client.put(f"/orders/{order['id']}/cancel", headers=admin_headers)

    res = client.delete(f"/orders/{order['id']}", headers=admin_headers)

    assert res.status_code == 200
    db_session.expire_all()
    assert product.stock == 100
    assert lot.remaining_qty == 100
    assert db_session.query(OrderItemStockEntry).count() == 0


def test_delete_processing_rejected(client, seller_headers, admin_headers, shop, stocked_product):
    product, lot = stocked_product
    order = _create(client, seller_headers, shop, product).json()["data"]
    client.put(f"/orders/{order['id']}/accept", json=_accept_payload(order, lot.id), headers=admin_headers)

    res = client.delete(f"/orders/{order['id']}", headers=admin_headers)

    assert res.status_code == 400


def test_delete_someone_elses_order_forbidden(
    app, client, seller_headers, other_seller, headers_for, shop, stocked_product
):
    # Grant sales the delete action so the ownership rule is what decides
    grants = dict(ROLE_PERMISSIONS)
    grants["sales"] = {**ROLE_PERMISSIONS["sales"], "order": ("create", "read", "delete")}
    app.state.access_control = RoleAccessControl(grants)
    product, _ = stocked_product
    order = _create(client, seller_headers, shop, product).json()["data"]

    res = client.delete(f"/orders/{order['id']}", headers=headers_for(other_seller))
    assert res.status_code == 403

    res = client.delete(f"/orders/{order['id']}", headers=seller_headers)
    assert res.status_code == 200


def test_get_order_can_delete_flag(client, seller_headers, admin_headers, shop, stocked_product):
    product, lot = stocked_product
    order = _create(client, seller_headers, shop, product).json()["data"]

    detail = client.get(f"/orders/{order['id']}", headers=seller_headers).json()["data"]
    assert detail["canDelete"] is True
    assert detail["creator"]["email"] == "sally@example.com"
    assert detail["items"][0]["product"]["slug"] == "orange-juice-1l"

    client.put(f"/orders/{order['id']}/accept", json=_accept_payload(order, lot.id), headers=admin_headers)
    detail = client.get(f"/orders/{order['id']}", headers=admin_headers).json()["data"]
    assert detail["canDelete"] is False


def test_get_order_not_found(client, admin_headers):
    res = client.get("/orders/12345", headers=admin_headers)

    assert res.status_code == 404
    assert res.json() == {"data": None, "message": "Order not found", "error": {"code": "NOT_FOUND"}}


def test_list_orders_filters_and_pagination(client, seller_headers, admin_headers, shop, stocked_product):
    product, lot = stocked_product
    ids = [_create(client, seller_headers, shop, product, quantity=1).json()["data"]["id"] for _ in range(3)]
    first = client.get(f"/orders/{ids[0]}", headers=admin_headers).json()["data"]
    client.put(f"/orders/{ids[0]}/accept", json=_accept_payload(first, lot.id), headers=admin_headers)

    res = client.get("/orders", params={"status": "PENDING", "limit": 1, "sortBy": "id", "sortOrder": "asc"}, headers=admin_headers)

    assert res.status_code == 200
    data = res.json()["data"]
    assert [o["id"] for o in data["data"]] == [ids[1]]
    assert data["pagination"] == {
        "page": 0,
        "limit": 1,
        "total": 2,
        "totalPages": 2,
        "hasNext": True,
        "hasPrev": False,
    }


def test_list_orders_rejects_unknown_status(client, admin_headers):
    res = client.get("/orders", params={"status": "SHIPPED"}, headers=admin_headers)

    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


def test_order_mutations_are_audited(client, admin_headers, seller_headers, shop, stocked_product):
    product, _ = stocked_product
    order = _create(client, seller_headers, shop, product).json()["data"]
    client.put(f"/orders/{order['id']}/complete", headers=admin_headers)

    logs = client.get("/logs", params={"resource": "orders"}, headers=admin_headers).json()["data"]["data"]

    actions = {(entry["action"], entry["status"]) for entry in logs}
    assert ("ORDER_CREATE", "SUCCESS") in actions
    assert ("ORDER_COMPLETE", "FAIL") in actions


def test_failed_create_is_audited(client, admin_headers, seller_headers, shop, stocked_product):
    product, _ = stocked_product

    res = _create(client, seller_headers, shop, product, quantity=101)
    assert res.status_code == 400

    logs = client.get("/logs", params={"action": "ORDER_CREATE"}, headers=admin_headers).json()["data"]["data"]

    assert len(logs) == 1
    assert logs[0]["status"] == "FAIL"
    assert logs[0]["meta"]["order_id"] is None
    assert "insufficient stock" in logs[0]["meta"]["reason"].lower()
