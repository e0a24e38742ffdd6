"""API tests for the administrative order endpoints."""
from conftest import DELIVERY, USER_HEADERS, OTHER_USER_HEADERS, ADMIN_HEADERS


def _create(client, items, headers=USER_HEADERS, **delivery):
    body = {**DELIVERY, **delivery}
    body["items"] = [{"product_id": product_id, "quantity": quantity} for product_id, quantity in items]
    return client.post("/orders", json=body, headers=headers).json()["data"]


def test_admin_endpoints_require_admin(client, products):
    order = _create(client, [(1, 1)])

    assert client.get("/admin/orders", headers=USER_HEADERS).status_code == 403
    assert client.get(f"/admin/orders/{order['id']}", headers=USER_HEADERS).status_code == 403
    response = client.patch(f"/admin/orders/{order['id']}/status", json={"status": "SHIPPED"}, headers=USER_HEADERS)
    assert response.status_code == 403
    assert client.get("/admin/orders").status_code == 401


def test_admin_lists_all_orders_with_purchaser(client, products):
    first = _create(client, [(1, 1)])
    second = _create(client, [(2, 1), (3, 1)], headers=OTHER_USER_HEADERS, recipient_name="Kim Cheolsu")

    response = client.get("/admin/orders", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total_items"] == 2
    assert [order["id"] for order in body["data"]] == [second["id"], first["id"]]
    assert body["data"][0]["user_id"] == 2
    assert body["data"][0]["recipient_name"] == "Kim Cheolsu"
    assert body["data"][0]["items_summary"] == "Denim Jacket and 1 more"
    assert body["data"][1]["user_id"] == 1


def test_admin_filters_by_status_and_search(client, products):
    first = _create(client, [(1, 1)])
    second = _create(client, [(2, 1)], recipient_name="Kim Cheolsu")
    client.patch(f"/admin/orders/{first['id']}/status", json={"status": "PAID"}, headers=ADMIN_HEADERS)

    paid = client.get("/admin/orders", params={"status": "PAID"}, headers=ADMIN_HEADERS).json()
    by_name = client.get("/admin/orders", params={"search": "Cheol"}, headers=ADMIN_HEADERS).json()
    by_number = client.get("/admin/orders", params={"search": str(first["id"])}, headers=ADMIN_HEADERS).json()

    assert [order["id"] for order in paid["data"]] == [first["id"]]
    assert [order["id"] for order in by_name["data"]] == [second["id"]]
    assert [order["id"] for order in by_number["data"]] == [first["id"]]


def test_admin_detail(client, products):
    order = _create(client, [(1, 2)])

    response = client.get(f"/admin/orders/{order['id']}", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert response.json()["data"]["total_price"] == 70000
    assert response.json()["data"]["user_id"] == 1
    assert client.get("/admin/orders/9999", headers=ADMIN_HEADERS).status_code == 404


def test_admin_ships_with_tracking(client, products):
    order = _create(client, [(1, 1)])

    response = client.patch(
        f"/admin/orders/{order['id']}/status",
        json={"status": "SHIPPED", "tracking_number": "1234567890", "carrier": "CJ Logistics"},
        headers=ADMIN_HEADERS
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "SHIPPED"
    assert data["tracking_number"] == "1234567890"
    assert data["carrier"] == "CJ Logistics"

    delivered = client.patch(f"/admin/orders/{order['id']}/status", json={"status": "DELIVERED"}, headers=ADMIN_HEADERS)
    assert delivered.json()["data"]["tracking_number"] == "1234567890"


def test_admin_may_move_order_backwards(client, products):
    order = _create(client, [(1, 1)])
    client.patch(f"/admin/orders/{order['id']}/status", json={"status": "CANCELED"}, headers=ADMIN_HEADERS)

    response = client.patch(f"/admin/orders/{order['id']}/status", json={"status": "PENDING"}, headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "PENDING"


def test_admin_update_unknown_order(client):
    response = client.patch("/admin/orders/9999/status", json={"status": "SHIPPED"}, headers=ADMIN_HEADERS)

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_admin_rejects_unknown_status(client, products):
    order = _create(client, [(1, 1)])

    response = client.patch(f"/admin/orders/{order['id']}/status", json={"status": "LOST"}, headers=ADMIN_HEADERS)

    assert response.status_code == 422
