"""API tests for the customer order endpoints."""
import httpx

from models import Order, OrderStatus
from conftest import DELIVERY, USER_HEADERS, OTHER_USER_HEADERS


def _create(client, items=None, headers=USER_HEADERS):
    body = dict(DELIVERY)
    if items is not None:
        body["items"] = [{"product_id": product_id, "quantity": quantity} for product_id, quantity in items]
    return client.post("/orders", json=body, headers=headers)


def _confirm(client, order_id, amount, payment_key="pk_test_1", headers=USER_HEADERS):
    return client.post("/orders/confirm", json={
        "payment_key": payment_key,
        "order_id": str(order_id),
        "amount": amount
    }, headers=headers)


def test_order_lifecycle_example(client, products):
    created = _create(client, items=[(1, 2)])
    assert created.status_code == 201
    order = created.json()["data"]
    assert order["total_price"] == 70000
    assert order["status"] == "PENDING"
    assert order["order_no"] == str(order["id"])
    assert order["items"][0]["price"] == 35000
    assert order["items"][0]["product"]["name"] == "Linen Shirt"

    confirmed = _confirm(client, order["id"], 70000)
    assert confirmed.status_code == 200
    assert confirmed.json() == {"message": "Order completed", "order_id": order["id"], "order_no": str(order["id"])}

    again = _confirm(client, order["id"], 70000)
    assert again.status_code == 400
    assert again.json()["code"] == "ORDER_CONFLICT"

    canceled = client.patch(f"/orders/{order['id']}/status", json={"status": "CANCELED"}, headers=USER_HEADERS)
    assert canceled.status_code == 200
    assert canceled.json()["data"]["status"] == "CANCELED"

    canceled_again = client.patch(f"/orders/{order['id']}/status", json={"status": "CANCELED"}, headers=USER_HEADERS)
    assert canceled_again.status_code == 400
    assert canceled_again.json()["code"] == "INVALID_INPUT"


def test_requires_bearer_token(client, products):
    assert client.get("/orders").status_code == 401
    assert client.get("/orders", headers={"Authorization": "Token abc"}).status_code == 401
    assert client.get("/orders", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_create_from_empty_cart_is_bad_request(client, products):
    response = _create(client)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_INPUT"


def test_create_with_unknown_product_is_bad_request(client, db, products):
    response = _create(client, items=[(1, 1), (99, 1)])

    assert response.status_code == 400
    assert db.query(Order).count() == 0


def test_create_validates_payload(client, products):
    assert _create(client, items=[(1, 0)]).status_code == 422
    assert client.post("/orders", json={"items": [{"product_id": 1, "quantity": 1}]}, headers=USER_HEADERS).status_code == 422


def test_create_from_cart(client, products, fill_cart):
    fill_cart(1, (2, 1), (3, 2))

    response = _create(client)

    assert response.status_code == 201
    assert response.json()["data"]["total_price"] == 89000 + 2 * 19000


def test_detail_includes_items_and_payment(client, products):
    order = _create(client, items=[(1, 1), (3, 2)]).json()["data"]
    assert order["payment"] is None
    _confirm(client, order["id"], order["total_price"])

    response = client.get(f"/orders/{order['id']}", headers=USER_HEADERS)

    assert response.status_code == 200
    detail = response.json()["data"]
    assert detail["status"] == "PAID"
    assert [item["product_id"] for item in detail["items"]] == [1, 3]
    assert detail["payment"]["amount"] == 35000 + 2 * 19000
    assert detail["payment"]["method"] == "CARD"
    assert detail["recipient_name"] == DELIVERY["recipient_name"]


def test_detail_of_other_users_order_is_forbidden(client, products):
    order = _create(client, items=[(1, 1)]).json()["data"]

    assert client.get(f"/orders/{order['id']}", headers=OTHER_USER_HEADERS).status_code == 403
    assert client.get("/orders/9999", headers=USER_HEADERS).status_code == 404


def test_list_is_paginated_newest_first(client, products):
    first = _create(client, items=[(1, 1)]).json()["data"]
    second = _create(client, items=[(2, 1), (3, 1)]).json()["data"]
    third = _create(client, items=[(3, 1), (1, 1), (2, 1)]).json()["data"]
    _create(client, items=[(1, 1)], headers=OTHER_USER_HEADERS)

    page_one = client.get("/orders", params={"page": 1, "limit": 2}, headers=USER_HEADERS).json()
    page_two = client.get("/orders", params={"page": 2, "limit": 2}, headers=USER_HEADERS).json()

    assert page_one["pagination"] == {"total_items": 3, "total_pages": 2, "current_page": 1, "limit": 2}
    assert [order["id"] for order in page_one["data"]] == [third["id"], second["id"]]
    assert [order["id"] for order in page_two["data"]] == [first["id"]]
    assert page_one["data"][0]["representative_product_name"] == "Canvas Tote and 2 more"
    assert page_one["data"][0]["item_count"] == 3
    assert page_two["data"][0]["representative_product_name"] == "Linen Shirt"


def test_list_rejects_bad_page_window(client):
    assert client.get("/orders", params={"page": 0}, headers=USER_HEADERS).status_code == 422
    assert client.get("/orders", params={"limit": 1000}, headers=USER_HEADERS).status_code == 422


def test_confirm_amount_mismatch(client, products):
    order = _create(client, items=[(1, 2)]).json()["data"]

    response = _confirm(client, order["id"], 1000)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_INPUT"


def test_confirm_other_users_order_is_forbidden(client, products):
    order = _create(client, items=[(1, 2)]).json()["data"]

    assert _confirm(client, order["id"], 70000, headers=OTHER_USER_HEADERS).status_code == 403
    assert _confirm(client, 9999, 70000).status_code == 404


def test_confirm_gateway_rejection(client, products, gateway_stub):
    order = _create(client, items=[(1, 2)]).json()["data"]
    gateway_stub.reject(message="Card limit exceeded")

    response = _confirm(client, order["id"], 70000)

    assert response.status_code == 400
    assert response.json()["code"] == "PAYMENT_REJECTED"
    assert "Card limit exceeded" in response.json()["detail"]


def test_confirm_gateway_timeout(client, products, gateway_stub):
    order = _create(client, items=[(1, 2)]).json()["data"]
    gateway_stub.raise_error(httpx.ReadTimeout)

    response = _confirm(client, order["id"], 70000)

    assert response.status_code == 503
    assert response.json()["code"] == "GATEWAY_UNAVAILABLE"


def test_return_request_requires_delivery(client, db, products):
    order = _create(client, items=[(1, 1)]).json()["data"]

    early = client.patch(f"/orders/{order['id']}/status", json={"status": "RETURN_REQUESTED"}, headers=USER_HEADERS)
    assert early.status_code == 400

    db.query(Order).filter(Order.id == order["id"]).update({"status": OrderStatus.DELIVERED})
    db.commit()

    response = client.patch(
        f"/orders/{order['id']}/status",
        json={"status": "RETURN_REQUESTED", "reason": "Wrong size"},
        headers=USER_HEADERS
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "RETURN_REQUESTED"
    assert response.json()["data"]["status_reason"] == "Wrong size"


def test_customer_cannot_mark_order_shipped(client, products):
    order = _create(client, items=[(1, 1)]).json()["data"]

    response = client.patch(f"/orders/{order['id']}/status", json={"status": "SHIPPED"}, headers=USER_HEADERS)

    assert response.status_code == 400


def test_status_change_on_other_users_order_is_forbidden(client, products):
    order = _create(client, items=[(1, 1)]).json()["data"]

    response = client.patch(f"/orders/{order['id']}/status", json={"status": "CANCELED"}, headers=OTHER_USER_HEADERS)

    assert response.status_code == 403


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
