"""Shared fixtures for the order service test suite."""
import json
import os

os.environ.setdefault("OTEL_EXPORT_ENABLED", "false")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from models import Base, Cart, CartItem, Product
from schemas import CreateOrderRequest
from services.catalog_service import CatalogService
from services.cart_service import CartService
from services.order_service import OrderService
from services.order_status import OrderStatusMachine
from services.admin_order_service import AdminOrderService
from services.payment_gateway import PaymentGatewayClient
from services.reconciliation import ReconciliationQueue

USER_ID = 1
OTHER_USER_ID = 2
USER_HEADERS = {"Authorization": "Bearer user-token-123"}
OTHER_USER_HEADERS = {"Authorization": "Bearer user-token-456"}
ADMIN_HEADERS = {"Authorization": "Bearer admin-token-789"}

DELIVERY = {
    "recipient_name": "Hong Gildong",
    "recipient_phone": "010-1234-5678",
    "zip_code": "12345",
    "address1": "Gangnam-gu, Seoul",
    "address2": "101-101",
}


class FakeRedis:
    """List-only stand-in for the Redis client."""

    def __init__(self):
        self.lists = {}

    def rpush(self, key, *values):
        self.lists.setdefault(key, []).extend(values)
        return len(self.lists[key])

    def entries(self, key="payments:reconciliation"):
        return [json.loads(value) for value in self.lists.get(key, [])]


class GatewayStub:
    """Scripted payment provider served through httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.on_request = None
        self.approve()

    def approve(self, method="CARD", approved_at="2024-02-13T12:18:14+09:00"):
        def respond(request):
            body = json.loads(request.content)
            return httpx.Response(200, json={
                "paymentKey": body["paymentKey"],
                "orderId": body["orderId"],
                "method": method,
                "totalAmount": body["amount"],
                "approvedAt": approved_at,
            })
        self.responder = respond

    def reject(self, status_code=400, code="REJECT_CARD_COMPANY", message="Card was declined"):
        self.responder = lambda request: httpx.Response(
            status_code, json={"code": code, "message": message}
        )

    def respond_with(self, response):
        self.responder = lambda request: response

    def raise_error(self, error_cls, message="gateway down"):
        def respond(request):
            raise error_cls(message, request=request)
        self.responder = respond

    def handler(self, request):
        self.requests.append(request)
        if self.on_request is not None:
            self.on_request(request)
        return self.responder(request)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def products(db):
    items = {
        1: Product(id=1, name="Linen Shirt", price=35000, image="/images/linen-shirt.jpg"),
        2: Product(id=2, name="Denim Jacket", price=89000, image="/images/denim-jacket.jpg"),
        3: Product(id=3, name="Canvas Tote", price=19000, image="/images/canvas-tote.jpg"),
    }
    db.add_all(items.values())
    db.commit()
    return items


@pytest.fixture
def fill_cart(db):
    def fill(user_id, *lines):
        cart = db.query(Cart).filter(Cart.user_id == user_id).first()
        if cart is None:
            cart = Cart(user_id=user_id)
            db.add(cart)
            db.commit()
        for product_id, quantity in lines:
            db.add(CartItem(cart_id=cart.id, product_id=product_id, quantity=quantity))
        db.commit()
        return cart
    return fill


@pytest.fixture
def gateway_stub():
    return GatewayStub()


@pytest.fixture
def http_client(gateway_stub):
    return httpx.AsyncClient(transport=httpx.MockTransport(gateway_stub.handler))


@pytest.fixture
def payment_gateway(http_client):
    return PaymentGatewayClient(
        http_client,
        base_url="https://gateway.test",
        secret_key="test_sk_123"
    )


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def reconciliation_queue(fake_redis):
    return ReconciliationQueue(fake_redis)


@pytest.fixture
def cart_service():
    return CartService(CatalogService())


@pytest.fixture
def order_service(cart_service, payment_gateway, reconciliation_queue):
    return OrderService(
        CatalogService(),
        cart_service,
        payment_gateway,
        reconciliation_queue,
        OrderStatusMachine()
    )


@pytest.fixture
def admin_order_service():
    return AdminOrderService(OrderStatusMachine())


@pytest.fixture
def make_order(db, order_service):
    def make(user_id=USER_ID, items=None):
        request = CreateOrderRequest(items=items, **DELIVERY)
        return order_service.create_order(db, user_id, request)
    return make


@pytest.fixture
def client(db, payment_gateway, reconciliation_queue):
    from main import app
    from database import get_db
    from dependencies import get_payment_gateway, get_reconciliation_queue

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_reconciliation_queue] = lambda: reconciliation_queue
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
