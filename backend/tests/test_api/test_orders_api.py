"""
API tests for order endpoints.

Tests cover principal headers, ownership checks, error body rendering and
the admin-only status update route.
"""

import uuid
from decimal import Decimal

import pytest

API = "/api/v1/orders"


@pytest.fixture
def order_payload(customer):
    """Build an order creation body for the customer."""

    def _payload(*lines, **overrides):
        payload = {
            "user_id": str(customer.id),
            "customer_name": "Sara Al-Qahtani",
            "customer_email": "sara@example.com",
            "customer_phone": "+966500000000",
            "shipping_address": {
                "line1": "King Fahd Road 12",
                "city": "Riyadh",
                "region": "Riyadh",
            },
            "items": [
                {"product_id": str(product_id), "quantity": quantity}
                for product_id, quantity in lines
            ],
        }
        payload.update(overrides)
        return payload

    return _payload


class TestHealthAndHeaders:
    """Test application-level behaviour."""

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.headers["X-Request-ID"]

    async def test_request_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    async def test_missing_principal_headers(self, client):
        response = await client.get(f"{API}/{uuid.uuid4()}")

        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHORIZED"

    async def test_invalid_role(self, client):
        response = await client.get(
            f"{API}/{uuid.uuid4()}",
            headers={"X-User-Id": str(uuid.uuid4()), "X-User-Role": "PIRATE"},
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid principal"


class TestCreateOrder:
    """Test POST /orders."""

    async def test_create(self, client, customer, auth_headers, make_product, order_payload):
        product = await make_product()

        response = await client.post(
            API, json=order_payload((product.id, 2)), headers=auth_headers(customer)
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "PENDING"
        assert body["payment_status"] == "PENDING"
        assert body["installation_status"] == "NOT_REQUIRED"
        assert body["order_number"].startswith("RBH")
        assert Decimal(body["total_amount"]) == Decimal("2350")
        assert len(body["items"]) == 1
        assert body["items"][0]["quantity"] == 2

    async def test_insufficient_stock(
        self, client, customer, auth_headers, make_product, order_payload
    ):
        product = await make_product(stock_quantity=1)

        response = await client.post(
            API, json=order_payload((product.id, 2)), headers=auth_headers(customer)
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_FAILED"
        assert "Insufficient stock" in body["message"]

    async def test_order_for_another_user_forbidden(
        self, client, customer, auth_headers, make_product, order_payload
    ):
        product = await make_product()
        payload = order_payload((product.id, 1), user_id=str(uuid.uuid4()))

        response = await client.post(API, json=payload, headers=auth_headers(customer))

        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"

    async def test_schema_failure_rendered_as_validation_error(
        self, client, customer, auth_headers, order_payload
    ):
        response = await client.post(
            API, json=order_payload(), headers=auth_headers(customer)
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_FAILED"
        assert body["context"]["errors"]


class TestReadOrders:
    """Test order reads and access control."""

    async def _place(self, client, customer, auth_headers, make_product, order_payload):
        product = await make_product()
        response = await client.post(
            API, json=order_payload((product.id, 1)), headers=auth_headers(customer)
        )
        return response.json()

    async def test_owner_and_admin_can_read(
        self, client, customer, admin, auth_headers, make_product, order_payload
    ):
        order = await self._place(client, customer, auth_headers, make_product, order_payload)

        own = await client.get(f"{API}/{order['id']}", headers=auth_headers(customer))
        as_admin = await client.get(f"{API}/{order['id']}", headers=auth_headers(admin))

        assert own.status_code == 200
        assert as_admin.status_code == 200
        assert own.json()["order_number"] == order["order_number"]

    async def test_other_customer_forbidden(
        self, client, customer, auth_headers, make_product, order_payload
    ):
        order = await self._place(client, customer, auth_headers, make_product, order_payload)
        stranger = {"X-User-Id": str(uuid.uuid4()), "X-User-Role": "USER"}

        response = await client.get(f"{API}/{order['id']}", headers=stranger)

        assert response.status_code == 403

    async def test_missing_order(self, client, admin, auth_headers):
        response = await client.get(f"{API}/{uuid.uuid4()}", headers=auth_headers(admin))

        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    async def test_list_own_orders(
        self, client, customer, auth_headers, make_product, order_payload
    ):
        await self._place(client, customer, auth_headers, make_product, order_payload)

        response = await client.get(API, headers=auth_headers(customer))

        assert response.status_code == 200
        assert response.json()["total"] == 1

    async def test_list_other_user_requires_admin(
        self, client, customer, admin, auth_headers, make_product, order_payload
    ):
        await self._place(client, customer, auth_headers, make_product, order_payload)
        params = {"user_id": str(customer.id)}

        as_stranger = await client.get(
            API,
            params=params,
            headers={"X-User-Id": str(uuid.uuid4()), "X-User-Role": "USER"},
        )
        as_admin = await client.get(API, params=params, headers=auth_headers(admin))

        assert as_stranger.status_code == 403
        assert as_admin.json()["total"] == 1


class TestUpdateStatus:
    """Test PUT /orders/{id}/status."""

    async def test_admin_confirms_order(
        self, client, customer, admin, auth_headers, make_product, order_payload
    ):
        product = await make_product()
        created = await client.post(
            API, json=order_payload((product.id, 1)), headers=auth_headers(customer)
        )
        order_id = created.json()["id"]

        response = await client.put(
            f"{API}/{order_id}/status",
            json={"status": "CONFIRMED", "reason": "Payment verified"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "CONFIRMED"

        history = await client.get(f"{API}/{order_id}/history", headers=auth_headers(customer))
        assert [row["new_status"] for row in history.json()] == ["PENDING", "CONFIRMED"]

    async def test_illegal_transition_conflict(
        self, client, customer, admin, auth_headers, make_product, order_payload
    ):
        product = await make_product()
        created = await client.post(
            API, json=order_payload((product.id, 1)), headers=auth_headers(customer)
        )

        response = await client.put(
            f"{API}/{created.json()['id']}/status",
            json={"status": "DELIVERED"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "INVALID_TRANSITION"
        assert body["context"]["allowed_transitions"] == ["CANCELLED", "CONFIRMED", "REFUNDED"]

    async def test_customer_cannot_update_status(
        self, client, customer, auth_headers, make_product, order_payload
    ):
        product = await make_product()
        created = await client.post(
            API, json=order_payload((product.id, 1)), headers=auth_headers(customer)
        )

        response = await client.put(
            f"{API}/{created.json()['id']}/status",
            json={"status": "CONFIRMED"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Admin role required"
