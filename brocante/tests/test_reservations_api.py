"""
Tests for Reservations API endpoints.

Tests cover:
- Reserving a product (success, conflict, unknown product, bad input)
- Reservation retrieval
- Admin status updates and release on cancel
- Webhook on new reservations
"""
import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from brocante.app.api import reservations as reservations_api
from brocante.app.core.settings import get_settings
from brocante.app.models.product import Product
from brocante.tests.conftest import future_pickup


def _reservation_payload(product_id: str, **overrides) -> dict:
    payload = {
        "product_id": product_id,
        "customer_name": "Anna Muster",
        "customer_phone": "0791234567",
        "pickup_time": future_pickup(),
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_reservation_success(
    client: AsyncClient,
    test_session: AsyncSession,
    test_product: Product,
):
    response = await client.post("/api/reservations", json=_reservation_payload(test_product.id))

    assert response.status_code == 201
    data = response.json()
    assert data["id"].startswith("res_")
    assert data["status"] == "pending"
    assert data["product_id"] == test_product.id
    created_at = datetime.fromisoformat(data["created_at"])
    expires_at = datetime.fromisoformat(data["expires_at"])
    assert expires_at - created_at == timedelta(hours=48)

    await test_session.refresh(test_product)
    assert test_product.is_available is False


@pytest.mark.asyncio
async def test_reserved_product_leaves_storefront(client: AsyncClient, test_product: Product):
    await client.post("/api/reservations", json=_reservation_payload(test_product.id))

    listing = await client.get("/api/products")
    assert test_product.id not in [p["id"] for p in listing.json()]

    detail = await client.get(f"/api/products/{test_product.id}")
    assert detail.status_code == 200
    assert detail.json()["is_available"] is False


@pytest.mark.asyncio
async def test_create_reservation_conflict(client: AsyncClient, test_product: Product):
    first = await client.post("/api/reservations", json=_reservation_payload(test_product.id))
    assert first.status_code == 201

    second = await client.post(
        "/api/reservations",
        json=_reservation_payload(test_product.id, customer_name="Beat Beispiel"),
    )
    assert second.status_code == 409
    assert second.json()["detail"] == "Produkt ist nicht mehr verfügbar"


@pytest.mark.asyncio
async def test_create_reservation_sold_product(client: AsyncClient, sold_product: Product):
    response = await client.post("/api/reservations", json=_reservation_payload(sold_product.id))
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_create_reservation_unknown_product(client: AsyncClient):
    response = await client.post("/api/reservations", json=_reservation_payload("no-such-product"))
    assert response.status_code == 404
    assert response.json()["detail"] == "Produkt nicht gefunden"


@pytest.mark.asyncio
async def test_create_reservation_missing_fields(client: AsyncClient, test_product: Product):
    response = await client.post("/api/reservations", json={"product_id": test_product.id})
    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"customer_name": "   "},
        {"customer_phone": "   "},
        {"pickup_time": "morgen"},
        {"pickup_time": "2020-01-04T10:00:00Z"},
        {"pickup_time": "9999-12-31T23:59:59-05:00"},
    ],
)
async def test_create_reservation_invalid_input(
    client: AsyncClient,
    test_session: AsyncSession,
    test_product: Product,
    overrides: dict,
):
    response = await client.post("/api/reservations", json=_reservation_payload(test_product.id, **overrides))

    assert response.status_code == 400
    await test_session.refresh(test_product)
    assert test_product.is_available is True


@pytest.mark.asyncio
async def test_create_reservation_sends_webhook(
    client: AsyncClient,
    test_product: Product,
    monkeypatch,
):
    sent = []

    async def fake_notify(webhook_url, reservation, product, tz):
        sent.append((webhook_url, reservation.id, product.name, tz))
        return True

    monkeypatch.setattr(get_settings(), "RESERVATION_WEBHOOK_URL", "https://hooks.example/reservations")
    monkeypatch.setattr(reservations_api, "notify_reservation_created", fake_notify)

    response = await client.post("/api/reservations", json=_reservation_payload(test_product.id))

    assert response.status_code == 201
    assert sent == [(
        "https://hooks.example/reservations",
        response.json()["id"],
        test_product.name,
        "Europe/Zurich",
    )]


@pytest.mark.asyncio
async def test_webhook_not_called_without_url(
    client: AsyncClient,
    test_product: Product,
    monkeypatch,
):
    async def fail_notify(*args, **kwargs):
        raise AssertionError("webhook must not be sent")

    monkeypatch.setattr(reservations_api, "notify_reservation_created", fail_notify)

    response = await client.post("/api/reservations", json=_reservation_payload(test_product.id))
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_get_reservation(client: AsyncClient, test_product: Product):
    created = await client.post("/api/reservations", json=_reservation_payload(test_product.id))
    reservation_id = created.json()["id"]

    response = await client.get(f"/api/reservations/{reservation_id}")

    assert response.status_code == 200
    assert response.json()["customer_name"] == "Anna Muster"


@pytest.mark.asyncio
async def test_get_reservation_not_found(client: AsyncClient):
    response = await client.get("/api/reservations/res_0_missing")
    assert response.status_code == 404
    assert response.json()["detail"] == "Reservierung nicht gefunden"


# --- Status updates (admin) ---

@pytest.mark.asyncio
async def test_update_status_requires_admin(client: AsyncClient, make_product, make_reservation):
    product = await make_product(is_available=False)
    reservation = await make_reservation(product)

    response = await client.patch(
        f"/api/reservations/{reservation.id}/status",
        json={"status": "confirmed"},
    )
    assert response.status_code == 401

    response = await client.patch(
        f"/api/reservations/{reservation.id}/status",
        json={"status": "confirmed"},
        headers={"X-Admin-Token": "wrong"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_update_status_confirm(
    client: AsyncClient,
    admin_header: dict,
    make_product,
    make_reservation,
):
    product = await make_product(is_available=False)
    reservation = await make_reservation(product)

    response = await client.patch(
        f"/api/reservations/{reservation.id}/status",
        json={"status": "confirmed"},
        headers=admin_header,
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "status": "confirmed"}


@pytest.mark.asyncio
async def test_update_status_cancel_releases_product(
    client: AsyncClient,
    test_session: AsyncSession,
    admin_header: dict,
    test_product: Product,
):
    created = await client.post("/api/reservations", json=_reservation_payload(test_product.id))
    reservation_id = created.json()["id"]

    response = await client.patch(
        f"/api/reservations/{reservation_id}/status",
        json={"status": "cancelled"},
        headers=admin_header,
    )

    assert response.status_code == 200
    await test_session.refresh(test_product)
    assert test_product.is_available is True

    again = await client.post("/api/reservations", json=_reservation_payload(test_product.id))
    assert again.status_code == 201


@pytest.mark.asyncio
async def test_update_status_not_found(client: AsyncClient, admin_header: dict):
    response = await client.patch(
        "/api/reservations/res_0_missing/status",
        json={"status": "confirmed"},
        headers=admin_header,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"status": "shipped"}, {"status": ""}, {}])
async def test_update_status_invalid(
    client: AsyncClient,
    admin_header: dict,
    make_product,
    make_reservation,
    body: dict,
):
    product = await make_product(is_available=False)
    reservation = await make_reservation(product)

    response = await client.patch(
        f"/api/reservations/{reservation.id}/status",
        json=body,
        headers=admin_header,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_status_forbidden_transition(
    client: AsyncClient,
    admin_header: dict,
    make_product,
    make_reservation,
):
    product = await make_product()
    reservation = await make_reservation(product, status="expired")

    response = await client.patch(
        f"/api/reservations/{reservation.id}/status",
        json={"status": "confirmed"},
        headers=admin_header,
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_out_of_range_pickup_time_is_rejected(client: AsyncClient, test_product: Product):
    """Offsets that push the time past datetime.max are a client error, not a crash."""
    response = await client.post(
        "/api/reservations",
        json=_reservation_payload(test_product.id, pickup_time="9999-12-31T23:59:59-05:00"),
    )
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Ungültige Abholzeit")


@pytest.mark.asyncio
async def test_webhook_lookup_failure_keeps_reservation(
    client: AsyncClient,
    test_product: Product,
    monkeypatch,
):
    async def failing_get(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection reset"))

    async def fail_notify(*args, **kwargs):
        raise AssertionError("webhook must not be sent without a product")

    monkeypatch.setattr(get_settings(), "RESERVATION_WEBHOOK_URL", "https://hooks.example/reservations")
    monkeypatch.setattr(reservations_api, "notify_reservation_created", fail_notify)
    monkeypatch.setattr(AsyncSession, "get", failing_get)

    response = await client.post("/api/reservations", json=_reservation_payload(test_product.id))

    assert response.status_code == 201
    reservation_id = response.json()["id"]

    monkeypatch.undo()
    stored = await client.get(f"/api/reservations/{reservation_id}")
    assert stored.status_code == 200
    assert stored.json()["status"] == "pending"


@pytest.mark.asyncio
async def test_cancel_after_mark_sold_keeps_product_off_storefront(
    client: AsyncClient,
    admin_header: dict,
    test_product: Product,
):
    created = await client.post("/api/reservations", json=_reservation_payload(test_product.id))
    reservation_id = created.json()["id"]
    await client.patch(
        f"/api/reservations/{reservation_id}/status",
        json={"status": "confirmed"},
        headers=admin_header,
    )
    sold = await client.post(f"/admin/products/{test_product.id}/mark-sold", headers=admin_header)
    assert sold.status_code == 200

    response = await client.patch(
        f"/api/reservations/{reservation_id}/status",
        json={"status": "cancelled"},
        headers=admin_header,
    )

    assert response.status_code == 200
    detail = await client.get(f"/api/products/{test_product.id}")
    assert detail.json()["is_available"] is False
    assert detail.json()["sold_at"] is not None
    listing = await client.get("/api/products")
    assert test_product.id not in [p["id"] for p in listing.json()]
