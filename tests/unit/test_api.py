"""HTTP-level tests: routing, auth, response envelope and error mapping.

Application services are replaced with AsyncMocks so no DB is touched.
"""
from collections.abc import Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient

from src.main import app
from src.mp_common.database import get_db_session
from src.mp_common.errors import (
    ForbiddenError,
    InvalidTransitionError,
    SettlementAlreadyCompletedError,
)
from src.mp_gateway.auth.dependencies import get_current_user_id

BUYER = "user-buyer"


def _payload(data: dict[str, object]) -> MagicMock:
    result = MagicMock()
    result.model_dump.return_value = data
    return result


@pytest.fixture
def authed() -> Iterator[None]:
    async def _db() -> object:
        return MagicMock()

    app.dependency_overrides[get_current_user_id] = lambda: BUYER
    app.dependency_overrides[get_db_session] = _db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def order_service(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    service = AsyncMock()
    monkeypatch.setattr("src.mp_order.api.router._service", service)
    return service


@pytest.fixture
def listing_service(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    service = AsyncMock()
    monkeypatch.setattr("src.mp_listing.api.router._service", service)
    return service


async def test_health(client: AsyncClient) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


async def test_missing_token_is_401(client: AsyncClient, listing_service: AsyncMock) -> None:
    async def _db() -> object:
        return MagicMock()

    app.dependency_overrides[get_db_session] = _db
    try:
        resp = await client.get("/api/v1/listings")
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 401
    body = resp.json()
    assert body["code"] == 1001
    assert body["data"] is None
    assert resp.headers["www-authenticate"] == "Bearer"
    listing_service.list_listings.assert_not_awaited()


async def test_create_listing_envelope(
    client: AsyncClient, authed: None, listing_service: AsyncMock
) -> None:
    listing_service.create_listing.return_value = _payload({"id": "lst_1", "status": "pending"})
    resp = await client.post(
        "/api/v1/listings",
        json={"kind": "ITEM", "title": "Lamp"},
        headers={"X-Forwarded-For": "203.0.113.7", "X-Request-Id": "req_fixed"},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["code"] == 0
    assert body["data"] == {"id": "lst_1", "status": "pending"}
    assert body["request_id"] == "req_fixed"
    assert resp.headers["x-request-id"] == "req_fixed"
    args = listing_service.create_listing.await_args.args
    assert args[1] == BUYER
    assert args[3] == "203.0.113.7"


async def test_schema_validation_rejects_bad_kind(
    client: AsyncClient, authed: None, listing_service: AsyncMock
) -> None:
    resp = await client.post("/api/v1/listings", json={"kind": "AUCTION"})
    assert resp.status_code == 422
    listing_service.create_listing.assert_not_awaited()


async def test_state_conflict_is_retryable(
    client: AsyncClient, authed: None, order_service: AsyncMock
) -> None:
    order_service.cancel_order.side_effect = InvalidTransitionError("shipping", "cancelled")
    resp = await client.post("/api/v1/orders/ord_1/cancel")
    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == 4001
    assert body["retryable"] is True


async def test_invariant_violation_is_500(
    client: AsyncClient, authed: None, order_service: AsyncMock
) -> None:
    order_service.confirm_receipt.side_effect = SettlementAlreadyCompletedError("ord_1")
    resp = await client.post("/api/v1/marketplace-orders/ord_1/confirm-receipt")
    assert resp.status_code == 500
    body = resp.json()
    assert body["code"] == 5001
    assert body["retryable"] is False


async def test_marketplace_list_is_scoped_by_kind(
    client: AsyncClient, authed: None, order_service: AsyncMock
) -> None:
    order_service.list_orders.return_value = _payload({"items": [], "next_cursor": None})
    resp = await client.get("/api/v1/marketplace-orders", params={"role": "buyer", "limit": 5})
    assert resp.status_code == 200
    order_service.list_orders.assert_awaited_once()
    args = order_service.list_orders.await_args.args
    assert args[1:] == (BUYER, "buyer", "MARKETPLACE", None, None, 5)


async def test_update_status_routes_target(
    client: AsyncClient, authed: None, order_service: AsyncMock
) -> None:
    order_service.update_status.return_value = _payload({"id": "ord_1", "status": "processing"})
    resp = await client.put("/api/v1/orders/ord_1/status", json={"status": "processing"})
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "processing"
    args = order_service.update_status.await_args.args
    assert args[1:] == (BUYER, "ord_1", "processing", "PROXY_PURCHASE")


async def test_marketplace_routes_pass_their_kind(
    client: AsyncClient, authed: None, order_service: AsyncMock
) -> None:
    order_service.cancel_order.return_value = _payload({"id": "ord_1", "status": "cancelled"})
    resp = await client.post("/api/v1/marketplace-orders/ord_1/cancel")
    assert resp.status_code == 200
    assert order_service.cancel_order.await_args.args[1:] == (BUYER, "ord_1", "MARKETPLACE")


async def test_listing_edit_route(
    client: AsyncClient, authed: None, listing_service: AsyncMock
) -> None:
    listing_service.update_listing.return_value = _payload({"id": "lst_1", "title": "New"})
    resp = await client.patch("/api/v1/listings/lst_1", json={"title": "New"})
    assert resp.status_code == 200
    args = listing_service.update_listing.await_args.args
    assert args[1:3] == (BUYER, "lst_1")
    assert args[3].model_dump(exclude_unset=True) == {"title": "New"}


async def test_purchaser_images_route(
    client: AsyncClient, authed: None, listing_service: AsyncMock
) -> None:
    listing_service.upload_purchaser_images.return_value = _payload(
        {"id": "lst_1", "status": "purchased"}
    )
    resp = await client.put(
        "/api/v1/listings/lst_1/purchaser-images",
        json={"images": ["https://cdn.example.com/p.jpg"]},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "purchased"


async def test_receipt_requires_reference(
    client: AsyncClient, authed: None, listing_service: AsyncMock
) -> None:
    resp = await client.put("/api/v1/listings/lst_1/receipt", json={"receipt_image": ""})
    assert resp.status_code == 422
    listing_service.update_receipt.assert_not_awaited()


async def test_legal_list_other_user(
    client: AsyncClient, authed: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    service = AsyncMock()
    service.list_for_user.side_effect = ForbiddenError("nope")
    monkeypatch.setattr("src.mp_legal.api.router._service", service)
    resp = await client.get("/api/v1/legal-agreements/user/user-other")
    assert resp.status_code == 403
    assert resp.json()["code"] == 1007
