# src/mp_order/api/router.py
"""mp_order REST API.

/orders serves proxy-purchase orders and /marketplace-orders serves
marketplace orders. Transition endpoints are identical for both: the order's
own kind selects the state machine, and an order of the other kind is not
found under a router.
"""
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.database import get_db_session
from src.mp_common.enums import OrderKind
from src.mp_common.response import ApiResponse, success_response
from src.mp_gateway.auth.dependencies import get_current_user_id
from src.mp_geo.client_address import get_client_ip
from src.mp_order.application.schemas import (
    CreateMarketplaceOrderRequest,
    CreateProxyOrderRequest,
    PayOrderRequest,
    ShipOrderRequest,
    TrackingRequest,
    UpdateStatusRequest,
)
from src.mp_order.application.service import OrderLifecycleService

_service = OrderLifecycleService()

CurrentUser = Annotated[str, Depends(get_current_user_id)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


def _add_lifecycle_routes(router: APIRouter, kind: OrderKind) -> None:
    @router.get("")
    async def list_orders(
        user_id: CurrentUser,
        db: DbSession,
        request: Request,
        role: Literal["buyer", "seller"] | None = Query(None, description="Omit for both"),
        status: str | None = Query(None, description="Filter by order status"),
        cursor: str | None = Query(None, description="Pagination cursor (order ID)"),
        limit: int = Query(20, ge=1, le=100, description="Items per page"),
    ) -> ApiResponse:
        data = await _service.list_orders(db, user_id, role, kind.value, status, cursor, limit)
        return success_response(data.model_dump(), request)

    @router.get("/{order_id}")
    async def get_order(
        order_id: str, user_id: CurrentUser, db: DbSession, request: Request
    ) -> ApiResponse:
        data = await _service.get_order(db, user_id, order_id, kind.value)
        return success_response(data.model_dump(), request)

    @router.post("/{order_id}/pay")
    async def pay_order(
        order_id: str,
        user_id: CurrentUser,
        db: DbSession,
        request: Request,
        body: PayOrderRequest | None = None,
    ) -> ApiResponse:
        data = await _service.pay_order(
            db, user_id, order_id, body, get_client_ip(request), kind.value
        )
        return success_response(data.model_dump(), request)

    @router.put("/{order_id}/status")
    async def update_status(
        order_id: str,
        body: UpdateStatusRequest,
        user_id: CurrentUser,
        db: DbSession,
        request: Request,
    ) -> ApiResponse:
        data = await _service.update_status(db, user_id, order_id, body.status, kind.value)
        return success_response(data.model_dump(), request)

    @router.post("/{order_id}/ship")
    async def ship_order(
        order_id: str,
        user_id: CurrentUser,
        db: DbSession,
        request: Request,
        body: ShipOrderRequest | None = None,
    ) -> ApiResponse:
        data = await _service.ship_order(db, user_id, order_id, body, kind.value)
        return success_response(data.model_dump(), request)

    @router.put("/{order_id}/tracking")
    async def update_tracking(
        order_id: str,
        body: TrackingRequest,
        user_id: CurrentUser,
        db: DbSession,
        request: Request,
    ) -> ApiResponse:
        data = await _service.update_tracking(db, user_id, order_id, body, kind.value)
        return success_response(data.model_dump(), request)

    @router.post("/{order_id}/confirm-receipt")
    async def confirm_receipt(
        order_id: str, user_id: CurrentUser, db: DbSession, request: Request
    ) -> ApiResponse:
        data = await _service.confirm_receipt(db, user_id, order_id, kind.value)
        return success_response(data.model_dump(), request)

    @router.post("/{order_id}/cancel")
    async def cancel_order(
        order_id: str, user_id: CurrentUser, db: DbSession, request: Request
    ) -> ApiResponse:
        data = await _service.cancel_order(db, user_id, order_id, kind.value)
        return success_response(data.model_dump(), request)


proxy_router = APIRouter(prefix="/orders", tags=["orders"])
marketplace_router = APIRouter(prefix="/marketplace-orders", tags=["marketplace-orders"])


@proxy_router.post("", status_code=201)
async def create_proxy_order(
    body: CreateProxyOrderRequest, user_id: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.create_proxy_order(db, user_id, body, get_client_ip(request))
    return success_response(data.model_dump(), request)


@marketplace_router.post("", status_code=201)
async def create_marketplace_order(
    body: CreateMarketplaceOrderRequest, user_id: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.create_marketplace_order(db, user_id, body, get_client_ip(request))
    return success_response(data.model_dump(), request)


_add_lifecycle_routes(proxy_router, OrderKind.PROXY_PURCHASE)
_add_lifecycle_routes(marketplace_router, OrderKind.MARKETPLACE)
