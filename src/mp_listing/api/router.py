"""mp_listing REST API: want-ads and marketplace items."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, success_response
from src.mp_gateway.auth.dependencies import get_current_user_id
from src.mp_geo.client_address import get_client_ip
from src.mp_listing.application.schemas import (
    AcceptListingRequest,
    CreateListingRequest,
    ListingTrackingRequest,
    PurchaserImagesRequest,
    ReceiptRequest,
    UpdateListingRequest,
)
from src.mp_listing.application.service import ListingApplicationService

router = APIRouter(prefix="/listings", tags=["listings"])

_service = ListingApplicationService()


@router.post("", status_code=201)
async def create_listing(
    body: CreateListingRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_listing(db, user_id, body, get_client_ip(request))
    return success_response(data.model_dump(), request)


@router.get("")
async def list_listings(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    kind: Literal["WANT_AD", "ITEM"] | None = Query(None, description="Filter by listing kind"),
    status: str | None = Query(None, description="Filter by listing status"),
    owner_id: str | None = Query(None, description="Filter by owner"),
    cursor: str | None = Query(None, description="Pagination cursor (listing ID)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_listings(db, kind, status, owner_id, cursor, limit)
    return success_response(data.model_dump(), request)


@router.get("/{listing_id}")
async def get_listing(
    listing_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_listing(db, listing_id)
    return success_response(data.model_dump(), request)


@router.post("/{listing_id}/accept")
async def accept_listing(
    listing_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    body: AcceptListingRequest | None = None,
) -> ApiResponse:
    consent = body.consent if body else None
    data = await _service.accept_listing(
        db, user_id, listing_id, consent, get_client_ip(request)
    )
    return success_response(data.model_dump(), request)


@router.delete("/{listing_id}")
async def remove_listing(
    listing_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.remove_listing(db, user_id, listing_id)
    return success_response(data.model_dump(), request)


@router.patch("/{listing_id}")
async def update_listing(
    listing_id: str,
    body: UpdateListingRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_listing(db, user_id, listing_id, body)
    return success_response(data.model_dump(), request)


@router.put("/{listing_id}/purchaser-images")
async def upload_purchaser_images(
    listing_id: str,
    body: PurchaserImagesRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.upload_purchaser_images(db, user_id, listing_id, body)
    return success_response(data.model_dump(), request)


@router.put("/{listing_id}/receipt")
async def update_receipt(
    listing_id: str,
    body: ReceiptRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_receipt(db, user_id, listing_id, body)
    return success_response(data.model_dump(), request)


@router.put("/{listing_id}/tracking")
async def update_tracking(
    listing_id: str,
    body: ListingTrackingRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_tracking(db, user_id, listing_id, body)
    return success_response(data.model_dump(), request)
